#!/usr/bin/env python3
"""IDM core CLI - hierarchy and layout checks on a JSON document file."""

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from .association import PendingAssociationQueue
from .config import EngineSettings
from .consolidation import RootConsolidationResolver, auto_consolidate, needs_root_selection
from .errors import IdmCoreError
from .layout import apply_deltas, reconcile_layout
from .models import IdmDocument
from .traversal import count_information_units, find_by_identifier, flatten, iter_preorder
from .tree import ERTree
from .validation import validate_hierarchy, validation_summary

logger = logging.getLogger("idm_core")


def _json_out(data, code: int = 0):
    print(json.dumps(data))
    sys.exit(code)


def _error_out(message: str):
    _json_out({"status": "error", "error": message}, code=1)


def _load_document(path: str) -> IdmDocument:
    """Read a document file, reporting problems as JSON errors."""
    file_path = Path(path)
    if not file_path.exists():
        _error_out(f"Document file not found: {file_path}")
    try:
        with open(file_path, 'r') as f:
            return IdmDocument.from_json_dict(json.load(f))
    except json.JSONDecodeError as e:
        _error_out(f"Invalid JSON in {file_path}: {e}")
    except ValidationError as e:
        _error_out(f"Invalid document {file_path}: {e.error_count()} validation error(s)")


def _write_document(document: IdmDocument, output: str | None) -> str | None:
    if not output:
        return None
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(document.to_json_dict(), f, indent=2)
    return str(path)


# ── Hierarchy ────────────────────────────────────────────────────────────────

def cmd_flatten(args, settings):
    tree = ERTree.from_hierarchy(_load_document(args.file).er_hierarchy)
    if args.expand_all:
        expanded = [node.id for node, _depth in iter_preorder(tree)]
    else:
        expanded = args.expand or []
    rows = flatten(tree, expanded)
    _json_out({"status": "ok", "rows": [row.to_dict() for row in rows]})


def cmd_count(args, settings):
    tree = ERTree.from_hierarchy(_load_document(args.file).er_hierarchy)
    node = find_by_identifier(tree, args.er_id)
    if node is None:
        _error_out(f"ER not found: {args.er_id}")
    _json_out({
        "status": "ok",
        "er_id": node.id,
        "information_units": count_information_units(tree, node.id),
    })


def cmd_validate(args, settings):
    document = _load_document(args.file)
    tree = ERTree.from_hierarchy(document.er_hierarchy)
    issues = validate_hierarchy(tree, document.shapes, document.data_object_er_map)
    _json_out({
        "status": "ok",
        "summary": validation_summary(issues),
        "issues": [issue.to_dict() for issue in issues],
    })


def cmd_consolidate(args, settings):
    document = _load_document(args.file)
    tree = ERTree.from_hierarchy(document.er_hierarchy)

    if not needs_root_selection(tree):
        _json_out({"status": "ok", "message": "Hierarchy already has a single root"})

    if args.auto:
        auto_consolidate(tree)
        result = {"status": "completed", "message": "First top-level ER used as root"}
    else:
        resolver = RootConsolidationResolver(tree, document.short_title, settings)
        if args.root:
            outcome = resolver.select_root(args.root)
        else:
            outcome = resolver.create_new_root(args.new_root or None)
        if not outcome.ok:
            _error_out(outcome.message)
        result = outcome.to_dict()

    document.er_hierarchy = tree.to_hierarchy()
    result["written"] = _write_document(document, args.output)
    result["root"] = tree.root.id if tree.root else None
    _json_out(result)


# ── Diagram ──────────────────────────────────────────────────────────────────

def cmd_layout(args, settings):
    document = _load_document(args.file)
    report = reconcile_layout(
        document.shapes,
        padding=args.padding,
        max_passes=args.max_passes,
        settings=settings
    )
    result = {"status": "ok", **report.to_dict()}
    if args.output:
        apply_deltas(document.shapes, report.deltas)
        result["written"] = _write_document(document, args.output)
    _json_out(result)


def cmd_pending(args, settings):
    document = _load_document(args.file)
    queue = PendingAssociationQueue.from_shapes(document.shapes, document.data_object_er_map)
    _json_out({
        "status": "ok",
        "pending": [{"id": shape.id, "name": shape.display_name, "type": shape.type} for shape in queue],
    })


def main(argv=None):
    parser = argparse.ArgumentParser(description="IDM hierarchy and layout consistency tool")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # Hierarchy
    p = sub.add_parser("flatten")
    p.add_argument("file")
    p.add_argument("--expand", action="append", default=None)
    p.add_argument("--expand-all", action="store_true")

    p = sub.add_parser("count")
    p.add_argument("file")
    p.add_argument("--er-id", required=True)

    p = sub.add_parser("validate")
    p.add_argument("file")

    p = sub.add_parser("consolidate")
    p.add_argument("file")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--root", default=None)
    group.add_argument("--new-root", nargs="?", const="", default=None)
    group.add_argument("--auto", action="store_true")
    p.add_argument("-o", "--output", default=None)

    # Diagram
    p = sub.add_parser("layout")
    p.add_argument("file")
    p.add_argument("--padding", type=float, default=None)
    p.add_argument("--max-passes", type=int, default=None)
    p.add_argument("-o", "--output", default=None)

    p = sub.add_parser("pending")
    p.add_argument("file")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level), format="[%(levelname)s] %(message)s"
    )
    settings = EngineSettings.from_env()

    cmd_map = {
        "flatten": cmd_flatten,
        "count": cmd_count,
        "validate": cmd_validate,
        "consolidate": cmd_consolidate,
        "layout": cmd_layout,
        "pending": cmd_pending,
    }
    try:
        cmd_map[args.command](args, settings)
    except IdmCoreError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        _error_out(str(e))


if __name__ == "__main__":
    main()
