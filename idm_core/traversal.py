"""
Hierarchy traversal utilities.

Pure, total functions over an `ERTree`: they never mutate the tree and never
raise for missing identifiers (lookups return None instead). Used by every
resolver and by tree views that render the hierarchy row by row.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from .tree import ERNode, ERTree


@dataclass
class FlatRow:
    """One displayed row of a flattened hierarchy."""
    node: ERNode
    depth: int
    has_children: bool
    is_expanded: bool

    @property
    def is_top_level(self) -> bool:
        return self.depth == 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.node.id,
            "guid": self.node.guid,
            "name": self.node.name or "(unnamed ER)",
            "depth": self.depth,
            "has_children": self.has_children,
            "is_expanded": self.is_expanded,
        }


@dataclass
class ERLocation:
    """Where a node sits: its parent (None at top level) and sibling index."""
    node: ERNode
    parent: Optional[ERNode]
    index: int
    sibling_ids: list[str]


def _is_marked(node: ERNode, identifiers: Iterable[str]) -> bool:
    return node.id in identifiers or node.guid in identifiers


def iter_preorder(tree: ERTree) -> Iterator[tuple[ERNode, int]]:
    """Yield (node, depth) for every node, parents before children."""
    stack = [(node_id, 0) for node_id in reversed(tree.top_level_ids)]
    while stack:
        node_id, depth = stack.pop()
        yield tree.node(node_id), depth
        for child_id in reversed(tree.children_ids(node_id)):
            stack.append((child_id, depth + 1))


def flatten(tree: ERTree, expanded: Iterable[str] = ()) -> list[FlatRow]:
    """
    Flatten the hierarchy for display.

    Pre-order walk; a node's children are emitted right after it only when
    the node is expanded. Top-level nodes have depth 0.

    Args:
        tree: The ER hierarchy
        expanded: Ids (or guids) of expanded nodes

    Returns:
        The complete list of visible rows
    """
    expanded = set(expanded)
    rows: list[FlatRow] = []

    def add_rows(node_ids: list[str], depth: int):
        for node_id in node_ids:
            node = tree.node(node_id)
            children = tree.children_ids(node_id)
            is_expanded = _is_marked(node, expanded)
            rows.append(FlatRow(
                node=node,
                depth=depth,
                has_children=bool(children),
                is_expanded=is_expanded,
            ))
            if is_expanded and children:
                add_rows(children, depth + 1)

    add_rows(tree.top_level_ids, 0)
    return rows


def find_by_identifier(tree: ERTree, identifier: Optional[str]) -> Optional[ERNode]:
    """
    Find the first node whose id OR guid equals `identifier`.

    Ties are broken by traversal order: parents before children, earlier
    siblings before later ones.
    """
    if not identifier:
        return None
    for node, _depth in iter_preorder(tree):
        if node.matches(identifier):
            return node
    return None


def find_location(tree: ERTree, identifier: Optional[str]) -> Optional[ERLocation]:
    """Find a node and its position in the hierarchy."""
    node = find_by_identifier(tree, identifier)
    if node is None:
        return None

    parent_id = tree.parent_id(node.id)
    return ERLocation(
        node=node,
        parent=tree.get(parent_id) if parent_id is not None else None,
        index=tree.index_of(node.id),
        sibling_ids=tree.sibling_ids(node.id),
    )


def count_information_units(tree: ERTree, identifier: str) -> int:
    """
    Count information units owned by a node and all of its descendants.

    Returns 0 for unknown identifiers and for nodes without IUs or sub-ERs.
    """
    node = find_by_identifier(tree, identifier)
    if node is None:
        return 0
    return sum(
        len(tree.node(node_id).information_units)
        for node_id in tree.iter_subtree(node.id)
    )
