"""
Root Consolidation Resolver.

Repairs a forest of top-level ERs into a single-rooted tree when a hierarchy
is loaded, imported or converted. The user picks one strategy for the whole
operation:

- Adopt existing as root: the chosen top-level ER keeps its children and the
  other former top-level ERs are appended after them, in their original order.
- Create new root: a fresh ER without information units becomes the parent of
  every former top-level ER, in their original order.

Cancelling leaves the tree untouched; the caller aborts the whole load.
"""

import logging
from typing import Optional

from .config import EngineSettings, default_settings
from .errors import HierarchyInvariantError, ResolverStateError
from .results import ResolutionResult
from .tree import ERNode, ERTree

logger = logging.getLogger(__name__)


def needs_root_selection(tree: ERTree) -> bool:
    """Check whether the hierarchy has more than one top-level ER."""
    return len(tree.top_level_ids) > 1


def default_root_name(short_title: str = "", settings: Optional[EngineSettings] = None) -> str:
    """Suggested name for a new root: prefix + document short title."""
    settings = settings or default_settings
    short_title = (short_title or "").strip()
    if short_title:
        return f"{settings.root_name_prefix}{short_title}"
    return settings.fallback_root_name


def auto_consolidate(tree: ERTree) -> Optional[ERNode]:
    """
    Non-interactive consolidation: the first top-level ER becomes the root.

    Returns the root, or None for an empty hierarchy.
    """
    top_level = tree.top_level_ids
    if not top_level:
        return None

    root_id, rest = top_level[0], top_level[1:]
    for node_id in rest:
        tree.move(node_id, root_id)
    return tree.node(root_id)


def ensure_single_root(tree: ERTree, settings: Optional[EngineSettings] = None) -> None:
    """
    Check the single-root invariant after a resolver completed.

    Debug mode raises HierarchyInvariantError. Otherwise the hierarchy is
    repaired with `auto_consolidate`.
    """
    settings = settings or default_settings
    count = len(tree.top_level_ids)
    if count == 1:
        return

    message = f"Expected exactly one root ER, found {count}"
    if settings.debug:
        raise HierarchyInvariantError(message)

    if count == 0:
        logger.error("%s; nothing to repair", message)
        return

    logger.warning("%s; auto-consolidating under the first top-level ER", message)
    auto_consolidate(tree)


class RootConsolidationResolver:
    """
    Interactive consolidation of several top-level ERs.

    One instance covers one load/import operation. It performs no changes
    until the user picks a strategy, so cancelling needs no rollback.
    """

    def __init__(
        self,
        tree: ERTree,
        short_title: str = "",
        settings: Optional[EngineSettings] = None
    ):
        self.tree = tree
        self.short_title = short_title
        self.settings = settings or default_settings
        self._finished = False

    @property
    def is_pending(self) -> bool:
        return not self._finished

    @property
    def candidates(self) -> list[ERNode]:
        """The top-level ERs the user can choose from."""
        return self.tree.top_level

    @property
    def suggested_root_name(self) -> str:
        return default_root_name(self.short_title, self.settings)

    def select_root(self, identifier: str) -> ResolutionResult:
        """
        Make an existing top-level ER the root.

        Args:
            identifier: Id or guid of one of the current top-level ERs

        Returns:
            COMPLETED with the root's id, or FAILED if no top-level ER matches
            (the resolver stays pending so the user can pick again)
        """
        self._check_pending()

        chosen = next((er for er in self.tree.top_level if er.matches(identifier)), None)
        if chosen is None:
            logger.warning("Root selection failed: %s is not a top-level ER", identifier)
            return ResolutionResult.failed(
                f"ER not found among top-level ERs: {identifier}",
                node_id=identifier
            )

        others = [node_id for node_id in self.tree.top_level_ids if node_id != chosen.id]
        for node_id in others:
            self.tree.move(node_id, chosen.id)

        self._finish()
        logger.info("Consolidated %d top-level ERs under existing root %s", len(others) + 1, chosen.id)
        return ResolutionResult.completed(
            f"{chosen.name or chosen.id} is now the root ER",
            node_id=chosen.id,
            adopted=len(others)
        )

    def create_new_root(self, name: Optional[str] = None) -> ResolutionResult:
        """
        Create a new root ER and move every top-level ER under it.

        Args:
            name: Name for the new root (defaults to the suggested name)

        Returns:
            COMPLETED with the new root's id, or FAILED for a blank name
        """
        self._check_pending()

        name = (self.suggested_root_name if name is None else name).strip()
        if not name:
            return ResolutionResult.failed("Root ER name is required")

        former = self.tree.top_level_ids
        root = self.tree.add(ERNode(name=name))
        for node_id in former:
            self.tree.move(node_id, root.id)

        self._finish()
        logger.info("Created new root ER %s (%s) over %d former top-level ERs", root.id, name, len(former))
        return ResolutionResult.completed(
            f"Created root ER {name}",
            node_id=root.id,
            adopted=len(former)
        )

    def cancel(self) -> ResolutionResult:
        """Abandon consolidation. The caller must abort the load/import."""
        self._check_pending()
        self._finished = True
        logger.info("Root consolidation cancelled; import aborted")
        return ResolutionResult.cancelled("Import cancelled: a single root ER is required")

    def _finish(self):
        self._finished = True
        ensure_single_root(self.tree, self.settings)

    def _check_pending(self):
        if self._finished:
            raise ResolverStateError("Root consolidation already finished")
