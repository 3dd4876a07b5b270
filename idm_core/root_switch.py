"""
Root Switch Resolver.

Handles an outdent that promotes a direct child of the root to the top level.
Starting the resolver performs the promotion, so the tree transiently holds
two top-level ERs (old root first, promoted ER second). The user then picks:

- Dissolve old root: the old root is deleted and its remaining children are
  appended, in order, to the promoted ER, which becomes the root.
- Keep old root as sub: the old root, minus the promoted ER, becomes the last
  child of the promoted ER.

Cancelling rolls the promotion back to its original position.
"""

import logging
from typing import Optional

from .config import EngineSettings, default_settings
from .consolidation import ensure_single_root
from .errors import ResolverStateError
from .results import ResolutionResult
from .tree import ERNode, ERTree

logger = logging.getLogger(__name__)


class RootSwitchResolver:
    """Resolves the two-root state created by promoting a sub-ER of the root."""

    def __init__(self, tree: ERTree, promoted_id: str, settings: Optional[EngineSettings] = None):
        root = tree.root
        if root is None:
            raise ResolverStateError("Root switch requires a hierarchy with exactly one root ER")
        if tree.parent_id(promoted_id) != root.id:
            raise ResolverStateError(f"ER {promoted_id} is not a direct sub-ER of the root")

        self.tree = tree
        self.settings = settings or default_settings
        self.old_root_id = root.id
        self.promoted_id = promoted_id
        self._original_index = tree.index_of(promoted_id)
        self._finished = False

        tree.move(promoted_id, None)
        logger.debug("Promoted %s next to root %s pending root switch", promoted_id, root.id)

    @property
    def is_pending(self) -> bool:
        return not self._finished

    @property
    def old_root(self) -> ERNode:
        return self.tree.node(self.old_root_id)

    @property
    def new_root(self) -> ERNode:
        return self.tree.node(self.promoted_id)

    def dissolve_old_root(self) -> ResolutionResult:
        """Delete the old root; its other children move under the new root."""
        self._check_pending()
        old_root = self.old_root

        moved = self.tree.children_ids(self.old_root_id)
        for child_id in moved:
            self.tree.move(child_id, self.promoted_id)
        self.tree.remove(self.old_root_id)

        self._finish()
        logger.info("Root switch: dissolved %s, %s is root with %d adopted sub-ERs",
                    self.old_root_id, self.promoted_id, len(moved))
        return ResolutionResult.completed(
            f"{old_root.name or old_root.id} was dissolved",
            node_id=self.promoted_id,
            removed=self.old_root_id,
            adopted=len(moved)
        )

    def keep_old_root_as_sub(self) -> ResolutionResult:
        """Move the old root, with its remaining subtree, under the new root."""
        self._check_pending()
        self.tree.move(self.old_root_id, self.promoted_id)

        self._finish()
        logger.info("Root switch: %s is root, old root %s kept as last sub-ER",
                    self.promoted_id, self.old_root_id)
        return ResolutionResult.completed(
            f"{self.new_root.name or self.promoted_id} is now the root ER",
            node_id=self.promoted_id
        )

    def cancel(self) -> ResolutionResult:
        """Roll back the promotion; the outdent is aborted."""
        self._check_pending()
        self.tree.move(self.promoted_id, self.old_root_id, self._original_index)
        self._finished = True
        logger.info("Root switch cancelled; %s restored under %s", self.promoted_id, self.old_root_id)
        return ResolutionResult.cancelled("Outdent cancelled")

    def _finish(self):
        self._finished = True
        ensure_single_root(self.tree, self.settings)

    def _check_pending(self):
        if self._finished:
            raise ResolverStateError("Root switch already finished")
