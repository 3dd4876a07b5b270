"""
Editing Session - state of one open IDM document.

This module implements:
- Single document state (one document open at a time)
- Load/import with interactive root consolidation
- Structural ER edits, including outdent with a pending root switch
- The pending data-object association queue fed by diagram notifications
- Layout reconciliation over the current shapes
- Linear undo/redo of the ER hierarchy using snapshots

Every resolver is driven through the session so that cancellation can roll
back exactly the in-flight action and nothing else.
"""

import logging
from typing import Callable, Optional

from .association import DataObjectAssociationResolver, PendingAssociationQueue
from .config import EngineSettings, default_settings
from .consolidation import RootConsolidationResolver, needs_root_selection
from .editing import (
    OutdentOutcome,
    add_er as core_add_er,
    delete_er as core_delete_er,
    indent as core_indent,
    move_as_sub_er as core_move_as_sub_er,
    move_down as core_move_down,
    move_up as core_move_up,
    outdent as core_outdent,
    unlink_nodes,
    update_er as core_update_er,
)
from .errors import DuplicateNodeError, ResolverStateError
from .layout import LayoutReport, apply_deltas, reconcile_layout
from .models import IdmDocument, Shape
from .results import ResolutionResult, ResolutionStatus
from .root_switch import RootSwitchResolver
from .traversal import FlatRow, flatten
from .tree import ERNode, ERTree

logger = logging.getLogger(__name__)


class EditingSession:
    """
    Owns the ER hierarchy, diagram shape snapshot, data-object links and
    association queue of the open document.

    The history system works via snapshots of the hierarchy and links:
    - Each mutation pushes a copy of the state before the change
    - Undo restores the previous snapshot
    - Redo re-applies a snapshot from the future stack
    """

    def __init__(self, settings: Optional[EngineSettings] = None, max_history: int = 100):
        self.settings = settings or default_settings
        self._tree = ERTree()
        self._short_title = ""
        self._shapes: dict[str, Shape] = {}      # shape_id -> Shape, diagram order
        self._links: dict[str, str] = {}         # data object id -> ER reference
        self._queue = PendingAssociationQueue()
        self._history: list[tuple[ERTree, dict]] = []
        self._future: list[tuple[ERTree, dict]] = []
        self._max_history = max_history
        self._dirty = False
        self._is_open = False
        self._on_change_callbacks: list[Callable] = []

        # In-flight resolutions
        self._consolidation: Optional[RootConsolidationResolver] = None
        self._pending_document: Optional[IdmDocument] = None
        self._pending_tree: Optional[ERTree] = None
        self._root_switch: Optional[RootSwitchResolver] = None
        self._queue_unlinked_after_load = True
        # Data object to restore if a consolidation started by ER creation is cancelled
        self._rollback_shape: Optional[tuple[Shape, str, Optional[str]]] = None

    # --- Properties ---

    @property
    def tree(self) -> ERTree:
        return self._tree

    @property
    def short_title(self) -> str:
        return self._short_title

    @property
    def shapes(self) -> list[Shape]:
        return list(self._shapes.values())

    @property
    def links(self) -> dict[str, str]:
        return dict(self._links)

    @property
    def queue(self) -> PendingAssociationQueue:
        return self._queue

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def is_dirty(self) -> bool:
        """Check if there are unsaved changes."""
        return self._dirty

    @property
    def can_undo(self) -> bool:
        return len(self._history) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    @property
    def pending_consolidation(self) -> Optional[RootConsolidationResolver]:
        return self._consolidation

    @property
    def pending_root_switch(self) -> Optional[RootSwitchResolver]:
        return self._root_switch

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for document changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        for callback in self._on_change_callbacks:
            callback()

    def _mark_changed(self):
        self._dirty = True
        self._notify_change()

    # --- History Management ---

    def _save_to_history(self):
        """Save current state to history before a mutation."""
        self._future.clear()
        self._history.append((self._tree.copy(), dict(self._links)))
        if len(self._history) > self._max_history:
            self._history.pop(0)

    def _discard_last_snapshot(self):
        """Drop the snapshot of an action that turned out to change nothing."""
        if self._history:
            self._history.pop()

    def _restore(self, snapshot: tuple[ERTree, dict]):
        previous_links = self._links
        self._tree, links = snapshot
        self._links = dict(links)
        self._sync_data_objects(previous_links, front=True)

    def _sync_data_objects(self, previous_links: dict[str, str], front: bool = False):
        """
        Align data-object shapes and the pending queue with the current links.

        A data object that lost its link goes back into the queue (at the head
        when an undo put it back); one that regained a link leaves the queue.
        """
        shapes = list(self._shapes.values())
        # Head insertions run backwards so several shapes keep diagram order
        for shape in (reversed(shapes) if front else shapes):
            if not shape.is_data_object:
                continue
            shape.er_ref = self._links.get(shape.id)
            if shape.er_ref:
                self._queue.discard(shape.id)
            elif shape.id in previous_links and shape.id not in self._queue:
                if front:
                    self._queue.requeue(shape)
                else:
                    self._queue.enqueue(shape)
                logger.info("Data object %s is unlinked again and awaits an ER", shape.id)

    def undo(self) -> bool:
        """Undo the last hierarchy change."""
        if not self.can_undo or self._has_pending_resolution():
            return False
        self._future.append((self._tree.copy(), dict(self._links)))
        self._restore(self._history.pop())
        self._mark_changed()
        return True

    def redo(self) -> bool:
        """Redo the last undone hierarchy change."""
        if not self.can_redo or self._has_pending_resolution():
            return False
        self._history.append((self._tree.copy(), dict(self._links)))
        self._restore(self._future.pop())
        self._mark_changed()
        return True

    def _has_pending_resolution(self) -> bool:
        return self._consolidation is not None or self._root_switch is not None

    # --- Document Lifecycle ---

    def new_document(self, short_title: str = "") -> None:
        """Start an empty document."""
        self._reset()
        self._short_title = short_title
        self._is_open = True
        self._notify_change()

    def load_document(self, document: IdmDocument, queue_unlinked: bool = True) -> ResolutionResult:
        """
        Load (or import) a document.

        If the hierarchy has several top-level ERs, nothing is committed yet:
        the result is PENDING and the load completes through `select_root()`
        / `create_new_root()` on `pending_consolidation`, or is aborted by
        `cancel_consolidation()`.

        Args:
            document: The document to load
            queue_unlinked: Queue data objects without an ER link

        Returns:
            COMPLETED when loaded, PENDING when a root must be chosen first,
            FAILED when the hierarchy cannot be built (the open document is
            left unchanged)
        """
        try:
            tree = ERTree.from_hierarchy(document.er_hierarchy)
        except DuplicateNodeError as e:
            logger.warning("Document rejected: %s", e)
            return ResolutionResult.failed(f"Invalid ER hierarchy: {e}")

        if needs_root_selection(tree):
            logger.info("Loaded hierarchy has %d top-level ERs; root selection required",
                        len(tree.top_level_ids))
            self._pending_document = document.model_copy(deep=True)
            self._pending_tree = tree
            self._consolidation = RootConsolidationResolver(tree, document.short_title, self.settings)
            self._queue_unlinked_after_load = queue_unlinked
            return ResolutionResult.pending(
                "Select or create a root ER to finish loading",
                candidates=len(tree.top_level_ids)
            )

        self._commit_load(document.model_copy(deep=True), tree, queue_unlinked)
        return ResolutionResult.completed(
            "Document loaded",
            ers=len(self._tree),
            pending_data_objects=len(self._queue)
        )

    def _commit_load(self, document: IdmDocument, tree: ERTree, queue_unlinked: bool):
        self._reset()
        self._tree = tree
        self._short_title = document.short_title
        self._shapes = {shape.id: shape for shape in document.shapes}
        self._links = dict(document.data_object_er_map)
        for shape in self._shapes.values():
            if shape.id in self._links:
                shape.er_ref = self._links[shape.id]
            elif shape.is_data_object and shape.er_ref:
                self._links[shape.id] = shape.er_ref
        if queue_unlinked:
            for shape in PendingAssociationQueue.from_shapes(self._shapes.values(), self._links):
                self._queue.enqueue(shape)
        self._is_open = True
        logger.info("Document loaded: %d ERs, %d shapes, %d pending data objects",
                    len(self._tree), len(self._shapes), len(self._queue))
        self._notify_change()

    def close(self) -> None:
        """Close the document; the association queue is discarded."""
        self._reset()
        self._notify_change()

    def _reset(self):
        self._tree = ERTree()
        self._short_title = ""
        self._shapes = {}
        self._links = {}
        self._queue.clear()
        self._history.clear()
        self._future.clear()
        self._dirty = False
        self._is_open = False
        self._consolidation = None
        self._pending_document = None
        self._pending_tree = None
        self._root_switch = None
        self._rollback_shape = None

    def to_document(self) -> IdmDocument:
        """Export the current state for persistence by the caller."""
        return IdmDocument(
            short_title=self._short_title,
            er_hierarchy=self._tree.to_hierarchy(),
            shapes=[shape.model_copy() for shape in self._shapes.values()],
            data_object_er_map=dict(self._links),
        )

    def get_state(self) -> dict:
        """Get the full current state for UI consumers."""
        return {
            "document": self.to_document().to_json_dict() if self._is_open else None,
            "is_open": self._is_open,
            "is_dirty": self._dirty,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "pending_data_objects": [shape.id for shape in self._queue],
            "pending_consolidation": self._consolidation is not None,
            "pending_root_switch": self._root_switch is not None,
        }

    def rows(self, expanded=()) -> list[FlatRow]:
        """Flattened hierarchy for the tree view."""
        return flatten(self._tree, expanded)

    # --- Root Consolidation ---

    def select_root(self, identifier: str) -> ResolutionResult:
        """Finish the pending consolidation by adopting an existing ER as root."""
        resolver = self._require_consolidation()
        return self._finish_consolidation(resolver.select_root(identifier))

    def create_new_root(self, name: Optional[str] = None) -> ResolutionResult:
        """Finish the pending consolidation under a newly created root."""
        resolver = self._require_consolidation()
        return self._finish_consolidation(resolver.create_new_root(name))

    def cancel_consolidation(self) -> ResolutionResult:
        """Abort the action that required consolidation."""
        resolver = self._require_consolidation()
        return self._finish_consolidation(resolver.cancel())

    def _finish_consolidation(self, result: ResolutionResult) -> ResolutionResult:
        if result.status == ResolutionStatus.FAILED:
            return result

        self._consolidation = None

        if self._pending_document is not None:
            document, tree = self._pending_document, self._pending_tree
            self._pending_document = None
            self._pending_tree = None
            if result.ok:
                self._commit_load(document, tree, self._queue_unlinked_after_load)
            return result

        # Consolidation started by an in-session edit
        if result.ok:
            self._mark_changed()
        else:
            self._rollback_live_edit()
        self._rollback_shape = None
        return result

    def _start_live_consolidation(self):
        """Several top-level ERs after an edit: ask for a root before continuing."""
        logger.info("Edit produced %d top-level ERs; root selection required",
                    len(self._tree.top_level_ids))
        self._consolidation = RootConsolidationResolver(self._tree, self._short_title, self.settings)

    def _rollback_live_edit(self):
        """Undo the edit that triggered a cancelled consolidation."""
        self._restore(self._history.pop())
        if self._rollback_shape is not None:
            shape, previous_name, previous_ref = self._rollback_shape
            shape.name = previous_name
            shape.er_ref = previous_ref
            self._queue.requeue(shape)
            logger.info("ER creation for data object %s rolled back", shape.id)

    def _require_consolidation(self) -> RootConsolidationResolver:
        if self._consolidation is None:
            raise ResolverStateError("No root consolidation pending")
        return self._consolidation

    # --- Structural Edits ---

    def _edit(self, operation: Callable, *args, **kwargs):
        """Run an edit with a history snapshot; drop the snapshot if nothing changed."""
        if self._has_pending_resolution():
            raise ResolverStateError("Finish the pending resolution first")
        self._save_to_history()
        result = operation(self._tree, *args, **kwargs)
        if result:
            self._mark_changed()
        else:
            self._discard_last_snapshot()
        return result

    def add_er(self, name: str = "", parent: Optional[str] = None, index: Optional[int] = None) -> Optional[ERNode]:
        """
        Add an ER. Adding a second top-level ER starts a root consolidation;
        cancelling it removes the new ER again.
        """
        node = self._edit(core_add_er, name, parent, index)
        if node is not None and needs_root_selection(self._tree):
            self._start_live_consolidation()
        return node

    def update_er(self, identifier: str, **changes) -> Optional[ERNode]:
        return self._edit(core_update_er, identifier, **changes)

    def delete_er(self, identifier: str) -> list[ERNode]:
        previous = dict(self._links)
        removed = self._edit(core_delete_er, identifier, self._links)
        self._sync_data_objects(previous)
        return removed

    def move_up(self, identifier: str) -> bool:
        return self._edit(core_move_up, identifier)

    def move_down(self, identifier: str) -> bool:
        return self._edit(core_move_down, identifier)

    def indent(self, identifier: str) -> bool:
        return self._edit(core_indent, identifier)

    def move_as_sub_er(self, source: str, target: str) -> bool:
        return self._edit(core_move_as_sub_er, source, target)

    def outdent(self, identifier: str) -> OutdentOutcome:
        """
        Outdent an ER. If this starts a root switch, finish it with
        `dissolve_old_root()` / `keep_old_root_as_sub()` or roll it back
        with `cancel_root_switch()`.
        """
        if self._has_pending_resolution():
            raise ResolverStateError("Finish the pending resolution first")

        self._save_to_history()
        outcome = core_outdent(self._tree, identifier, self.settings)
        if outcome.root_switch is not None:
            self._root_switch = outcome.root_switch
        elif outcome.moved:
            self._mark_changed()
            if outcome.requires_consolidation:
                self._start_live_consolidation()
        else:
            self._discard_last_snapshot()
        return outcome

    # --- Root Switch ---

    def dissolve_old_root(self) -> ResolutionResult:
        """Dissolve the old root. Data objects linked to it return to the queue."""
        resolver = self._require_root_switch()
        old_root = resolver.old_root
        previous = dict(self._links)
        result = resolver.dissolve_old_root()
        if result.ok:
            unlink_nodes(self._links, [old_root])
            self._sync_data_objects(previous)
        return self._finish_root_switch(result)

    def keep_old_root_as_sub(self) -> ResolutionResult:
        return self._finish_root_switch(self._require_root_switch().keep_old_root_as_sub())

    def cancel_root_switch(self) -> ResolutionResult:
        """Roll back the outdent that started the root switch."""
        result = self._require_root_switch().cancel()
        self._root_switch = None
        self._discard_last_snapshot()
        return result

    def _finish_root_switch(self, result: ResolutionResult) -> ResolutionResult:
        self._root_switch = None
        self._mark_changed()
        return result

    def _require_root_switch(self) -> RootSwitchResolver:
        if self._root_switch is None:
            raise ResolverStateError("No root switch pending")
        return self._root_switch

    # --- Diagram Notifications ---

    def on_shape_added(self, shape: Shape) -> bool:
        """
        Register a new diagram shape. Unlinked data objects are queued.

        Returns:
            True if the shape was queued for ER association
        """
        self._shapes[shape.id] = shape
        if shape.id in self._links:
            shape.er_ref = self._links[shape.id]
            return False
        if shape.er_ref:
            return False
        return self._queue.enqueue(shape)

    def on_shape_moved(self, shape_id: str, x: float, y: float) -> bool:
        shape = self._shapes.get(shape_id)
        if shape is None:
            return False
        shape.x = x
        shape.y = y
        return True

    def on_shape_removed(self, shape_id: str) -> bool:
        """Forget a shape deleted from the diagram, with its link and queue entry."""
        shape = self._shapes.pop(shape_id, None)
        if shape is None:
            return False
        self._queue.discard(shape_id)
        if self._links.pop(shape_id, None) is not None:
            self._mark_changed()
        return True

    # --- Data-Object Association ---

    def association_resolver(self) -> DataObjectAssociationResolver:
        """Resolver over this session's queue, hierarchy and links."""
        return DataObjectAssociationResolver(self._tree, self._queue, self._links, self.settings)

    def link_data_object(self, identifier: str) -> ResolutionResult:
        """Link the current queued data object to an existing ER."""
        if self._has_pending_resolution():
            raise ResolverStateError("Finish the pending resolution first")
        self._save_to_history()
        result = self.association_resolver().select_existing(identifier)
        if result.ok:
            self._mark_changed()
        else:
            self._discard_last_snapshot()
        return result

    def create_er_for_data_object(self, name: str = "") -> ResolutionResult:
        """
        Create an ER for the current queued data object.

        With the NEW_TOP_LEVEL placement policy this may start a root
        consolidation (see `pending_consolidation`); cancelling it undoes
        the creation and puts the data object back at the head of the queue.
        """
        if self._has_pending_resolution():
            raise ResolverStateError("Finish the pending resolution first")
        shape = self._queue.current
        if shape is None:
            raise ResolverStateError("No data object awaiting ER association")

        self._save_to_history()
        previous_name, previous_ref = shape.name, shape.er_ref
        result = self.association_resolver().create_new(name)

        if result.requires_consolidation:
            self._rollback_shape = (shape, previous_name, previous_ref)
            self._start_live_consolidation()
            return result

        self._mark_changed()
        return result

    def skip_data_object(self) -> ResolutionResult:
        """Leave the current data object unlinked."""
        return self.association_resolver().skip()

    # --- Layout ---

    def auto_layout(self, move: Optional[Callable[[str, int, int], None]] = None) -> LayoutReport:
        """
        Remove overlap between the current shapes.

        Args:
            move: Diagram command `move(shape_id, dx, dy)`. The session's own
                shape snapshot is updated as well.

        Returns:
            The layout report (deltas and per-container statistics)
        """
        report = reconcile_layout(self._shapes.values(), settings=self.settings)
        if not report.deltas:
            return report

        apply_deltas(self._shapes.values(), report.deltas)
        if move is not None:
            for delta in report.deltas:
                move(delta.shape_id, delta.dx, delta.dy)
        self._notify_change()
        return report
