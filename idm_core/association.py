"""
Data-Object Association Resolver.

Newly drawn (or freshly imported) data-object shapes are queued until the
user links each one to an ER. The queue is drained strictly FIFO: each head
item is resolved by linking it to an existing ER, creating a new ER for it,
or skipping it. When the queue is empty, resolution mode ends.

Placement of ERs created here is a caller policy (`PlacementPolicy`):
- APPEND_TO_ROOT (default): the new ER becomes the last child of the first
  top-level ER, or the only top-level ER when the hierarchy is empty.
- NEW_TOP_LEVEL: the new ER is appended at the top level; when that leaves
  several top-level ERs the result carries `requires_consolidation` and the
  caller must run the Root Consolidation Resolver.
"""

import logging
from collections import deque
from typing import Iterable, Iterator, Optional

from .config import EngineSettings, PlacementPolicy, default_settings
from .errors import ResolverStateError
from .models import Shape
from .results import ResolutionResult
from .traversal import find_by_identifier
from .tree import ERNode, ERTree

logger = logging.getLogger(__name__)


class PendingAssociationQueue:
    """
    FIFO of data-object shapes awaiting an ER link.

    Owned by the editing session and passed explicitly to the resolver.
    """

    def __init__(self, shapes: Iterable[Shape] = ()):
        self._items: deque[Shape] = deque()
        for shape in shapes:
            self.enqueue(shape)

    @classmethod
    def from_shapes(cls, shapes: Iterable[Shape], links: Optional[dict[str, str]] = None) -> "PendingAssociationQueue":
        """Queue every data object that has no ER link yet (diagram order)."""
        links = links or {}
        return cls(
            shape for shape in shapes
            if shape.is_data_object and not (links.get(shape.id) or shape.er_ref)
        )

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Shape]:
        return iter(list(self._items))

    def __contains__(self, shape_id: object) -> bool:
        return any(shape.id == shape_id for shape in self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def current(self) -> Optional[Shape]:
        """The shape to resolve next, or None."""
        return self._items[0] if self._items else None

    def enqueue(self, shape: Shape) -> bool:
        """Append a data-object shape. Returns False if ignored."""
        if not shape.is_data_object or shape.id in self:
            return False
        self._items.append(shape)
        return True

    def requeue(self, shape: Shape):
        """Put a shape back at the head of the queue (rolled back resolution)."""
        self.discard(shape.id)
        self._items.appendleft(shape)

    def pop(self) -> Optional[Shape]:
        """Remove and return the head item."""
        return self._items.popleft() if self._items else None

    def discard(self, shape_id: str) -> bool:
        """Drop a queued shape (e.g. deleted from the diagram)."""
        for shape in self._items:
            if shape.id == shape_id:
                self._items.remove(shape)
                return True
        return False

    def clear(self):
        self._items.clear()


class DataObjectAssociationResolver:
    """
    Links queued data objects to ERs, one at a time.

    Args:
        tree: The ER hierarchy (new ERs are added to it)
        queue: The session's pending association queue
        links: Data object id -> ER reference map, updated in place
        settings: Supplies the placement policy
    """

    def __init__(
        self,
        tree: ERTree,
        queue: PendingAssociationQueue,
        links: Optional[dict[str, str]] = None,
        settings: Optional[EngineSettings] = None
    ):
        self.tree = tree
        self.queue = queue
        self.links = links if links is not None else {}
        self.settings = settings or default_settings

    @property
    def is_active(self) -> bool:
        """True while there are queued data objects (resolution mode)."""
        return not self.queue.is_empty

    @property
    def current(self) -> Optional[Shape]:
        return self.queue.current

    def select_existing(self, identifier: str) -> ResolutionResult:
        """
        Link the current data object to an existing ER.

        A missing ER is a recoverable failure: the item stays at the head of
        the queue so the user can pick another ER.
        """
        shape = self._require_current()

        node = find_by_identifier(self.tree, identifier)
        if node is None:
            logger.warning("Cannot link data object %s: ER %s not found", shape.id, identifier)
            return ResolutionResult.failed(f"ER not found: {identifier}", node_id=identifier, shape_id=shape.id)

        return self._bind(shape, node)

    def create_new(self, name: str = "") -> ResolutionResult:
        """Create a new leaf ER for the current data object and link them."""
        shape = self._require_current()

        node = ERNode(name=name.strip())
        top_level = self.tree.top_level_ids
        requires_consolidation = False

        if self.settings.placement_policy == PlacementPolicy.NEW_TOP_LEVEL or not top_level:
            self.tree.add(node)
            requires_consolidation = len(top_level) > 0
        else:
            self.tree.add(node, parent_id=top_level[0])

        logger.info("Created ER %s for data object %s", node.id, shape.id)
        result = self._bind(shape, node)
        result.requires_consolidation = requires_consolidation
        return result

    def skip(self) -> ResolutionResult:
        """Leave the current data object unlinked and move on."""
        shape = self._require_current()
        self.queue.pop()
        logger.info("Skipped ER association for data object %s", shape.id)
        result = ResolutionResult.cancelled(f"{shape.display_name} left without an ER")
        result.details.update(self._progress())
        return result

    def _bind(self, shape: Shape, node: ERNode) -> ResolutionResult:
        """Annotate the shape with the ER reference and surface the next item."""
        reference = node.reference
        self.links[shape.id] = reference
        shape.er_ref = reference
        if node.name:
            shape.name = node.name
        self.queue.pop()

        logger.info("Linked data object %s to ER %s", shape.id, node.id)
        return ResolutionResult.completed(
            f"{shape.display_name} linked to {node.name or node.id}",
            node_id=node.id,
            shape_id=shape.id,
            **self._progress()
        )

    def _progress(self) -> dict:
        upcoming = self.queue.current
        return {
            "next_shape_id": upcoming.id if upcoming else None,
            "remaining": len(self.queue),
        }

    def _require_current(self) -> Shape:
        shape = self.queue.current
        if shape is None:
            raise ResolverStateError("No data object awaiting ER association")
        return shape
