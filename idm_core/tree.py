"""
ER Tree Model - index-addressed arena for the Exchange Requirement hierarchy.

Nodes are stored once, keyed by local id. Structure lives in adjacency lists:
- `_children`: node id -> ordered child ids (order is on-screen order)
- `_parent`: node id -> parent id (None for top-level ERs)
- `_top_level`: ordered top-level ids

Re-parenting is a splice between two id lists, so there are no back
references to keep in sync and no way to create a cycle except through
`move()`, which refuses it.
"""

import copy
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .errors import CycleError, DuplicateNodeError, UnknownNodeError
from .models import ExchangeRequirement, InformationUnit, generate_er_id, generate_guid


@dataclass
class ERNode:
    """The payload of one ER, without its structural links."""
    id: str = field(default_factory=generate_er_id)
    guid: str = field(default_factory=generate_guid)
    name: str = ""
    description: str = ""
    information_units: list[InformationUnit] = field(default_factory=list)

    def matches(self, identifier: str) -> bool:
        """True if `identifier` is this node's id or guid."""
        return identifier == self.id or identifier == self.guid

    @property
    def reference(self) -> str:
        """Reference used when persisting links to this node (guid preferred)."""
        return self.guid or self.id


class ERTree:
    """
    The ER hierarchy as an arena.

    The single-root invariant is NOT enforced here: editing transiently
    produces zero or several top-level ERs, which the resolvers repair.
    """

    def __init__(self):
        self._nodes: dict[str, ERNode] = {}
        self._children: dict[str, list[str]] = {}
        self._parent: dict[str, Optional[str]] = {}
        self._top_level: list[str] = []

    # --- Conversion ---

    @classmethod
    def from_hierarchy(cls, ers: list[ExchangeRequirement]) -> "ERTree":
        """Build an arena from nested ERs (e.g. a loaded or imported document)."""
        tree = cls()

        def add_recursive(er: ExchangeRequirement, parent_id: Optional[str]):
            node = ERNode(
                id=er.id,
                guid=er.guid,
                name=er.name,
                description=er.description,
                information_units=[iu.model_copy() for iu in er.information_units],
            )
            tree.add(node, parent_id)
            for sub in er.sub_ers:
                add_recursive(sub, node.id)

        for er in ers:
            add_recursive(er, None)
        return tree

    def to_hierarchy(self) -> list[ExchangeRequirement]:
        """Rebuild the nested form, preserving sibling order."""
        def build(node_id: str) -> ExchangeRequirement:
            node = self._nodes[node_id]
            return ExchangeRequirement(
                id=node.id,
                guid=node.guid,
                name=node.name,
                description=node.description,
                information_units=[iu.model_copy() for iu in node.information_units],
                sub_ers=[build(child) for child in self._children[node_id]],
            )

        return [build(node_id) for node_id in self._top_level]

    def copy(self) -> "ERTree":
        """Deep copy, used for snapshots and rollback."""
        clone = ERTree()
        clone._nodes = copy.deepcopy(self._nodes)
        clone._children = {k: list(v) for k, v in self._children.items()}
        clone._parent = dict(self._parent)
        clone._top_level = list(self._top_level)
        return clone

    # --- Lookups ---

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def get(self, node_id: str) -> Optional[ERNode]:
        """Get a node by local id (O(1))."""
        return self._nodes.get(node_id)

    def node(self, node_id: str) -> ERNode:
        """Get a node by local id, raising UnknownNodeError if missing."""
        try:
            return self._nodes[node_id]
        except KeyError:
            raise UnknownNodeError(node_id) from None

    @property
    def top_level_ids(self) -> list[str]:
        return list(self._top_level)

    @property
    def top_level(self) -> list[ERNode]:
        return [self._nodes[node_id] for node_id in self._top_level]

    @property
    def root(self) -> Optional[ERNode]:
        """The root ER, or None unless exactly one top-level ER exists."""
        if len(self._top_level) != 1:
            return None
        return self._nodes[self._top_level[0]]

    def children_ids(self, node_id: str) -> list[str]:
        self.node(node_id)
        return list(self._children[node_id])

    def children(self, node_id: str) -> list[ERNode]:
        return [self._nodes[child] for child in self.children_ids(node_id)]

    def has_children(self, node_id: str) -> bool:
        return bool(self._children.get(node_id))

    def parent_id(self, node_id: str) -> Optional[str]:
        self.node(node_id)
        return self._parent[node_id]

    def sibling_ids(self, node_id: str) -> list[str]:
        """The ordered list of ids the node belongs to (including itself)."""
        return list(self._siblings(node_id))

    def index_of(self, node_id: str) -> int:
        """Position of a node among its siblings."""
        return self._siblings(node_id).index(node_id)

    def depth(self, node_id: str) -> int:
        """Depth of a node; 0 for top-level ERs."""
        depth = 0
        parent = self.parent_id(node_id)
        while parent is not None:
            depth += 1
            parent = self._parent[parent]
        return depth

    def is_ancestor(self, ancestor_id: str, node_id: str) -> bool:
        """True if `ancestor_id` is a strict ancestor of `node_id`."""
        parent = self.parent_id(node_id)
        while parent is not None:
            if parent == ancestor_id:
                return True
            parent = self._parent[parent]
        return False

    def iter_subtree(self, node_id: str) -> Iterator[str]:
        """Pre-order ids of a node and all its descendants."""
        self.node(node_id)
        stack = [node_id]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(self._children[current]))

    def guids(self) -> list[str]:
        return [node.guid for node in self._nodes.values()]

    # --- Mutations ---

    def add(self, node: ERNode, parent_id: Optional[str] = None, index: Optional[int] = None) -> ERNode:
        """
        Insert a new leaf node.

        Args:
            node: The node payload (its id must not already be present)
            parent_id: Parent id, or None to add at the top level
            index: Position among siblings (None appends)
        """
        if node.id in self._nodes:
            raise DuplicateNodeError(f"Duplicate ER id: {node.id}")
        if parent_id is not None:
            self.node(parent_id)

        self._nodes[node.id] = node
        self._children[node.id] = []
        self._parent[node.id] = parent_id
        siblings = self._top_level if parent_id is None else self._children[parent_id]
        siblings.insert(len(siblings) if index is None else index, node.id)
        return node

    def move(self, node_id: str, parent_id: Optional[str] = None, index: Optional[int] = None) -> None:
        """
        Re-parent a node with its subtree.

        `index` is interpreted against the destination list after the node
        has been removed from its current position.
        """
        self.node(node_id)
        if parent_id is not None:
            self.node(parent_id)
            if parent_id == node_id or self.is_ancestor(node_id, parent_id):
                raise CycleError(f"Cannot move ER {node_id} under its own descendant {parent_id}")

        self._siblings(node_id).remove(node_id)
        self._parent[node_id] = parent_id
        siblings = self._top_level if parent_id is None else self._children[parent_id]
        siblings.insert(len(siblings) if index is None else index, node_id)

    def remove(self, node_id: str) -> list[ERNode]:
        """Delete a node and its whole subtree. Returns the removed nodes."""
        removed_ids = list(self.iter_subtree(node_id))
        self._siblings(node_id).remove(node_id)

        removed = []
        for rid in removed_ids:
            removed.append(self._nodes.pop(rid))
            del self._children[rid]
            del self._parent[rid]
        return removed

    def _siblings(self, node_id: str) -> list[str]:
        """The live list holding `node_id` (top-level list or parent's children)."""
        parent = self.parent_id(node_id)
        return self._top_level if parent is None else self._children[parent]
