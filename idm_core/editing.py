"""
Structural edits of the ER hierarchy.

User-driven operations from the ER panel: add, update, delete, reorder,
indent and outdent. All of them are splices on the arena's id lists.
An outdent that would lift a direct child of the root to the top level
does not complete here; it hands back a pending `RootSwitchResolver`.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import EngineSettings
from .models import InformationUnit
from .root_switch import RootSwitchResolver
from .traversal import find_by_identifier, find_location
from .tree import ERNode, ERTree

logger = logging.getLogger(__name__)


@dataclass
class OutdentOutcome:
    """Result of an outdent request."""
    moved: bool = False
    # Pending when the outdent would create a second top-level ER
    root_switch: Optional[RootSwitchResolver] = None
    # Set when the tree already had several top-level ERs and gained another
    requires_consolidation: bool = False


def add_er(
    tree: ERTree,
    name: str = "",
    parent: Optional[str] = None,
    index: Optional[int] = None
) -> Optional[ERNode]:
    """
    Create a new empty ER.

    Args:
        tree: The hierarchy
        name: ER name
        parent: Id or guid of the parent (None for top level)
        index: Position among siblings (None appends)

    Returns:
        The new node, or None if the parent does not exist
    """
    parent_id = None
    if parent is not None:
        parent_node = find_by_identifier(tree, parent)
        if parent_node is None:
            return None
        parent_id = parent_node.id
    return tree.add(ERNode(name=name), parent_id, index)


def update_er(
    tree: ERTree,
    identifier: str,
    name: Optional[str] = None,
    description: Optional[str] = None,
    information_units: Optional[list[InformationUnit]] = None
) -> Optional[ERNode]:
    """Update ER fields; only provided values are changed."""
    node = find_by_identifier(tree, identifier)
    if node is None:
        return None

    if name is not None:
        node.name = name
    if description is not None:
        node.description = description
    if information_units is not None:
        node.information_units = list(information_units)
    return node


def delete_er(tree: ERTree, identifier: str, links: Optional[dict[str, str]] = None) -> list[ERNode]:
    """
    Delete an ER with its sub-ERs.

    Data-object links pointing at any removed ER are dropped from `links`.

    Returns:
        The removed nodes (empty if the ER was not found)
    """
    node = find_by_identifier(tree, identifier)
    if node is None:
        return []

    removed = tree.remove(node.id)
    if links:
        unlink_nodes(links, removed)
    return removed


def unlink_nodes(links: dict[str, str], nodes: list[ERNode]) -> list[str]:
    """
    Drop data-object links that reference any of `nodes` (by id or guid).

    Returns:
        Ids of the data objects that lost their link
    """
    refs = {n.id for n in nodes} | {n.guid for n in nodes}
    unlinked = [shape_id for shape_id, ref in links.items() if ref in refs]
    for shape_id in unlinked:
        del links[shape_id]
        logger.info("Unlinked data object %s from removed ER", shape_id)
    return unlinked


def move_up(tree: ERTree, identifier: str) -> bool:
    """Swap an ER with its previous sibling."""
    location = find_location(tree, identifier)
    if location is None or location.index <= 0:
        return False
    parent_id = location.parent.id if location.parent else None
    tree.move(location.node.id, parent_id, location.index - 1)
    return True


def move_down(tree: ERTree, identifier: str) -> bool:
    """Swap an ER with its next sibling."""
    location = find_location(tree, identifier)
    if location is None or location.index >= len(location.sibling_ids) - 1:
        return False
    parent_id = location.parent.id if location.parent else None
    tree.move(location.node.id, parent_id, location.index + 1)
    return True


def indent(tree: ERTree, identifier: str) -> bool:
    """Make an ER the last sub-ER of the sibling above it."""
    location = find_location(tree, identifier)
    if location is None or location.index <= 0:
        return False
    new_parent = location.sibling_ids[location.index - 1]
    tree.move(location.node.id, new_parent)
    return True


def outdent(tree: ERTree, identifier: str, settings: Optional[EngineSettings] = None) -> OutdentOutcome:
    """
    Promote an ER to its parent's level, right after the parent.

    When the parent is the single root, the promotion needs a root switch:
    the returned outcome carries the pending resolver and the caller must
    finish or cancel it.
    """
    location = find_location(tree, identifier)
    if location is None or location.parent is None:
        return OutdentOutcome()

    node_id = location.node.id
    parent_id = location.parent.id
    grandparent_id = tree.parent_id(parent_id)

    if grandparent_id is None:
        if tree.root is not None:
            return OutdentOutcome(root_switch=RootSwitchResolver(tree, node_id, settings))
        # Already a forest mid-edit: promote and leave repair to consolidation
        tree.move(node_id, None, tree.index_of(parent_id) + 1)
        return OutdentOutcome(moved=True, requires_consolidation=True)

    tree.move(node_id, grandparent_id, tree.index_of(parent_id) + 1)
    return OutdentOutcome(moved=True)


def move_as_sub_er(tree: ERTree, source: str, target: str) -> bool:
    """
    Move an ER (with its subtree) to the end of another ER's sub-ERs.

    Refuses moves onto itself or into its own descendants.
    """
    source_node = find_by_identifier(tree, source)
    target_node = find_by_identifier(tree, target)
    if source_node is None or target_node is None or source_node.id == target_node.id:
        return False

    if tree.is_ancestor(source_node.id, target_node.id):
        logger.warning("Cannot move ER %s: target %s is a descendant", source_node.id, target_node.id)
        return False

    tree.move(source_node.id, target_node.id)
    return True
