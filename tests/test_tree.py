"""
Tests for the ER arena and its conversion to and from nested ERs.
"""

import pytest

from conftest import make_er
from idm_core.errors import CycleError, DuplicateNodeError, UnknownNodeError
from idm_core.models import ExchangeRequirement
from idm_core.tree import ERNode, ERTree


class TestConversion:
    """Round trip between the nested form and the arena."""

    def test_from_hierarchy_keeps_order_and_depth(self, rooted):
        assert rooted.top_level_ids == ["r"]
        assert rooted.children_ids("r") == ["x", "y", "z"]
        assert rooted.children_ids("x") == ["x1", "x2"]
        assert rooted.depth("x1") == 2
        assert rooted.depth("r") == 0
        assert len(rooted) == 6

    def test_to_hierarchy_rebuilds_nesting(self, rooted):
        hierarchy = rooted.to_hierarchy()
        assert len(hierarchy) == 1
        root = hierarchy[0]
        assert [sub.id for sub in root.sub_ers] == ["x", "y", "z"]
        assert [sub.id for sub in root.sub_ers[0].sub_ers] == ["x1", "x2"]
        assert len(root.sub_ers[0].sub_ers[0].information_units) == 2

    def test_camel_case_input_is_accepted(self):
        er = ExchangeRequirement(**{
            "id": "a",
            "name": "A",
            "informationUnits": [{"name": "iu"}],
            "subERs": [{"id": "b", "name": "B"}],
        })
        tree = ERTree.from_hierarchy([er])
        assert tree.children_ids("a") == ["b"]
        assert len(tree.node("a").information_units) == 1

    def test_copy_is_independent(self, rooted):
        clone = rooted.copy()
        clone.move("z", None)
        clone.node("x").name = "changed"
        assert rooted.top_level_ids == ["r"]
        assert rooted.node("x").name == "X"


class TestLookups:

    def test_root_only_for_single_top_level(self, rooted, forest):
        assert rooted.root.id == "r"
        assert forest.root is None
        assert ERTree().root is None

    def test_node_raises_for_unknown_id(self, rooted):
        with pytest.raises(UnknownNodeError) as exc_info:
            rooted.node("missing")
        assert "missing" in str(exc_info.value)
        assert rooted.get("missing") is None

    def test_siblings_and_index(self, rooted):
        assert rooted.sibling_ids("y") == ["x", "y", "z"]
        assert rooted.index_of("z") == 2
        assert rooted.parent_id("y") == "r"

    def test_is_ancestor(self, rooted):
        assert rooted.is_ancestor("r", "x1")
        assert rooted.is_ancestor("x", "x2")
        assert not rooted.is_ancestor("y", "x1")
        assert not rooted.is_ancestor("x1", "x1")

    def test_iter_subtree_is_preorder(self, rooted):
        assert list(rooted.iter_subtree("r")) == ["r", "x", "x1", "x2", "y", "z"]


class TestMutations:

    def test_add_at_index(self, rooted):
        rooted.add(ERNode(id="w", name="W"), "r", 1)
        assert rooted.children_ids("r") == ["x", "w", "y", "z"]

    def test_add_duplicate_id_raises(self, rooted):
        with pytest.raises(DuplicateNodeError):
            rooted.add(ERNode(id="x"))

    def test_add_under_unknown_parent_raises(self, rooted):
        with pytest.raises(UnknownNodeError):
            rooted.add(ERNode(id="w"), "missing")

    def test_move_carries_subtree(self, rooted):
        rooted.move("x", "z")
        assert rooted.children_ids("r") == ["y", "z"]
        assert rooted.children_ids("z") == ["x"]
        assert rooted.depth("x1") == 3

    def test_move_index_applies_after_removal(self, rooted):
        rooted.move("x", "r", 2)
        assert rooted.children_ids("r") == ["y", "z", "x"]

    def test_move_under_descendant_raises(self, rooted):
        with pytest.raises(CycleError):
            rooted.move("x", "x1")
        with pytest.raises(CycleError):
            rooted.move("x", "x")
        assert rooted.children_ids("r") == ["x", "y", "z"]

    def test_remove_drops_whole_subtree(self, rooted):
        removed = rooted.remove("x")
        assert [node.id for node in removed] == ["x", "x1", "x2"]
        assert rooted.children_ids("r") == ["y", "z"]
        assert "x1" not in rooted
        assert len(rooted) == 3

    def test_guids_are_preserved_through_moves(self, forest):
        before = sorted(forest.guids())
        forest.move("b", "a")
        forest.move("c", "b1")
        assert sorted(forest.guids()) == before


class TestERNode:

    def test_matches_id_or_guid(self):
        node = ERNode(id="a", guid="g-a")
        assert node.matches("a")
        assert node.matches("g-a")
        assert not node.matches("b")

    def test_reference_prefers_guid(self):
        assert ERNode(id="a", guid="g-a").reference == "g-a"
        assert ERNode(id="a", guid="").reference == "a"

    def test_generated_ids(self):
        node = ERNode()
        assert node.id.startswith("er-")
        assert node.guid and node.guid != node.id

    def test_builder_defaults(self):
        er = make_er("q", ius=2)
        assert er.guid == "guid-q"
        assert er.name == "Q"
