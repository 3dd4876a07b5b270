"""
Tests for hierarchy traversal: flattening, lookup and IU counting.
"""

from conftest import make_er
from idm_core.traversal import (
    count_information_units,
    find_by_identifier,
    find_location,
    flatten,
    iter_preorder,
)
from idm_core.tree import ERTree


class TestFlatten:

    def test_collapsed_shows_top_level_only(self, forest):
        rows = flatten(forest)
        assert [row.node.id for row in rows] == ["a", "b", "c"]
        assert all(row.depth == 0 for row in rows)
        assert all(row.is_top_level for row in rows)
        assert [row.has_children for row in rows] == [True, True, False]
        assert not any(row.is_expanded for row in rows)

    def test_expanded_children_follow_parent(self, rooted):
        rows = flatten(rooted, {"r", "x"})
        assert [(row.node.id, row.depth) for row in rows] == [
            ("r", 0), ("x", 1), ("x1", 2), ("x2", 2), ("y", 1), ("z", 1),
        ]

    def test_expanding_hidden_node_has_no_effect(self, rooted):
        rows = flatten(rooted, {"x"})
        assert [row.node.id for row in rows] == ["r"]

    def test_expanded_accepts_guids(self, rooted):
        rows = flatten(rooted, ["guid-r"])
        assert [row.node.id for row in rows] == ["r", "x", "y", "z"]
        assert rows[0].is_expanded

    def test_empty_tree(self):
        assert flatten(ERTree()) == []

    def test_row_to_dict_names_unnamed(self):
        tree = ERTree.from_hierarchy([make_er("a", name="")])
        row = flatten(tree)[0].to_dict()
        assert row["name"] == "(unnamed ER)"
        assert row["depth"] == 0
        assert row["has_children"] is False


class TestFind:

    def test_find_by_id_and_guid(self, rooted):
        assert find_by_identifier(rooted, "x2").id == "x2"
        assert find_by_identifier(rooted, "guid-x2").id == "x2"

    def test_find_missing_returns_none(self, rooted):
        assert find_by_identifier(rooted, "nope") is None
        assert find_by_identifier(rooted, "") is None
        assert find_by_identifier(ERTree(), "x") is None

    def test_preorder_breaks_ties(self):
        # "b" is both the guid of the first ER and the id of the second
        tree = ERTree.from_hierarchy([make_er("a"), make_er("b")])
        tree.node("a").guid = "b"
        assert find_by_identifier(tree, "b").id == "a"

    def test_iter_preorder_depths(self, rooted):
        assert [(node.id, depth) for node, depth in iter_preorder(rooted)] == [
            ("r", 0), ("x", 1), ("x1", 2), ("x2", 2), ("y", 1), ("z", 1),
        ]

    def test_find_location(self, rooted):
        location = find_location(rooted, "guid-y")
        assert location.node.id == "y"
        assert location.parent.id == "r"
        assert location.index == 1
        assert location.sibling_ids == ["x", "y", "z"]

    def test_find_location_top_level(self, forest):
        location = find_location(forest, "c")
        assert location.parent is None
        assert location.index == 2
        assert find_location(forest, "missing") is None


class TestCountInformationUnits:

    def test_counts_whole_subtree(self, rooted):
        assert count_information_units(rooted, "r") == 5
        assert count_information_units(rooted, "x") == 3
        assert count_information_units(rooted, "guid-x1") == 2

    def test_zero_for_empty_and_unknown(self, rooted):
        assert count_information_units(rooted, "z") == 0
        assert count_information_units(rooted, "missing") == 0

    def test_additive_over_children(self, rooted):
        own = len(rooted.node("r").information_units)
        children = sum(count_information_units(rooted, cid) for cid in rooted.children_ids("r"))
        assert count_information_units(rooted, "r") == own + children
