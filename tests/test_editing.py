"""
Tests for structural ER edits.
"""

from idm_core.editing import (
    add_er,
    delete_er,
    indent,
    move_as_sub_er,
    move_down,
    move_up,
    outdent,
    unlink_nodes,
    update_er,
)
from idm_core.models import InformationUnit
from idm_core.root_switch import RootSwitchResolver


class TestAddUpdateDelete:

    def test_add_under_parent_by_guid(self, rooted):
        node = add_er(rooted, "New", parent="guid-x")
        assert rooted.children_ids("x") == ["x1", "x2", node.id]
        assert node.name == "New"

    def test_add_at_index(self, rooted):
        node = add_er(rooted, "First", parent="r", index=0)
        assert rooted.children_ids("r")[0] == node.id

    def test_add_with_missing_parent(self, rooted):
        assert add_er(rooted, "Orphan", parent="missing") is None
        assert len(rooted) == 6

    def test_update_only_given_fields(self, rooted):
        node = update_er(rooted, "y", description="About Y")
        assert node.name == "Y"
        assert node.description == "About Y"

        update_er(rooted, "y", information_units=[InformationUnit(name="a"), InformationUnit(name="b")])
        assert len(rooted.node("y").information_units) == 2
        assert update_er(rooted, "missing", name="n") is None

    def test_delete_removes_subtree_and_links(self, rooted):
        links = {"d1": "guid-x1", "d2": "y", "d3": "x"}
        removed = delete_er(rooted, "x", links)

        assert [node.id for node in removed] == ["x", "x1", "x2"]
        assert rooted.children_ids("r") == ["y", "z"]
        assert links == {"d2": "y"}

    def test_delete_missing(self, rooted):
        assert delete_er(rooted, "missing") == []

    def test_unlink_nodes_matches_id_or_guid(self, rooted):
        links = {"d1": "guid-r", "d2": "r", "d3": "y"}
        assert unlink_nodes(links, [rooted.node("r")]) == ["d1", "d2"]
        assert links == {"d3": "y"}
        assert unlink_nodes(links, []) == []


class TestReorder:

    def test_move_up_and_down(self, rooted):
        assert move_up(rooted, "y")
        assert rooted.children_ids("r") == ["y", "x", "z"]
        assert move_down(rooted, "y")
        assert rooted.children_ids("r") == ["x", "y", "z"]

    def test_bounds(self, rooted):
        assert not move_up(rooted, "x")
        assert not move_down(rooted, "z")
        assert not move_up(rooted, "r")
        assert not move_down(rooted, "missing")

    def test_indent_under_previous_sibling(self, rooted):
        assert indent(rooted, "y")
        assert rooted.children_ids("x") == ["x1", "x2", "y"]
        assert not indent(rooted, "x")

    def test_move_as_sub_er(self, rooted):
        assert move_as_sub_er(rooted, "z", "guid-x1")
        assert rooted.children_ids("x1") == ["z"]

    def test_move_as_sub_er_refuses_descendant(self, rooted):
        assert not move_as_sub_er(rooted, "x", "x2")
        assert not move_as_sub_er(rooted, "x", "x")
        assert not move_as_sub_er(rooted, "x", "missing")
        assert rooted.children_ids("r") == ["x", "y", "z"]


class TestOutdent:

    def test_outdent_to_grandparent_after_parent(self, rooted):
        outcome = outdent(rooted, "x1")
        assert outcome.moved
        assert outcome.root_switch is None
        assert rooted.children_ids("r") == ["x", "x1", "y", "z"]
        assert rooted.children_ids("x") == ["x2"]

    def test_outdent_child_of_root_starts_root_switch(self, rooted):
        outcome = outdent(rooted, "y")
        assert not outcome.moved
        assert isinstance(outcome.root_switch, RootSwitchResolver)
        assert rooted.top_level_ids == ["r", "y"]

    def test_outdent_top_level_is_noop(self, rooted):
        outcome = outdent(rooted, "r")
        assert not outcome.moved
        assert outcome.root_switch is None

    def test_outdent_in_forest_requires_consolidation(self, forest):
        outcome = outdent(forest, "a1")
        assert outcome.moved
        assert outcome.requires_consolidation
        assert forest.top_level_ids == ["a", "a1", "b", "c"]
