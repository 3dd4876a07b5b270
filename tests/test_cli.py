"""
Tests for the idm-core command line.
"""

import json

import pytest

from conftest import make_data_object, make_er, make_shape
from idm_core.cli import main
from idm_core.models import IdmDocument


def run(capsys, *argv):
    """Run the CLI and return (exit code, parsed JSON output)."""
    with pytest.raises(SystemExit) as exc_info:
        main(list(argv))
    return exc_info.value.code, json.loads(capsys.readouterr().out)


@pytest.fixture
def forest_file(tmp_path):
    document = IdmDocument(
        short_title="Demo",
        er_hierarchy=[make_er("a", ius=1, subs=[make_er("a1", ius=2)]), make_er("b", ius=1)],
        shapes=[
            make_shape("t1", 0, 0),
            make_shape("t2", 50, 0),
            make_data_object("d1", x=400),
            make_data_object("d2", x=600),
        ],
        data_object_er_map={"d2": "guid-b"},
    )
    path = tmp_path / "doc.json"
    path.write_text(json.dumps(document.to_json_dict()))
    return path


class TestHierarchyCommands:

    def test_flatten(self, capsys, forest_file):
        code, data = run(capsys, "flatten", str(forest_file))
        assert code == 0
        assert [row["id"] for row in data["rows"]] == ["a", "b"]

    def test_flatten_expand_all(self, capsys, forest_file):
        _, data = run(capsys, "flatten", str(forest_file), "--expand-all")
        assert [(row["id"], row["depth"]) for row in data["rows"]] == [("a", 0), ("a1", 1), ("b", 0)]

    def test_count(self, capsys, forest_file):
        _, data = run(capsys, "count", str(forest_file), "--er-id", "guid-a")
        assert data == {"status": "ok", "er_id": "a", "information_units": 3}

    def test_count_unknown_er(self, capsys, forest_file):
        code, data = run(capsys, "count", str(forest_file), "--er-id", "missing")
        assert code == 1
        assert data["status"] == "error"

    def test_validate(self, capsys, forest_file):
        _, data = run(capsys, "validate", str(forest_file))
        assert data["summary"]["errors"] == 1
        assert data["summary"]["valid"] is False

    def test_consolidate_with_existing_root(self, capsys, forest_file, tmp_path):
        output = tmp_path / "out" / "fixed.json"
        code, data = run(capsys, "consolidate", str(forest_file), "--root", "b", "-o", str(output))

        assert code == 0
        assert data["status"] == "completed"
        assert data["root"] == "b"
        written = json.loads(output.read_text())
        assert [er["id"] for er in written["erHierarchy"]] == ["b"]
        assert [er["id"] for er in written["erHierarchy"][0]["subERs"]] == ["a"]

    def test_consolidate_new_root(self, capsys, forest_file):
        _, data = run(capsys, "consolidate", str(forest_file), "--new-root")
        assert data["status"] == "completed"
        assert data["adopted"] == 2
        assert data["written"] is None

    def test_consolidate_auto(self, capsys, forest_file):
        _, data = run(capsys, "consolidate", str(forest_file), "--auto")
        assert data["root"] == "a"

    def test_consolidate_unknown_root(self, capsys, forest_file):
        code, data = run(capsys, "consolidate", str(forest_file), "--root", "a1")
        assert code == 1
        assert "a1" in data["error"]


class TestDiagramCommands:

    def test_layout(self, capsys, forest_file, tmp_path):
        output = tmp_path / "laid-out.json"
        _, data = run(capsys, "layout", str(forest_file), "-o", str(output))

        assert data["converged"] is True
        assert [d["shapeId"] for d in data["deltas"]] == ["t2"]
        written = IdmDocument.from_json_dict(json.loads(output.read_text()))
        assert written.get_shape("t2").x == 50 + data["deltas"][0]["dx"]

    def test_layout_padding_override(self, capsys, forest_file):
        _, data = run(capsys, "layout", str(forest_file), "--padding", "0", "--max-passes", "3")
        assert data["deltas"][0]["shapeId"] == "t2"
        assert data["groups"][0]["passes"] <= 3

    def test_pending(self, capsys, forest_file):
        _, data = run(capsys, "pending", str(forest_file))
        assert [item["id"] for item in data["pending"]] == ["d1"]


class TestErrors:

    def test_missing_file(self, capsys, tmp_path):
        code, data = run(capsys, "flatten", str(tmp_path / "nope.json"))
        assert code == 1
        assert "not found" in data["error"]

    def test_invalid_json(self, capsys, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        code, data = run(capsys, "validate", str(path))
        assert code == 1
        assert "Invalid JSON" in data["error"]
