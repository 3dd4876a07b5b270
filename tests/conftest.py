"""Shared builders for the test suite."""

import pytest

from idm_core.models import ExchangeRequirement, InformationUnit, Shape
from idm_core.tree import ERTree


def make_er(er_id, name=None, ius=0, subs=None):
    """Build a nested ER with `ius` information units and the given sub-ERs."""
    return ExchangeRequirement(
        id=er_id,
        guid=f"guid-{er_id}",
        name=name if name is not None else er_id.upper(),
        information_units=[InformationUnit(name=f"{er_id}-iu{i}") for i in range(ius)],
        sub_ers=subs or [],
    )


def make_shape(shape_id, x, y, width=100, height=80, parent="P", shape_type="bpmn:Task", name=""):
    return Shape(
        id=shape_id,
        type=shape_type,
        name=name,
        x=x,
        y=y,
        width=width,
        height=height,
        parent_id=parent,
    )


def make_data_object(shape_id, x=0, y=0, parent="P", name=""):
    return make_shape(shape_id, x, y, width=36, height=50, parent=parent,
                      shape_type="bpmn:DataObjectReference", name=name)


@pytest.fixture
def forest():
    """Three top-level ERs: A (with A1, A2), B (with B1), C."""
    return ERTree.from_hierarchy([
        make_er("a", ius=1, subs=[make_er("a1", ius=2), make_er("a2")]),
        make_er("b", subs=[make_er("b1", ius=3)]),
        make_er("c", ius=1),
    ])


@pytest.fixture
def rooted():
    """Single root R with children X (with X1, X2), Y and Z."""
    return ERTree.from_hierarchy([
        make_er("r", ius=1, subs=[
            make_er("x", ius=1, subs=[make_er("x1", ius=2), make_er("x2")]),
            make_er("y", ius=1),
            make_er("z"),
        ]),
    ])
