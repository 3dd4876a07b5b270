"""
Tests for engine settings and the document model.
"""

import pytest
from pydantic import ValidationError

from idm_core.config import EngineSettings, PlacementPolicy
from idm_core.models import IdmDocument, Shape


class TestEngineSettings:

    def test_defaults(self):
        settings = EngineSettings.from_env({})
        assert settings.layout_padding == 30
        assert settings.max_layout_passes == 50
        assert settings.placement_policy == PlacementPolicy.APPEND_TO_ROOT
        assert not settings.debug

    def test_environment_overrides(self):
        settings = EngineSettings.from_env({
            "IDM_CORE_DEBUG": "yes",
            "IDM_CORE_LAYOUT_PADDING": "12.5",
            "IDM_CORE_MAX_LAYOUT_PASSES": "7",
            "IDM_CORE_PLACEMENT_POLICY": "new_top_level",
        })
        assert settings.debug
        assert settings.layout_padding == 12.5
        assert settings.max_layout_passes == 7
        assert settings.placement_policy == PlacementPolicy.NEW_TOP_LEVEL

    def test_debug_flag_is_off_for_other_values(self):
        assert not EngineSettings.from_env({"IDM_CORE_DEBUG": "0"}).debug

    def test_invalid_values_are_rejected(self):
        with pytest.raises(ValidationError):
            EngineSettings(max_layout_passes=0)
        with pytest.raises(ValidationError):
            EngineSettings.from_env({"IDM_CORE_PLACEMENT_POLICY": "somewhere"})


class TestDocument:

    def test_from_camel_case_json(self):
        document = IdmDocument.from_json_dict({
            "shortTitle": "Demo",
            "erHierarchy": [{"id": "a", "name": "A", "subERs": [{"id": "b"}]}],
            "shapes": [{"id": "d1", "type": "bpmn:DataObjectReference", "parentId": "P", "erRef": "a"}],
            "dataObjectErMap": {"d1": "a"},
        })
        assert document.short_title == "Demo"
        assert document.er_hierarchy[0].sub_ers[0].id == "b"
        shape = document.get_shape("d1")
        assert shape.parent_id == "P"
        assert shape.er_ref == "a"
        assert shape.is_data_object
        assert document.get_shape("missing") is None

    def test_to_json_dict_uses_editor_names(self):
        document = IdmDocument.from_json_dict({
            "short_title": "Demo",
            "er_hierarchy": [{"id": "a", "information_units": [{"name": "iu"}]}],
        })
        data = document.to_json_dict()
        assert data["shortTitle"] == "Demo"
        assert data["erHierarchy"][0]["informationUnits"][0]["name"] == "iu"
        assert data["erHierarchy"][0]["subERs"] == []
        assert data["dataObjectErMap"] == {}

    def test_shape_helpers(self):
        shape = Shape(id="t1", x=10, y=20, width=100, height=80)
        assert shape.center() == (60, 60)
        assert shape.bounds() == (10, 20, 110, 100)
        assert shape.display_name == "t1"
        assert not shape.is_container
        assert Shape(id="lane", type="bpmn:Lane").is_container
        assert "erRef" not in shape.to_json_dict()
