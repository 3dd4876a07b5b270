"""
Core data models for IDM documents.

These models define the canonical exchange schema:
- Exchange Requirements (ERs) nested through `subERs`, owning information units
- Diagram shapes with a bounding box and the container they are drawn in
- The document bundle tying the ER hierarchy to the diagram

Field Naming Convention:
- Python attributes are snake_case (`sub_ers`, `information_units`, `parent_id`)
- JSON serialization outputs the camelCase names used by the editor
  (`subERs`, `informationUnits`, `parentId`)
- Both spellings are accepted on input
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field, model_validator
import uuid


def generate_er_id() -> str:
    """Generate a unique local ER ID."""
    return f"er-{uuid.uuid4().hex[:8]}"


def generate_guid() -> str:
    """Generate a globally unique identifier."""
    return str(uuid.uuid4())


def _rename_keys(data: Any, renames: dict[str, str]) -> Any:
    """Rename camelCase input keys to their snake_case field names."""
    if isinstance(data, dict):
        data = dict(data)
        for old, new in renames.items():
            if old in data and new not in data:
                data[new] = data.pop(old)
    return data


class ShapeType(str, Enum):
    """BPMN element types the engine knows about."""
    TASK = "bpmn:Task"
    USER_TASK = "bpmn:UserTask"
    SUB_PROCESS = "bpmn:SubProcess"
    START_EVENT = "bpmn:StartEvent"
    END_EVENT = "bpmn:EndEvent"
    INTERMEDIATE_EVENT = "bpmn:IntermediateThrowEvent"
    EXCLUSIVE_GATEWAY = "bpmn:ExclusiveGateway"
    PARALLEL_GATEWAY = "bpmn:ParallelGateway"
    DATA_OBJECT = "bpmn:DataObject"
    DATA_OBJECT_REFERENCE = "bpmn:DataObjectReference"
    DATA_STORE_REFERENCE = "bpmn:DataStoreReference"
    # Containers
    PROCESS = "bpmn:Process"
    COLLABORATION = "bpmn:Collaboration"
    PARTICIPANT = "bpmn:Participant"
    LANE = "bpmn:Lane"


DATA_OBJECT_TYPES = frozenset({
    ShapeType.DATA_OBJECT.value,
    ShapeType.DATA_OBJECT_REFERENCE.value,
    ShapeType.DATA_STORE_REFERENCE.value,
})

CONTAINER_TYPES = frozenset({
    ShapeType.PROCESS.value,
    ShapeType.COLLABORATION.value,
    ShapeType.PARTICIPANT.value,
    ShapeType.LANE.value,
})


def is_data_object_type(shape_type: str) -> bool:
    """Check whether a shape type denotes a data object (or data store)."""
    return shape_type in DATA_OBJECT_TYPES


class InformationUnit(BaseModel):
    """A leaf data item owned by an ER. Opaque to the engine."""
    id: str = Field(default_factory=lambda: f"iu-{uuid.uuid4().hex[:8]}")
    guid: str = Field(default_factory=generate_guid)
    name: str = ""
    definition: str = ""


class ExchangeRequirement(BaseModel):
    """
    An Exchange Requirement in its nested (serialized) form.

    Accepts `subERs`/`informationUnits` on input for compatibility with
    documents written by the editor.
    """
    id: str = Field(default_factory=generate_er_id)
    guid: str = Field(default_factory=generate_guid)
    name: str = ""
    description: str = ""
    information_units: list[InformationUnit] = Field(default_factory=list)
    sub_ers: list["ExchangeRequirement"] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def convert_camel_case_fields(cls, data: Any) -> Any:
        """Convert 'subERs'/'informationUnits' to their field names."""
        return _rename_keys(data, {
            'subERs': 'sub_ers',
            'informationUnits': 'information_units',
        })

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with editor field names."""
        return {
            "id": self.id,
            "guid": self.guid,
            "name": self.name,
            "description": self.description,
            "informationUnits": [iu.model_dump() for iu in self.information_units],
            "subERs": [sub.to_json_dict() for sub in self.sub_ers],
        }


class Shape(BaseModel):
    """A rendered diagram element, as reported by the diagram collaborator."""
    id: str
    type: str = ShapeType.TASK.value
    name: str = ""
    x: float = 0
    y: float = 0
    width: float = 100
    height: float = 80
    parent_id: Optional[str] = None  # Pool/lane/sub-process the shape is drawn in
    er_ref: Optional[str] = None     # Bound ER (guid preferred)

    @model_validator(mode='before')
    @classmethod
    def convert_camel_case_fields(cls, data: Any) -> Any:
        """Convert 'parentId'/'erRef' to their field names."""
        return _rename_keys(data, {'parentId': 'parent_id', 'erRef': 'er_ref'})

    @property
    def is_data_object(self) -> bool:
        return is_data_object_type(self.type)

    @property
    def is_container(self) -> bool:
        return self.type in CONTAINER_TYPES

    @property
    def display_name(self) -> str:
        """Name for display; falls back to the raw shape ID."""
        return self.name or self.id

    def center(self) -> tuple[float, float]:
        """Get the center point of the shape."""
        return (self.x + self.width / 2, self.y + self.height / 2)

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        result = {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "parentId": self.parent_id,
        }
        # Only include the ER reference if bound
        if self.er_ref:
            result["erRef"] = self.er_ref
        return result


class ShapeDelta(BaseModel):
    """A position change to apply to one shape, in whole canvas units."""
    shape_id: str
    dx: int = 0
    dy: int = 0

    def to_json_dict(self) -> dict:
        return {"shapeId": self.shape_id, "dx": self.dx, "dy": self.dy}


class IdmDocument(BaseModel):
    """
    The document bundle handed to the engine by the session layer.
    Persistence of this structure is the caller's concern.
    """
    short_title: str = ""
    er_hierarchy: list[ExchangeRequirement] = Field(default_factory=list)
    shapes: list[Shape] = Field(default_factory=list)
    data_object_er_map: dict[str, str] = Field(default_factory=dict)  # shape id -> ER ref

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with editor field names."""
        return {
            "shortTitle": self.short_title,
            "erHierarchy": [er.to_json_dict() for er in self.er_hierarchy],
            "shapes": [s.to_json_dict() for s in self.shapes],
            "dataObjectErMap": dict(self.data_object_er_map),
        }

    @classmethod
    def from_json_dict(cls, data: dict) -> "IdmDocument":
        """Create a document from a JSON dict (camelCase or snake_case keys)."""
        hierarchy = data.get('erHierarchy', data.get('er_hierarchy', []))
        shapes = data.get('shapes', [])
        links = data.get('dataObjectErMap', data.get('data_object_er_map', {}))

        return cls(
            short_title=data.get('shortTitle', data.get('short_title', '')),
            er_hierarchy=[ExchangeRequirement(**er) for er in hierarchy],
            shapes=[Shape(**s) for s in shapes],
            data_object_er_map=dict(links or {}),
        )

    def get_shape(self, shape_id: str) -> Optional[Shape]:
        """Get a shape by ID (O(n))."""
        for shape in self.shapes:
            if shape.id == shape_id:
                return shape
        return None
