"""
Layout Reconciliation Engine - local de-collision of diagram shapes.

The diagram is already arranged by a human, so instead of a full re-layout
this runs a greedy relaxation per container:
- Shapes are grouped by `parent_id`; shapes in different containers are
  never compared
- Each pass tests every pair with boxes inflated by `padding / 2` per side
  and pushes one shape of each overlapping pair along the axis with the
  smaller overlap
- Pairs involving a data object are always separated vertically, moving the
  data object down, so it stays next to the activity it annotates
- A group stops after a clean pass or after `max_passes` (best effort)

The engine never moves shapes itself: it returns integer deltas that the
caller applies through the diagram's move command (see `apply_deltas`).
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from .config import EngineSettings, default_settings
from .models import Shape, ShapeDelta

logger = logging.getLogger(__name__)


ROOT_CONTAINER = "root"  # Group key for shapes without a parent


@dataclass
class Box:
    """Mutable working copy of a shape's bounding box."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def of(cls, shape: Shape) -> "Box":
        return cls(shape.x, shape.y, shape.width, shape.height)


@dataclass
class GroupReport:
    """Outcome for one container."""
    container_id: str
    shape_count: int
    passes: int = 0
    adjustments: int = 0
    converged: bool = True

    def to_dict(self) -> dict:
        return {
            "container_id": self.container_id,
            "shape_count": self.shape_count,
            "passes": self.passes,
            "adjustments": self.adjustments,
            "converged": self.converged,
        }


@dataclass
class LayoutReport:
    """Deltas to apply plus per-container statistics."""
    deltas: list[ShapeDelta] = field(default_factory=list)
    groups: list[GroupReport] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        """False if any container still has overlap after the pass limit."""
        return all(group.converged for group in self.groups)

    @property
    def total_adjustments(self) -> int:
        return sum(group.adjustments for group in self.groups)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "converged": self.converged,
            "total_adjustments": self.total_adjustments,
            "deltas": [d.to_json_dict() for d in self.deltas],
            "groups": [g.to_dict() for g in self.groups],
        }


def check_overlap(box1: Box, box2: Box, padding: float) -> Optional[tuple[float, float]]:
    """
    Check whether two boxes, each inflated by `padding / 2`, intersect.

    Returns:
        (overlap_x, overlap_y) of the inflated boxes, or None if they are clear
    """
    half = padding / 2
    left1, right1 = box1.x - half, box1.x + box1.width + half
    top1, bottom1 = box1.y - half, box1.y + box1.height + half
    left2, right2 = box2.x - half, box2.x + box2.width + half
    top2, bottom2 = box2.y - half, box2.y + box2.height + half

    if left1 >= right2 or right1 <= left2 or top1 >= bottom2 or bottom1 <= top2:
        return None

    overlap_x = min(right1, right2) - max(left1, left2)
    overlap_y = min(bottom1, bottom2) - max(top1, top2)
    return (overlap_x, overlap_y)


def is_layout_candidate(shape: Shape) -> bool:
    """Containers and zero-size shapes are never moved."""
    return not shape.is_container and shape.width > 0 and shape.height > 0


def group_by_container(shapes: Iterable[Shape]) -> dict[str, list[Shape]]:
    """Group layout candidates by container, keeping diagram order."""
    groups: dict[str, list[Shape]] = defaultdict(list)
    for shape in shapes:
        if is_layout_candidate(shape):
            groups[shape.parent_id or ROOT_CONTAINER].append(shape)
    return dict(groups)


def _separate(shape1: Shape, box1: Box, shape2: Shape, box2: Box,
              overlap: tuple[float, float], settings: EngineSettings):
    """Push one shape of an overlapping pair away from the other."""
    overlap_x, overlap_y = overlap
    data1 = shape1.is_data_object
    data2 = shape2.is_data_object

    if overlap_x < overlap_y and not data1 and not data2:
        # Horizontal: the leftmost shape stays put
        move_x = overlap_x / 2 + settings.horizontal_slack
        if box1.x <= box2.x:
            box2.x += move_x
        else:
            box1.x += move_x
    else:
        # Vertical: data objects go down, otherwise the topmost shape stays put
        move_y = overlap_y / 2 + settings.vertical_slack
        if data2 or (not data1 and box1.y <= box2.y):
            box2.y += move_y
        else:
            box1.y += move_y


def _has_overlap(shapes: list[Shape], boxes: dict[str, Box], padding: float) -> bool:
    for i, shape1 in enumerate(shapes):
        for shape2 in shapes[i + 1:]:
            if check_overlap(boxes[shape1.id], boxes[shape2.id], padding):
                return True
    return False


def resolve_group(
    container_id: str,
    shapes: list[Shape],
    settings: EngineSettings,
    padding: float,
    max_passes: int
) -> tuple[dict[str, Box], GroupReport]:
    """
    Iteratively de-collide the shapes of one container.

    Returns:
        The final working boxes keyed by shape id, and the group report
    """
    boxes = {shape.id: Box.of(shape) for shape in shapes}
    report = GroupReport(container_id=container_id, shape_count=len(shapes))

    for iteration in range(max_passes):
        report.passes = iteration + 1
        has_overlap = False

        for i, shape1 in enumerate(shapes):
            for shape2 in shapes[i + 1:]:
                box1, box2 = boxes[shape1.id], boxes[shape2.id]
                overlap = check_overlap(box1, box2, padding)
                if overlap is None:
                    continue
                has_overlap = True
                _separate(shape1, box1, shape2, box2, overlap, settings)
                report.adjustments += 1

        if not has_overlap:
            logger.debug("Group %s resolved in %d passes", container_id, report.passes)
            return boxes, report

    report.converged = not _has_overlap(shapes, boxes, padding)
    if not report.converged:
        logger.warning("Group %s still overlaps after %d passes; keeping best effort",
                       container_id, max_passes)
    return boxes, report


def reconcile_layout(
    shapes: Iterable[Shape],
    padding: Optional[float] = None,
    max_passes: Optional[int] = None,
    settings: Optional[EngineSettings] = None
) -> LayoutReport:
    """
    Compute the moves that remove overlap between shapes.

    Args:
        shapes: Snapshot of the diagram's shapes (not modified)
        padding: Minimum gap between shapes (default from settings)
        max_passes: Pass limit per container (default from settings)
        settings: Engine settings

    Returns:
        LayoutReport with one delta per shape that moves by at least one unit
    """
    settings = settings or default_settings
    padding = settings.layout_padding if padding is None else padding
    max_passes = settings.max_layout_passes if max_passes is None else max_passes

    report = LayoutReport()
    final_boxes: dict[str, Box] = {}
    originals: dict[str, Shape] = {}

    for container_id, group in group_by_container(shapes).items():
        if len(group) < 2:
            continue
        boxes, group_report = resolve_group(container_id, group, settings, padding, max_passes)
        final_boxes.update(boxes)
        originals.update({shape.id: shape for shape in group})
        report.groups.append(group_report)

    # Deltas are computed only after every container has been processed
    for shape_id, box in final_boxes.items():
        original = originals[shape_id]
        dx = round(box.x - original.x)
        dy = round(box.y - original.y)
        if abs(dx) < 1 and abs(dy) < 1:
            continue
        report.deltas.append(ShapeDelta(shape_id=shape_id, dx=dx, dy=dy))

    logger.info("Layout reconciliation: %d adjustments, %d shapes moved",
                report.total_adjustments, len(report.deltas))
    return report


def apply_deltas(
    shapes: Iterable[Shape],
    deltas: Iterable[ShapeDelta],
    move: Optional[Callable[[str, int, int], None]] = None
) -> int:
    """
    Apply computed deltas.

    Args:
        shapes: The shapes the deltas refer to
        deltas: Deltas from `reconcile_layout`
        move: Diagram command `move(shape_id, dx, dy)`; when omitted the
            Shape objects are updated directly

    Returns:
        Number of shapes moved
    """
    shape_map = {shape.id: shape for shape in shapes}
    moved = 0

    for delta in deltas:
        shape = shape_map.get(delta.shape_id)
        if shape is None:
            continue
        if move is not None:
            move(delta.shape_id, delta.dx, delta.dy)
        else:
            shape.x += delta.dx
            shape.y += delta.dy
        moved += 1

    return moved
