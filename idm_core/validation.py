"""
Hierarchy validation - Check an ER hierarchy and its diagram links for issues.

Used by the session before persisting and by the CLI `validate` command.
Validation only reports; repairs are done by the resolvers.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, TYPE_CHECKING

from .traversal import find_by_identifier, iter_preorder

if TYPE_CHECKING:
    from .models import Shape
    from .tree import ERTree


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a document."""
    severity: IssueSeverity
    message: str
    er_id: Optional[str] = None
    shape_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.er_id:
            result["er_id"] = self.er_id
        if self.shape_id:
            result["shape_id"] = self.shape_id
        return result


def validate_hierarchy(
    tree: "ERTree",
    shapes: Iterable["Shape"] = (),
    links: Optional[dict[str, str]] = None
) -> list[ValidationIssue]:
    """
    Validate an ER hierarchy and return a list of issues.

    Checks for:
    - Empty hierarchy - INFO
    - More than one top-level ER - ERROR
    - Duplicate guids - ERROR
    - Missing ER names - WARNING
    - ERs without information units - WARNING
    - Data objects linked to an ER missing from the hierarchy - ERROR
    - Data objects with no ER link - WARNING

    Args:
        tree: The ER hierarchy
        shapes: Diagram shapes (only data objects are checked)
        links: Data object id -> ER reference map

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []
    links = links or {}

    top_level = tree.top_level
    if not top_level:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Hierarchy has no Exchange Requirements"
        ))
    elif len(top_level) > 1:
        names = ", ".join(f"{er.name or '(unnamed)'} ({er.id})" for er in top_level)
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Only one root ER is allowed, found {len(top_level)}: {names}"
        ))

    # Duplicate guids break re-identification after import
    guid_counts = Counter(tree.guids())
    for guid, count in guid_counts.items():
        if count > 1:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"GUID {guid} is shared by {count} ERs"
            ))

    for node, _depth in iter_preorder(tree):
        if not node.name or not node.name.strip():
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="ER name is required",
                er_id=node.id
            ))
        if not node.information_units and not tree.has_children(node.id):
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f'ER "{node.name or "unnamed"}" has no Information Units',
                er_id=node.id
            ))

    for shape in shapes:
        if not shape.is_data_object:
            continue
        er_ref = links.get(shape.id) or shape.er_ref
        if not er_ref:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Data object {shape.display_name} is not linked to an ER",
                shape_id=shape.id
            ))
        elif find_by_identifier(tree, er_ref) is None:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Data object {shape.display_name} references missing ER: {er_ref}",
                shape_id=shape.id
            ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    counts = Counter(issue.severity for issue in issues)
    return {
        "total": len(issues),
        "errors": counts[IssueSeverity.ERROR],
        "warnings": counts[IssueSeverity.WARNING],
        "info": counts[IssueSeverity.INFO],
        "valid": counts[IssueSeverity.ERROR] == 0
    }
