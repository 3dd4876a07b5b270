"""
IDM Core - Hierarchy and layout consistency engine for IDM documents.

Keeps the Exchange Requirement catalogue a single-rooted tree and the process
diagram free of overlapping shapes. Rendering, persistence and transport are
left to the surrounding application.
"""

from .models import (
    # Enums
    ShapeType,
    # Core models
    InformationUnit,
    ExchangeRequirement,
    Shape,
    ShapeDelta,
    IdmDocument,
)

from .config import EngineSettings, PlacementPolicy
from .errors import (
    IdmCoreError,
    UnknownNodeError,
    DuplicateNodeError,
    CycleError,
    HierarchyInvariantError,
    ResolverStateError,
)
from .results import ResolutionResult, ResolutionStatus
from .tree import ERNode, ERTree
from .traversal import FlatRow, flatten, find_by_identifier, find_location, count_information_units
from .validation import validate_hierarchy, validation_summary, ValidationIssue, IssueSeverity
from .consolidation import (
    RootConsolidationResolver,
    auto_consolidate,
    default_root_name,
    ensure_single_root,
    needs_root_selection,
)
from .root_switch import RootSwitchResolver
from .association import DataObjectAssociationResolver, PendingAssociationQueue
from .layout import LayoutReport, reconcile_layout, apply_deltas, check_overlap
from .editing import OutdentOutcome
from .session import EditingSession

__all__ = [
    # Enums
    "ShapeType",
    "PlacementPolicy",
    # Models
    "InformationUnit",
    "ExchangeRequirement",
    "Shape",
    "ShapeDelta",
    "IdmDocument",
    "EngineSettings",
    # Errors and results
    "IdmCoreError",
    "UnknownNodeError",
    "DuplicateNodeError",
    "CycleError",
    "HierarchyInvariantError",
    "ResolverStateError",
    "ResolutionResult",
    "ResolutionStatus",
    # Tree model and traversal
    "ERNode",
    "ERTree",
    "FlatRow",
    "flatten",
    "find_by_identifier",
    "find_location",
    "count_information_units",
    # Validation
    "validate_hierarchy",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
    # Resolvers
    "RootConsolidationResolver",
    "auto_consolidate",
    "default_root_name",
    "ensure_single_root",
    "needs_root_selection",
    "RootSwitchResolver",
    "DataObjectAssociationResolver",
    "PendingAssociationQueue",
    "OutdentOutcome",
    # Layout
    "LayoutReport",
    "reconcile_layout",
    "apply_deltas",
    "check_overlap",
    # Session
    "EditingSession",
]
