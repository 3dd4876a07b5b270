"""
Explicit result signal returned by every resolver step.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ResolutionStatus(str, Enum):
    """Outcome of a resolver step."""
    COMPLETED = "completed"   # Invariant repaired / item resolved
    FAILED = "failed"         # Recoverable failure, surface to the user
    CANCELLED = "cancelled"   # User backed out, abort the triggering action
    PENDING = "pending"       # Waiting for a user choice in another resolver


@dataclass
class ResolutionResult:
    """Result of a single resolver operation."""
    status: ResolutionStatus
    message: str = ""
    node_id: Optional[str] = None
    # Set when the step left the hierarchy with several top-level ERs
    requires_consolidation: bool = False
    details: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == ResolutionStatus.COMPLETED

    @classmethod
    def completed(cls, message: str = "", node_id: Optional[str] = None, **details) -> "ResolutionResult":
        return cls(ResolutionStatus.COMPLETED, message, node_id, details=details)

    @classmethod
    def failed(cls, message: str, node_id: Optional[str] = None, **details) -> "ResolutionResult":
        return cls(ResolutionStatus.FAILED, message, node_id, details=details)

    @classmethod
    def cancelled(cls, message: str = "Cancelled by user") -> "ResolutionResult":
        return cls(ResolutionStatus.CANCELLED, message)

    @classmethod
    def pending(cls, message: str, **details) -> "ResolutionResult":
        return cls(ResolutionStatus.PENDING, message, requires_consolidation=True, details=details)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "status": self.status.value,
            "message": self.message,
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.requires_consolidation:
            result["requires_consolidation"] = True
        if self.details:
            result.update(self.details)
        return result
