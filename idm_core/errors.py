"""
Exceptions for programming errors in the engine.

User-recoverable conditions (lookup failures, cancellation) are reported
through `ResolutionResult` instead of raising.
"""


class IdmCoreError(Exception):
    """Base class for all engine errors."""


class UnknownNodeError(IdmCoreError, KeyError):
    """An arena operation referenced an ER id that is not in the tree."""

    def __init__(self, node_id: str):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"ER not found in hierarchy: {self.node_id}"


class DuplicateNodeError(IdmCoreError):
    """Two ERs share the same local id."""


class CycleError(IdmCoreError):
    """An ER would be attached under itself or one of its descendants."""


class HierarchyInvariantError(IdmCoreError):
    """The hierarchy does not have exactly one root after a resolver completed."""


class ResolverStateError(IdmCoreError):
    """A resolver was used after it already completed or was cancelled."""
