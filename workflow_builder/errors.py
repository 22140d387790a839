"""
Shared exception hierarchy for the workflow builder core.
"""


class WorkflowBuilderError(Exception):
    """Base class for all builder related errors."""


class GraphError(WorkflowBuilderError):
    """Raised when a step graph mutation would break a structural invariant."""


class ConditionParseError(WorkflowBuilderError):
    """Raised when a condition expression does not match the rule grammar."""

    def __init__(self, expression: str, position: int, reason: str) -> None:
        self.expression = expression
        self.position = position
        self.reason = reason
        super().__init__(f"{reason} at position {position} in {expression!r}")


class ValidationPhaseError(WorkflowBuilderError):
    """Raised when a workflow payload or document fails pre-publish checks."""
