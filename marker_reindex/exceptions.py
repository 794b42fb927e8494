"""Package-specific exception types."""

from __future__ import annotations


class ReindexError(ValueError):
    """Base class for marker reindexing errors.

    Public entry points never let these escape; they are converted into
    structured failure results at the orchestrator boundary.
    """


class PlanError(ReindexError):
    """Raised when a rename plan violates its invariants.

    Args:
        reason: Human-readable description of the broken invariant.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid rename plan: {reason}")


class EditorError(ReindexError):
    """Raised when an editor capability fails or is unavailable.

    Args:
        operation: Name of the editor operation that failed.
        detail: Optional description of the underlying problem.
    """

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        self.detail = detail
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        if self.detail:
            return f"Editor operation `{self.operation}` failed: {self.detail}"
        return f"Editor operation `{self.operation}` failed"


class RollbackError(ReindexError):
    """Raised when restoring a backup only partially succeeds.

    Args:
        failures: Descriptions of each restore step that failed.
    """

    def __init__(self, failures: list[str]):
        self.failures = list(failures)
        super().__init__("Rollback incomplete: " + "; ".join(self.failures))
