"""Typed failures surfaced by the planning pipeline."""

from datetime import datetime


class PlanningError(Exception):
    """Base error carrying a stable code and a retry hint."""

    code = "UNKNOWN_ERROR"
    retryable = False

    def __init__(self, message: str, *, detail: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict[str, object]:
        """Return the caller-facing error payload."""
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            **self.detail,
        }


class InfeasiblePlanError(PlanningError):
    """Targets cannot be satisfied under policy thresholds."""

    code = "AI_PLAN_INFEASIBLE"

    def __init__(
        self, message: str, *, constraint: str, suggested_value: float | None = None
    ) -> None:
        super().__init__(
            message,
            detail={"constraint": constraint, "suggested_value": suggested_value},
        )
        self.constraint = constraint
        self.suggested_value = suggested_value


class QuotaExceededError(PlanningError):
    """Daily generation quota is used up."""

    code = "AI_QUOTA_EXCEEDED"

    def __init__(self, message: str, *, resets_at: datetime) -> None:
        super().__init__(message, detail={"resets_at": resets_at.isoformat()})
        self.resets_at = resets_at


class RateLimitedError(PlanningError):
    """Too many calls inside the sliding window."""

    code = "AI_RATE_LIMITED"
    retryable = True

    def __init__(self, message: str, *, retry_after_seconds: int) -> None:
        super().__init__(message, detail={"retry_after_seconds": retry_after_seconds})
        self.retry_after_seconds = retry_after_seconds


class DisabledForUserError(PlanningError):
    """An administrator switched generation off for the user."""

    code = "AI_DISABLED_FOR_USER"


class GenerationFailedError(PlanningError):
    """Malformed output, empty response or tool-loop exhaustion."""

    code = "AI_PLAN_FAILED"
    retryable = True


class GenerationTimeoutError(PlanningError):
    """The generative service did not answer in time."""

    code = "AI_TIMEOUT"
    retryable = True


class GenerationCancelledError(PlanningError):
    """A weekly batch was abandoned by its caller."""

    code = "AI_GENERATION_CANCELLED"
    retryable = True


class FoodParseRejectedError(PlanningError):
    """Free-text food input could not be turned into a single item."""

    code = "AI_PARSE_FAILED"


class InvalidRequestError(PlanningError):
    """Caller input is structurally invalid."""

    code = "VALIDATION_ERROR"


class UnknownPlanningError(PlanningError):
    """Catch-all wrapper keeping the original error for diagnostics."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, *, original_error: str) -> None:
        super().__init__(message, detail={"original_error": original_error})


GENERATION_ERRORS = (GenerationFailedError, GenerationTimeoutError)
