"""Domain exceptions for interview scheduling.

Only ValidationError and InvalidTransitionError (plus InterviewNotFoundError
for unknown ids) ever reach the caller. ProviderError, CalendarSyncError and
DispatchError are absorbed by the orchestrator and dispatcher into outcome
warnings or structured logs.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class SchedulingError(Exception):
    """Base class for all interview scheduling errors."""


class ValidationError(SchedulingError):
    """Bad scheduling input. Nothing is created or mutated.

    Attributes:
        reason: Machine-readable reason code (e.g. "invalid_email").
        value: The offending input value.
    """

    def __init__(self, reason: str, value: Any = None, detail: str | None = None) -> None:
        self.reason = reason
        self.value = value
        self.detail = detail or f"Validation failed ({reason}): {value!r}"
        super().__init__(self.detail)


class ProviderErrorKind(str, Enum):
    """Provider-neutral failure taxonomy for meeting creation."""

    UNAUTHENTICATED = "unauthenticated"
    RATE_LIMITED = "rate_limited"
    INVALID_REQUEST = "invalid_request"
    UNAVAILABLE = "unavailable"


class ProviderError(SchedulingError):
    """A meeting provider failed to create a meeting."""

    def __init__(self, kind: ProviderErrorKind, provider: str, detail: str = "") -> None:
        self.kind = kind
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider} meeting creation failed [{kind.value}]: {detail}")


class CalendarSyncError(SchedulingError):
    """Mirroring an interview into the external calendar failed."""


class DispatchError(SchedulingError):
    """A notification or activity-log side effect failed."""

    def __init__(self, target: str, detail: str = "") -> None:
        self.target = target
        self.detail = detail
        super().__init__(f"Dispatch to {target} failed: {detail}")


class InvalidTransitionError(SchedulingError):
    """Raised when a status change violates the lifecycle or a concurrent update won.

    Attributes:
        from_status: Status the transition was attempted from (the stored
            status when known, else the status the caller expected).
        to_status: Requested target status.
        interview_id: Interview the transition was attempted on.
    """

    def __init__(
        self,
        from_status: str,
        to_status: str,
        interview_id: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.from_status = from_status
        self.to_status = to_status
        self.interview_id = interview_id
        self.detail = detail or f"Invalid status transition: {from_status} -> {to_status}"
        super().__init__(self.detail)


class InterviewNotFoundError(SchedulingError):
    """No interview with the given id exists in the organization."""

    def __init__(self, interview_id: str) -> None:
        self.interview_id = interview_id
        super().__init__(f"Interview {interview_id} not found")


class TokenRefreshError(SchedulingError):
    """Exchanging a provider refresh token for a new access token failed."""

    def __init__(self, provider: str, detail: str = "") -> None:
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider} token refresh failed: {detail}")
