"""Meeting provider abstract base class and shared HTTP plumbing.

Every video backend (Zoom, Microsoft Teams, Google Meet) implements
MeetingProvider. HttpMeetingProvider covers the common shape: fetch the
organization's access token, POST one JSON request, and map the transport
outcome into the provider-neutral ProviderError taxonomy. Concrete
providers only describe their request body and how to read the response.

No provider retries. A scheduling attempt makes at most one call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

import httpx
import structlog

from src.app.interviews.errors import ProviderError, ProviderErrorKind
from src.app.interviews.schemas import Attendee, MeetingProviderId

logger = structlog.get_logger(__name__)

# (org_id, provider) -> bearer token, or None when not connected/expired
TokenSource = Callable[[str, str], Awaitable[str | None]]


@dataclass(frozen=True)
class MeetingDetails:
    """Provider-neutral description of the meeting to create."""

    title: str
    start: datetime
    duration_minutes: int
    timezone: str
    attendees: list[Attendee] = field(default_factory=list)
    agenda: str | None = None

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    def local_start(self) -> datetime:
        """Naive wall-clock start in the meeting's timezone."""
        return self.start.astimezone(ZoneInfo(self.timezone)).replace(tzinfo=None)

    def local_end(self) -> datetime:
        return self.end.astimezone(ZoneInfo(self.timezone)).replace(tzinfo=None)


@dataclass(frozen=True)
class CreatedMeeting:
    url: str
    provider_meeting_id: str | None = None


def kind_for_status(status_code: int) -> ProviderErrorKind:
    """Map an HTTP status code to the provider error taxonomy."""
    if status_code in (401, 403):
        return ProviderErrorKind.UNAUTHENTICATED
    if status_code == 429:
        return ProviderErrorKind.RATE_LIMITED
    if 400 <= status_code < 500:
        return ProviderErrorKind.INVALID_REQUEST
    return ProviderErrorKind.UNAVAILABLE


class MeetingProvider(ABC):
    """Abstract interface for a video meeting backend.

    Methods:
        create_meeting: Create a remote meeting and return its join URL
            and provider-native id, or raise ProviderError.
    """

    provider_id: MeetingProviderId

    @abstractmethod
    async def create_meeting(self, org_id: str, details: MeetingDetails) -> CreatedMeeting:
        """Create a meeting for the organization."""
        ...


class HttpMeetingProvider(MeetingProvider):
    """Base for providers that create meetings with a single bearer-auth POST.

    Args:
        token_source: Async callable returning the organization's access
            token for this provider, or None.
        base_url: API base URL (configurable for sandboxes and tests).
        timeout: Per-request HTTP timeout in seconds.
    """

    def __init__(self, token_source: TokenSource, base_url: str, timeout: float = 15.0) -> None:
        self._token_source = token_source
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @abstractmethod
    def build_request(self, details: MeetingDetails) -> tuple[str, dict[str, Any], dict[str, Any]]:
        """Return (url, query params, JSON body) for the create call."""
        ...

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> CreatedMeeting | None:
        """Extract the join URL and id; None when the payload lacks a URL."""
        ...

    def _error(self, kind: ProviderErrorKind, detail: str) -> ProviderError:
        return ProviderError(kind, self.provider_id.value, detail)

    async def create_meeting(self, org_id: str, details: MeetingDetails) -> CreatedMeeting:
        token = await self._token_source(org_id, self.provider_id.value)
        if not token:
            raise self._error(
                ProviderErrorKind.UNAUTHENTICATED,
                f"{self.provider_id.value} integration is not connected for this organization",
            )

        url, params, body = self.build_request(details)
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(headers=headers, timeout=self._timeout) as client:
                response = await client.post(url, params=params or None, json=body)
        except httpx.TimeoutException as exc:
            raise self._error(ProviderErrorKind.UNAVAILABLE, f"timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise self._error(ProviderErrorKind.UNAVAILABLE, f"transport error: {exc}") from exc

        if response.status_code >= 400:
            logger.warning(
                "provider.http_error",
                provider=self.provider_id.value,
                org_id=org_id,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise self._error(
                kind_for_status(response.status_code),
                f"HTTP {response.status_code}",
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise self._error(ProviderErrorKind.UNAVAILABLE, "malformed response body") from exc

        meeting = self.parse_response(data) if isinstance(data, dict) else None
        if meeting is None:
            raise self._error(ProviderErrorKind.UNAVAILABLE, "response did not include a join URL")

        logger.info(
            "provider.meeting_created",
            provider=self.provider_id.value,
            org_id=org_id,
            provider_meeting_id=meeting.provider_meeting_id,
        )
        return meeting
