"""Provider gateway: one entry point for creating meetings on any provider.

The gateway picks the registered MeetingProvider for a provider id, makes
exactly one bounded call, and guarantees that every failure comes back as
a ProviderError. Unexpected exceptions from a provider implementation and
timeouts both surface as kind "unavailable".
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime

import structlog

from src.app.core.monitoring import provider_call_duration_seconds, provider_calls_total
from src.app.interviews.errors import ProviderError, ProviderErrorKind
from src.app.interviews.providers.base import CreatedMeeting, MeetingDetails, MeetingProvider
from src.app.interviews.schemas import Attendee, MeetingProviderId

logger = structlog.get_logger(__name__)


class ProviderGateway:
    """Dispatches meeting creation to the configured provider implementations.

    Args:
        providers: Provider implementations; keyed by their provider_id.
        timeout: Upper bound in seconds for one create call, including
            token lookup.
    """

    def __init__(self, providers: list[MeetingProvider], timeout: float = 15.0) -> None:
        self._providers: dict[MeetingProviderId, MeetingProvider] = {
            p.provider_id: p for p in providers
        }
        self._timeout = timeout

    @property
    def supported(self) -> list[MeetingProviderId]:
        return list(self._providers)

    async def create_meeting(
        self,
        org_id: str,
        provider_id: MeetingProviderId,
        title: str,
        start: datetime,
        duration_minutes: int,
        timezone: str,
        attendees: list[Attendee],
        agenda: str | None = None,
    ) -> CreatedMeeting:
        """Create a remote meeting with a single attempt.

        Returns:
            CreatedMeeting with the join URL and provider meeting id.

        Raises:
            ProviderError: For every failure, including timeout.
        """
        provider = self._providers.get(provider_id)
        if provider is None:
            provider_calls_total.labels(
                provider=provider_id.value, outcome=ProviderErrorKind.INVALID_REQUEST.value
            ).inc()
            raise ProviderError(
                ProviderErrorKind.INVALID_REQUEST,
                provider_id.value,
                "provider is not supported",
            )

        details = MeetingDetails(
            title=title,
            start=start,
            duration_minutes=duration_minutes,
            timezone=timezone,
            attendees=list(attendees),
            agenda=agenda,
        )

        started = time.perf_counter()
        try:
            meeting = await asyncio.wait_for(
                provider.create_meeting(org_id, details), timeout=self._timeout
            )
        except ProviderError as exc:
            provider_calls_total.labels(provider=provider_id.value, outcome=exc.kind.value).inc()
            raise
        except asyncio.TimeoutError as exc:
            provider_calls_total.labels(
                provider=provider_id.value, outcome=ProviderErrorKind.UNAVAILABLE.value
            ).inc()
            raise ProviderError(
                ProviderErrorKind.UNAVAILABLE,
                provider_id.value,
                f"no response within {self._timeout}s",
            ) from exc
        except Exception as exc:
            logger.exception(
                "provider.unexpected_error",
                provider=provider_id.value,
                org_id=org_id,
            )
            provider_calls_total.labels(
                provider=provider_id.value, outcome=ProviderErrorKind.UNAVAILABLE.value
            ).inc()
            raise ProviderError(
                ProviderErrorKind.UNAVAILABLE, provider_id.value, str(exc)
            ) from exc
        finally:
            provider_call_duration_seconds.labels(provider=provider_id.value).observe(
                time.perf_counter() - started
            )

        provider_calls_total.labels(provider=provider_id.value, outcome="success").inc()
        return meeting
