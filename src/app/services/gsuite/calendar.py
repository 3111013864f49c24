"""Async Google Calendar API service for creating interview events.

Google API client calls are blocking, so every call runs in
asyncio.to_thread(). Events are created on the organizer's primary
calendar through domain-wide delegation.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from src.app.services.gsuite.auth import GSuiteAuthManager

logger = structlog.get_logger(__name__)


class GoogleCalendarService:
    """Async wrapper around Calendar API v3 event insertion.

    Args:
        auth_manager: GSuiteAuthManager instance (shared with Gmail).
    """

    def __init__(self, auth_manager: GSuiteAuthManager) -> None:
        self._auth_manager = auth_manager

    async def insert_event(
        self,
        body: dict[str, Any],
        organizer_email: str | None = None,
        with_conference: bool = False,
    ) -> dict:
        """Insert an event on the organizer's primary calendar.

        Args:
            body: Calendar API event resource.
            organizer_email: User to impersonate. Defaults to the
                auth manager's delegated user.
            with_conference: Whether the body carries a conference create
                request (sets conferenceDataVersion=1).

        Returns:
            The created event resource.
        """
        service = self._auth_manager.get_calendar_service(organizer_email)

        def _insert() -> dict:
            return (
                service.events()
                .insert(
                    calendarId="primary",
                    body=body,
                    conferenceDataVersion=1 if with_conference else 0,
                    sendUpdates="all",
                )
                .execute()
            )

        logger.info(
            "calendar.inserting_event",
            organizer=organizer_email or self._auth_manager.delegated_user_email,
            with_conference=with_conference,
        )
        return await asyncio.to_thread(_insert)

    @staticmethod
    def get_meet_url(event: dict) -> str | None:
        """Extract the hosted video URL from an event.

        Prefers hangoutLink, then the first video entry point in
        conferenceData.
        """
        if event.get("hangoutLink"):
            return event["hangoutLink"]
        conference = event.get("conferenceData", {})
        for ep in conference.get("entryPoints", []):
            if ep.get("entryPointType") == "video":
                return ep.get("uri")
        return None
