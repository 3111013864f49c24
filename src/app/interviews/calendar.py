"""Calendar mirroring for scheduled interviews.

The orchestrator mirrors an interview into an external calendar through the
CalendarMirror protocol. GoogleCalendarMirror is the production
implementation; it creates the event on the organizer's calendar via the
GSuite calendar service and can request a hosted Meet link with it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

import structlog

from src.app.interviews.errors import CalendarSyncError
from src.app.interviews.schemas import Attendee
from src.app.services.gsuite.calendar import GoogleCalendarService

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CalendarEvent:
    """Event to mirror. start and end are aware instants."""

    summary: str
    description: str
    start: datetime
    end: datetime
    timezone: str
    attendees: list[Attendee] = field(default_factory=list)
    wants_video_link: bool = False
    location: str | None = None
    organizer_email: str | None = None


@dataclass(frozen=True)
class MirroredEvent:
    event_id: str
    html_link: str | None = None
    video_link: str | None = None


class CalendarMirror(Protocol):
    async def create_event(self, org_id: str, event: CalendarEvent) -> MirroredEvent:
        """Create the event, raising CalendarSyncError on failure."""
        ...


def build_event_description(job_title: str | None, candidate_name: str | None, candidate_email: str | None) -> str:
    """Human-readable calendar description for an interview."""
    position = job_title or "the open"
    lines = [f"Interview for {position} position."]
    if candidate_email:
        name = candidate_name or candidate_email
        lines.append("")
        lines.append(f"Candidate: {name} ({candidate_email})")
    return "\n".join(lines)


class GoogleCalendarMirror:
    """Mirror interviews into Google Calendar using domain-wide delegation.

    Args:
        calendar_service: GoogleCalendarService bound to the org's
            service account.
    """

    def __init__(self, calendar_service: GoogleCalendarService) -> None:
        self._calendar = calendar_service

    @staticmethod
    def build_event_body(event: CalendarEvent) -> dict:
        body: dict = {
            "summary": event.summary,
            "description": event.description,
            "start": {"dateTime": event.start.isoformat(), "timeZone": event.timezone},
            "end": {"dateTime": event.end.isoformat(), "timeZone": event.timezone},
            "attendees": [
                {"email": a.email, "displayName": a.display_name}
                if a.display_name
                else {"email": a.email}
                for a in event.attendees
            ],
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 60},
                    {"method": "popup", "minutes": 15},
                ],
            },
        }
        if event.location:
            body["location"] = event.location
        if event.wants_video_link:
            body["conferenceData"] = {
                "createRequest": {
                    "requestId": f"interview-{uuid.uuid4().hex}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                },
            }
        return body

    async def create_event(self, org_id: str, event: CalendarEvent) -> MirroredEvent:
        body = self.build_event_body(event)
        try:
            created = await self._calendar.insert_event(
                body,
                organizer_email=event.organizer_email,
                with_conference=event.wants_video_link,
            )
        except Exception as exc:
            raise CalendarSyncError(f"Google Calendar insert failed: {exc}") from exc

        event_id = created.get("id")
        if not event_id:
            raise CalendarSyncError("Google Calendar returned an event without an id")

        video_link = GoogleCalendarService.get_meet_url(created) if event.wants_video_link else None
        logger.info(
            "calendar.event_created",
            org_id=org_id,
            event_id=event_id,
            has_video_link=bool(video_link),
        )
        return MirroredEvent(
            event_id=event_id,
            html_link=created.get("htmlLink"),
            video_link=video_link,
        )
