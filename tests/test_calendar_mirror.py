"""Tests for the Google Calendar mirror and event description."""

from __future__ import annotations

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest

from src.app.interviews.calendar import (
    CalendarEvent,
    GoogleCalendarMirror,
    build_event_description,
)
from src.app.interviews.errors import CalendarSyncError
from src.app.interviews.schemas import Attendee, AttendeeOrigin
from tests.doubles import ORG_ID

TZ = ZoneInfo("Asia/Riyadh")

EVENT = CalendarEvent(
    summary="Technical Interview",
    description="Interview for Backend Engineer position.",
    start=datetime(2026, 3, 2, 10, 0, tzinfo=TZ),
    end=datetime(2026, 3, 2, 11, 0, tzinfo=TZ),
    timezone="Asia/Riyadh",
    attendees=[
        Attendee(email="alice@acme.com", display_name="Alice", origin=AttendeeOrigin.INTERVIEWER),
        Attendee(email="guest@partner.com", origin=AttendeeOrigin.EXTERNAL),
    ],
    wants_video_link=True,
    organizer_email="recruiter@acme.com",
)


def _calendar_service(created: dict | None = None, error: Exception | None = None) -> MagicMock:
    service = MagicMock()
    service.insert_event = AsyncMock(return_value=created, side_effect=error)
    return service


class TestBuildEventDescription:
    def test_with_candidate(self):
        text = build_event_description("Backend Engineer", "Sara", "sara@example.com")
        assert text == "Interview for Backend Engineer position.\n\nCandidate: Sara (sara@example.com)"

    def test_without_job_or_candidate(self):
        assert build_event_description(None, None, None) == "Interview for the open position."

    def test_candidate_without_name_uses_email(self):
        text = build_event_description("QA", None, "sara@example.com")
        assert text.endswith("Candidate: sara@example.com (sara@example.com)")


class TestGoogleCalendarMirror:
    def test_event_body(self):
        body = GoogleCalendarMirror.build_event_body(EVENT)

        assert body["summary"] == "Technical Interview"
        assert body["start"] == {"dateTime": "2026-03-02T10:00:00+03:00", "timeZone": "Asia/Riyadh"}
        assert body["end"]["dateTime"] == "2026-03-02T11:00:00+03:00"
        assert body["attendees"] == [
            {"email": "alice@acme.com", "displayName": "Alice"},
            {"email": "guest@partner.com"},
        ]
        assert body["reminders"]["overrides"][0] == {"method": "email", "minutes": 60}
        assert body["conferenceData"]["createRequest"]["conferenceSolutionKey"] == {"type": "hangoutsMeet"}
        assert "location" not in body

    def test_event_body_without_video_link(self):
        event = CalendarEvent(
            summary="Onsite",
            description="",
            start=EVENT.start,
            end=EVENT.end,
            timezone="Asia/Riyadh",
            location="HQ",
        )
        body = GoogleCalendarMirror.build_event_body(event)

        assert "conferenceData" not in body
        assert body["location"] == "HQ"

    async def test_create_event_returns_ids_and_link(self):
        service = _calendar_service({
            "id": "evt-1",
            "htmlLink": "https://calendar.google.com/event?eid=evt-1",
            "hangoutLink": "https://meet.google.com/abc-defg-hij",
        })
        mirror = GoogleCalendarMirror(service)

        mirrored = await mirror.create_event(ORG_ID, EVENT)

        assert mirrored.event_id == "evt-1"
        assert mirrored.html_link == "https://calendar.google.com/event?eid=evt-1"
        assert mirrored.video_link == "https://meet.google.com/abc-defg-hij"
        kwargs = service.insert_event.call_args.kwargs
        assert kwargs["organizer_email"] == "recruiter@acme.com"
        assert kwargs["with_conference"] is True

    async def test_video_link_from_entry_points(self):
        service = _calendar_service({
            "id": "evt-1",
            "conferenceData": {
                "entryPoints": [
                    {"entryPointType": "phone", "uri": "tel:+1-555"},
                    {"entryPointType": "video", "uri": "https://meet.google.com/xyz"},
                ]
            },
        })

        mirrored = await GoogleCalendarMirror(service).create_event(ORG_ID, EVENT)

        assert mirrored.video_link == "https://meet.google.com/xyz"

    async def test_api_error_becomes_calendar_sync_error(self):
        service = _calendar_service(error=RuntimeError("HttpError 500"))

        with pytest.raises(CalendarSyncError):
            await GoogleCalendarMirror(service).create_event(ORG_ID, EVENT)

    async def test_missing_event_id_is_error(self):
        service = _calendar_service({"htmlLink": "https://calendar.google.com/x"})

        with pytest.raises(CalendarSyncError):
            await GoogleCalendarMirror(service).create_event(ORG_ID, EVENT)
