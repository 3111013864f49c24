"""Zoom meeting provider.

Creates a scheduled meeting (type 2) for the organization's connected Zoom
account via POST /users/me/meetings.
"""

from __future__ import annotations

from typing import Any

from src.app.interviews.providers.base import CreatedMeeting, HttpMeetingProvider, MeetingDetails
from src.app.interviews.schemas import MeetingProviderId

# Zoom meeting type 2 = scheduled meeting
SCHEDULED_MEETING = 2

DEFAULT_SETTINGS = {
    "host_video": True,
    "participant_video": True,
    "join_before_host": True,
    "mute_upon_entry": False,
    "waiting_room": False,
    "auto_recording": "none",
}


class ZoomProvider(HttpMeetingProvider):
    provider_id = MeetingProviderId.ZOOM

    def build_request(self, details: MeetingDetails) -> tuple[str, dict[str, Any], dict[str, Any]]:
        body = {
            "topic": details.title,
            "type": SCHEDULED_MEETING,
            # Local wall-clock time; Zoom applies the timezone field
            "start_time": details.local_start().strftime("%Y-%m-%dT%H:%M:%S"),
            "duration": details.duration_minutes,
            "timezone": details.timezone,
            "agenda": details.agenda or "",
            "settings": dict(DEFAULT_SETTINGS),
        }
        return f"{self._base_url}/users/me/meetings", {}, body

    def parse_response(self, data: dict[str, Any]) -> CreatedMeeting | None:
        join_url = data.get("join_url")
        if not join_url:
            return None
        meeting_id = data.get("id")
        return CreatedMeeting(
            url=join_url,
            provider_meeting_id=str(meeting_id) if meeting_id is not None else None,
        )
