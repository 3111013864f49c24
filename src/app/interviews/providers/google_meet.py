"""Google Meet meeting provider.

Meet links only exist attached to a Calendar event, so the provider
inserts an event on the connected account's primary calendar with a
hangoutsMeet conference request and reads hangoutLink back.
"""

from __future__ import annotations

import uuid
from typing import Any

from src.app.interviews.providers.base import CreatedMeeting, HttpMeetingProvider, MeetingDetails
from src.app.interviews.schemas import MeetingProviderId

REMINDERS = {
    "useDefault": False,
    "overrides": [
        {"method": "email", "minutes": 60},
        {"method": "popup", "minutes": 15},
    ],
}


class GoogleMeetProvider(HttpMeetingProvider):
    provider_id = MeetingProviderId.GOOGLE

    def build_request(self, details: MeetingDetails) -> tuple[str, dict[str, Any], dict[str, Any]]:
        body = {
            "summary": details.title,
            "description": details.agenda or "",
            "start": {"dateTime": details.start.isoformat(), "timeZone": details.timezone},
            "end": {"dateTime": details.end.isoformat(), "timeZone": details.timezone},
            "attendees": [
                {"email": a.email, "displayName": a.display_name}
                if a.display_name
                else {"email": a.email}
                for a in details.attendees
            ],
            "conferenceData": {
                "createRequest": {
                    "requestId": f"interview-{uuid.uuid4().hex}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                },
            },
            "reminders": REMINDERS,
        }
        params = {"conferenceDataVersion": 1, "sendUpdates": "all"}
        return f"{self._base_url}/calendars/primary/events", params, body

    def parse_response(self, data: dict[str, Any]) -> CreatedMeeting | None:
        link = data.get("hangoutLink")
        if not link:
            return None
        return CreatedMeeting(url=link, provider_meeting_id=data.get("id"))
