"""Microsoft Teams meeting provider.

Teams meetings are created as Outlook calendar events with an online
meeting attached (POST /me/events on Microsoft Graph). Graph takes
wall-clock start/end plus a timeZone name, and sends the invitations to
the required attendees itself.
"""

from __future__ import annotations

from typing import Any

from src.app.interviews.providers.base import CreatedMeeting, HttpMeetingProvider, MeetingDetails
from src.app.interviews.schemas import MeetingProviderId

_GRAPH_DATETIME = "%Y-%m-%dT%H:%M:%S"


class MicrosoftTeamsProvider(HttpMeetingProvider):
    provider_id = MeetingProviderId.MICROSOFT

    def build_request(self, details: MeetingDetails) -> tuple[str, dict[str, Any], dict[str, Any]]:
        body: dict[str, Any] = {
            "subject": details.title,
            "start": {
                "dateTime": details.local_start().strftime(_GRAPH_DATETIME),
                "timeZone": details.timezone,
            },
            "end": {
                "dateTime": details.local_end().strftime(_GRAPH_DATETIME),
                "timeZone": details.timezone,
            },
            "isOnlineMeeting": True,
            "onlineMeetingProvider": "teamsForBusiness",
            "attendees": [
                {
                    "emailAddress": {"address": a.email, "name": a.display_name or a.email},
                    "type": "required",
                }
                for a in details.attendees
            ],
        }
        if details.agenda:
            body["body"] = {"contentType": "text", "content": details.agenda}
        return f"{self._base_url}/me/events", {}, body

    def parse_response(self, data: dict[str, Any]) -> CreatedMeeting | None:
        online = data.get("onlineMeeting") or {}
        join_url = online.get("joinUrl") or data.get("webLink")
        if not join_url:
            return None
        return CreatedMeeting(url=join_url, provider_meeting_id=data.get("id"))
