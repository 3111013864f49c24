"""Video meeting providers behind one MeetingProvider interface."""

from src.app.interviews.providers.base import (
    CreatedMeeting,
    HttpMeetingProvider,
    MeetingDetails,
    MeetingProvider,
    TokenSource,
    kind_for_status,
)
from src.app.interviews.providers.google_meet import GoogleMeetProvider
from src.app.interviews.providers.microsoft import MicrosoftTeamsProvider
from src.app.interviews.providers.zoom import ZoomProvider

__all__ = [
    "CreatedMeeting",
    "GoogleMeetProvider",
    "HttpMeetingProvider",
    "MeetingDetails",
    "MeetingProvider",
    "MicrosoftTeamsProvider",
    "TokenSource",
    "ZoomProvider",
    "kind_for_status",
]
