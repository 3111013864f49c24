"""GSuite integration services for the Gmail and Calendar APIs.

Async-wrapped services for sending notification email and creating
calendar events using Google service account authentication with
domain-wide delegation.
"""

from src.app.services.gsuite.auth import GSuiteAuthManager
from src.app.services.gsuite.calendar import GoogleCalendarService
from src.app.services.gsuite.gmail import GmailService
from src.app.services.gsuite.models import EmailMessage, SentEmailResult

__all__ = [
    "EmailMessage",
    "GmailService",
    "GoogleCalendarService",
    "GSuiteAuthManager",
    "SentEmailResult",
]
