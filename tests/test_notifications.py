"""Tests for the email notification sender.

Gmail is replaced by an AsyncMock; no Google credentials are needed.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.app.interviews.dispatcher import NotificationType
from src.app.interviews.errors import DispatchError
from src.app.interviews.notifications import EmailNotificationSender, render_html, render_text
from src.app.interviews.schemas import Attendee, AttendeeOrigin
from src.app.services.gsuite.models import EmailMessage
from tests.doubles import ORG_ID

PAYLOAD = {
    "interview_id": "iv-1",
    "title": "Technical Interview",
    "job_title": "Backend Engineer",
    "interview_date": "Monday, March 2, 2026",
    "interview_time": "10:00 AM",
    "timezone": "Asia/Riyadh",
    "duration_minutes": 60,
    "interview_type": "video",
    "location": None,
    "meeting_link": "https://zoom.us/j/1",
}

CANDIDATE = Attendee(email="sara.candidate@example.com", display_name="Sara", origin=AttendeeOrigin.CANDIDATE)
INTERVIEWER = Attendee(email="alice@acme.com", display_name="Alice", origin=AttendeeOrigin.INTERVIEWER)
GUEST = Attendee(email="guest@partner.com", origin=AttendeeOrigin.EXTERNAL)


@pytest.fixture
def gmail():
    mock = MagicMock()
    mock.send_email = AsyncMock()
    return mock


class TestRenderText:
    def test_candidate_wording(self):
        text = render_text(NotificationType.INTERVIEW_SCHEDULED, CANDIDATE, PAYLOAD, "Acme Talent")

        assert text.startswith("Hello Sara,")
        assert "Your interview for Backend Engineer has been scheduled for Monday, March 2, 2026 at 10:00 AM (Asia/Riyadh)." in text
        assert "Join link: https://zoom.us/j/1" in text
        assert text.endswith("Acme Talent")

    def test_internal_wording(self):
        text = render_text(NotificationType.INTERVIEW_SCHEDULED, INTERVIEWER, PAYLOAD, "Acme Talent")
        assert "You have been invited to an interview for Backend Engineer" in text

    def test_guest_without_name(self):
        text = render_text(NotificationType.INTERVIEW_SCHEDULED, GUEST, PAYLOAD, "Acme Talent")
        assert text.startswith("Hello,")

    def test_in_person_shows_location(self):
        payload = {**PAYLOAD, "meeting_link": None, "location": "HQ, Room 4"}
        text = render_text(NotificationType.INTERVIEW_SCHEDULED, CANDIDATE, payload, "Acme Talent")

        assert "Location: HQ, Room 4" in text
        assert "Join link" not in text

    def test_cancelled(self):
        text = render_text(NotificationType.INTERVIEW_CANCELLED, CANDIDATE, PAYLOAD, "Acme Talent")

        assert "has been cancelled" in text
        assert "Join link" not in text

    def test_html_escapes(self):
        html = render_html("Hello <b>,\n\nLine")
        assert html == "<p>Hello &lt;b&gt;,</p><p>Line</p>"


class TestEmailNotificationSender:
    async def test_sends_one_email_per_recipient(self, gmail):
        sender = EmailNotificationSender(gmail, sender_email="talent@acme.com", company_name="Acme Talent")

        await sender.send(ORG_ID, NotificationType.INTERVIEW_SCHEDULED, [INTERVIEWER, CANDIDATE], PAYLOAD)

        assert gmail.send_email.await_count == 2
        first: EmailMessage = gmail.send_email.call_args_list[0].args[0]
        assert first.to == "alice@acme.com"
        assert first.subject == "Interview Scheduled: Backend Engineer"
        assert first.body_text and first.body_html
        assert gmail.send_email.call_args_list[0].kwargs["user_email"] == "talent@acme.com"

    async def test_cancellation_subject(self, gmail):
        sender = EmailNotificationSender(gmail)

        await sender.send(ORG_ID, NotificationType.INTERVIEW_CANCELLED, [CANDIDATE], PAYLOAD)

        assert gmail.send_email.call_args.args[0].subject == "Interview Cancelled: Backend Engineer"

    async def test_partial_failure_attempts_everyone_then_raises(self, gmail):
        gmail.send_email.side_effect = [RuntimeError("quota"), None, None]
        sender = EmailNotificationSender(gmail)

        with pytest.raises(DispatchError) as exc_info:
            await sender.send(
                ORG_ID, NotificationType.INTERVIEW_SCHEDULED, [INTERVIEWER, GUEST, CANDIDATE], PAYLOAD
            )

        assert gmail.send_email.await_count == 3
        assert exc_info.value.target == "notification"
        assert "1 of 3" in exc_info.value.detail

    async def test_without_gmail_only_logs(self):
        sender = EmailNotificationSender(None)
        await sender.send(ORG_ID, NotificationType.INTERVIEW_SCHEDULED, [CANDIDATE], PAYLOAD)

    async def test_no_recipients(self, gmail):
        sender = EmailNotificationSender(gmail)

        await sender.send(ORG_ID, NotificationType.INTERVIEW_SCHEDULED, [], PAYLOAD)

        gmail.send_email.assert_not_called()
