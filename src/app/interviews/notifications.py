"""Email notification sender for interview events.

Renders a short HTML + text email per recipient and sends it through the
Gmail API. Candidates and internal participants get different wording.
When Gmail is not configured the notification is logged instead, so local
and test environments exercise the same path without Google credentials.
"""

from __future__ import annotations

from html import escape
from typing import Any

import structlog

from src.app.interviews.dispatcher import NotificationType
from src.app.interviews.errors import DispatchError
from src.app.interviews.schemas import Attendee, AttendeeOrigin
from src.app.services.gsuite.gmail import GmailService
from src.app.services.gsuite.models import EmailMessage

logger = structlog.get_logger(__name__)


def _subject(event_type: NotificationType, payload: dict[str, Any]) -> str:
    subject_name = payload.get("job_title") or payload.get("title") or "Interview"
    if event_type is NotificationType.INTERVIEW_CANCELLED:
        return f"Interview Cancelled: {subject_name}"
    return f"Interview Scheduled: {subject_name}"


def render_text(
    event_type: NotificationType,
    recipient: Attendee,
    payload: dict[str, Any],
    company_name: str,
) -> str:
    """Plain-text notification body for one recipient."""
    greeting = f"Hello {recipient.display_name}," if recipient.display_name else "Hello,"
    position = payload.get("job_title") or payload.get("title")
    when = f"{payload['interview_date']} at {payload['interview_time']} ({payload['timezone']})"

    if event_type is NotificationType.INTERVIEW_CANCELLED:
        lines = [greeting, "", f"The interview for {position} on {when} has been cancelled."]
    elif recipient.origin is AttendeeOrigin.CANDIDATE:
        lines = [greeting, "", f"Your interview for {position} has been scheduled for {when}."]
    else:
        lines = [greeting, "", f"You have been invited to an interview for {position} on {when}."]

    if event_type is NotificationType.INTERVIEW_SCHEDULED:
        lines.append(f"Duration: {payload['duration_minutes']} minutes")
        if payload.get("meeting_link"):
            lines.append(f"Join link: {payload['meeting_link']}")
        elif payload.get("location"):
            lines.append(f"Location: {payload['location']}")

    lines.extend(["", company_name])
    return "\n".join(lines)


def render_html(text: str) -> str:
    paragraphs = [escape(block).replace("\n", "<br>") for block in text.split("\n\n")]
    return "".join(f"<p>{p}</p>" for p in paragraphs)


class EmailNotificationSender:
    """Sends interview notifications by email.

    Args:
        gmail: GmailService, or None to log notifications instead.
        sender_email: Mailbox to send from (delegated user).
        company_name: Signature line.
    """

    def __init__(
        self,
        gmail: GmailService | None,
        sender_email: str | None = None,
        company_name: str = "Recruitment Team",
    ) -> None:
        self._gmail = gmail
        self._sender_email = sender_email
        self._company_name = company_name

    async def send(
        self,
        org_id: str,
        event_type: NotificationType,
        recipients: list[Attendee],
        payload: dict[str, Any],
    ) -> None:
        """Send one email per recipient.

        Every recipient is attempted even if an earlier send fails.

        Raises:
            DispatchError: If at least one recipient could not be reached.
        """
        if not recipients:
            logger.info(
                "notification.no_recipients",
                org_id=org_id,
                event_type=event_type.value,
                interview_id=payload.get("interview_id"),
            )
            return

        if self._gmail is None:
            logger.info(
                "notification.logged",
                org_id=org_id,
                event_type=event_type.value,
                interview_id=payload.get("interview_id"),
                recipients=[r.email for r in recipients],
            )
            return

        failed: list[str] = []
        for recipient in recipients:
            text = render_text(event_type, recipient, payload, self._company_name)
            message = EmailMessage(
                to=recipient.email,
                subject=_subject(event_type, payload),
                body_html=render_html(text),
                body_text=text,
            )
            try:
                await self._gmail.send_email(message, user_email=self._sender_email)
            except Exception as exc:
                logger.warning(
                    "notification.send_failed",
                    org_id=org_id,
                    event_type=event_type.value,
                    recipient=recipient.email,
                    error=str(exc),
                )
                failed.append(recipient.email)

        if failed:
            raise DispatchError("notification", f"failed for {len(failed)} of {len(recipients)} recipients")

        logger.info(
            "notification.sent",
            org_id=org_id,
            event_type=event_type.value,
            interview_id=payload.get("interview_id"),
            recipient_count=len(recipients),
        )
