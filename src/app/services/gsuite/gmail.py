"""Async Gmail API service for sending notification email.

Google API calls are wrapped in asyncio.to_thread() so they never block
the event loop.
"""

from __future__ import annotations

import asyncio
import base64
from email.message import EmailMessage as StdlibEmailMessage

import structlog

from src.app.services.gsuite.auth import GSuiteAuthManager
from src.app.services.gsuite.models import EmailMessage, SentEmailResult

logger = structlog.get_logger(__name__)


class GmailService:
    """Async wrapper around the Gmail send endpoint."""

    def __init__(
        self,
        auth_manager: GSuiteAuthManager,
        default_user_email: str,
    ) -> None:
        self._auth = auth_manager
        self._default_user_email = default_user_email

    @staticmethod
    def build_mime_message(email: EmailMessage, sender: str | None = None) -> str:
        """Build a MIME message and return it base64url-encoded for the API."""
        msg = StdlibEmailMessage()
        msg["To"] = email.to
        msg["Subject"] = email.subject
        if sender:
            msg["From"] = sender
        if email.cc:
            msg["Cc"] = ", ".join(email.cc)
        if email.reply_to:
            msg["Reply-To"] = email.reply_to

        if email.body_text:
            msg.set_content(email.body_text)
            msg.add_alternative(email.body_html, subtype="html")
        else:
            msg.set_content(email.body_html, subtype="html")

        return base64.urlsafe_b64encode(msg.as_bytes()).decode()

    async def send_email(
        self,
        email: EmailMessage,
        user_email: str | None = None,
    ) -> SentEmailResult:
        """Send an email via Gmail API.

        Args:
            email: The email message to send.
            user_email: Sender email (for delegation). Defaults to
                the configured default_user_email.

        Returns:
            SentEmailResult with message_id, thread_id, and label_ids.
        """
        sender = user_email or self._default_user_email
        service = self._auth.get_gmail_service(sender)
        body = {"raw": self.build_mime_message(email, sender)}

        def _send() -> dict:
            return (
                service.users()
                .messages()
                .send(userId="me", body=body)
                .execute()
            )

        logger.info("gmail.sending_email", to=email.to, subject=email.subject)
        result = await asyncio.to_thread(_send)

        return SentEmailResult(
            message_id=result.get("id", ""),
            thread_id=result.get("threadId", ""),
            label_ids=result.get("labelIds", []),
        )
