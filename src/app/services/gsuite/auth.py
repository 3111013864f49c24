"""GSuite authentication manager with service account and domain-wide delegation.

Builds delegated credentials for Gmail (notification email) and Calendar
(interview mirroring) and caches one API service instance per
(api, user_email) so repeated sends do not rebuild credentials.
"""

from __future__ import annotations

import base64
import json
from typing import Any

import structlog
from google.oauth2 import service_account
from googleapiclient.discovery import build

logger = structlog.get_logger(__name__)

# Gmail scope for sending notification email
GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.send",
]

# Calendar scope for creating interview events on behalf of organizers
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar.events",
]


class GSuiteAuthManager:
    """Manages Google API authentication with service account credentials.

    Either a key file path or base64-encoded key JSON must be provided; the
    JSON form is used on hosts where writing the key to disk is not possible.

    Args:
        delegated_user_email: Default user to impersonate.
        service_account_file: Path to the service account key file.
        service_account_json_b64: Base64-encoded service account key JSON.
    """

    def __init__(
        self,
        delegated_user_email: str,
        service_account_file: str | None = None,
        service_account_json_b64: str | None = None,
    ) -> None:
        if not service_account_file and not service_account_json_b64:
            raise ValueError("A service account file or base64 key JSON is required")
        self._service_account_file = service_account_file
        self._service_account_json_b64 = service_account_json_b64
        self._delegated_user_email = delegated_user_email
        self._service_cache: dict[str, Any] = {}

    @property
    def delegated_user_email(self) -> str:
        return self._delegated_user_email

    def _build_credentials(
        self,
        user_email: str | None,
        scopes: list[str],
    ) -> service_account.Credentials:
        """Create service account credentials with optional user delegation.

        Args:
            user_email: If provided, applies domain-wide delegation via
                with_subject() so the service account impersonates this user.
            scopes: OAuth2 scopes for the credentials.

        Returns:
            Service account credentials, optionally delegated.
        """
        if self._service_account_json_b64:
            info = json.loads(base64.b64decode(self._service_account_json_b64))
            credentials = service_account.Credentials.from_service_account_info(
                info, scopes=scopes
            )
        else:
            credentials = service_account.Credentials.from_service_account_file(
                self._service_account_file,
                scopes=scopes,
            )
        if user_email:
            credentials = credentials.with_subject(user_email)
        return credentials

    def _get_service(self, api: str, version: str, scopes: list[str], user_email: str) -> Any:
        cache_key = f"{api}:{user_email}"
        if cache_key not in self._service_cache:
            logger.info("gsuite.building_service", api=api, user_email=user_email)
            credentials = self._build_credentials(user_email, scopes)
            self._service_cache[cache_key] = build(
                api, version, credentials=credentials, cache_discovery=False
            )
        return self._service_cache[cache_key]

    def get_gmail_service(self, user_email: str | None = None) -> Any:
        """Get a cached Gmail API v1 service for the delegated user.

        Args:
            user_email: Email to impersonate. Defaults to the configured
                delegated_user_email.
        """
        return self._get_service(
            "gmail", "v1", GMAIL_SCOPES, user_email or self._delegated_user_email
        )

    def get_calendar_service(self, user_email: str | None = None) -> Any:
        """Get a cached Calendar API v3 service for the delegated user."""
        return self._get_service(
            "calendar", "v3", CALENDAR_SCOPES, user_email or self._delegated_user_email
        )
