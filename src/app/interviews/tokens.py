"""OAuth refresh for organization provider tokens.

Each provider exchanges a refresh token at its own token endpoint with a
form-encoded POST. Zoom authenticates the app with HTTP Basic; Microsoft
and Google take the client credentials in the form body. A provider whose
OAuth app is not configured cannot be refreshed.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from src.app.config import Settings
from src.app.interviews.errors import TokenRefreshError
from src.app.interviews.schemas import MeetingProviderId

logger = structlog.get_logger(__name__)

MICROSOFT_SCOPES = (
    "https://graph.microsoft.com/Calendars.ReadWrite "
    "https://graph.microsoft.com/OnlineMeetings.ReadWrite offline_access"
)


@dataclass(frozen=True)
class OAuthClient:
    token_url: str
    client_id: str
    client_secret: str
    basic_auth: bool = False
    scope: str | None = None


@dataclass(frozen=True)
class RefreshedToken:
    access_token: str
    refresh_token: str | None
    expires_in: int

    def expiry_ms(self, now_ms: float) -> int:
        """Absolute expiry in epoch milliseconds, as stored in provider_metadata."""
        return int(now_ms + self.expires_in * 1000)


class TokenRefresher:
    """Refreshes provider access tokens with a single HTTP call, no retry.

    Args:
        clients: OAuth app per provider id.
        timeout: HTTP timeout in seconds.
    """

    def __init__(self, clients: dict[str, OAuthClient], timeout: float = 10.0) -> None:
        self._clients = clients
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenRefresher:
        candidates = {
            MeetingProviderId.ZOOM.value: OAuthClient(
                token_url=settings.ZOOM_TOKEN_URL,
                client_id=settings.ZOOM_CLIENT_ID,
                client_secret=settings.ZOOM_CLIENT_SECRET,
                basic_auth=True,
            ),
            MeetingProviderId.MICROSOFT.value: OAuthClient(
                token_url=(
                    f"{settings.MICROSOFT_LOGIN_BASE_URL.rstrip('/')}/"
                    f"{settings.MICROSOFT_TENANT_ID}/oauth2/v2.0/token"
                ),
                client_id=settings.MICROSOFT_CLIENT_ID,
                client_secret=settings.MICROSOFT_CLIENT_SECRET,
                scope=MICROSOFT_SCOPES,
            ),
            MeetingProviderId.GOOGLE.value: OAuthClient(
                token_url=settings.GOOGLE_TOKEN_URL,
                client_id=settings.GOOGLE_OAUTH_CLIENT_ID,
                client_secret=settings.GOOGLE_OAUTH_CLIENT_SECRET,
            ),
        }
        clients = {
            provider: client
            for provider, client in candidates.items()
            if client.client_id and client.client_secret
        }
        return cls(clients, timeout=settings.TOKEN_REFRESH_TIMEOUT_SECONDS)

    def supports(self, provider: str) -> bool:
        return provider in self._clients

    async def refresh(self, provider: str, refresh_token: str) -> RefreshedToken:
        """Exchange refresh_token for a new access token.

        Raises:
            TokenRefreshError: If the provider has no OAuth app configured,
                the endpoint is unreachable, rejects the request, or returns
                a payload without an access token.
        """
        client_config = self._clients.get(provider)
        if client_config is None:
            raise TokenRefreshError(provider, "no OAuth client configured")

        form = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        auth = None
        if client_config.basic_auth:
            auth = (client_config.client_id, client_config.client_secret)
        else:
            form["client_id"] = client_config.client_id
            form["client_secret"] = client_config.client_secret
        if client_config.scope:
            form["scope"] = client_config.scope

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(client_config.token_url, data=form, auth=auth)
        except httpx.HTTPError as exc:
            raise TokenRefreshError(provider, f"transport error: {exc}") from exc

        if response.status_code >= 400:
            logger.warning(
                "token.refresh_rejected",
                provider=provider,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise TokenRefreshError(provider, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise TokenRefreshError(provider, "malformed response body") from exc

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise TokenRefreshError(provider, "response did not include an access token")

        return RefreshedToken(
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            expires_in=int(data.get("expires_in") or 3600),
        )
