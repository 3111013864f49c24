"""JWT verification for tokens issued by the identity layer.

Authentication itself (login, sessions, role resolution) lives outside this
service. Requests carry a bearer access token whose claims identify the
user and their organization; this module only validates the signature and
maps the claims onto a CurrentUser.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from jose import JWTError, jwt
from pydantic import BaseModel

from src.app.config import get_settings

logger = logging.getLogger(__name__)


class CurrentUser(BaseModel):
    """Authenticated principal extracted from access-token claims."""

    user_id: str
    org_id: str
    email: str | None = None
    name: str | None = None
    role: str = "member"


# ── JWT Token Creation ────────────────────────────────────────────────────────


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token with org-scoped claims.

    Used for service-to-service calls and local development. The data dict
    should contain at minimum:
    - sub: user_id (str)
    - org_id: organization UUID (str)
    """
    settings = get_settings()
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=30))
    to_encode.update({
        "exp": expire,
        "iat": now,
        "type": "access",
    })
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


# ── JWT Token Verification ────────────────────────────────────────────────────


def verify_token(token: str, token_type: str = "access") -> dict:
    """Decode and validate a JWT token.

    Args:
        token: The JWT string.
        token_type: Expected token type.

    Returns:
        The decoded payload dict.

    Raises:
        HTTPException(401): If the token is invalid, expired, or wrong type.
    """
    settings = get_settings()
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise credentials_exception

    if payload.get("type") != token_type:
        raise credentials_exception
    if not payload.get("sub") or not payload.get("org_id"):
        raise credentials_exception
    return payload


def user_from_claims(payload: dict) -> CurrentUser:
    """Build a CurrentUser from verified token claims."""
    return CurrentUser(
        user_id=str(payload["sub"]),
        org_id=str(payload["org_id"]),
        email=payload.get("email"),
        name=payload.get("name"),
        role=payload.get("role", "member"),
    )
