"""Organization context propagation via Python contextvars.

The OrganizationContext is set by middleware at the start of each request
and is accessible anywhere in the call stack via get_current_organization().
Logging, metrics and Sentry tagging read it; data access still receives the
org_id explicitly as first argument.
"""

from __future__ import annotations

import contextvars
import logging
from dataclasses import dataclass

from fastapi import Request, Response
from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.app.config import get_settings

logger = logging.getLogger(__name__)

# ── Organization Context ────────────────────────────────────────────────────


@dataclass(frozen=True)
class OrganizationContext:
    """Immutable organization context for the current request."""

    org_id: str
    user_id: str | None = None


_org_context: contextvars.ContextVar[OrganizationContext] = contextvars.ContextVar("org_context")


def get_current_organization() -> OrganizationContext:
    """Get the organization context for the current request.

    Raises RuntimeError if no organization context has been set (i.e., the
    call is not within an authenticated request).
    """
    try:
        return _org_context.get()
    except LookupError:
        raise RuntimeError("No organization context set -- request is not org-scoped")


def set_organization_context(ctx: OrganizationContext) -> contextvars.Token[OrganizationContext]:
    """Set the organization context for the current request. Returns a token for reset."""
    return _org_context.set(ctx)


def reset_organization_context(token: contextvars.Token[OrganizationContext]) -> None:
    _org_context.reset(token)


# ── Paths that skip organization resolution ─────────────────────────────────

SKIP_ORG_PATHS = (
    "/health",
    "/metrics",
    "/docs",
    "/openapi.json",
    "/redoc",
)


# ── Organization Middleware ─────────────────────────────────────────────────


class OrganizationContextMiddleware(BaseHTTPMiddleware):
    """Middleware that resolves the organization from JWT claims.

    Requests without a valid token pass through without a context; the
    authentication dependency rejects them at the endpoint.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if any(path.startswith(skip) for skip in SKIP_ORG_PATHS):
            return await call_next(request)

        ctx = self._resolve_from_jwt(request)
        if ctx is None:
            return await call_next(request)

        request.state.org_id = ctx.org_id
        request.state.user_id = ctx.user_id
        token = set_organization_context(ctx)
        try:
            return await call_next(request)
        finally:
            reset_organization_context(token)

    @staticmethod
    def _resolve_from_jwt(request: Request) -> OrganizationContext | None:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return None

        settings = get_settings()
        try:
            payload = jwt.decode(
                auth_header[7:],
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM],
            )
        except JWTError:
            logger.debug("Ignoring request with undecodable bearer token")
            return None

        org_id = payload.get("org_id")
        if not org_id:
            return None
        return OrganizationContext(org_id=str(org_id), user_id=payload.get("sub"))
