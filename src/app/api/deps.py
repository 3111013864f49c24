"""FastAPI dependency injection for authentication and organization scope.

Authentication is owned by the identity layer; these dependencies only
verify the bearer access token and expose its claims to endpoints.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from src.app.core.organization import OrganizationContext
from src.app.core.security import CurrentUser, user_from_claims, verify_token


async def get_current_user(request: Request) -> CurrentUser:
    """Extract and validate the current user from the bearer JWT.

    Raises:
        HTTPException(401): If no valid bearer token is provided.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = verify_token(auth_header[7:], token_type="access")
    return user_from_claims(payload)


async def get_organization(
    user: CurrentUser = Depends(get_current_user),
) -> OrganizationContext:
    """Organization scope for the request, taken from the verified token."""
    return OrganizationContext(org_id=user.org_id, user_id=user.user_id)

