"""Minimal auth dependency.

Stub implementation that reads the caller's identity from a bearer token of
the form "<user_id>" or "<user_id>:<display name>". Verification of
identity-provider ID tokens plugs in here.
"""

from typing import Annotated
from urllib.parse import unquote

from fastapi import Header, HTTPException, status

from backend.app.db.context import RequestContext


async def get_current_context(
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Extract request context from authorization header.

    Args:
        authorization: Authorization header (e.g., "Bearer alice:Alice%20Smith")

    Returns:
        RequestContext with user_id and user_name

    Raises:
        HTTPException: If the header is missing or malformed
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization[7:].strip()  # Strip "Bearer "

    user_id, _, user_name = token.partition(":")
    user_id = user_id.strip()

    if not user_id or any(ch.isspace() for ch in user_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token format (expected user_id[:display name])",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Display name is optional and may be percent-encoded
    user_name = unquote(user_name).strip() or "User"

    return RequestContext(user_id=user_id, user_name=user_name)
