"""Optional session identification from a forum-issued JWT.

The gateway never requires a session: unsubscribe keys and referrers are the
credentials. A session, when present, only drives the "this link belongs to a
different account" hint on the unsubscribe preview.
"""

import logging
from typing import Annotated, Any

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gateway.core.config import settings

logger = logging.getLogger(__name__)

# HTTP Bearer token security scheme
bearer_scheme = HTTPBearer(auto_error=False)

SESSION_COOKIE = "_forum_session"


def verify_token(token: str) -> dict[str, Any]:
    """Verify a session JWT signed by the forum.

    Args:
        token: The JWT token to verify

    Returns:
        The decoded token payload

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.secret_key,
            algorithms=["HS256"],
            options={"verify_exp": True, "require": ["sub"]},
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any] | None:
    """Get the session user if one is present, otherwise return None.

    Looks at the Authorization header first, then the session cookie.
    An invalid or expired token is treated as anonymous.
    """
    token = credentials.credentials if credentials else request.cookies.get(SESSION_COOKIE)
    if not token:
        return None

    try:
        return verify_token(token)
    except HTTPException as exc:
        logger.debug("Ignoring unusable session token: %s", exc.detail)
        return None


def session_user_id(user: dict[str, Any] | None) -> int | None:
    """Extract the numeric forum user id from a session payload."""
    if not user:
        return None
    try:
        return int(user["sub"])
    except (KeyError, TypeError, ValueError):
        return None


# Type alias for dependency injection
OptionalUser = Annotated[dict[str, Any] | None, Depends(get_optional_user)]
