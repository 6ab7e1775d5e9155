"""Shared API dependencies for authentication and common functionality."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from research_commons.core.security import decode_access_token
from research_commons.db.session import get_db
from research_commons.models import User
from research_commons.services.moderation_gate import ModerationGate
from research_commons.services.rate_limit import (
    RateLimiter,
    client_ip,
    get_rate_limiter,
    rate_limit_headers,
)

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer token credentials
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        HTTPException: If token is invalid or user not found
    """
    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    user = db.get(User, subject)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_client_ip(request: Request) -> str:
    """Return the caller's address, honouring proxy headers."""
    fallback = request.client.host if request.client else None
    return client_ip(request.headers, fallback)


ClientIPDep = Annotated[str, Depends(get_client_ip)]


def get_limiter() -> RateLimiter:
    """Return the process-wide rate limiter (overridable in tests)."""
    return get_rate_limiter()


RateLimiterDep = Annotated[RateLimiter, Depends(get_limiter)]


def get_moderation_gate() -> ModerationGate:
    """Return a gate wired to the configured content analyzer."""
    return ModerationGate()


ModerationGateDep = Annotated[ModerationGate, Depends(get_moderation_gate)]


def rate_limit(action_class: str) -> Callable[..., None]:
    """Build a dependency that counts one ``action_class`` request.

    Denials raise ``RateLimitExceeded``; allowed requests get the
    ``X-RateLimit-*`` headers on their response.
    """

    def _dependency(
        response: Response,
        current_user: CurrentUserDep,
        ip: ClientIPDep,
        limiter: RateLimiterDep,
    ) -> None:
        result = limiter.enforce(current_user.id, ip, action_class)
        for name, value in rate_limit_headers(result).items():
            response.headers[name] = value

    return _dependency
