"""Shared API dependencies for authentication and service wiring."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from shoptalk.core.security import InvalidTokenError, decode_subject
from shoptalk.db.session import get_db
from shoptalk.models import User
from shoptalk.services import MessagingService, SqlUserDirectory

# Missing credentials are answered with 401 below rather than FastAPI's default.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from the bearer token.

    Args:
        credentials: HTTP Bearer token credentials, if any were sent
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        HTTPException: If the token is missing, invalid, or names an unknown user
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        user_id = decode_subject(credentials.credentials)
    except InvalidTokenError as err:
        raise _unauthorized("Could not validate credentials") from err

    user = SqlUserDirectory(db).get(user_id)
    if user is None:
        raise _unauthorized("User not found")
    return user


def get_messaging_service(db: SessionDep) -> MessagingService:
    """Return a messaging service bound to the request's session."""
    return MessagingService(db)


# Type aliases for route signatures
CurrentUserDep = Annotated[User, Depends(get_current_user)]
MessagingServiceDep = Annotated[MessagingService, Depends(get_messaging_service)]
