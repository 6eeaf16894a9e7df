"""Bearer token helpers.

Tokens are issued by the identity subsystem; the messaging engine only needs
to verify them and read the subject. ``create_access_token`` exists for that
subsystem's integration and for tests.
"""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from shoptalk.core.settings import settings


class InvalidTokenError(ValueError):
    """Raised when a bearer token cannot be verified."""


def create_access_token(
    subject: str,
    extra_claims: dict[str, str] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT whose ``sub`` claim is the user id."""
    to_encode: dict[str, object] = {"sub": subject}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_subject(token: str) -> str:
    """Verify ``token`` and return its subject.

    Raises:
        InvalidTokenError: If the signature, expiry or subject is invalid.
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as err:
        raise InvalidTokenError("Could not validate credentials") from err

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise InvalidTokenError("Token has no subject")
    return subject
