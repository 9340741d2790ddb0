"""JWT access and refresh tokens."""

import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from ridebook.config import settings

ACCESS = "access"
REFRESH = "refresh"


def _encode(data: dict, token_type: str, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {**data, "exp": now + lifetime, "iat": now, "type": token_type}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a short-lived access token.

    Args:
        data: Payload data. Must include ``sub`` (user UUID as string).
        expires_delta: Custom lifetime; defaults to
            ``settings.jwt_access_token_expire_minutes``.
    """
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return _encode(data, ACCESS, lifetime)


def create_refresh_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a long-lived refresh token (``settings.jwt_refresh_token_expire_days``)."""
    lifetime = expires_delta or timedelta(days=settings.jwt_refresh_token_expire_days)
    return _encode(data, REFRESH, lifetime)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT.

    Raises:
        jose.JWTError: If the token is invalid, expired, or malformed.
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def subject_from_token(token: str, expected_type: str) -> uuid.UUID:
    """Return the user id carried by a token of ``expected_type``.

    Raises:
        jose.JWTError: For a bad token, the wrong token type or a malformed subject.
    """
    payload = decode_token(token)
    if payload.get("type") != expected_type:
        raise JWTError("Invalid token type")
    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise JWTError("Invalid token subject") from None


def create_token_pair(user_id: str) -> dict[str, str]:
    """Access + refresh tokens for ``user_id``."""
    payload = {"sub": user_id}
    return {
        "access_token": create_access_token(payload),
        "refresh_token": create_refresh_token(payload),
        "token_type": "bearer",
    }
