"""JWT token handling for authentication."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from shopfloor.infrastructure.config.settings import get_settings
from shopfloor.shared.utils import generate_cuid

settings = get_settings()

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def create_access_token(
    data: dict[str, Any], expires_delta: timedelta | None = None
) -> str:
    """Create JWT access token; callers put the user id in 'sub'"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(
            minutes=settings.access_token_expire_minutes
        )

    to_encode.update({"exp": expire, "type": ACCESS_TOKEN_TYPE})
    encoded_jwt = jwt.encode(
        to_encode, settings.secret_key, algorithm=settings.algorithm
    )
    assert isinstance(encoded_jwt, str)
    return encoded_jwt


def create_refresh_token(user_id: str) -> tuple[str, datetime]:
    """Create a refresh token signed with the refresh secret, returns (token, expires_at)"""
    expire = datetime.now(UTC) + timedelta(days=settings.refresh_token_expire_days)
    # jti keeps two tokens issued in the same second distinct
    to_encode = {
        "sub": user_id,
        "exp": expire,
        "type": REFRESH_TOKEN_TYPE,
        "jti": generate_cuid(),
    }
    encoded_jwt = jwt.encode(
        to_encode, settings.refresh_secret_key, algorithm=settings.algorithm
    )
    assert isinstance(encoded_jwt, str)
    return encoded_jwt, expire


def _decode(token: str, secret: str, expected_type: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.algorithm])
    except JWTError as e:
        raise ValueError(f"Invalid token: {str(e)}") from e
    if not isinstance(payload, dict):
        raise TypeError("Token payload must be a dictionary")
    if payload.get("type", ACCESS_TOKEN_TYPE) != expected_type:
        raise ValueError(f"Invalid token: expected {expected_type} token")
    return payload


def verify_token(token: str) -> dict[str, Any]:
    """Verify and decode an access token, returns payload"""
    return _decode(token, settings.secret_key, ACCESS_TOKEN_TYPE)


def verify_refresh_token(token: str) -> dict[str, Any]:
    """Verify and decode a refresh token, returns payload"""
    return _decode(token, settings.refresh_secret_key, REFRESH_TOKEN_TYPE)
