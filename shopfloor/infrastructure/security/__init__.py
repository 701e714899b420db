"""Security infrastructure - JWT and password handling."""

from shopfloor.infrastructure.security.jwt import (create_access_token,
                                                  create_refresh_token,
                                                  verify_refresh_token,
                                                  verify_token)
from shopfloor.infrastructure.security.password import get_password_hash, verify_password

__all__ = [
    "create_access_token",
    "create_refresh_token",
    "verify_token",
    "verify_refresh_token",
    "get_password_hash",
    "verify_password",
]
