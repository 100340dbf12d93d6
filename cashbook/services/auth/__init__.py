"""Authentication services package."""

from cashbook.services.auth.passwords import MAX_PASSWORD_BYTES, hash_password, verify_password
from cashbook.services.auth.service import (
    INVALID_CREDENTIALS,
    AuthService,
    generate_session_token,
)

__all__ = [
    "MAX_PASSWORD_BYTES",
    "hash_password",
    "verify_password",
    "INVALID_CREDENTIALS",
    "AuthService",
    "generate_session_token",
]
