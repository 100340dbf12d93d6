"""
Password hashing with bcrypt.

Hashes are self-describing ($2b$<rounds>$...), so the cost factor can be
raised later without invalidating existing rows.
"""

import bcrypt

from cashbook.errors import InvalidInputError


# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int = 12) -> str:
    encoded = password.encode("utf-8")
    if not encoded:
        raise InvalidInputError("Password must not be empty")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise InvalidInputError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """False for a wrong password or a hash bcrypt cannot read."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False
