"""
Authentication Service

Username/password login against bcrypt hashes, with opaque session
tokens stored server-side.

DESIGN DECISION: Sessions, not signed tokens.
1. Logout really ends a session (the row is deleted)
2. Every privileged call re-reads the session, so expiry is exact
3. Nothing secret is derived from server configuration

A user may hold any number of concurrent sessions.
"""

import datetime as dt
import secrets
from typing import Optional

import structlog

from cashbook.audit import AuditLogger
from cashbook.config import SessionSettings, get_settings
from cashbook.errors import InvalidInputError, UnauthenticatedError
from cashbook.models.finance import Session, User, utcnow
from cashbook.services.auth.passwords import verify_password
from cashbook.services.storage import SessionStorageInterface, UserStorageInterface


logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"


def generate_session_token() -> str:
    """Random URL-safe token, 256 bits."""
    return secrets.token_urlsafe(32)


class AuthService:
    """Login, session lookup and logout."""

    def __init__(
        self,
        user_storage: UserStorageInterface,
        session_storage: SessionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[SessionSettings] = None,
    ):
        self._users = user_storage
        self._sessions = session_storage
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().session

    @property
    def session_lifetime(self) -> dt.timedelta:
        return dt.timedelta(days=self._settings.lifetime_days)

    async def login(self, username: str, password: str) -> tuple[User, Session]:
        """
        Verify credentials and open a session.

        Raises:
            InvalidInputError: username or password empty
            UnauthenticatedError: unknown user or wrong password; the
                message does not say which
        """
        username = (username or "").strip()
        if not username or not password:
            raise InvalidInputError("Username and password are required")

        record = await self._users.get_user_by_username(username)
        if record is None or not verify_password(password, record.password_hash):
            await self._audit.log_login(None, username)
            raise UnauthenticatedError(INVALID_CREDENTIALS)

        session = Session(
            user_id=record.id,
            token=generate_session_token(),
            expires_at=utcnow() + self.session_lifetime,
        )
        await self._sessions.save_session(session)

        user = User(id=record.id, username=record.username)
        await self._audit.log_login(user.id, user.username)
        return user, session

    async def get_current_user(self, token: Optional[str]) -> User:
        """
        Resolve a session token to its user.

        Raises:
            UnauthenticatedError: token missing, unknown or expired
        """
        if not token:
            raise UnauthenticatedError("Not logged in")

        session = await self._sessions.get_active_session(token, utcnow())
        if session is None:
            raise UnauthenticatedError("Session expired or invalid")

        user = await self._users.get_user(session.user_id)
        if user is None:
            logger.warning("session_without_user", user_id=session.user_id)
            raise UnauthenticatedError("Session expired or invalid")
        return user

    async def logout(self, token: Optional[str]) -> None:
        """Delete the session. Missing or unknown tokens are fine."""
        if not token:
            return

        session = await self._sessions.get_active_session(token, utcnow())
        await self._sessions.delete_session(token)
        await self._audit.log_logout(session.user_id if session else None)

    async def purge_expired_sessions(self) -> int:
        count = await self._sessions.delete_expired_sessions(utcnow())
        if count:
            logger.info("expired_sessions_purged", count=count)
        return count
