"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run on SQLite locally and any async SQLAlchemy backend in production
2. Use an in-memory database for testing
3. Keep business logic decoupled from storage implementation

Every user-owned operation takes the owner's id. Implementations scope
every query by it; a record owned by someone else is indistinguishable
from a missing one.
"""

import datetime as dt
from abc import ABC, abstractmethod
from typing import Optional

from cashbook.models.finance import (
    Category,
    Session,
    Transaction,
    TransactionType,
    User,
    UserRecord,
)


class UserStorageInterface(ABC):
    """Credential store. Users are created by the operator, never via the API."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        """
        Look up a user including the password hash.

        Returns:
            The user record if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_user(self, username: str, password_hash: str) -> User:
        """
        Insert a user.

        Raises:
            StorageError: If the username is taken or the insert fails
        """
        pass


class SessionStorageInterface(ABC):
    """Opaque login sessions with expiry."""

    @abstractmethod
    async def save_session(self, session: Session) -> Session:
        pass

    @abstractmethod
    async def get_active_session(self, token: str, now: dt.datetime) -> Optional[Session]:
        """
        Find a session by token.

        Sessions whose ``expires_at`` is not after ``now`` are treated as absent.
        """
        pass

    @abstractmethod
    async def delete_session(self, token: str) -> None:
        """Delete a session. Unknown tokens are ignored."""
        pass

    @abstractmethod
    async def delete_expired_sessions(self, now: dt.datetime) -> int:
        """Remove expired rows; returns how many were deleted."""
        pass


class CategoryStorageInterface(ABC):
    """Per-user custom categories. System categories live in code, not here."""

    @abstractmethod
    async def list_custom_categories(
        self,
        user_id: str,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        pass

    @abstractmethod
    async def get_custom_category(self, user_id: str, category_id: str) -> Optional[Category]:
        pass

    @abstractmethod
    async def save_custom_category(self, user_id: str, category: Category) -> Category:
        pass

    @abstractmethod
    async def update_custom_category(
        self,
        user_id: str,
        category_id: str,
        changes: dict,
    ) -> Optional[Category]:
        """
        Apply a partial update.

        Returns:
            The updated category, or None if it does not exist for this user
        """
        pass

    @abstractmethod
    async def delete_custom_category(self, user_id: str, category_id: str) -> bool:
        pass


class TransactionStorageInterface(ABC):
    """Per-user financial records."""

    @abstractmethod
    async def list_transactions(self, user_id: str) -> list[Transaction]:
        """All of a user's transactions, newest date first, then newest created."""
        pass

    @abstractmethod
    async def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> Transaction:
        """
        Insert a transaction.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_transaction(
        self,
        user_id: str,
        transaction_id: str,
        changes: dict,
    ) -> Optional[Transaction]:
        """
        Apply a partial update.

        Returns:
            The updated transaction, or None if absent or not owned
        """
        pass

    @abstractmethod
    async def delete_transaction(self, user_id: str, transaction_id: str) -> bool:
        """Returns False if absent or not owned."""
        pass

    @abstractmethod
    async def count_by_category(self, user_id: str, category_id: str) -> int:
        """Number of the user's transactions whose category is exactly ``category_id``."""
        pass
