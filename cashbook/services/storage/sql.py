"""
SQLAlchemy Storage Implementation

DESIGN DECISION: A relational store behind async SQLAlchemy.
- SQLite (via aiosqlite) by default, so a fresh checkout runs with no setup
- Any async SQLAlchemy URL works for a real deployment
- Every write is a single statement in its own transaction; last writer wins

Schema:
- users:        id, username (unique), password_hash, created_at
- sessions:     id, user_id, token (unique), expires_at, created_at
- categories:   id, user_id, type, name, icon, color   (custom only)
- transactions: id, user_id, type, amount, category, description, note,
                date, created_at

IMPORTANT: SQLAlchemy errors never leak out of this module; they are
wrapped in StorageError so the API layer can report them uniformly.
"""

import datetime as dt
from contextlib import asynccontextmanager
from decimal import Decimal
from enum import Enum
from typing import AsyncIterator, Optional

import structlog
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    delete,
    func,
    select,
    text,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from cashbook.config import get_settings
from cashbook.errors import StorageError
from cashbook.models.finance import (
    Category,
    Session,
    Transaction,
    TransactionType,
    User,
    UserRecord,
    new_id,
    utcnow,
)
from cashbook.services.storage.interface import (
    CategoryStorageInterface,
    SessionStorageInterface,
    TransactionStorageInterface,
    UserStorageInterface,
)


logger = structlog.get_logger(__name__)

Base = declarative_base()


# ----------------------------------------------------------------------------
# Tables
# ----------------------------------------------------------------------------
class UserRow(Base):
    __tablename__ = "users"
    id = Column(String(36), primary_key=True, default=new_id)
    username = Column(String(64), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class SessionRow(Base):
    __tablename__ = "sessions"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(128), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class CategoryRow(Base):
    __tablename__ = "categories"
    id = Column(String(64), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # income | expense
    name = Column(String(50), nullable=False)
    icon = Column(String(16), nullable=False)
    color = Column(String(32), nullable=False)


class TransactionRow(Base):
    __tablename__ = "transactions"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # income | expense
    amount = Column(Numeric(12, 2), nullable=False)
    category = Column(String(128), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    note = Column(Text, nullable=True)
    date = Column(Date, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


# ----------------------------------------------------------------------------
# Row <-> model conversion
# ----------------------------------------------------------------------------
def _to_category(row: CategoryRow) -> Category:
    return Category(
        id=row.id,
        name=row.name,
        icon=row.icon,
        color=row.color,
        type=TransactionType(row.type),
    )


def _to_transaction(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        user_id=row.user_id,
        type=TransactionType(row.type),
        amount=Decimal(row.amount),
        category=row.category,
        description=row.description or "",
        note=row.note,
        date=row.date,
        created_at=row.created_at,
    )


def _to_session(row: SessionRow) -> Session:
    return Session(id=row.id, user_id=row.user_id, token=row.token, expires_at=row.expires_at)


def _column_value(value):
    return value.value if isinstance(value, Enum) else value


def _is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


# ----------------------------------------------------------------------------
# Engine / session handling
# ----------------------------------------------------------------------------
class Database:
    """
    Owns the async engine and hands out sessions.

    One instance per process; the storage classes below share it.
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        settings = get_settings().database
        self.url = url or settings.url

        engine_kwargs = {}
        if _is_memory_sqlite(self.url):
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        self.engine = create_async_engine(
            self.url,
            echo=settings.echo if echo is None else echo,
            future=True,
            **engine_kwargs,
        )
        self._session_factory = sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    async def create_all(self) -> None:
        """Create missing tables. Not a migration tool."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not create tables: {e.__class__.__name__}") from e

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def ping(self) -> bool:
        """True if a trivial query succeeds."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning("database_ping_failed", error=str(e)[:160])
            return False

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Session that commits on success and maps driver errors to StorageError."""
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("database_operation_failed", error=str(e)[:300])
            raise StorageError(f"Database operation failed: {e.__class__.__name__}") from e
        finally:
            await session.close()


# ----------------------------------------------------------------------------
# Storage implementations
# ----------------------------------------------------------------------------
class SqlUserStorage(UserStorageInterface):

    def __init__(self, db: Database):
        self._db = db

    async def get_user(self, user_id: str) -> Optional[User]:
        async with self._db.session() as s:
            row = await s.get(UserRow, user_id)
            return User(id=row.id, username=row.username) if row else None

    async def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        async with self._db.session() as s:
            result = await s.execute(select(UserRow).where(UserRow.username == username))
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return UserRecord(id=row.id, username=row.username, password_hash=row.password_hash)

    async def create_user(self, username: str, password_hash: str) -> User:
        async with self._db.session() as s:
            row = UserRow(id=new_id(), username=username, password_hash=password_hash)
            s.add(row)
            try:
                await s.flush()
            except IntegrityError as e:
                raise StorageError(f"Username already exists: {username}") from e
            return User(id=row.id, username=row.username)


class SqlSessionStorage(SessionStorageInterface):

    def __init__(self, db: Database):
        self._db = db

    async def save_session(self, session: Session) -> Session:
        async with self._db.session() as s:
            s.add(SessionRow(
                id=session.id,
                user_id=session.user_id,
                token=session.token,
                expires_at=session.expires_at,
            ))
        return session

    async def get_active_session(self, token: str, now: dt.datetime) -> Optional[Session]:
        async with self._db.session() as s:
            result = await s.execute(
                select(SessionRow).where(SessionRow.token == token, SessionRow.expires_at > now)
            )
            row = result.scalar_one_or_none()
            return _to_session(row) if row else None

    async def delete_session(self, token: str) -> None:
        async with self._db.session() as s:
            await s.execute(delete(SessionRow).where(SessionRow.token == token))

    async def delete_expired_sessions(self, now: dt.datetime) -> int:
        async with self._db.session() as s:
            result = await s.execute(delete(SessionRow).where(SessionRow.expires_at <= now))
            return result.rowcount or 0


class SqlCategoryStorage(CategoryStorageInterface):

    def __init__(self, db: Database):
        self._db = db

    async def list_custom_categories(
        self,
        user_id: str,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        query = select(CategoryRow).where(CategoryRow.user_id == user_id)
        if category_type is not None:
            query = query.where(CategoryRow.type == TransactionType(category_type).value)
        query = query.order_by(CategoryRow.name)

        async with self._db.session() as s:
            result = await s.execute(query)
            return [_to_category(row) for row in result.scalars()]

    async def _get_row(self, s: AsyncSession, user_id: str, category_id: str) -> Optional[CategoryRow]:
        result = await s.execute(
            select(CategoryRow).where(CategoryRow.id == category_id, CategoryRow.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_custom_category(self, user_id: str, category_id: str) -> Optional[Category]:
        async with self._db.session() as s:
            row = await self._get_row(s, user_id, category_id)
            return _to_category(row) if row else None

    async def save_custom_category(self, user_id: str, category: Category) -> Category:
        async with self._db.session() as s:
            s.add(CategoryRow(
                id=category.id,
                user_id=user_id,
                type=category.type.value,
                name=category.name,
                icon=category.icon,
                color=category.color,
            ))
        return category

    async def update_custom_category(
        self,
        user_id: str,
        category_id: str,
        changes: dict,
    ) -> Optional[Category]:
        async with self._db.session() as s:
            row = await self._get_row(s, user_id, category_id)
            if row is None:
                return None
            for field, value in changes.items():
                setattr(row, field, _column_value(value))
            await s.flush()
            return _to_category(row)

    async def delete_custom_category(self, user_id: str, category_id: str) -> bool:
        async with self._db.session() as s:
            result = await s.execute(
                delete(CategoryRow).where(CategoryRow.id == category_id, CategoryRow.user_id == user_id)
            )
            return bool(result.rowcount)


class SqlTransactionStorage(TransactionStorageInterface):

    def __init__(self, db: Database):
        self._db = db

    async def list_transactions(self, user_id: str) -> list[Transaction]:
        async with self._db.session() as s:
            result = await s.execute(
                select(TransactionRow)
                .where(TransactionRow.user_id == user_id)
                .order_by(TransactionRow.date.desc(), TransactionRow.created_at.desc())
            )
            return [_to_transaction(row) for row in result.scalars()]

    async def _get_row(self, s: AsyncSession, user_id: str, transaction_id: str) -> Optional[TransactionRow]:
        result = await s.execute(
            select(TransactionRow).where(
                TransactionRow.id == transaction_id,
                TransactionRow.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        async with self._db.session() as s:
            row = await self._get_row(s, user_id, transaction_id)
            return _to_transaction(row) if row else None

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        async with self._db.session() as s:
            s.add(TransactionRow(
                id=transaction.id,
                user_id=transaction.user_id,
                type=transaction.type.value,
                amount=transaction.amount,
                category=transaction.category,
                description=transaction.description,
                note=transaction.note,
                date=transaction.date,
                created_at=transaction.created_at,
            ))
        return transaction

    async def update_transaction(
        self,
        user_id: str,
        transaction_id: str,
        changes: dict,
    ) -> Optional[Transaction]:
        async with self._db.session() as s:
            row = await self._get_row(s, user_id, transaction_id)
            if row is None:
                return None
            for field, value in changes.items():
                setattr(row, field, _column_value(value))
            await s.flush()
            return _to_transaction(row)

    async def delete_transaction(self, user_id: str, transaction_id: str) -> bool:
        async with self._db.session() as s:
            result = await s.execute(
                delete(TransactionRow).where(
                    TransactionRow.id == transaction_id,
                    TransactionRow.user_id == user_id,
                )
            )
            return bool(result.rowcount)

    async def count_by_category(self, user_id: str, category_id: str) -> int:
        async with self._db.session() as s:
            result = await s.execute(
                select(func.count())
                .select_from(TransactionRow)
                .where(TransactionRow.user_id == user_id, TransactionRow.category == category_id)
            )
            return int(result.scalar_one())
