"""
Shared fixtures.

Test strategy:
1. Pure functions (parsing, repair, aggregation, reducer) are tested directly
2. Services run against an in-memory SQLite database
3. No real vision API calls (the agent's model is monkeypatched or faked)
"""

import base64
from io import BytesIO

import pytest
from PIL import Image

from cashbook.audit import AuditLogger
from cashbook.models.finance import TransactionProposal, TransactionType
from cashbook.services import (
    AuthService,
    CategoryService,
    Database,
    SqlCategoryStorage,
    SqlSessionStorage,
    SqlTransactionStorage,
    SqlUserStorage,
    TransactionService,
)
from cashbook.services.auth import hash_password


TEST_PASSWORD = "correct horse"


def make_image_bytes(fmt: str = "PNG", size=(8, 8)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color=(255, 255, 255)).save(buffer, format=fmt)
    return buffer.getvalue()


def make_image_base64(fmt: str = "PNG") -> str:
    return base64.b64encode(make_image_bytes(fmt)).decode("ascii")


class FakeAgent:
    """Stands in for StatementRecognitionAgent; records what it was asked."""

    def __init__(self, proposals=None, error=None):
        self.proposals = proposals if proposals is not None else [
            TransactionProposal(
                date="2024-01-15",
                amount="50",
                type=TransactionType.EXPENSE,
                category="food",
                description="午餐",
                original_info="2024-01-15 12:30 餐厅 ¥50.00",
            )
        ]
        self.error = error
        self.calls = []

    async def recognize(self, image_base64, catalog, api_key=None, model=None):
        self.calls.append({"image": image_base64, "catalog": catalog, "api_key": api_key, "model": model})
        if self.error is not None:
            raise self.error
        return list(self.proposals)


@pytest.fixture
def png_base64() -> str:
    return make_image_base64("PNG")


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger().keep_history()


@pytest.fixture
async def database():
    db = Database("sqlite+aiosqlite://")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def user_storage(database):
    return SqlUserStorage(database)


@pytest.fixture
def session_storage(database):
    return SqlSessionStorage(database)


@pytest.fixture
def category_storage(database):
    return SqlCategoryStorage(database)


@pytest.fixture
def transaction_storage(database):
    return SqlTransactionStorage(database)


@pytest.fixture
def auth_service(user_storage, session_storage, audit_logger):
    return AuthService(user_storage, session_storage, audit_logger)


@pytest.fixture
def category_service(category_storage, transaction_storage, audit_logger):
    return CategoryService(category_storage, transaction_storage, audit_logger)


@pytest.fixture
def transaction_service(transaction_storage, audit_logger):
    return TransactionService(transaction_storage, audit_logger)


@pytest.fixture
async def user(user_storage):
    return await user_storage.create_user("alice", hash_password(TEST_PASSWORD, rounds=4))


@pytest.fixture
async def other_user(user_storage):
    return await user_storage.create_user("bob", hash_password(TEST_PASSWORD, rounds=4))


@pytest.fixture
def image_bytes():
    """Factory: ``image_bytes("JPEG")`` renders a tiny image in that format."""
    return make_image_bytes
