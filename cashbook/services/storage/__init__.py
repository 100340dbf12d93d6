"""Storage services package."""

from cashbook.services.storage.interface import (
    CategoryStorageInterface,
    SessionStorageInterface,
    TransactionStorageInterface,
    UserStorageInterface,
)
from cashbook.services.storage.sql import (
    Base,
    Database,
    SqlCategoryStorage,
    SqlSessionStorage,
    SqlTransactionStorage,
    SqlUserStorage,
)

__all__ = [
    "CategoryStorageInterface",
    "SessionStorageInterface",
    "TransactionStorageInterface",
    "UserStorageInterface",
    "Base",
    "Database",
    "SqlCategoryStorage",
    "SqlSessionStorage",
    "SqlTransactionStorage",
    "SqlUserStorage",
]
