"""Services package."""

from cashbook.services.auth import AuthService, hash_password, verify_password
from cashbook.services.image import StatementImage, decode_statement_image, encode_image
from cashbook.services.ledger import CategoryService, TransactionService
from cashbook.services.storage import (
    CategoryStorageInterface,
    Database,
    SessionStorageInterface,
    SqlCategoryStorage,
    SqlSessionStorage,
    SqlTransactionStorage,
    SqlUserStorage,
    TransactionStorageInterface,
    UserStorageInterface,
)

__all__ = [
    # Auth
    "AuthService",
    "hash_password",
    "verify_password",
    # Image
    "StatementImage",
    "decode_statement_image",
    "encode_image",
    # Ledger
    "CategoryService",
    "TransactionService",
    # Storage
    "CategoryStorageInterface",
    "Database",
    "SessionStorageInterface",
    "SqlCategoryStorage",
    "SqlSessionStorage",
    "SqlTransactionStorage",
    "SqlUserStorage",
    "TransactionStorageInterface",
    "UserStorageInterface",
]
