"""Category and transaction services."""

from cashbook.services.ledger.categories import CategoryService
from cashbook.services.ledger.transactions import TransactionService

__all__ = [
    "CategoryService",
    "TransactionService",
]
