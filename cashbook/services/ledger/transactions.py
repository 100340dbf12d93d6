"""
Transaction Service

CRUD over a user's transactions plus the batch save used when confirming
recognized statement rows.

DESIGN DECISION: Batch save is sequential and stops at the first failure.
Items saved before the failure stay saved; the error carries both the
failed index and those saved records so the caller can tell the user
exactly where the import stopped. There is no rollback and no retry.
"""

from typing import Iterable, Optional, Union
from uuid import UUID

from pydantic import ValidationError

from cashbook.audit import AuditLogger
from cashbook.categories import repair_category_id
from cashbook.errors import BatchSaveError, CashbookError, NotFoundError
from cashbook.models.finance import (
    Transaction,
    TransactionCreate,
    TransactionUpdate,
)
from cashbook.services.storage import TransactionStorageInterface


def _first_validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "invalid value")


class TransactionService:
    """Owner-scoped transaction operations."""

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = transaction_storage
        self._audit = audit_logger or AuditLogger()

    async def list_transactions(self, user_id: str) -> list[Transaction]:
        """Newest date first; same-day ties newest created first."""
        return await self._storage.list_transactions(user_id)

    async def create_transaction(
        self,
        user_id: str,
        data: TransactionCreate,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        transaction = Transaction(
            user_id=user_id,
            type=data.type,
            amount=data.amount,
            category=repair_category_id(data.category),
            description=data.description,
            note=data.note,
            date=data.date,
        )
        saved = await self._storage.save_transaction(transaction)
        await self._audit.log_transaction_created(
            user_id, saved.id, str(saved.amount), correlation_id
        )
        return saved

    async def update_transaction(
        self,
        user_id: str,
        transaction_id: str,
        data: TransactionUpdate,
    ) -> Transaction:
        """
        Apply the fields the caller sent.

        Raises:
            NotFoundError: absent, or owned by someone else
        """
        changes = data.changes()
        if "category" in changes and changes["category"] is not None:
            changes["category"] = repair_category_id(changes["category"])
        if "description" in changes:
            changes["description"] = changes["description"] or ""
        if "note" in changes:
            changes["note"] = changes["note"] or None
        # type/amount/category/date are NOT NULL
        changes = {
            field: value for field, value in changes.items()
            if value is not None or field == "note"
        }

        if not changes:
            existing = await self._storage.get_transaction(user_id, transaction_id)
            if existing is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")
            return existing

        updated = await self._storage.update_transaction(user_id, transaction_id, changes)
        if updated is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        await self._audit.log_transaction_updated(user_id, transaction_id, sorted(changes))
        return updated

    async def delete_transaction(self, user_id: str, transaction_id: str) -> None:
        deleted = await self._storage.delete_transaction(user_id, transaction_id)
        if not deleted:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        await self._audit.log_transaction_deleted(user_id, transaction_id)

    async def create_transactions(
        self,
        user_id: str,
        batch: Iterable[Union[TransactionCreate, dict]],
        correlation_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """
        Save items in order, stopping at the first failure.

        Raw dicts are validated one at a time, so a malformed item only
        fails when its turn comes.

        Raises:
            BatchSaveError: with ``failed_index`` and the records saved so far
        """
        saved: list[Transaction] = []

        for index, item in enumerate(batch):
            try:
                data = item if isinstance(item, TransactionCreate) else TransactionCreate.model_validate(item)
                saved.append(await self.create_transaction(user_id, data, correlation_id))
            except (ValidationError, CashbookError) as e:
                reason = _first_validation_message(e) if isinstance(e, ValidationError) else str(e)
                await self._audit.log_batch_import_failed(
                    user_id, index, len(saved), reason, correlation_id
                )
                raise BatchSaveError(index, saved, reason) from e

        await self._audit.log_batch_imported(user_id, len(saved), correlation_id)
        return saved
