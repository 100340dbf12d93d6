"""
Category Service

A user sees the fixed system categories plus their own custom ones.

RULES:
- System categories are never renamed, recolored or deleted
- Custom categories belong to exactly one user
- A custom category cannot be deleted while any of the owner's
  transactions still reference it by id
"""

from typing import Optional

from cashbook.audit import AuditLogger
from cashbook.categories import is_system_category, new_custom_category_id, system_categories
from cashbook.errors import CategoryInUseError, NotFoundError, SystemCategoryError
from cashbook.models.audit import AuditEventType
from cashbook.models.finance import (
    Category,
    CategoryCatalog,
    CategoryCreate,
    CategoryUpdate,
    TransactionType,
)
from cashbook.services.storage import CategoryStorageInterface, TransactionStorageInterface


class CategoryService:
    """Listing and management of a user's categories."""

    def __init__(
        self,
        category_storage: CategoryStorageInterface,
        transaction_storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._categories = category_storage
        self._transactions = transaction_storage
        self._audit = audit_logger or AuditLogger()

    async def list_categories(
        self,
        user_id: str,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        """
        System then custom categories for one type.

        Without a type, both types are returned, income first.
        """
        if category_type is None:
            catalog = await self.get_catalog(user_id)
            return catalog.all()

        category_type = TransactionType(category_type)
        custom = await self._categories.list_custom_categories(user_id, category_type)
        return [*system_categories(category_type), *custom]

    async def get_catalog(self, user_id: str) -> CategoryCatalog:
        """The user's full visible category set. Always read fresh."""
        return CategoryCatalog(
            income=await self.list_categories(user_id, TransactionType.INCOME),
            expense=await self.list_categories(user_id, TransactionType.EXPENSE),
        )

    async def create_category(self, user_id: str, data: CategoryCreate) -> Category:
        category = Category(
            id=new_custom_category_id(),
            name=data.name,
            icon=data.icon,
            color=data.color,
            type=data.type,
        )
        await self._categories.save_custom_category(user_id, category)
        await self._audit.log_category_changed(
            AuditEventType.CATEGORY_CREATED, user_id, category.id, category.name
        )
        return category

    async def _reject_system(self, user_id: str, category_id: str, action: str) -> None:
        if is_system_category(category_id):
            reason = f"System categories cannot be {action}"
            await self._audit.log_category_change_rejected(user_id, category_id, reason)
            raise SystemCategoryError(reason)

    async def update_category(
        self,
        user_id: str,
        category_id: str,
        data: CategoryUpdate,
    ) -> Category:
        """
        Partially update a custom category.

        Raises:
            SystemCategoryError: category_id is a system category
            NotFoundError: no such custom category for this user
        """
        await self._reject_system(user_id, category_id, "modified")

        changes = data.model_dump(exclude_none=True)
        if not changes:
            existing = await self._categories.get_custom_category(user_id, category_id)
            if existing is None:
                raise NotFoundError(f"Category not found: {category_id}")
            return existing

        updated = await self._categories.update_custom_category(user_id, category_id, changes)
        if updated is None:
            raise NotFoundError(f"Category not found: {category_id}")

        await self._audit.log_category_changed(
            AuditEventType.CATEGORY_UPDATED, user_id, category_id, updated.name
        )
        return updated

    async def delete_category(self, user_id: str, category_id: str) -> None:
        """
        Delete an unreferenced custom category.

        Raises:
            SystemCategoryError: category_id is a system category
            NotFoundError: no such custom category for this user
            CategoryInUseError: transactions still reference it
        """
        await self._reject_system(user_id, category_id, "deleted")

        existing = await self._categories.get_custom_category(user_id, category_id)
        if existing is None:
            raise NotFoundError(f"Category not found: {category_id}")

        in_use = await self._transactions.count_by_category(user_id, category_id)
        if in_use > 0:
            error = CategoryInUseError(category_id, in_use)
            await self._audit.log_category_change_rejected(user_id, category_id, str(error))
            raise error

        await self._categories.delete_custom_category(user_id, category_id)
        await self._audit.log_category_changed(
            AuditEventType.CATEGORY_DELETED, user_id, category_id, existing.name
        )
