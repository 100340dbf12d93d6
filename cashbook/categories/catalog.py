"""
System Category Catalog

System categories are fixed, defined in code, and shared by every user.
They can never be renamed or deleted. User-defined categories carry the
``custom-`` prefix followed by a UUID, which keeps the two id spaces apart.
"""

from uuid import uuid4

from cashbook.models.finance import Category, TransactionType


CUSTOM_CATEGORY_PREFIX = "custom-"

INCOME_CATEGORIES: tuple[Category, ...] = (
    Category(id="salary", name="工资", icon="💼", color="#10b981", type=TransactionType.INCOME),
    Category(id="bonus", name="奖金", icon="🎁", color="#3b82f6", type=TransactionType.INCOME),
    Category(id="investment", name="投资", icon="📈", color="#8b5cf6", type=TransactionType.INCOME),
    Category(id="gift", name="礼物", icon="🎁", color="#ec4899", type=TransactionType.INCOME),
    Category(id="other-income", name="其他", icon="💰", color="#6b7280", type=TransactionType.INCOME),
)

EXPENSE_CATEGORIES: tuple[Category, ...] = (
    Category(id="food", name="餐饮", icon="🍔", color="#f59e0b", type=TransactionType.EXPENSE),
    Category(id="transport", name="交通", icon="🚗", color="#3b82f6", type=TransactionType.EXPENSE),
    Category(id="shopping", name="购物", icon="🛍️", color="#ec4899", type=TransactionType.EXPENSE),
    Category(id="entertainment", name="娱乐", icon="🎬", color="#8b5cf6", type=TransactionType.EXPENSE),
    Category(id="bills", name="账单", icon="📄", color="#ef4444", type=TransactionType.EXPENSE),
    Category(id="health", name="医疗", icon="🏥", color="#10b981", type=TransactionType.EXPENSE),
    Category(id="education", name="教育", icon="📚", color="#6366f1", type=TransactionType.EXPENSE),
    Category(id="other-expense", name="其他", icon="💸", color="#6b7280", type=TransactionType.EXPENSE),
)

SYSTEM_CATEGORY_IDS: frozenset[str] = frozenset(
    category.id for category in (*INCOME_CATEGORIES, *EXPENSE_CATEGORIES)
)

DEFAULT_ICON = "💰"
DEFAULT_COLOR = "#6b7280"


def system_categories(category_type: TransactionType) -> list[Category]:
    """System categories for one transaction type."""
    if category_type == TransactionType.INCOME:
        return list(INCOME_CATEGORIES)
    return list(EXPENSE_CATEGORIES)


def is_system_category(category_id: str) -> bool:
    return category_id in SYSTEM_CATEGORY_IDS


def is_custom_category_id(category_id: str) -> bool:
    return category_id.startswith(CUSTOM_CATEGORY_PREFIX)


def new_custom_category_id() -> str:
    return f"{CUSTOM_CATEGORY_PREFIX}{uuid4()}"
