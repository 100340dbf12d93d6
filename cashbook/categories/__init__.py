"""Category catalog and id resolution."""

from cashbook.categories.catalog import (
    CUSTOM_CATEGORY_PREFIX,
    DEFAULT_COLOR,
    DEFAULT_ICON,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    SYSTEM_CATEGORY_IDS,
    is_custom_category_id,
    is_system_category,
    new_custom_category_id,
    system_categories,
)
from cashbook.categories.resolver import (
    find_category,
    repair_category_id,
    resolve_category_name,
    trailing_display_token,
)

__all__ = [
    "CUSTOM_CATEGORY_PREFIX",
    "DEFAULT_COLOR",
    "DEFAULT_ICON",
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "SYSTEM_CATEGORY_IDS",
    "is_custom_category_id",
    "is_system_category",
    "new_custom_category_id",
    "system_categories",
    "find_category",
    "repair_category_id",
    "resolve_category_name",
    "trailing_display_token",
]
