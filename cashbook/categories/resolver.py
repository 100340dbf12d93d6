"""
Category Id Repair and Resolution

The vision model is asked to answer with a bare category id, but it
sometimes echoes the ``id:name`` pair from the prompt, or glues the name on
with a hyphen (``food-餐饮``, ``custom-<uuid>:房租``). Stored transactions
imported before repair existed can carry the same pollution.

Two tools deal with it:

- ``repair_category_id`` rewrites a polluted id to the bare id. It is used
  before anything is persisted or grouped. Best effort: values that match
  no known pattern pass through unchanged.
- ``resolve_category_name`` maps any id, clean or not, to a display name.
  It never fails; display code would rather show an imperfect label than
  nothing.
"""

import re
from typing import Iterable, Optional

from cashbook.categories.catalog import SYSTEM_CATEGORY_IDS
from cashbook.models.finance import Category


# custom- prefix + UUID: 6 hyphen-separated segments, hex groups 8-4-4-4-12
CUSTOM_ID_PATTERN = re.compile(
    r"^(custom-[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})(.*)$",
    re.DOTALL,
)

# <letters-and-hyphens> then ':' or '-' then the polluting name
SYSTEM_ID_PATTERN = re.compile(r"^([a-z-]+)[-:](.+)$", re.DOTALL)

_SEPARATORS = re.compile(r"[-:]")


def repair_category_id(
    category_id: str,
    system_ids: Iterable[str] = SYSTEM_CATEGORY_IDS,
) -> str:
    """
    Strip name pollution from a category id.

    Idempotent: a clean id is returned unchanged.

    >>> repair_category_id("food:餐饮")
    'food'
    >>> repair_category_id("other-income")
    'other-income'
    """
    if not category_id:
        return category_id

    value = category_id.strip()

    custom_match = CUSTOM_ID_PATTERN.match(value)
    if custom_match:
        return custom_match.group(1)

    system_match = SYSTEM_ID_PATTERN.match(value)
    if system_match and system_match.group(1) in set(system_ids):
        return system_match.group(1)

    return category_id


def find_category(category_id: str, categories: Iterable[Category]) -> Optional[Category]:
    """
    Find the category a possibly-polluted id refers to.

    Tries, in order: exact match, custom UUID-prefix truncation, colon
    truncation, then prefix match against any known id followed by a
    separator. Returns None if nothing matches.
    """
    if not category_id:
        return None

    known = list(categories)
    by_id = {category.id: category for category in known}

    if category_id in by_id:
        return by_id[category_id]

    custom_match = CUSTOM_ID_PATTERN.match(category_id)
    if custom_match and custom_match.group(1) in by_id:
        return by_id[custom_match.group(1)]

    if ":" in category_id:
        head = category_id.split(":", 1)[0]
        if head in by_id:
            return by_id[head]

    # Longest ids first so "other-income-x" never settles for a shorter id
    for category in sorted(known, key=lambda c: len(c.id), reverse=True):
        if category_id.startswith(f"{category.id}-") or category_id.startswith(f"{category.id}:"):
            return category

    return None


def trailing_display_token(category_id: str) -> Optional[str]:
    """
    Last separator-delimited token of an id, if it contains non-ASCII text.

    ``custom-1234:房租`` -> ``房租``. Used as a last-resort display name.
    """
    if not category_id:
        return None
    token = _SEPARATORS.split(category_id)[-1].strip()
    if token and any(ord(ch) > 127 for ch in token):
        return token
    return None


def resolve_category_name(category_id: str, categories: Iterable[Category]) -> str:
    """
    Display name for a category id. Always returns a string.

    Falls back to a trailing non-ASCII token, then to the raw id itself.
    """
    category = find_category(category_id, categories)
    if category is not None:
        return category.name

    token = trailing_display_token(category_id)
    if token:
        return token

    return category_id
