"""
Recognition Output Parsing

DESIGN DECISION: The model's reply is untrusted text. It is handled in
three distinct steps:

STEP 1 - EXTRACTION:
- Find a JSON array in free text (markdown fences, leading prose)
- Balanced-bracket scan that ignores brackets inside JSON strings
- Fall back to parsing the whole reply

STEP 2 - FILTERING:
- Keep only objects with the expected field types
- Malformed elements are dropped silently; one bad row must not
  cost the user the rest of the statement

STEP 3 - NORMALIZATION:
- Amounts become positive Decimals (the type carries the sign)
- Optional text fields default to ""
- Category ids are repaired (see cashbook.categories.resolver)

IMPORTANT: The output is still only PROPOSED data. Nothing here persists
anything; the user reviews every proposal before it is saved.
"""

import json
import math
from decimal import Decimal
from typing import Any, Iterator

from cashbook.categories import repair_category_id
from cashbook.errors import ParseError
from cashbook.models.finance import TransactionProposal, TransactionType


_VALID_TYPES = {t.value for t in TransactionType}


def iter_array_spans(text: str) -> Iterator[str]:
    """
    Yield every top-level ``[...]`` span in ``text``, in order.

    Brackets inside double-quoted strings (within a span) are ignored, so
    ``"originalInfo": "[POS] 12.00"`` does not end the array early.
    """
    depth = 0
    start = 0
    in_string = False
    escaped = False

    for index, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "[":
            if depth == 0:
                start = index
            depth += 1
        elif ch == "]" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start:index + 1]


def extract_json_array(text: str) -> list:
    """
    Pull the first parseable JSON array out of a model reply.

    Raises:
        ParseError: if no span parses as an array and the full text is
            not a JSON array either.
    """
    for span in iter_array_spans(text):
        try:
            value = json.loads(span)
        except json.JSONDecodeError:
            continue
        if isinstance(value, list):
            return value

    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError("Recognition result is not valid JSON") from e

    if not isinstance(value, list):
        raise ParseError("Recognition result is not a JSON array")
    return value


def is_valid_proposal(item: Any) -> bool:
    """Structural check of one raw element."""
    if not isinstance(item, dict):
        return False

    amount = item.get("amount")
    # bool is an int subclass; true/false is never an amount
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return False
    if not math.isfinite(amount):
        return False

    return (
        isinstance(item.get("date"), str)
        and item.get("type") in _VALID_TYPES
        and isinstance(item.get("category"), str)
        and isinstance(item.get("description"), str)
    )


def normalize_proposal(item: dict) -> TransactionProposal:
    """Turn a structurally valid element into a proposal."""
    original_info = item.get("originalInfo")
    return TransactionProposal(
        date=item["date"],
        amount=Decimal(str(abs(item["amount"]))),
        type=TransactionType(item["type"]),
        category=repair_category_id(item["category"]),
        description=item.get("description") or "",
        original_info=original_info if isinstance(original_info, str) else "",
    )


def parse_recognition_output(text: str) -> list[TransactionProposal]:
    """
    Full pipeline: extract, filter, normalize.

    An empty list is a valid result (no rows on the statement).
    """
    raw_items = extract_json_array(text)
    return [normalize_proposal(item) for item in raw_items if is_valid_proposal(item)]
