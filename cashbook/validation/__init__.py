"""Validation of untrusted recognition output."""

from cashbook.validation.proposals import (
    extract_json_array,
    is_valid_proposal,
    iter_array_spans,
    normalize_proposal,
    parse_recognition_output,
)

__all__ = [
    "extract_json_array",
    "is_valid_proposal",
    "iter_array_spans",
    "normalize_proposal",
    "parse_recognition_output",
]
