"""
Tests for parsing the vision model's reply into proposals.

The reply is untrusted free text: these tests cover extraction from
prose and code fences, dropping malformed rows, and normalization.
"""

from decimal import Decimal

import pytest

from cashbook.errors import ParseError
from cashbook.models.finance import TransactionType
from cashbook.validation import (
    extract_json_array,
    is_valid_proposal,
    iter_array_spans,
    normalize_proposal,
    parse_recognition_output,
)


class TestExtraction:
    """Tests for locating the JSON array."""

    def test_plain_array(self):
        assert extract_json_array('[{"a": 1}]') == [{"a": 1}]

    def test_array_in_markdown_fence(self):
        text = 'Here you go:\n```json\n[{"amount": 1}]\n```\nDone.'
        assert extract_json_array(text) == [{"amount": 1}]

    def test_brackets_inside_strings_do_not_end_the_array(self):
        text = '[{"originalInfo": "[POS] ]] 12.00", "amount": 12}]'
        assert extract_json_array(text) == [{"originalInfo": "[POS] ]] 12.00", "amount": 12}]

    def test_skips_unparseable_span(self):
        text = 'See [note] below.\n[{"amount": 2}]'
        assert list(iter_array_spans(text)) == ["[note]", '[{"amount": 2}]']
        assert extract_json_array(text) == [{"amount": 2}]

    def test_empty_array(self):
        assert extract_json_array("[]") == []

    def test_not_json_raises(self):
        with pytest.raises(ParseError, match="not valid JSON"):
            extract_json_array("I could not read this statement.")

    def test_json_object_raises(self):
        with pytest.raises(ParseError, match="not a JSON array"):
            extract_json_array('{"transactions": 1}')


class TestFiltering:
    """Tests for the structural check of each element."""

    VALID = {"date": "2024-01-15", "amount": 5, "type": "expense", "category": "food", "description": ""}

    def test_valid_element(self):
        assert is_valid_proposal(self.VALID)

    @pytest.mark.parametrize("field, value", [
        ("amount", "5"),
        ("amount", True),
        ("amount", float("nan")),
        ("type", "transfer"),
        ("date", None),
        ("category", 3),
        ("description", None),
    ])
    def test_invalid_field(self, field, value):
        assert not is_valid_proposal({**self.VALID, field: value})

    def test_non_object(self):
        assert not is_valid_proposal(["2024-01-15", 5])


class TestParseRecognitionOutput:
    """Tests for the full extract, filter, normalize pipeline."""

    def test_negative_amount_and_polluted_category(self):
        text = '[{"date":"2024-01-15","amount":-50,"type":"expense","category":"food:餐饮","description":"午餐"}]'
        proposals = parse_recognition_output(text)

        assert len(proposals) == 1
        assert proposals[0].to_api() == {
            "date": "2024-01-15",
            "amount": 50.0,
            "type": "expense",
            "category": "food",
            "description": "午餐",
            "originalInfo": "",
        }

    def test_malformed_rows_are_dropped_and_order_kept(self):
        text = """[
            {"date": "2024-01-16", "amount": 3000, "type": "income", "category": "salary", "description": "工资"},
            {"date": "2024-01-16", "amount": "oops", "type": "expense", "category": "food", "description": ""},
            {"date": "2024-01-15", "amount": 12.5, "type": "expense", "category": "transport-交通",
             "description": "地铁", "originalInfo": "12:00 地铁 -12.50"}
        ]"""
        proposals = parse_recognition_output(text)

        assert [p.category for p in proposals] == ["salary", "transport"]
        assert proposals[1].amount == Decimal("12.5")
        assert proposals[1].original_info == "12:00 地铁 -12.50"
        assert proposals[0].type == TransactionType.INCOME

    def test_no_rows(self):
        assert parse_recognition_output("```json\n[]\n```") == []

    def test_non_string_original_info_is_ignored(self):
        proposal = normalize_proposal({
            "date": "2024-01-15", "amount": 1, "type": "income",
            "category": "gift", "description": "", "originalInfo": 42,
        })
        assert proposal.original_info == ""
