"""
Tests for field parsing primitives.

Run with: pytest tests/test_field_parsers.py -v
"""

import sys
import pathlib
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent))

import pytest
from allocation.engine.field_parsers import (
    MAX_PHASE_NUMBER,
    calculate_percentage,
    find_duplicates,
    has_common_elements,
    is_empty,
    is_valid_email,
    is_valid_integer,
    is_valid_json,
    is_valid_number,
    is_valid_url,
    normalize_string,
    parse_int_sequence,
    parse_integer,
    parse_number,
    parse_string_list,
)


class TestParseIntSequence:
    """Flexible array / range parser"""

    def test_real_list(self):
        assert parse_int_sequence([1, 2, 3]) == [1, 2, 3]

    def test_json_array_string(self):
        assert parse_int_sequence("[1, 2]") == [1, 2]

    def test_range_string(self):
        assert parse_int_sequence("1-3") == [1, 2, 3]

    def test_comma_list_with_range_token(self):
        assert parse_int_sequence("1,3-4") == [1, 3, 4]

    def test_empty_and_none(self):
        """Blank input means no phases, not a parse failure"""
        assert parse_int_sequence("") == []
        assert parse_int_sequence(None) == []
        assert parse_int_sequence("   ") == []

    def test_non_numeric_fails(self):
        assert parse_int_sequence("a,b") is None

    def test_descending_range_fails(self):
        assert parse_int_sequence("5-2") is None

    def test_range_past_phase_limit_fails(self):
        assert parse_int_sequence("1-20000000") is None
        assert parse_int_sequence(["1-3", "2-999999999"]) is None
        assert parse_int_sequence("-5000-1") is None

    def test_range_up_to_phase_limit(self):
        assert parse_int_sequence(f"1-{MAX_PHASE_NUMBER}") == list(range(1, MAX_PHASE_NUMBER + 1))

    def test_duplicates_removed_in_order(self):
        assert parse_int_sequence([3, 1, 3, 2, 1]) == [3, 1, 2]

    def test_numeric_strings_in_list(self):
        assert parse_int_sequence(["1", "2", 3.0]) == [1, 2, 3]

    def test_fractional_item_fails(self):
        assert parse_int_sequence([1, 2.5]) is None

    def test_single_integer(self):
        assert parse_int_sequence(4) == [4]

    def test_boolean_rejected(self):
        assert parse_int_sequence(True) is None

    def test_zero_is_parsed(self):
        """Range checks are the caller's job"""
        assert parse_int_sequence("0,1") == [0, 1]


class TestNumbers:
    """Number coercion"""

    def test_parse_number(self):
        assert parse_number("3.5") == 3.5
        assert parse_number(2) == 2.0
        assert parse_number(" 7 ") == 7.0

    def test_parse_number_rejects(self):
        assert parse_number("abc") is None
        assert parse_number(True) is None
        assert parse_number(float("nan")) is None
        assert parse_number("") is None
        assert parse_number([1]) is None

    def test_parse_integer(self):
        assert parse_integer("3") == 3
        assert parse_integer(3.0) == 3
        assert parse_integer("2.5") is None
        assert parse_integer(None) is None

    def test_is_valid_number_bounds(self):
        assert is_valid_number(5, 1, 10) == True
        assert is_valid_number(0, 1, 10) == False
        assert is_valid_number(11, 1, 10) == False
        assert is_valid_number("x") == False

    def test_is_valid_integer(self):
        assert is_valid_integer("4", 1) == True
        assert is_valid_integer(4.5, 1) == False
        assert is_valid_integer(0, 1) == False


class TestStrings:
    """String helpers"""

    def test_is_empty(self):
        assert is_empty(None) == True
        assert is_empty("  ") == True
        assert is_empty(0) == False
        assert is_empty([]) == False

    def test_normalize_string(self):
        assert normalize_string("  T1 ") == "T1"
        assert normalize_string(42) == "42"
        assert normalize_string(None) == ""

    def test_parse_string_list_comma(self):
        assert parse_string_list("python, sql ,") == ["python", "sql"]

    def test_parse_string_list_json(self):
        assert parse_string_list('["a", "b"]') == ["a", "b"]

    def test_parse_string_list_list(self):
        assert parse_string_list([" a", 2, ""]) == ["a", "2"]

    def test_parse_string_list_empty(self):
        assert parse_string_list(None) == []
        assert parse_string_list("") == []

    def test_json_email_url(self):
        assert is_valid_json('{"a": 1}') == True
        assert is_valid_json('{a: 1}') == False
        assert is_valid_json({"a": 1}) == True
        assert is_valid_email("ops@example.com") == True
        assert is_valid_email("not-an-email") == False
        assert is_valid_url("https://example.com/x") == True
        assert is_valid_url("example.com") == False


class TestCollections:
    """Collection helpers"""

    def test_find_duplicates(self):
        assert find_duplicates(["T1", "T2", " T1", "T2", "T1"]) == ["T1", "T2"]

    def test_has_common_elements(self):
        assert has_common_elements([1, 2], [2, 3]) == True
        assert has_common_elements([1], [3]) == False

    def test_calculate_percentage(self):
        assert calculate_percentage(1, 3) == pytest.approx(33.33)
        assert calculate_percentage(5, 0) == 0.0
