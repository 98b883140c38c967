"""
Field-level parsing and validation primitives.

Spreadsheet-sourced records carry the same logical field in several shapes:
a real list, a JSON-encoded array, a comma-separated string, or an inclusive
range such as "1-3". parse_int_sequence is the one place that coercion
happens; every validator goes through it so the rules stay consistent.

Examples:
    parse_int_sequence([1, 2, 3])   → [1, 2, 3]
    parse_int_sequence("[1, 2]")    → [1, 2]
    parse_int_sequence("1-3")       → [1, 2, 3]
    parse_int_sequence("1,3-4")     → [1, 3, 4]
    parse_int_sequence("")          → []
    parse_int_sequence("a,b")       → None   (cannot coerce)
    parse_int_sequence("5-2")       → None   (descending range)
    parse_int_sequence("1-99999")   → None   (past MAX_PHASE_NUMBER)
"""

import json
import math
import re
from typing import Any, Iterable, List, Optional


_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://[^\s/?#]+[^\s]*$")
_RANGE_RE = re.compile(r"^\s*(-?\d+)\s*-\s*(-?\d+)\s*$")

# Upper bound for range notation; "a-b" is expanded in memory.
MAX_PHASE_NUMBER = 1000


def is_empty(value: Any) -> bool:
    """None or a blank string. Zero and empty lists are values."""
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def normalize_string(value: Any) -> str:
    """Identifier normalisation: str() then strip whitespace."""
    if value is None:
        return ""
    return str(value).strip()


def parse_number(value: Any) -> Optional[float]:
    """
    Coerce a value to a finite float.

    Accepts int, float and numeric strings. Booleans, NaN/inf and anything
    else return None.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_integer(value: Any) -> Optional[int]:
    """Integral numbers only: 3, 3.0, "3", "3.0" → 3; "2.5" → None."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    number = parse_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def is_valid_number(value: Any, min_value: Optional[float] = None,
                    max_value: Optional[float] = None) -> bool:
    number = parse_number(value)
    if number is None:
        return False
    if min_value is not None and number < min_value:
        return False
    if max_value is not None and number > max_value:
        return False
    return True


def is_valid_integer(value: Any, min_value: Optional[int] = None,
                     max_value: Optional[int] = None) -> bool:
    number = parse_integer(value)
    if number is None:
        return False
    if min_value is not None and number < min_value:
        return False
    if max_value is not None and number > max_value:
        return False
    return True


def is_valid_json(value: Any) -> bool:
    """
    Permissive JSON check.

    Strings must parse with json.loads. Values that are already structured
    (dict, list, numbers, booleans) pass as-is. None passes (treated as
    absent by callers).
    """
    if value is None:
        return True
    if isinstance(value, str):
        try:
            json.loads(value)
            return True
        except ValueError:
            return False
    return isinstance(value, (dict, list, int, float, bool))


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(_EMAIL_RE.match(value.strip()))


def is_valid_url(value: Any) -> bool:
    return isinstance(value, str) and bool(_URL_RE.match(value.strip()))


def _expand_token(token: Any) -> Optional[List[int]]:
    """One list item or comma token → integers, or None when it cannot coerce."""
    if isinstance(token, str):
        match = _RANGE_RE.match(token)
        if match:
            start, end = int(match.group(1)), int(match.group(2))
            if start > end or end > MAX_PHASE_NUMBER or end - start >= MAX_PHASE_NUMBER:
                return None
            return list(range(start, end + 1))
    number = parse_integer(token)
    if number is None:
        return None
    return [number]


def _dedupe(values: Iterable[int]) -> List[int]:
    seen = set()
    ordered = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


def parse_int_sequence(value: Any) -> Optional[List[int]]:
    """
    Flexible array / number-range parser.

    Args:
        value: list/tuple/set of integer-like items, a single integer, a JSON
            array string, an inclusive range string "a-b", or a comma list whose
            tokens may themselves be ranges.

    Returns:
        Ordered, de-duplicated list of integers; [] for None or blank input;
        None when any part cannot be coerced.
    """
    if is_empty(value):
        return []
    if isinstance(value, bool):
        return None
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
        result: List[int] = []
        for item in items:
            expanded = _expand_token(item)
            if expanded is None:
                return None
            result.extend(expanded)
        return _dedupe(result)
    if isinstance(value, (int, float)):
        expanded = _expand_token(value)
        return expanded
    if not isinstance(value, str):
        return None

    text = value.strip()
    if text.startswith("["):
        try:
            decoded = json.loads(text)
        except ValueError:
            decoded = None
        if isinstance(decoded, list):
            return parse_int_sequence(decoded)
        text = text.strip("[]")

    result = []
    for token in text.split(","):
        token = token.strip().strip("'\"")
        if not token:
            continue
        expanded = _expand_token(token)
        if expanded is None:
            return None
        result.extend(expanded)
    return _dedupe(result)


def parse_string_list(value: Any) -> List[str]:
    """
    Coerce a list-ish value to a list of trimmed, non-empty strings.

    Lists are taken item by item; strings are decoded as a JSON array when
    they look like one, otherwise split on commas.
    """
    if is_empty(value):
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else list(value)
    elif isinstance(value, str):
        text = value.strip()
        items = None
        if text.startswith("["):
            try:
                decoded = json.loads(text)
                if isinstance(decoded, list):
                    items = decoded
            except ValueError:
                items = None
        if items is None:
            items = text.strip("[]").split(",")
    else:
        items = [value]

    result = []
    for item in items:
        text = normalize_string(item)
        if isinstance(item, str):
            text = text.strip("'\"").strip()
        if text:
            result.append(text)
    return result


def find_duplicates(values: Iterable[Any]) -> List[str]:
    """Identifiers (normalised) that appear more than once, in first-repeat order."""
    seen = set()
    duplicates: List[str] = []
    for value in values:
        key = normalize_string(value)
        if key in seen and key not in duplicates:
            duplicates.append(key)
        seen.add(key)
    return duplicates


def has_common_elements(first: Iterable[Any], second: Iterable[Any]) -> bool:
    return bool(set(first) & set(second))


def calculate_percentage(part: float, total: float) -> float:
    if total == 0:
        return 0.0
    return round(part / total * 100, 2)
