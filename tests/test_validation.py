from __future__ import annotations

from datetime import datetime, timezone

import pytest

from tokenfeed.utils.time import to_unix_seconds
from tokenfeed.utils.validation import as_list, dig, is_valid_address, to_float, to_int, to_str


@pytest.mark.parametrize(
    "value,expected",
    [
        (1_700_000_000, 1_700_000_000),
        (1_700_000_000_123, 1_700_000_000),
        ("1700000000", 1_700_000_000),
        (1_700_000_000.9, 1_700_000_000),
        ("2023-11-14T22:13:20Z", 1_700_000_000),
        ("2023-11-14T22:13:20", 1_700_000_000),
        (datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc), 1_700_000_000),
    ],
)
def test_to_unix_seconds(value, expected: int) -> None:
    assert to_unix_seconds(value) == expected


@pytest.mark.parametrize("value", [None, "", "not a date", True, float("nan"), [1]])
def test_to_unix_seconds_rejects(value) -> None:
    assert to_unix_seconds(value) is None


def test_numeric_coercion() -> None:
    assert to_float("1.5") == 1.5
    assert to_float("inf") is None
    assert to_float(True) is None
    assert to_float("x", 0.0) == 0.0
    assert to_int("42.9") == 42
    assert to_int("abc") is None


def test_to_str() -> None:
    assert to_str("  hi ") == "hi"
    assert to_str("   ") is None
    assert to_str(12) == "12"
    assert to_str({"a": 1}, "fallback") == "fallback"


def test_address_validation() -> None:
    assert is_valid_address("0x" + "aB" * 20)
    assert not is_valid_address("0x" + "ab" * 19)
    assert not is_valid_address("ab" * 21)
    assert not is_valid_address(None)


def test_nested_lookups() -> None:
    payload = {"data": {"attributes": {"ohlcv_list": [[1, 2, 3, 4, 5]]}}}

    assert dig(payload, "data", "attributes", "ohlcv_list") == [[1, 2, 3, 4, 5]]
    assert dig(payload, "data", "missing", "deeper") is None
    assert as_list(payload, ("data",), ("data", "attributes", "ohlcv_list")) == [[1, 2, 3, 4, 5]]
    assert as_list([1, 2], ("data",), ()) == [1, 2]
    assert as_list({"data": {}}, ("data",)) == []
