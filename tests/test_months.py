"""Tests for month bucket keys."""

from datetime import date

import pytest

from fleet_app.months import month_year, normalize_month, previous_month, rolling_month_keys


def test_pads_single_digit_month():
    assert normalize_month("2025-1") == "2025-01"
    assert normalize_month("2025-01") == "2025-01"
    assert normalize_month("2025-1") == normalize_month("2025-01")


@pytest.mark.parametrize(
    "raw", ["2025-1", "2025-01", "2024-9", "2024-12", "1999-07", "2030-10"]
)
def test_normalize_is_idempotent(raw):
    once = normalize_month(raw)
    assert normalize_month(once) == once


def test_month_takes_precedence_over_date():
    assert normalize_month("2025-2", "2024-11-30") == "2025-02"


def test_falls_back_to_date_prefix():
    assert normalize_month(None, "2024-11-30") == "2024-11"
    assert normalize_month("", "2024-11-30") == "2024-11"


def test_no_month_and_no_date_is_unbucketable():
    assert normalize_month() == ""
    assert normalize_month("", "") == ""


def test_malformed_month_passes_through_unchanged():
    assert normalize_month("2025/03") == "2025/03"
    assert normalize_month("2025-03-15") == "2025-03-15"
    assert normalize_month("March") == "March"


def test_rolling_window_crosses_year_boundary():
    keys = rolling_month_keys(date(2025, 3, 10))

    assert len(keys) == 12
    assert keys[0] == "2024-04"
    assert keys[-1] == "2025-03"
    assert keys == sorted(keys)


def test_rolling_window_custom_length():
    assert rolling_month_keys(date(2025, 1, 31), count=3) == ["2024-11", "2024-12", "2025-01"]


def test_previous_month_of_january_is_december():
    assert previous_month(date(2025, 1, 15)) == date(2024, 12, 1)
    assert previous_month(date(2025, 7, 31)) == date(2025, 6, 1)


def test_month_year():
    assert month_year("2025-03") == 2025
    assert month_year("garbage") is None
    assert month_year("") is None
