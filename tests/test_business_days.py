"""Tests for business day calculation (Colombian calendar)."""

from datetime import date, datetime, timezone

from llanogas.utils.business_days import (
    add_business_days,
    as_utc,
    business_days_between,
    is_business_day,
    start_of_local_day,
)


def test_weekends_and_holidays_are_not_business_days():
    assert is_business_day(date(2025, 1, 3))  # Friday
    assert not is_business_day(date(2025, 1, 4))  # Saturday
    assert not is_business_day(date(2025, 1, 6))  # Reyes Magos (moved to Monday)
    assert not is_business_day(date(2025, 7, 20))  # Independence Day


def test_add_business_days_skips_holiday_and_keeps_local_time():
    # Thursday 10:00 Bogotá
    start = datetime(2025, 1, 2, 15, 0, tzinfo=timezone.utc)

    assert add_business_days(start, 1) == datetime(2025, 1, 3, 15, 0, tzinfo=timezone.utc)
    assert add_business_days(start, 2) == datetime(2025, 1, 7, 15, 0, tzinfo=timezone.utc)
    assert add_business_days(start, 15) == datetime(2025, 1, 24, 15, 0, tzinfo=timezone.utc)


def test_add_zero_days_returns_start():
    start = datetime(2025, 1, 2, 15, 0, tzinfo=timezone.utc)
    assert add_business_days(start, 0) == start


def test_business_days_between():
    start = datetime(2025, 1, 2, 15, 0, tzinfo=timezone.utc)
    end = datetime(2025, 1, 10, 15, 0, tzinfo=timezone.utc)

    assert business_days_between(start, end) == 5
    assert business_days_between(end, start) == 0


def test_as_utc_treats_naive_as_utc():
    naive = datetime(2025, 1, 2, 15, 0)
    assert as_utc(naive) == datetime(2025, 1, 2, 15, 0, tzinfo=timezone.utc)


def test_start_of_local_day_uses_bogota_calendar():
    # 03:00 UTC on Jan 2 is still Jan 1 in Bogotá
    late_evening = datetime(2025, 1, 2, 3, 0, tzinfo=timezone.utc)
    assert start_of_local_day(late_evening) == datetime(2025, 1, 1, 5, 0, tzinfo=timezone.utc)

    afternoon = datetime(2025, 1, 2, 20, 0, tzinfo=timezone.utc)
    assert start_of_local_day(afternoon) == datetime(2025, 1, 2, 5, 0, tzinfo=timezone.utc)
