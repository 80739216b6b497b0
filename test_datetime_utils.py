from datetime import datetime, timezone

import pytest

from cv_intake.utils.datetime_utils import (
    format_iso_utc,
    next_business_day,
    parse_datetime_safe,
)

# 2026-10-19 is a Monday
MONDAY = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)
TUESDAY = datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc)
FRIDAY = datetime(2026, 10, 23, 18, 45, tzinfo=timezone.utc)
SATURDAY = datetime(2026, 10, 24, 11, 0, tzinfo=timezone.utc)
SUNDAY = datetime(2026, 10, 25, 8, 0, tzinfo=timezone.utc)


def test_friday_moves_to_monday():
    assert next_business_day(FRIDAY, hour=10) == datetime(2026, 10, 26, 10, 0, tzinfo=timezone.utc)


def test_tuesday_moves_to_wednesday():
    assert next_business_day(TUESDAY, hour=10) == datetime(2026, 10, 21, 10, 0, tzinfo=timezone.utc)


def test_saturday_moves_to_monday():
    assert next_business_day(SATURDAY, hour=10) == datetime(2026, 10, 26, 10, 0, tzinfo=timezone.utc)


def test_sunday_moves_to_monday():
    assert next_business_day(SUNDAY, hour=10) == datetime(2026, 10, 26, 10, 0, tzinfo=timezone.utc)


def test_result_is_at_fixed_local_hour():
    result = next_business_day(MONDAY, hour=9, tz="America/New_York")
    assert (result.year, result.month, result.day) == (2026, 10, 20)
    assert (result.hour, result.minute, result.second) == (9, 0, 0)
    assert result.utcoffset().total_seconds() == -4 * 3600


def test_weekday_is_judged_in_target_timezone():
    # Friday 23:30 in UTC is already Saturday in Tokyo -> next day is Sunday -> Monday
    late_friday = datetime(2026, 10, 23, 23, 30, tzinfo=timezone.utc)
    result = next_business_day(late_friday, hour=10, tz="Asia/Tokyo")
    assert (result.month, result.day, result.hour) == (10, 26, 10)


def test_unknown_timezone_is_rejected():
    with pytest.raises(ValueError):
        next_business_day(MONDAY, tz="Mars/Olympus_Mons")


def test_parse_datetime_handles_z_suffix_and_naive_values():
    assert parse_datetime_safe("2026-10-20T10:00:00Z") == datetime(2026, 10, 20, 10, tzinfo=timezone.utc)
    assert parse_datetime_safe("2026-10-20T10:00:00").tzinfo is not None
    with pytest.raises(ValueError):
        parse_datetime_safe("next tuesday")


def test_format_iso_utc():
    assert format_iso_utc(datetime(2026, 10, 20, 10, 0, 0, 123, tzinfo=timezone.utc)) == "2026-10-20T10:00:00Z"
