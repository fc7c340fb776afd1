from __future__ import annotations

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

import allure
import pytest

from leetcode_tracker.timeutils import (
    business_date,
    from_iso,
    parse_api_timestamp,
    parse_iso_date,
    start_of_day,
)

pytestmark = [
    allure.epic("Daily Run"),
    allure.feature("Time Handling"),
]

NOW = datetime(2026, 10, 19, 16, 0, tzinfo=UTC)
LOS_ANGELES = ZoneInfo("America/Los_Angeles")


def test_seconds_and_milliseconds_normalize_to_same_instant() -> None:
    seconds = parse_api_timestamp(1760889600, now=NOW)

    assert parse_api_timestamp(1760889600000, now=NOW) == seconds
    assert parse_api_timestamp("1760889600", now=NOW) == seconds
    assert seconds == datetime(2025, 10, 19, 16, 0, tzinfo=UTC)


@pytest.mark.parametrize("value", [None, True, "soon", -5, float("nan"), [1], 10**30])
def test_invalid_timestamps_raise_value_error(value: object) -> None:
    with pytest.raises(ValueError):
        parse_api_timestamp(value, now=NOW)


def test_future_timestamp_beyond_tolerance_is_rejected() -> None:
    tomorrow_noon = datetime(2026, 10, 20, 12, 0, tzinfo=UTC).timestamp()
    in_two_days = datetime(2026, 10, 21, 17, 0, tzinfo=UTC).timestamp()

    assert parse_api_timestamp(tomorrow_noon, now=NOW).day == 20
    with pytest.raises(ValueError, match="in the future"):
        parse_api_timestamp(in_two_days, now=NOW)


def test_business_date_follows_user_timezone() -> None:
    late_evening_utc = datetime(2026, 10, 20, 3, 0, tzinfo=UTC)

    assert business_date(late_evening_utc, LOS_ANGELES) == date(2026, 10, 19)
    assert business_date(late_evening_utc, ZoneInfo("UTC")) == date(2026, 10, 20)


def test_start_of_day_is_local_midnight_in_utc() -> None:
    assert start_of_day(date(2026, 10, 19), LOS_ANGELES) == datetime(2026, 10, 19, 7, 0, tzinfo=UTC)
    assert start_of_day(date(2026, 12, 1), LOS_ANGELES) == datetime(2026, 12, 1, 8, 0, tzinfo=UTC)


def test_iso_helpers() -> None:
    assert from_iso("2026-10-19T16:00:00").tzinfo == UTC
    assert parse_iso_date("2026-10-19") == date(2026, 10, 19)
    assert parse_iso_date("2026-10-19T23:30:00+00:00") == date(2026, 10, 19)
