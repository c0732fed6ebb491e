from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from backend.app.services.relative_time import (
    normalize_relative_time,
    parse_absolute_datetime,
    subtract_months,
)

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("1 year ago", datetime(2023, 3, 15, 12, 0, tzinfo=UTC)),
        ("2 months ago", datetime(2024, 1, 15, 12, 0, tzinfo=UTC)),
        ("2 weeks ago", datetime(2024, 3, 1, 12, 0, tzinfo=UTC)),
        ("3 Days ago", datetime(2024, 3, 12, 12, 0, tzinfo=UTC)),
        ("1 day ago", datetime(2024, 3, 14, 12, 0, tzinfo=UTC)),
        ("5 hours ago", datetime(2024, 3, 15, 7, 0, tzinfo=UTC)),
        ("10 minutes ago", datetime(2024, 3, 15, 11, 50, tzinfo=UTC)),
        ("30 seconds ago", datetime(2024, 3, 15, 11, 59, 30, tzinfo=UTC)),
    ],
)
def test_relative_phrases_resolve_against_reference_time(text: str, expected: datetime) -> None:
    assert normalize_relative_time(text, now=NOW) == expected


def test_week_is_exactly_seven_days() -> None:
    assert normalize_relative_time("1 week ago", now=NOW) == NOW - timedelta(days=7)


def test_month_subtraction_clamps_to_last_day_of_target_month() -> None:
    march_end = datetime(2024, 3, 31, tzinfo=UTC)
    assert normalize_relative_time("1 month ago", now=march_end) == datetime(
        2024, 2, 29, tzinfo=UTC
    )

    january_end = datetime(2024, 1, 31, tzinfo=UTC)
    assert normalize_relative_time("1 month ago", now=january_end) == datetime(
        2023, 12, 31, tzinfo=UTC
    )

    non_leap_march_end = datetime(2023, 3, 31, tzinfo=UTC)
    assert normalize_relative_time("1 month ago", now=non_leap_march_end) == datetime(
        2023, 2, 28, tzinfo=UTC
    )


def test_year_subtraction_from_leap_day_lands_on_february_28() -> None:
    leap_day = datetime(2024, 2, 29, 8, 0, tzinfo=UTC)
    assert normalize_relative_time("1 year ago", now=leap_day) == datetime(
        2023, 2, 28, 8, 0, tzinfo=UTC
    )
    assert normalize_relative_time("4 years ago", now=leap_day) == datetime(
        2020, 2, 29, 8, 0, tzinfo=UTC
    )


def test_subtract_months_crosses_year_boundaries() -> None:
    value = datetime(2024, 2, 10, tzinfo=UTC)
    assert subtract_months(value, 14) == datetime(2022, 12, 10, tzinfo=UTC)
    assert subtract_months(value, 0) == value


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Streamed 5 hours ago", datetime(2024, 3, 15, 7, 0, tzinfo=UTC)),
        ("Premiered 1 day ago", datetime(2024, 3, 14, 12, 0, tzinfo=UTC)),
        ("streamed live on Mar 1, 2024", datetime(2024, 3, 1, tzinfo=UTC)),
        ("Premiered Feb 29, 2024", datetime(2024, 2, 29, tzinfo=UTC)),
        ("Started streaming on 2 Jan 2024", datetime(2024, 1, 2, tzinfo=UTC)),
        ("Uploaded on 2024/01/05", datetime(2024, 1, 5, tzinfo=UTC)),
    ],
)
def test_known_prefixes_are_stripped(text: str, expected: datetime) -> None:
    assert normalize_relative_time(text, now=NOW) == expected


def test_absolute_dates_pass_through_as_utc() -> None:
    assert normalize_relative_time("2024-03-01T10:00:00Z", now=NOW) == datetime(
        2024, 3, 1, 10, 0, tzinfo=UTC
    )
    assert normalize_relative_time("2024-03-01", now=NOW) == datetime(2024, 3, 1, tzinfo=UTC)

    offset = normalize_relative_time("2024-01-10T08:30:00-05:00", now=NOW)
    assert offset == datetime(2024, 1, 10, 13, 30, tzinfo=UTC)
    assert offset is not None and offset.utcoffset() == timedelta(0)


def test_reference_time_is_normalized_to_utc() -> None:
    bucharest_noon = datetime(2024, 3, 15, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    resolved = normalize_relative_time("1 hour ago", now=bucharest_noon)
    assert resolved == datetime(2024, 3, 15, 11, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    "text",
    ["gibberish", "", "   ", None, "zzqx vvbk"],
)
def test_unparseable_text_yields_none(text: str | None) -> None:
    assert normalize_relative_time(text, now=NOW) is None


def test_parse_absolute_datetime_ignores_relative_phrases() -> None:
    assert parse_absolute_datetime("3 days ago") is None
    assert parse_absolute_datetime("Published on Jan 7, 2022") == datetime(2022, 1, 7, tzinfo=UTC)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Tue, 12 Mar 2024 10:00:00 GMT", datetime(2024, 3, 12, 10, 0, tzinfo=UTC)),
        ("Sept 10, 2023", datetime(2023, 9, 10, tzinfo=UTC)),
        ("March 5th, 2024", datetime(2024, 3, 5, tzinfo=UTC)),
        ("Premiered on 5 March 2024", datetime(2024, 3, 5, tzinfo=UTC)),
    ],
)
def test_display_dates_fall_back_to_generic_parsing(text: str, expected: datetime) -> None:
    assert normalize_relative_time(text, now=NOW) == expected


def test_dotted_numeric_date_is_resolved() -> None:
    resolved = normalize_relative_time("12.03.2024", now=NOW)

    assert resolved is not None
    assert resolved.year == 2024
    assert resolved.utcoffset() == timedelta(0)
