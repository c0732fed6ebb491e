from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

import dateparser
from dateutil.relativedelta import relativedelta

# Longest prefixes first so "streamed live on" wins over "streamed".
KNOWN_DATE_PREFIXES: tuple[str, ...] = (
    "started streaming on",
    "streamed live on",
    "premiered on",
    "published on",
    "uploaded on",
    "streamed live",
    "streamed",
    "premiered",
)

RELATIVE_DELTA_PATTERN = re.compile(
    r"^(?P<amount>\d+)\s+(?P<unit>year|month|week|day|hour|minute|second)s?\s+ago$",
    re.IGNORECASE,
)

# Relative phrases only ever resolve through RELATIVE_DELTA_PATTERN.
_DATEPARSER_SETTINGS: dict[str, object] = {
    "PARSERS": ["absolute-time"],
    "TIMEZONE": "UTC",
    "RETURN_AS_TIMEZONE_AWARE": True,
    "PREFER_DAY_OF_MONTH": "first",
}


def normalize_relative_time(text: str | None, *, now: datetime | None = None) -> datetime | None:
    """Resolve a free-text date expression to an absolute UTC timestamp.

    Handles ISO and display dates, "<n> <unit> ago" phrases and the streaming
    prefixes the platform puts in front of either. Returns ``None`` when the
    text cannot be resolved; an unresolved date is never replaced with the
    current time.
    """
    stripped = _strip_known_prefix(text)
    if stripped is None:
        return None

    reference = _as_utc(now) if now is not None else datetime.now(UTC)
    matched = RELATIVE_DELTA_PATTERN.match(stripped)
    if matched is not None:
        amount = int(matched.group("amount"))
        unit = matched.group("unit").lower()
        return _subtract(reference, amount=amount, unit=unit)

    return _parse_absolute(stripped, reference=reference)


def parse_absolute_datetime(text: str | None) -> datetime | None:
    stripped = _strip_known_prefix(text)
    if stripped is None or RELATIVE_DELTA_PATTERN.match(stripped):
        return None
    return _parse_absolute(stripped)


def subtract_months(value: datetime, months: int) -> datetime:
    return value - relativedelta(months=months)


def _subtract(reference: datetime, *, amount: int, unit: str) -> datetime:
    if unit == "year":
        return reference - relativedelta(years=amount)
    if unit == "month":
        return subtract_months(reference, amount)
    if unit == "week":
        return reference - timedelta(days=7 * amount)
    if unit == "day":
        return reference - timedelta(days=amount)
    if unit == "hour":
        return reference - timedelta(hours=amount)
    if unit == "minute":
        return reference - timedelta(minutes=amount)
    return reference - timedelta(seconds=amount)


def _strip_known_prefix(text: str | None) -> str | None:
    if not isinstance(text, str):
        return None
    compact = " ".join(text.split())
    if not compact:
        return None

    lowered = compact.lower()
    for prefix in KNOWN_DATE_PREFIXES:
        if lowered.startswith(prefix + " "):
            compact = compact[len(prefix) :].strip()
            break
    return compact or None


def _parse_absolute(text: str, *, reference: datetime | None = None) -> datetime | None:
    normalized = text.replace("Z", "+00:00") if text.endswith("Z") else text
    try:
        return _as_utc(datetime.fromisoformat(normalized))
    except ValueError:
        pass

    settings = dict(_DATEPARSER_SETTINGS)
    if reference is not None:
        settings["RELATIVE_BASE"] = reference.replace(tzinfo=None)
    parsed = dateparser.parse(text, languages=["en"], settings=settings)
    if parsed is None:
        return None
    return _as_utc(parsed)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
