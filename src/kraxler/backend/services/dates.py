"""Calendar date helpers shared by the resolver and the validator."""

from __future__ import annotations

import re
from datetime import date, timedelta

from kraxler.backend.config.schema import InvalidDateError

_ISO_DATE = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")


def parse_date(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string.

    Field ranges are checked against the calendar, so ``2024-02-30`` is
    rejected instead of rolling over into March.
    """

    match = _ISO_DATE.fullmatch(value) if isinstance(value, str) else None
    if match is None:
        raise InvalidDateError(f"Invalid date '{value}': expected YYYY-MM-DD")

    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError as error:
        raise InvalidDateError(f"Invalid date '{value}': {error}") from error


def is_iso_date(value: str | None) -> bool:
    """Return ``True`` when ``value`` is a real ``YYYY-MM-DD`` calendar date."""

    try:
        parse_date(value)
    except InvalidDateError:
        return False
    return True


def format_date(value: date) -> str:
    """Return ``value`` as a zero-padded ``YYYY-MM-DD`` string."""

    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def is_date_in_range(value: date, start: str, end: str | None) -> bool:
    """Check whether ``value`` lies in ``[start, end]``; ``end=None`` is unbounded."""

    if value < parse_date(start):
        return False
    if end is not None and value > parse_date(end):
        return False
    return True


def is_date_string_in_range(value: str, start: str, end: str | None) -> bool:
    return is_date_in_range(parse_date(value), start, end)


def next_day(value: str) -> str:
    return format_date(parse_date(value) + timedelta(days=1))


def previous_day(value: str) -> str:
    return format_date(parse_date(value) - timedelta(days=1))


__all__ = [
    "format_date",
    "is_date_in_range",
    "is_date_string_in_range",
    "is_iso_date",
    "next_day",
    "parse_date",
    "previous_day",
]
