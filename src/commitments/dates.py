"""Natural-language due date resolution and canonical date formatting.

Phrases come straight from the model ("tomorrow", "next Friday at noon",
"15th December", "2025-12-15") and are resolved against a reference instant.
Only the calendar day matters, so a time of day attached to a phrase is
dropped before matching. Relative phrases are handled here; explicit
calendar dates go through dateutil. Nothing in this module raises on bad
input: an unparseable phrase resolves to None and is logged.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from dateutil import parser as date_parser
from dateutil.relativedelta import FR, relativedelta

logger = logging.getLogger(__name__)

# A year-less date this far in the past still counts as the current occurrence.
YEARLESS_PAST_GRACE = timedelta(days=31)


@dataclass(frozen=True)
class DateWindow:
    """Range of plausible due dates around the reference instant."""

    years_before: int = 1
    years_after: int = 10
    reject: bool = False

    def contains(self, value: date, anchor: date) -> bool:
        earliest = anchor - relativedelta(years=self.years_before)
        latest = anchor + relativedelta(years=self.years_after)
        return earliest <= value <= latest


_LEADING_WORDS_RE = re.compile(
    r"^(?:(?:by|on|before|due|until|till|no later than|the)\b[\s,:]*)+", re.I
)

_FIXED_OFFSETS = {
    "today": 0,
    "tonight": 0,
    "this morning": 0,
    "this afternoon": 0,
    "this evening": 0,
    "eod": 0,
    "end of day": 0,
    "end of the day": 0,
    "tomorrow": 1,
    "tmrw": 1,
    "day after tomorrow": 2,
    "the day after tomorrow": 2,
    "yesterday": -1,
}

_WEEKDAYS = {
    "monday": 0, "mon": 0,
    "tuesday": 1, "tue": 1, "tues": 1,
    "wednesday": 2, "wed": 2,
    "thursday": 3, "thu": 3, "thur": 3, "thurs": 3,
    "friday": 4, "fri": 4,
    "saturday": 5, "sat": 5,
    "sunday": 6, "sun": 6,
}

_NUMBER_WORDS = {
    "a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11,
    "twelve": 12,
}

_TIME_OF_DAY = (
    r"(?:\d{1,2}(?::\d{2})?\s*(?:am|pm|a\.m\.?|p\.m\.?)"
    r"|\d{1,2}:\d{2}"
    r"|noon|midday|midnight|eod|cob|close of business|end of (?:the )?day"
    r"|(?:in the )?(?:morning|afternoon|evening)|night|tonight)"
)
_TRAILING_TIME_RE = re.compile(
    r"[\s,]+(?:(?:at|by|around|before|until|from)\s+)?" + _TIME_OF_DAY + r"$"
)
_LEADING_TIME_RE = re.compile(r"^(?:at\s+)?" + _TIME_OF_DAY + r"(?:\s+on)?[\s,]+")

_WEEKDAY_RE = re.compile(
    r"^(?:(?P<modifier>this|coming|next)\s+)?"
    r"(?P<day>" + "|".join(sorted(_WEEKDAYS, key=len, reverse=True)) + r")\.?"
    r"(?:,?\s+(?P<week>this|next)\s+week)?$"
)
_NEXT_PERIOD_RE = re.compile(r"^next\s+(week|month|year)$")
_END_OF_RE = re.compile(
    r"^(?:end\s+of\s+(?:(?P<which>the|this|next)\s+)?(?P<unit>week|month)"
    r"|eo(?P<abbr>w|m)"
    r"|(?:later\s+)?this\s+(?P<this_unit>week|month))$"
)
_IN_AMOUNT_RE = re.compile(
    r"^(?:in\s+(?P<n1>\d+|\w+)\s+(?P<u1>day|week|month|year)s?"
    r"|(?P<n2>\d+|\w+)\s+(?P<u2>day|week|month|year)s?\s+from\s+(?:now|today))$"
)


def _anchor_day(reference: datetime) -> date:
    return reference.date()


def _amount(token: str) -> int | None:
    if token.isdigit():
        return int(token)
    return _NUMBER_WORDS.get(token)


def _in_next_week(anchor: date, weekday: int) -> date:
    """That weekday in the Monday-started week after the anchor's week."""
    next_monday = anchor + timedelta(days=7 - anchor.weekday())
    return next_monday + timedelta(days=weekday)


def _resolve_relative(phrase: str, anchor: date) -> date | None:
    """Resolve the relative forms we understand, or None to fall through."""
    if phrase in _FIXED_OFFSETS:
        return anchor + timedelta(days=_FIXED_OFFSETS[phrase])

    match = _WEEKDAY_RE.match(phrase)
    if match:
        weekday = _WEEKDAYS[match.group("day")]
        if match.group("modifier") == "next" or match.group("week") == "next":
            return _in_next_week(anchor, weekday)
        if match.group("week") == "this":
            this_week = anchor + timedelta(days=weekday - anchor.weekday())
            if this_week >= anchor:
                return this_week
        days_ahead = (weekday - anchor.weekday()) % 7 or 7
        return anchor + timedelta(days=days_ahead)

    match = _NEXT_PERIOD_RE.match(phrase)
    if match:
        unit = match.group(1)
        return anchor + relativedelta(**{f"{unit}s": 1})

    match = _END_OF_RE.match(phrase)
    if match:
        unit = (
            match.group("unit")
            or match.group("this_unit")
            or {"w": "week", "m": "month"}[match.group("abbr")]
        )
        following = match.group("which") == "next"
        if unit == "week":
            if following:
                return _in_next_week(anchor, 4)
            return anchor + relativedelta(weekday=FR(+1))
        return anchor + relativedelta(months=1 if following else 0, day=31)

    match = _IN_AMOUNT_RE.match(phrase)
    if match:
        count = _amount(match.group("n1") or match.group("n2"))
        unit = match.group("u1") or match.group("u2")
        if count is not None:
            return anchor + relativedelta(**{f"{unit}s": count})

    return None


def _strip_time_of_day(text: str) -> str:
    """Drop times attached to a day ("tomorrow at 3pm", "noon Friday")."""
    while text and text not in _FIXED_OFFSETS:
        stripped = _TRAILING_TIME_RE.sub("", text)
        stripped = _LEADING_TIME_RE.sub("", stripped)
        stripped = _LEADING_WORDS_RE.sub("", stripped).strip(" ,")
        if not stripped or stripped == text:
            break
        text = stripped
    return text


def _normalize(phrase: str) -> str:
    text = " ".join(phrase.strip().lower().split())
    text = _LEADING_WORDS_RE.sub("", text)
    text = text.rstrip(".!,;")
    return _strip_time_of_day(text)


def _parse_calendar_date(text: str, anchor: date) -> date:
    """Parse an explicit date with dateutil, filling gaps from the anchor day.

    A date written without a year resolves to its next occurrence, unless
    it fell within the last YEARLESS_PAST_GRACE.
    """
    default = datetime(anchor.year, anchor.month, anchor.day)
    parsed = date_parser.parse(text, default=default).date()
    shifted = date_parser.parse(text, default=default + relativedelta(years=4)).date()
    if parsed.year == shifted.year:
        return parsed

    earliest = anchor - YEARLESS_PAST_GRACE
    for years in (-1, 0, 1):
        try:
            candidate = date_parser.parse(
                text, default=default + relativedelta(years=years)
            ).date()
        except ValueError:
            # Feb 29 in a non-leap year
            continue
        if candidate >= earliest:
            return candidate
    return parsed


def resolve_due_date(
    phrase: str | None,
    reference: datetime,
    window: DateWindow | None = None,
) -> date | None:
    """Resolve a natural-language due date phrase to a calendar date.

    Args:
        phrase: Due date as written, e.g. "tomorrow" or "15th December"
        reference: Instant relative dates are counted from
        window: Plausibility window; defaults to 1 year back, 10 years ahead

    Returns:
        The calendar date, or None when the phrase is empty or unparseable
        (or out of range with a rejecting window).
    """
    if phrase is None or not phrase.strip():
        return None

    window = window or DateWindow()
    anchor = _anchor_day(reference)
    normalized = _normalize(phrase)

    resolved = _resolve_relative(normalized, anchor) if normalized else None
    if resolved is None:
        try:
            resolved = _parse_calendar_date(normalized or phrase, anchor)
        except (ValueError, OverflowError) as e:
            logger.warning('Could not parse date: "%s" (%s)', phrase, e)
            return None

    if not window.contains(resolved, anchor):
        logger.warning(
            'Parsed date out of reasonable range: "%s" -> %s', phrase, resolved.isoformat()
        )
        if window.reject:
            return None

    return resolved


def format_due_date(value: date | None) -> str | None:
    """Render a date as the canonical YYYY-MM-DD storage string."""
    if value is None:
        return None
    return value.isoformat()


def parse_due_date(value: str) -> date:
    """Inverse of format_due_date."""
    return date.fromisoformat(value)
