"""Date parsing utilities."""

import re
from datetime import date, timedelta
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

_OFFSET_PATTERN = re.compile(r"^([+-])(\d+)([dwm])$")
_AGO_PATTERN = re.compile(r"^(\d+)\s+(day|week|month)s?\s+ago$")
_IN_PATTERN = re.compile(r"^in\s+(\d+)\s+(day|week|month)s?$")

_UNITS = {"d": "days", "w": "weeks", "m": "months", "day": "days", "week": "weeks", "month": "months"}


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports:
    - Absolute dates: "2024-01-15", "January 15, 2024", etc.
    - Named days: "today", "yesterday", "tomorrow"
    - Offsets from today: "+30d", "-2w", "+1m", "3 days ago", "in 2 weeks"
    - Month boundaries: "start of month", "end of month", "end of next month"

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip().lower()
    today = date.today()

    named = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
        "start of month": today.replace(day=1),
        "end of month": today + relativedelta(day=31),
        "end of next month": today + relativedelta(months=1, day=31),
    }
    if text in named:
        return named[text]

    match = _OFFSET_PATTERN.match(text)
    if match:
        sign = 1 if match.group(1) == "+" else -1
        return today + relativedelta(**{_UNITS[match.group(3)]: sign * int(match.group(2))})

    match = _AGO_PATTERN.match(text)
    if match:
        return today - relativedelta(**{_UNITS[match.group(2)]: int(match.group(1))})

    match = _IN_PATTERN.match(text)
    if match:
        return today + relativedelta(**{_UNITS[match.group(2)]: int(match.group(1))})

    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")
