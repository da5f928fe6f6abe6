# app/formatting.py
"""Phone and date normalization shared by every schema and display path.

Stored values are canonical: phones are digit strings and dates are real
``date`` objects. The ``(XXX) XXX-XXXX`` and ``MM/DD/YYYY`` masks only exist
at the edges and must be reconstructible from the stored value.

Only the ASCII digits 0-9 are accepted anywhere in this module.
"""
import re
from datetime import date, datetime, time
from typing import Optional, Union

_NON_DIGITS = re.compile(r"[^0-9]")
_DISPLAY_DATE = re.compile(r"^\s*([0-9]{1,2})/([0-9]{1,2})/([0-9]{4})\s*$")
_TIME_24H = re.compile(r"^\s*([0-9]{1,2}):([0-9]{2})(?::([0-9]{2}))?\s*$")
_TIME_12H = re.compile(r"^\s*([0-9]{1,2}):([0-9]{2})\s*([AaPp])\.?[Mm]\.?\s*$")

MIN_YEAR = 1900
MAX_YEAR = 2100
PHONE_DIGITS = 10


# ==================== PHONE NUMBERS ====================

def digits_only(value: Optional[str]) -> str:
    if not value:
        return ""
    return _NON_DIGITS.sub("", str(value))


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """Digits-only storage form; blank input becomes ``None``.

    Raises ``ValueError`` for more than ``PHONE_DIGITS`` digits, which the
    display mask could not show.
    """
    digits = digits_only(value)
    if len(digits) > PHONE_DIGITS:
        raise ValueError(f"Phone number must have at most {PHONE_DIGITS} digits")
    return digits or None


def format_phone(value: Optional[str]) -> str:
    """Display mask ``(XXX) XXX-XXXX``, truncated for partial input."""
    numbers = digits_only(value)
    if len(numbers) <= 3:
        return numbers
    if len(numbers) <= 6:
        return f"({numbers[:3]}) {numbers[3:]}"
    return f"({numbers[:3]}) {numbers[3:6]}-{numbers[6:10]}"


# ==================== DATES ====================

def parse_date(text: Optional[str]) -> Optional[date]:
    """Parse ``MM/DD/YYYY`` display text; ``None`` when it is not a real date."""
    if not text:
        return None
    match = _DISPLAY_DATE.match(str(text))
    if not match:
        return None
    month, day, year = (int(part) for part in match.groups())
    if month < 1 or month > 12:
        return None
    if day < 1 or day > 31:
        return None
    if year < MIN_YEAR or year > MAX_YEAR:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        # e.g. 02/30
        return None


def format_date(value: Union[date, datetime, str, None]) -> str:
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        value = coerce_date(value)
    if isinstance(value, datetime):
        value = value.date()
    return f"{value.month:02d}/{value.day:02d}/{value.year:04d}"


def to_iso(text: Optional[str]) -> Optional[str]:
    parsed = parse_date(text)
    return parsed.isoformat() if parsed else None


def coerce_date(value) -> Optional[date]:
    """Accept a date, datetime, ISO string or MM/DD/YYYY string.

    Raises ``ValueError`` for anything that is not an unambiguous calendar date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("Date must be a string in MM/DD/YYYY or ISO format")
    text = value.strip()
    if not text:
        return None
    if not text.isascii():
        raise ValueError("Invalid date. Please use MM/DD/YYYY")
    if "/" in text:
        parsed = parse_date(text)
        if parsed is None:
            raise ValueError("Invalid date. Please use MM/DD/YYYY")
        return parsed
    try:
        if "T" in text or " " in text:
            # JavaScript toISOString() ends with "Z"
            parsed_dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
            parsed = parsed_dt.date()
        else:
            parsed = date.fromisoformat(text)
    except ValueError:
        raise ValueError("Invalid date. Please use MM/DD/YYYY")
    if parsed.year < MIN_YEAR or parsed.year > MAX_YEAR:
        raise ValueError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}")
    return parsed


def coerce_datetime(value) -> Optional[datetime]:
    """Like ``coerce_date`` but keeps the time of day when one is supplied."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and ("T" in value or " " in value.strip()):
        if not value.isascii():
            raise ValueError("Invalid date-time value")
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValueError("Invalid date-time value")
    parsed = coerce_date(value)
    if parsed is None:
        return None
    return datetime(parsed.year, parsed.month, parsed.day)


def parse_time(value) -> Optional[time]:
    """Accept ``HH:MM``, ``HH:MM:SS`` or ``h:MM AM``."""
    if value is None:
        return None
    if isinstance(value, time):
        return value
    text = str(value).strip()
    if not text:
        return None
    match = _TIME_12H.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour < 1 or hour > 12 or minute > 59:
            raise ValueError("Invalid time")
        meridiem = match.group(3).lower()
        hour = hour % 12 + (12 if meridiem == "p" else 0)
        return time(hour, minute)
    match = _TIME_24H.match(text)
    if not match:
        raise ValueError("Invalid time. Please use HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    try:
        return time(hour, minute, second)
    except ValueError:
        raise ValueError("Invalid time. Please use HH:MM")


def format_time(value: Optional[time]) -> str:
    if value is None:
        return ""
    return value.strftime("%H:%M")


def mask_date_input(raw: Optional[str]) -> str:
    """Keystroke mask for date inputs: ``01152020`` -> ``01/15/2020``.

    Months above 12 are clamped to 12 and days above 31 to 31.
    """
    numbers = digits_only(raw)[:8]
    if len(numbers) <= 2:
        return numbers
    month = numbers[:2]
    if int(month) > 12:
        month = "12"
    if len(numbers) <= 4:
        return f"{month}/{numbers[2:]}"
    day = numbers[2:4]
    if int(day) > 31:
        day = "31"
    masked = f"{month}/{day}"
    year = numbers[4:8]
    if year:
        masked += f"/{year}"
    return masked
