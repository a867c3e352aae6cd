"""
shared/utils/formatting.py
Display labels for dates, times, numbers and money.
Labels follow the panel's en-GB / en-IN conventions, e.g. "05 Mar 2024, 14:30" and "₹1,20,000".
"""

from datetime import datetime, time, timezone
from functools import lru_cache
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config.settings import settings
from shared.utils.parsing import to_datetime, to_number

MONTHS_SHORT = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
MONTHS_LONG = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
CURRENCY_SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€", "GBP": "£"}
EMPTY_LABEL = "-"


@lru_cache()
def display_timezone() -> ZoneInfo:
    try:
        return ZoneInfo(settings.DISPLAY_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def to_display(value: Any) -> Optional[datetime]:
    """Parse and shift into the display timezone."""
    parsed = to_datetime(value)
    return parsed.astimezone(display_timezone()) if parsed else None


def format_date(value: Any) -> str:
    local = to_display(value)
    if not local:
        return EMPTY_LABEL
    return f"{local.day:02d} {MONTHS_SHORT[local.month - 1]} {local.year}"


def format_datetime(value: Any) -> str:
    local = to_display(value)
    if not local:
        return EMPTY_LABEL
    return f"{format_date(local)}, {local.hour:02d}:{local.minute:02d}"


def format_time(value: Any) -> str:
    """HH:MM from "14:30:00" strings, time objects or datetimes."""
    if value is None or value == "":
        return EMPTY_LABEL
    if isinstance(value, str):
        return value.strip()[:5] or EMPTY_LABEL
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).strftime("%H:%M")
    if isinstance(value, time):
        return value.strftime("%H:%M")
    return str(value)


def iso_timestamp(value: datetime) -> str:
    """UTC ISO-8601 with millisecond precision, e.g. 2024-03-05T14:30:00.000Z."""
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def number_text(value: Any) -> str:
    """Shortest text for a number: 1200.0 -> "1200", 12.5 -> "12.5"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def group_indian(digits: str) -> str:
    """Indian digit grouping: 1234567 -> 12,34,567."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_number(value: Any) -> str:
    number = to_number(value)
    if number is None:
        return "0"
    sign = "-" if number < 0 else ""
    whole, _, fraction = f"{abs(number):.2f}".partition(".")
    text = group_indian(whole)
    if fraction.strip("0"):
        text = f"{text}.{fraction}"
    return sign + text


def format_currency(amount: Any, currency: Optional[str] = None) -> str:
    """₹1,200 / ₹1,200.50; unknown currencies are prefixed with their code."""
    number = to_number(amount)
    if number is None:
        return "—"
    code = (currency or settings.DEFAULT_CURRENCY).upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    text = format_number(abs(number))
    sign = "-" if number < 0 else ""
    return f"{sign}{symbol}{text}" if symbol else f"{sign}{code} {text}"
