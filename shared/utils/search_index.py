"""
shared/utils/search_index.py
Search-token builder for free-text table filtering.

A record is flattened into lowercase tokens once, at normalization time. Dates,
times and amounts are expanded into the textual forms an operator is likely to
type ("05 mar 2024", "5/3/2024", "2:30 pm", "₹1,200"), so that a plain
substring test against the joined index finds them whatever format was typed.

    tokens = SearchTokens()
    tokens.add({"name": "O'Brien", "fees": 1200})
    tokens.add_date("2024-03-05T14:30:00Z")
    row["__searchIndex"] = tokens.to_search_string()
"""

import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterator, Optional, Set

from pydantic import BaseModel

from shared.utils.formatting import (
    MONTHS_LONG,
    MONTHS_SHORT,
    format_currency,
    iso_timestamp,
    number_text,
    to_display,
)
from shared.utils.parsing import to_number

SEARCH_DELIMITER = " | "
PLACEHOLDER = "—"
_PLACEHOLDERS = (PLACEHOLDER, "-")

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NON_DIGIT = re.compile(r"[^0-9]")
_WHITESPACE = re.compile(r"\s+")
_TIME_24H = re.compile(r"^(\d{1,2}):(\d{2})$")


def _twelve_hour(hour: int) -> int:
    return (hour + 11) % 12 + 1


class SearchTokens:
    """Insertion-ordered, deduplicated set of lowercase search tokens."""

    def __init__(self):
        self._tokens: dict = {}

    # ── Container protocol ───────────────────────────────────
    def __contains__(self, token: str) -> bool:
        return token in self._tokens

    def __iter__(self) -> Iterator[str]:
        return iter(self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)

    def as_set(self) -> Set[str]:
        return set(self._tokens)

    def to_search_string(self) -> str:
        return SEARCH_DELIMITER.join(self._tokens)

    def _put(self, token: str) -> None:
        if token:
            self._tokens[token] = None

    # ── Values ───────────────────────────────────────────────
    def add(self, value: Any, _visited: Optional[Set[int]] = None) -> "SearchTokens":
        """
        Add every scalar reachable from `value`.

        Containers are walked recursively; each container object is visited at
        most once per call, so shared and self-referencing structures terminate.
        None, "", False and placeholder dashes contribute nothing; 0 does.
        """
        if value is None or value is False or (isinstance(value, str) and not value):
            return self
        visited = _visited if _visited is not None else set()

        if isinstance(value, (datetime, date)):
            self.add_date(value)
            return self

        if isinstance(value, (dict, list, tuple, set, frozenset, BaseModel)):
            if id(value) in visited:
                return self
            visited.add(id(value))
            if isinstance(value, dict):
                children = value.values()
            elif isinstance(value, BaseModel):
                children = [getattr(value, name) for name in type(value).model_fields]
            else:
                children = value
            for child in children:
                self.add(child, visited)
            return self

        if value is True:
            self._put("true")
            return self

        if isinstance(value, (int, float, Decimal)):
            self._add_number(value)
            return self

        text = str(value).strip()
        if not text or text in _PLACEHOLDERS:
            return self
        lower = text.lower()
        self._put(lower)
        compact = _NON_ALNUM.sub("", lower)
        if compact != lower:
            self._put(compact)
        return self

    def _add_number(self, value: Any) -> None:
        number = float(value) if isinstance(value, Decimal) else value
        if isinstance(number, float) and not math.isfinite(number):
            return
        raw = number_text(number)
        self._put(raw.lower())
        self._put(f"{number:.2f}")
        self._put(_NON_DIGIT.sub("", raw))

    # ── Times ────────────────────────────────────────────────
    def add_time(self, value: Any) -> "SearchTokens":
        """"14:30" also indexes "2:30 pm" and "2:30pm"."""
        if not value:
            return self
        text = str(value).strip()
        if not text or text in _PLACEHOLDERS:
            return self

        self.add(text)
        compact = _WHITESPACE.sub("", text)
        if compact != text:
            self.add(compact)

        match = _TIME_24H.match(text)
        if match:
            hour, minutes = int(match.group(1)), match.group(2)
            suffix = "pm" if hour >= 12 else "am"
            self.add(f"{_twelve_hour(hour)}:{minutes} {suffix}")
            self.add(f"{_twelve_hour(hour)}:{minutes}{suffix}")
        return self

    # ── Dates ────────────────────────────────────────────────
    def add_date(self, value: Any) -> "SearchTokens":
        """
        Index a timestamp under every day/month/year ordering, separator and
        clock style the panel accepts, plus the canonical ISO string.
        Unparseable strings are indexed as plain text.
        """
        if not value and value != 0:
            return self
        local = to_display(value)
        if local is None:
            if isinstance(value, str):
                self.add(value)
            return self

        day, month, year = local.day, local.month, local.year
        dd, mm = f"{day:02d}", f"{month:02d}"
        mon, month_name = MONTHS_SHORT[month - 1], MONTHS_LONG[month - 1]
        time24 = f"{local.hour:02d}:{local.minute:02d}"
        time12 = f"{_twelve_hour(local.hour)}:{local.minute:02d} {'pm' if local.hour >= 12 else 'am'}"

        variants = (
            f"{dd} {mon} {year}",
            f"{dd} {month_name} {year}",
            f"{day}-{month}-{year}",
            f"{dd}-{month}-{year}",
            f"{dd}-{mm}-{year}",
            f"{dd}/{mm}/{year}",
            f"{day}/{month}/{year}",
            f"{month}/{day}/{year}",
            f"{mm}/{dd}/{year}",
            f"{year}-{mm}-{dd}",
            f"{dd} {mon} {year} {time24}",
            f"{dd}-{mm}-{year} {time24}",
            f"{dd}/{mm}/{year} {time24}",
            f"{dd} {mon} {year}, {time24}",
            f"{dd} {mon} {year} {time12}",
            f"{day} {mon} {year}",
        )
        for variant in variants:
            self.add(variant)
        self.add(iso_timestamp(local))
        self.add_time(time24)
        self.add_time(time12)
        return self

    # ── Money ────────────────────────────────────────────────
    def add_currency(self, amount: Any, currency: Optional[str] = "INR") -> "SearchTokens":
        """1200 INR also indexes "1200.00", "inr 1200", "1200 inr" and "₹1,200"."""
        number = to_number(amount)
        if number is None:
            return self
        self.add(number)
        self.add(f"{number:.2f}")
        self.add(math.floor(number + 0.5))
        if currency:
            self.add(f"{currency} {number_text(number)}")
            self.add(f"{number_text(number)} {currency}")
        self.add(format_currency(number, currency))
        return self


# ── Functional API ────────────────────────────────────────────

def build_search_tokens(record: Any) -> Set[str]:
    """Token set for an arbitrary (possibly nested) value."""
    return SearchTokens().add(record).as_set()


def build_search_index(*values: Any) -> str:
    """Joined index string for storage on a view model."""
    tokens = SearchTokens()
    for value in values:
        tokens.add(value)
    return tokens.to_search_string()


def matches_search_index(index: Optional[str], query: Optional[str]) -> bool:
    """Case-insensitive substring test; an empty query matches everything."""
    needle = (query or "").strip().lower()
    if not needle:
        return True
    return needle in (index or "").lower()
