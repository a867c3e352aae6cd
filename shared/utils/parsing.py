"""
shared/utils/parsing.py
Coercion helpers that turn loosely-typed backend values into definite Python values.

Every function here is total: malformed input resolves to a documented default
instead of raising.
"""

import json
import logging
import math
import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

YOUTUBE_ID_RE = re.compile(
    r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?)/|.*[?&]v=)|youtu\.be/)([^\"&?/\s]{11})"
)
YOUTUBE_EMBED_URL = "https://www.youtube.com/embed/{video_id}"

_LABEL_FORMATS = (
    "%d %b %Y, %H:%M",
    "%d %b %Y %H:%M",
    "%d %b %Y",
    "%d/%m/%Y",
    "%d-%m-%Y",
)


# ── Scalars ───────────────────────────────────────────────────

def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def to_str(value: Any, default: str = "") -> str:
    """None becomes the default; everything else is stringified."""
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


def to_number(value: Any) -> Optional[float]:
    """Parse ints, floats, Decimals and numeric strings. Non-finite values are rejected."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(Decimal(text))
        except InvalidOperation:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() and not isinstance(value, float) else number


def to_amount(value: Any) -> float:
    number = to_number(value)
    return float(number) if number is not None else 0.0


def to_int(value: Any, default: int = 0) -> int:
    number = to_number(value)
    return int(number) if number is not None else default


_FALSE_STRINGS = {"false", "0", "no", "off", "n", "f"}


def to_bool(value: Any, default: bool = False) -> bool:
    """Booleans from mixed inputs. String "false"/"0"/"no" read as False."""
    if value is None:
        return default
    if isinstance(value, str):
        text = value.strip().lower()
        if not text:
            return default
        return text not in _FALSE_STRINGS
    return bool(value)


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Parse timestamps into timezone-aware datetimes (naive values are read as UTC).
    Numbers are epoch milliseconds. Unparseable values return None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        parsed = None
        for fmt in _LABEL_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


# ── Alias Resolution ──────────────────────────────────────────

def first_present(source: Any, keys: Sequence[str], default: Any = None) -> Any:
    """First key whose value is not None, in the given order."""
    if not isinstance(source, Mapping):
        return default
    for key in keys:
        value = source.get(key)
        if value is not None:
            return value
    return default


def first_filled(source: Any, keys: Sequence[str], default: Any = None) -> Any:
    """First key whose value is non-empty (None, "", False, 0 are skipped)."""
    if not isinstance(source, Mapping):
        return default
    for key in keys:
        value = source.get(key)
        if value:
            return value
    return default


def as_mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def as_list(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


# ── Array-like Fields ─────────────────────────────────────────
# Upstream list fields arrive as a native list, a JSON array string, a
# bracket/brace-wrapped delimited string, or a bare scalar string. Each
# attempt returns a list on success or None on failure.

def _attempt_native(value: Any) -> Optional[list]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return None


def _attempt_json_array(value: Any) -> Optional[list]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not (text.startswith("[") and text.endswith("]")):
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, list) else None


def _strip_quotes(part: str) -> str:
    part = part.strip()
    for quote in ('"', "'"):
        if part.startswith(quote):
            part = part[1:]
        if part.endswith(quote):
            part = part[:-1]
    return part.strip()


def _attempt_delimited(value: Any) -> Optional[list]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return []
    text = re.sub(r"^[\[{]|[\]}]$", "", text)
    return [_strip_quotes(part) for part in re.split(r"[,|]", text)]


LIST_ATTEMPTS: Sequence[Callable[[Any], Optional[list]]] = (
    _attempt_native,
    _attempt_json_array,
    _attempt_delimited,
)


def parse_list_value(value: Any) -> list:
    """Raw list items from any supported encoding; [] when nothing matches."""
    if value is None:
        return []
    for attempt in LIST_ATTEMPTS:
        result = attempt(value)
        if result is not None:
            return result
    return []


def parse_string_list(value: Any) -> List[str]:
    """
    Canonical string list: trimmed, non-empty, first occurrence kept.

        parse_string_list(["tennis", "golf"])      -> ["tennis", "golf"]
        parse_string_list('["tennis","golf"]')     -> ["tennis", "golf"]
        parse_string_list("tennis, golf")          -> ["tennis", "golf"]
    """
    seen = set()
    result = []
    for item in parse_list_value(value):
        if item is None or isinstance(item, (dict, list)):
            continue
        text = to_str(item).strip()
        if text and text not in seen:
            seen.add(text)
            result.append(text)
    return result


def parse_mapping(value: Any) -> Optional[dict]:
    """Structured objects arrive either as dicts or as JSON object strings."""
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, str) and value.strip().startswith("{"):
        try:
            parsed = json.loads(value)
        except ValueError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


# ── Gallery ───────────────────────────────────────────────────

def youtube_embed_url(url: str) -> Optional[str]:
    match = YOUTUBE_ID_RE.search(url or "")
    if not match:
        return None
    return YOUTUBE_EMBED_URL.format(video_id=match.group(1))


def parse_gallery(value: Any) -> List[dict]:
    """
    Gallery entries as {id, type, title, src}.

    Video sources recognised as YouTube links are rewritten to the embed URL;
    any other video URL is kept as given. Entries without a source are dropped.
    """
    items = []
    for index, item in enumerate(parse_list_value(value)):
        if isinstance(item, str):
            src = item.strip()
            if src:
                items.append({"id": str(index), "type": "image", "title": "Gallery image", "src": src})
            continue
        if not isinstance(item, Mapping):
            logger.debug("Dropping gallery entry %s of type %s", index, type(item).__name__)
            continue

        src = to_str(first_filled(item, ("data", "src", "url"), "")).strip()
        if not src:
            continue
        kind = to_str(item.get("type")).strip().lower()
        if kind not in ("image", "video"):
            kind = "video" if youtube_embed_url(src) else "image"

        if kind == "video":
            items.append({
                "id": str(index),
                "type": "video",
                "title": to_str(item.get("name") or item.get("title")) or "Gallery video",
                "src": youtube_embed_url(src) or src,
            })
        else:
            items.append({
                "id": str(index),
                "type": "image",
                "title": to_str(item.get("name") or item.get("title")) or "Gallery image",
                "src": src,
            })
    return items


# ── Metadata & Aggregates ─────────────────────────────────────

def extract_metadata(source: Any, exclude: Iterable[str]) -> dict:
    """Scalar fields of `source` not named in `exclude`. Nested values are dropped."""
    if not isinstance(source, Mapping):
        return {}
    excluded = set(exclude)
    return {
        key: value
        for key, value in source.items()
        if key not in excluded
        and value is not None
        and not isinstance(value, (Mapping, list, tuple, set))
    }


def unwrap_count(source: Any) -> int:
    """
    Embedded aggregate counts arrive as [{"count": n}]. Sum every count present;
    absent, empty or malformed shapes are 0.
    """
    if isinstance(source, bool):
        return 0
    if isinstance(source, (int, float)):
        return to_int(source)
    if isinstance(source, Mapping):
        return to_int(source.get("count"))
    if not isinstance(source, (list, tuple)):
        return 0
    return sum(to_int(entry.get("count")) for entry in source if isinstance(entry, Mapping))


# ── Collections ───────────────────────────────────────────────

def normalize_each(records: Any, normalizer: Callable[[Any], T]) -> List[T]:
    """
    Apply a normalizer record by record. A record that still manages to break
    the normalizer degrades to the normalizer's default view; its siblings are
    unaffected.
    """
    results = []
    for index, record in enumerate(as_list(records)):
        try:
            results.append(normalizer(record))
        except Exception:
            logger.warning("Record %s could not be normalized; using defaults", index, exc_info=True)
            results.append(normalizer(None))
    return results
