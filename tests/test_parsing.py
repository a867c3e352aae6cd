"""
tests/test_parsing.py
Tests for the coercion helpers behind every normalizer.
"""

from datetime import date, datetime, timezone

import pytest

from shared.utils.parsing import (
    extract_metadata,
    first_filled,
    first_present,
    normalize_each,
    parse_gallery,
    parse_mapping,
    parse_string_list,
    to_bool,
    to_datetime,
    to_number,
    unwrap_count,
    youtube_embed_url,
)


@pytest.mark.parametrize("raw", [
    ["tennis", "golf"],
    '["tennis","golf"]',
    "tennis, golf",
    "{tennis,golf}",
    "['tennis', 'golf']",
    " tennis | golf ",
])
def test_string_list_encodings_are_equivalent(raw):
    assert parse_string_list(raw) == ["tennis", "golf"]


def test_string_list_trims_dedupes_and_keeps_case():
    assert parse_string_list([" Tennis ", "", None, "Tennis", "golf", {"x": 1}]) == ["Tennis", "golf"]


def test_string_list_single_scalar_and_empty():
    assert parse_string_list("cricket") == ["cricket"]
    assert parse_string_list("") == []
    assert parse_string_list(None) == []
    assert parse_string_list(42) == []


def test_broken_json_array_falls_back_to_splitting():
    assert parse_string_list('["tennis", "golf"') == ["tennis", "golf"]


def test_to_number():
    assert to_number("1,200") == 1200
    assert to_number("12.50") == 12.5
    assert to_number(3.0) == 3.0
    assert to_number(True) is None
    assert to_number("abc") is None
    assert to_number(float("inf")) is None


def test_to_bool_reads_false_strings():
    assert to_bool("false") is False
    assert to_bool("0") is False
    assert to_bool("yes") is True
    assert to_bool(None) is False
    assert to_bool(None, default=True) is True
    assert to_bool("", default=True) is True


def test_to_datetime_shapes():
    expected = datetime(2024, 3, 5, 14, 30, tzinfo=timezone.utc)
    assert to_datetime("2024-03-05T14:30:00Z") == expected
    assert to_datetime("2024-03-05 14:30:00") == expected
    assert to_datetime(expected.replace(tzinfo=None)) == expected
    assert to_datetime(1709649000000) == expected
    # Numbers are always milliseconds, even at seconds magnitude
    assert to_datetime(1709649000) == datetime(1970, 1, 20, 18, 54, 9, tzinfo=timezone.utc)
    assert to_datetime(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert to_datetime(date(2024, 3, 5)) == datetime(2024, 3, 5, tzinfo=timezone.utc)
    assert to_datetime("05 Mar 2024, 14:30") == expected
    assert to_datetime("not a date") is None
    assert to_datetime("") is None


def test_alias_resolution_order():
    record = {"entity_name": "", "partner_name": None, "name": "Ace"}
    assert first_present(record, ("partner_name", "entity_name", "name")) == ""
    assert first_filled(record, ("partner_name", "entity_name", "name")) == "Ace"
    assert first_filled("not a mapping", ("name",), "fallback") == "fallback"


def test_parse_mapping():
    assert parse_mapping({"city": "Pune"}) == {"city": "Pune"}
    assert parse_mapping('{"city": "Pune"}') == {"city": "Pune"}
    assert parse_mapping("{broken") is None
    assert parse_mapping("Pune") is None


def test_metadata_keeps_only_unlisted_scalars():
    raw = {"id": "x", "name": "Plan", "colour": "red", "tags": ["a"], "extra": {"k": 1}, "rank": 0, "gone": None}
    assert extract_metadata(raw, {"id", "name"}) == {"colour": "red", "rank": 0}
    assert extract_metadata(None, {"id"}) == {}


@pytest.mark.parametrize("raw, expected", [
    ([{"count": 3}], 3),
    ([{"count": 1}, {"count": 2}], 3),
    ([], 0),
    (None, 0),
    ({"count": "4"}, 4),
    ([{"total": 9}], 0),
    ("3", 0),
])
def test_unwrap_count(raw, expected):
    assert unwrap_count(raw) == expected


@pytest.mark.parametrize("url", [
    "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    "https://youtu.be/dQw4w9WgXcQ",
    "https://www.youtube.com/embed/dQw4w9WgXcQ",
    "https://youtube.com/v/dQw4w9WgXcQ",
])
def test_youtube_urls_become_embed_urls(url):
    assert youtube_embed_url(url) == "https://www.youtube.com/embed/dQw4w9WgXcQ"


def test_gallery_items_resolve_type_and_src():
    items = parse_gallery([
        "https://cdn.example/a.jpg",
        {"type": "video", "src": "https://youtu.be/dQw4w9WgXcQ", "name": "Intro"},
        {"type": "video", "url": "https://cdn.example/clip.mp4"},
        {"data": "https://www.youtube.com/watch?v=dQw4w9WgXcQ"},
        {"type": "image", "src": ""},
        42,
    ])
    assert [(item["type"], item["src"]) for item in items] == [
        ("image", "https://cdn.example/a.jpg"),
        ("video", "https://www.youtube.com/embed/dQw4w9WgXcQ"),
        ("video", "https://cdn.example/clip.mp4"),
        ("video", "https://www.youtube.com/embed/dQw4w9WgXcQ"),
    ]
    assert items[1]["title"] == "Intro"
    assert items[0]["title"] == "Gallery image"


def test_gallery_accepts_json_string():
    items = parse_gallery('[{"src": "https://cdn.example/a.jpg"}]')
    assert items == [{"id": "0", "type": "image", "title": "Gallery image", "src": "https://cdn.example/a.jpg"}]


def test_normalize_each_isolates_broken_records():
    def normalizer(record):
        if record is None:
            return "default"
        return record["name"].upper()

    assert normalize_each([{"name": "a"}, {"nope": 1}, {"name": "b"}], normalizer) == ["A", "default", "B"]
    assert normalize_each("not a list", normalizer) == []
