"""
tests/test_search_index.py
Tests for the search-token builder: scalars, numbers, dates, times, money, cycles.
"""

from shared.utils.search_index import (
    SEARCH_DELIMITER,
    SearchTokens,
    build_search_index,
    build_search_tokens,
    matches_search_index,
)


def test_strings_are_lowercased_with_compact_variant():
    tokens = build_search_tokens({"name": "  O'Brien  "})
    assert "o'brien" in tokens
    assert "obrien" in tokens


def test_numbers_emit_raw_fixed_and_digit_variants():
    tokens = build_search_tokens(1200)
    assert {"1200", "1200.00"} <= tokens

    tokens = build_search_tokens(12.5)
    assert {"12.5", "12.50", "125"} <= tokens


def test_falsy_values_contribute_nothing_but_zero_does():
    assert build_search_tokens([None, "", False, "—", "-"]) == set()
    assert "0" in build_search_tokens({"count": 0})


def test_true_is_indexed():
    assert "true" in build_search_tokens({"flag": True})


def test_nested_containers_are_flattened():
    tokens = build_search_tokens({"a": ["Tennis", {"b": ("Golf",)}]})
    assert {"tennis", "golf"} <= tokens


def test_self_referencing_structures_terminate():
    record = {"name": "Loop"}
    record["self"] = record
    items = ["x"]
    items.append(items)
    tokens = build_search_tokens([record, items])
    assert {"loop", "x"} <= tokens


def test_shared_references_are_visited_once():
    shared = {"sport": "Squash"}
    tokens = SearchTokens().add({"left": shared, "right": shared})
    assert tokens.as_set() == {"squash"}


def test_date_variants_match_typed_queries():
    index = SearchTokens().add_date("2024-03-05T14:30:00Z").to_search_string()
    for query in ("05 mar 2024", "5/3/2024", "2024-03-05", "2:30 pm", "05/03/2024", "3/5/2024",
                  "05 march 2024", "14:30", "2024-03-05t14:30:00.000z"):
        assert matches_search_index(index, query), query


def test_datetime_values_inside_records_are_expanded():
    from datetime import datetime, timezone

    index = build_search_index({"created_at": datetime(2024, 3, 5, 14, 30, tzinfo=timezone.utc)})
    assert matches_search_index(index, "05 Mar 2024")


def test_unparseable_date_strings_are_kept_as_text():
    tokens = SearchTokens().add_date("next tuesday")
    assert "next tuesday" in tokens


def test_time_adds_twelve_hour_forms():
    tokens = SearchTokens().add_time("18:05")
    assert {"18:05", "6:05 pm", "6:05pm"} <= tokens.as_set()

    tokens = SearchTokens().add_time("00:15")
    assert "12:15 am" in tokens


def test_currency_tokens():
    tokens = SearchTokens().add_currency(1200, "INR").as_set()
    assert {"1200", "1200.00", "inr 1200", "1200 inr", "₹1,200"} <= tokens


def test_currency_ignores_non_numbers():
    assert len(SearchTokens().add_currency("n/a")) == 0


def test_index_string_uses_delimiter_and_is_deduplicated():
    index = build_search_index("Tennis", "tennis", "Golf")
    assert index == SEARCH_DELIMITER.join(["tennis", "golf"])


def test_matching_is_case_insensitive_substring():
    index = build_search_index("Priya Nair")
    assert matches_search_index(index, "NAIR")
    assert matches_search_index(index, "  ")
    assert not matches_search_index(index, "rahul")
    assert not matches_search_index(None, "x")


def test_building_twice_gives_the_same_index():
    record = {"name": "Ace", "fees": 1500, "when": "2024-03-05T14:30:00Z"}
    assert build_search_index(record) == build_search_index(record)
