"""
tests/test_orders.py
Tests for order normalization, payment hydration, totals and the order endpoints.
"""

import pytest
from httpx import AsyncClient

from services.orders.views import (
    combine_orders,
    compute_totals,
    derive_course_status,
    normalize_course_order,
    normalize_turf_order,
    referenced_payment_ids,
)
from shared.utils.parsing import normalize_each
from shared.utils.search_index import matches_search_index
from tests.conftest import auth_headers, course_order_row, turf_order_row


# ── Normalization ─────────────────────────────────────────────

def test_course_order_shape():
    order = normalize_course_order(course_order_row())
    assert order.type == "course"
    assert order.type_label == "Course / Program"
    assert order.status == "Completed"
    assert order.amount == 1200.0
    assert order.booking is None
    assert order.plan.course_name == "Tennis Basics"
    assert order.plan.batch_name == "Morning"
    assert order.customer.name == "Priya Nair"
    assert order.partner.name == "Ace Academy"


def test_turf_order_shape():
    order = normalize_turf_order(turf_order_row())
    assert order.type == "turf"
    assert order.status == "Accepted"
    assert order.amount == 800.5
    assert order.plan is None
    assert order.booking.start_time == "18:00"
    assert order.booking.end_time == "19:00"
    assert order.booking.date == "07 Mar 2024"
    assert order.booking.court_name == "Court A"
    assert order.booking.turf_name == "Green Arena"

    declined = normalize_turf_order(turf_order_row(declined=True, decline_reason="Rain"))
    assert declined.status == "Declined"
    assert declined.booking.decline_reason == "Rain"


def test_orders_with_nothing_embedded_still_normalize():
    course = normalize_course_order({"id": "e-9"})
    assert course.plan is not None and course.booking is None
    assert course.status == "Pending"
    assert course.customer.name == "Unknown customer"
    assert course.partner.name == "Unassigned partner"
    assert course.amount == 0.0

    turf = normalize_turf_order({"id": "tb-9"})
    assert turf.booking is not None and turf.plan is None
    assert turf.booking.start_time == "-"

    junk = normalize_course_order("junk")
    assert junk.type == "course" and junk.id == ""
    assert normalize_turf_order(None).type == "turf"


class CorruptRow(dict):
    """A record whose plan cannot be read."""

    def get(self, key, default=None):
        if key == "plan":
            raise RuntimeError("corrupt plan")
        return super().get(key, default)


def test_record_that_breaks_normalizer_becomes_default_row():
    orders = normalize_each([CorruptRow(course_order_row()), course_order_row(id="e-2")], normalize_course_order)
    assert [order.id for order in orders] == ["", "e-2"]
    assert orders[0].status == "Pending"


def test_turf_booking_searchable_by_any_date_format():
    order = normalize_turf_order(turf_order_row())
    for query in ("2024-03-07", "7/3/2024", "07/03/2024", "07 mar 2024 18:00", "2024-03-07 19:00", "6:00 pm"):
        assert matches_search_index(order.search_index, query), query


def test_orders_searchable_by_payment_amount_and_date():
    payment = {"id": "pay-9", "status": "captured", "amount": 1499, "currency": "INR",
               "created_at": "2024-02-09T10:00:00Z"}
    order = normalize_course_order(course_order_row(payment=payment))
    for query in ("1499", "₹1,499", "09 feb 2024", "09/02/2024"):
        assert matches_search_index(order.search_index, query), query


@pytest.mark.parametrize("raw, expected", [
    ("active", "Completed"),
    ("SUCCESS", "Completed"),
    ("canceled", "Cancelled"),
    ("failed", "Failed"),
    ("waitlisted", "Waitlisted"),
    ("", "Pending"),
    (None, "Pending"),
])
def test_course_status(raw, expected):
    assert derive_course_status(raw) == expected


def test_order_search_index_covers_money_and_times():
    course = normalize_course_order(course_order_row())
    for query in ("₹1,200", "1200", "tennis basics", "priya", "05 mar 2024", "e-1"):
        assert query in course.search_index

    turf = normalize_turf_order(turf_order_row())
    for query in ("6:00 pm", "7:00pm", "green arena", "800.50"):
        assert query in turf.search_index


def test_payment_ids_are_deduplicated_in_first_seen_order():
    course = [course_order_row(payment_id="pay-1"), course_order_row(id="e-2", payment_id=" ")]
    turf = [turf_order_row(payment_id="pay-2"), turf_order_row(id="tb-2", payment_id="pay-1")]
    assert referenced_payment_ids(course, turf) == ["pay-1", "pay-2"]


def test_combined_orders_are_newest_first_and_totals_add_up():
    course = [normalize_course_order(course_order_row(created_at="2024-03-01T00:00:00Z"))]
    turf = [
        normalize_turf_order(turf_order_row(id="tb-1", created_at="2024-03-03T00:00:00Z")),
        normalize_turf_order(turf_order_row(id="tb-2", created_at=None)),
    ]
    combined = combine_orders(course, turf)
    assert [order.id for order in combined] == ["tb-1", "e-1", "tb-2"]

    totals = compute_totals(combined)
    assert totals.count == 3
    assert totals.amount == 2801.0


# ── Endpoints ─────────────────────────────────────────────────

@pytest.fixture
def seeded(backend):
    backend.course_orders = [course_order_row()]
    backend.turf_orders = [turf_order_row(), turf_order_row(id="tb-2", payment_id="pay-1", declined=True)]
    backend.payments = [
        {"id": "pay-1", "status": "captured", "amount": 1200, "razorpay_payment_id": "pay_ABC"},
        {"id": "pay-2", "status": "captured", "amount": 800.5},
    ]
    return backend


@pytest.mark.asyncio
async def test_combined_orders_table(client: AsyncClient, seeded):
    response = await client.get("/admin/orders", headers=auth_headers())
    assert response.status_code == 200
    data = response.json()
    assert data["total_rows"] == 3
    assert data["advisories"] == []
    by_id = {row["id"]: row for row in data["rows"]}
    assert by_id["e-1"]["payment"]["razorpay_payment_id"] == "pay_ABC"
    assert by_id["tb-1"]["payment"]["id"] == "pay-2"

    # One batched payment lookup over the deduplicated ids
    lookups = [call for call in seeded.calls if call[0] == "get_payments_by_ids"]
    assert lookups == [("get_payments_by_ids", ("pay-1", "pay-2"))]


@pytest.mark.asyncio
async def test_orders_searchable_by_payment_reference(client: AsyncClient, seeded):
    response = await client.get("/admin/orders", params={"q": "pay_abc"}, headers=auth_headers())
    assert {row["id"] for row in response.json()["rows"]} == {"e-1", "tb-2"}


@pytest.mark.asyncio
async def test_kind_selects_table(client: AsyncClient, seeded):
    response = await client.get("/admin/orders", params={"kind": "turf", "q": "declined"}, headers=auth_headers())
    data = response.json()
    assert [row["id"] for row in data["rows"]] == ["tb-2"]

    response = await client.get("/admin/orders", params={"kind": "course"}, headers=auth_headers())
    assert [row["type"] for row in response.json()["rows"]] == ["course"]

    response = await client.get("/admin/orders", params={"kind": "bogus"}, headers=auth_headers())
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_failed_source_degrades_with_advisory(client: AsyncClient, seeded):
    seeded.failing.add("list_turf_orders")
    response = await client.get("/admin/orders", headers=auth_headers())
    assert response.status_code == 200
    data = response.json()
    assert [row["id"] for row in data["rows"]] == ["e-1"]
    assert data["advisories"] == ["Turf orders could not be loaded."]


@pytest.mark.asyncio
async def test_failed_payment_hydration_keeps_orders(client: AsyncClient, seeded):
    seeded.failing.add("get_payments_by_ids")
    response = await client.get("/admin/orders", headers=auth_headers())
    data = response.json()
    assert data["total_rows"] == 3
    assert all(row["payment"] is None for row in data["rows"])
    assert data["advisories"] == ["Payment details could not be loaded."]


@pytest.mark.asyncio
async def test_orders_summary(client: AsyncClient, seeded):
    response = await client.get("/admin/orders/summary", headers=auth_headers())
    totals = response.json()["totals"]
    assert totals["course"] == {"count": 1, "amount": 1200.0}
    assert totals["turf"] == {"count": 2, "amount": 1601.0}
    assert totals["combined"] == {"count": 3, "amount": 2801.0}


@pytest.mark.asyncio
async def test_empty_orders_message(client: AsyncClient):
    response = await client.get("/admin/orders", headers=auth_headers())
    assert response.json()["empty_message"] == "No orders have been placed yet."
