"""
tests/test_dashboard.py
Tests for the dashboard metrics, per-day series and partial-failure handling.
"""

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from services.customers.views import normalize_customer
from services.dashboard.router import aggregate_by_day, build_dashboard
from services.orders.views import fetch_orders
from services.partners.views import normalize_partner
from services.support.views import fetch_support_queues
from tests.conftest import (
    auth_headers,
    course_order_row,
    customer_row,
    partner_row,
    support_row,
    turf_order_row,
)


def test_aggregate_by_day_counts_and_sums():
    items = [
        {"at": "2024-03-05T10:00:00Z", "v": 100},
        {"at": "2024-03-05T23:59:00Z", "v": 50.5},
        {"at": "2024-03-01T08:00:00Z", "v": None},
        {"at": None, "v": 999},
        {"at": "garbage", "v": 1},
    ]
    counts = aggregate_by_day(items, date_of=lambda item: item["at"])
    assert [(p.date, p.value) for p in counts] == [("2024-03-01", 1), ("2024-03-05", 2)]

    sums = aggregate_by_day(items, date_of=lambda item: item["at"], value_of=lambda item: item["v"])
    assert [(p.date, p.value) for p in sums] == [("2024-03-01", 0), ("2024-03-05", 150.5)]


@pytest.mark.asyncio
async def test_build_dashboard_metrics(backend):
    now = datetime(2024, 3, 20, tzinfo=timezone.utc)
    partners = [
        normalize_partner(partner_row(id="p-1", verified=True, created_at="2024-03-10T00:00:00Z")),
        normalize_partner(partner_row(id="p-2", created_at="2023-12-01T00:00:00Z")),
        normalize_partner(partner_row(id="p-3", disabled=True, verified=True, created_at="2023-06-01T00:00:00Z")),
    ]
    customers = [
        normalize_customer(customer_row(id="u-1", created_at="2024-03-15T00:00:00Z")),
        normalize_customer(customer_row(id="u-2", email=None, created_at="2024-01-01T00:00:00Z")),
    ]
    backend.course_orders = [course_order_row(created_at="2024-03-18T00:00:00Z", payment_id=None)]
    backend.turf_orders = [turf_order_row(created_at="2024-01-05T00:00:00Z", payment_id=None)]
    backend.support["partner"] = [support_row(id="s-1"), support_row(id="s-2", resolved=True)]
    backend.support["customer"] = [support_row(id="s-3")]

    payload = build_dashboard(
        partners, customers, await fetch_orders(backend), await fetch_support_queues(backend), [], now=now,
    )
    metrics = payload.metrics
    assert (metrics.partners, metrics.active_partners, metrics.pending_partners) == (3, 1, 1)
    assert metrics.new_partners == 1
    assert (metrics.customers, metrics.new_customers) == (2, 1)
    assert metrics.verified_customers == 1
    assert (metrics.orders, metrics.recent_orders) == (2, 1)
    assert metrics.order_growth == 50.0
    assert metrics.revenue == 2000.5
    assert metrics.recent_revenue == 1200.0
    assert metrics.open_support_requests == 2

    assert [p.date for p in payload.orders_per_day] == ["2024-01-05", "2024-03-18"]
    assert [p.value for p in payload.revenue_per_day] == [800.5, 1200.0]
    assert payload.partner_support_per_day[0].value == 2


def test_build_dashboard_with_nothing():
    from shared.schemas.schemas import OrdersPayload, SupportQueues

    payload = build_dashboard([], [], OrdersPayload(), SupportQueues(), [])
    assert payload.metrics.orders == 0
    assert payload.metrics.order_growth == 0.0
    assert payload.orders_per_day == []


@pytest.mark.asyncio
async def test_dashboard_endpoint(client: AsyncClient, backend):
    backend.partners = [partner_row(id=f"p-{i}") for i in range(30)]
    backend.customers = [customer_row(id="u-1")]
    backend.course_orders = [course_order_row(payment_id=None)]

    response = await client.get("/admin/dashboard", headers=auth_headers())
    assert response.status_code == 200
    data = response.json()
    assert data["metrics"]["customers"] == 1
    assert data["metrics"]["orders"] == 1
    # Only the most recent partners are loaded for the dashboard
    assert len(data["recent_partners"]) == 20
    assert ("list_partners", 20, 0) in backend.calls
    assert data["advisories"] == []


@pytest.mark.asyncio
async def test_dashboard_survives_failing_sources(client: AsyncClient, backend):
    backend.customers = [customer_row(id="u-1")]
    backend.failing.update({"list_partners", "list_course_orders", "list_support_requests:partner"})

    response = await client.get("/admin/dashboard", headers=auth_headers())
    assert response.status_code == 200
    data = response.json()
    assert data["metrics"]["customers"] == 1
    assert data["metrics"]["partners"] == 0
    assert set(data["advisories"]) == {
        "Partners could not be loaded.",
        "Course orders could not be loaded.",
        "Partner support requests could not be loaded.",
    }


@pytest.mark.asyncio
async def test_dashboard_requires_admin(client: AsyncClient):
    response = await client.get("/admin/dashboard")
    assert response.status_code == 401
