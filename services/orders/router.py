"""
services/orders/router.py
Order tables (combined, course, turf) and order totals.
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query

from shared.backend.protocol import AdminBackend
from shared.backend.sql_backend import get_backend
from shared.middleware.auth import AdminIdentity, require_admin
from shared.schemas.schemas import OrdersSummary, TablePage
from shared.utils.table import Column, DataTable, TableState, table_params

from services.orders.views import fetch_orders

router = APIRouter(prefix="/admin/orders", tags=["Orders"])

_COMMON_COLUMNS = [
    Column("id", "Order", hideable=False),
    Column("customer", "Customer", accessor="customer.name"),
    Column("partner", "Partner", accessor="partner.name"),
    Column("status", "Status"),
    Column("amount", "Amount", sort_type="numeric"),
    Column("created_at", "Placed", sort_type="datetime"),
]

order_tables = {
    "combined": DataTable(
        columns=_COMMON_COLUMNS[:3] + [Column("type_label", "Type")] + _COMMON_COLUMNS[3:],
        empty_message="No orders have been placed yet.",
        no_match_message="No orders match your search.",
    ),
    "course": DataTable(
        columns=_COMMON_COLUMNS[:3] + [
            Column("course", "Course", accessor="plan.course_name"),
            Column("batch", "Batch", accessor="plan.batch_name"),
            Column("duration", "Plan", accessor="plan.duration"),
        ] + _COMMON_COLUMNS[3:],
        empty_message="No course enrollments yet.",
        no_match_message="No course orders match your search.",
    ),
    "turf": DataTable(
        columns=_COMMON_COLUMNS[:3] + [
            Column("turf", "Turf", accessor="booking.turf_name"),
            Column("court", "Court", accessor="booking.court_name"),
            Column("date", "Date", accessor="booking.date", sortable=False),
            Column("slot", "Slot", accessor=lambda o: f"{o.booking.start_time} - {o.booking.end_time}", sortable=False),
        ] + _COMMON_COLUMNS[3:],
        empty_message="No turf bookings yet.",
        no_match_message="No turf bookings match your search.",
    ),
}


@router.get("", response_model=TablePage)
async def list_orders(
    kind: Literal["combined", "course", "turf"] = Query("combined"),
    state: TableState = Depends(table_params),
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    """
    One of the three order tables. A source that failed to load renders as
    empty and is named in `advisories`.
    """
    payload = await fetch_orders(backend)
    rows = {
        "combined": payload.combined_orders,
        "course": payload.course_orders,
        "turf": payload.turf_orders,
    }[kind]
    page = order_tables[kind].render(rows, state)
    page.advisories = payload.advisories
    return page


@router.get("/summary", response_model=OrdersSummary)
async def orders_summary(
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    """Count and amount totals for course, turf and combined orders."""
    payload = await fetch_orders(backend)
    return OrdersSummary(totals=payload.totals, advisories=payload.advisories)
