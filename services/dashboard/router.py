"""
services/dashboard/router.py
Landing-page dashboard: headline metrics and per-day series.

Partners, customers, orders and support queues are fetched concurrently. Each
source is guarded on its own; a failing source contributes its empty default
and an advisory instead of failing the page.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends

from config.settings import settings
from shared.backend.protocol import AdminBackend, BackendError
from shared.backend.sql_backend import get_backend
from shared.middleware.auth import AdminIdentity, require_admin
from shared.schemas.schemas import DashboardMetrics, DashboardPayload, DayPoint, OrdersPayload, SupportQueues
from shared.utils.formatting import to_display

from services.customers.views import fetch_customers
from services.orders.views import fetch_orders
from services.partners.views import fetch_partners
from services.support.views import fetch_support_queues

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/dashboard", tags=["Dashboard"])

RECENT_WINDOW = timedelta(days=30)


def aggregate_by_day(
    items: Iterable[Any],
    date_of: Callable[[Any], Any] = lambda item: item.created_at,
    value_of: Optional[Callable[[Any], Any]] = None,
) -> List[DayPoint]:
    """
    Sum per calendar day (display timezone), sorted by date. Without `value_of`
    each item counts 1. Items without a parseable date are skipped.
    """
    totals: Dict[str, float] = {}
    for item in items:
        day = to_display(date_of(item))
        if day is None:
            continue
        key = day.date().isoformat()
        value = 1 if value_of is None else (value_of(item) or 0)
        totals[key] = totals.get(key, 0) + value
    return [DayPoint(date=key, value=round(totals[key], 2)) for key in sorted(totals)]


def _is_recent(value: Optional[datetime], since: datetime) -> bool:
    return value is not None and value > since


async def _guarded(label: str, load, default, advisories: List[str]):
    try:
        return await load()
    except BackendError:
        logger.warning("Dashboard: failed to fetch %s", label, exc_info=True)
        advisories.append(f"{label.capitalize()} could not be loaded.")
        return default


def build_dashboard(partners, customers, orders: OrdersPayload, support: SupportQueues,
                    advisories: List[str], now: Optional[datetime] = None) -> DashboardPayload:
    since = (now or datetime.now(timezone.utc)) - RECENT_WINDOW
    combined = orders.combined_orders
    total_orders = orders.totals.combined.count
    recent_orders = [order for order in combined if _is_recent(order.created_at, since)]
    open_requests = [
        request
        for request in support.partner_requests + support.customer_requests
        if not request.resolved
    ]

    metrics = DashboardMetrics(
        partners=len(partners),
        active_partners=sum(1 for partner in partners if partner.status == "active"),
        pending_partners=sum(1 for partner in partners if partner.status == "pending"),
        new_partners=sum(1 for partner in partners if _is_recent(partner.created_at, since)),
        customers=len(customers),
        new_customers=sum(1 for customer in customers if _is_recent(customer.created_at, since)),
        verified_customers=sum(1 for customer in customers if customer.email.strip()),
        orders=total_orders,
        recent_orders=len(recent_orders),
        order_growth=round(len(recent_orders) / total_orders * 100, 1) if total_orders else 0.0,
        revenue=orders.totals.combined.amount,
        recent_revenue=round(sum(order.amount for order in recent_orders), 2),
        open_support_requests=len(open_requests),
    )
    return DashboardPayload(
        metrics=metrics,
        orders_per_day=aggregate_by_day(combined),
        revenue_per_day=aggregate_by_day(combined, value_of=lambda order: order.amount),
        partners_per_day=aggregate_by_day(partners),
        customers_per_day=aggregate_by_day(customers),
        partner_support_per_day=aggregate_by_day(support.partner_requests),
        customer_support_per_day=aggregate_by_day(support.customer_requests),
        recent_partners=partners,
        recent_customers=customers,
        advisories=advisories + orders.advisories + support.advisories,
    )


@router.get("", response_model=DashboardPayload)
async def get_dashboard(
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    advisories: List[str] = []
    partners, customers, orders, support = await asyncio.gather(
        _guarded("partners", lambda: fetch_partners(backend, settings.DASHBOARD_PARTNER_LIMIT), [], advisories),
        _guarded("customers", lambda: fetch_customers(backend, settings.DASHBOARD_CUSTOMER_LIMIT), [], advisories),
        _guarded("orders", lambda: fetch_orders(backend), OrdersPayload(), advisories),
        _guarded("support requests", lambda: fetch_support_queues(backend), SupportQueues(), advisories),
    )
    return build_dashboard(partners, customers, orders, support, advisories)
