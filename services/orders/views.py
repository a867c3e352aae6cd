"""
services/orders/views.py
Orders are a unified view over two disjoint sources: course enrollments and
turf bookings. Both are normalized into OrderView, payments are joined in by
id with one batched lookup, and count/amount totals are computed per kind.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from config.settings import settings
from shared.backend.protocol import AdminBackend, BackendError
from shared.schemas.schemas import (
    OrderBooking,
    OrderCustomer,
    OrderPartner,
    OrderPlan,
    OrdersPayload,
    OrderTotals,
    OrderView,
    PaymentView,
    Totals,
)
from shared.utils.formatting import EMPTY_LABEL, format_date, format_datetime, format_time
from shared.utils.parsing import (
    as_list,
    as_mapping,
    first_present,
    normalize_each,
    to_amount,
    to_bool,
    to_datetime,
    to_str,
)
from shared.utils.search_index import SearchTokens

logger = logging.getLogger(__name__)

COURSE_TYPE_LABEL = "Course / Program"
TURF_TYPE_LABEL = "Turf Booking"

_COURSE_STATUS = {
    "completed": "Completed",
    "active": "Completed",
    "success": "Completed",
    "cancelled": "Cancelled",
    "canceled": "Cancelled",
    "failed": "Failed",
}


def derive_course_status(status: Any) -> str:
    text = to_str(status).strip()
    if not text:
        return "Pending"
    return _COURSE_STATUS.get(text.lower(), text[0].upper() + text[1:])


def derive_turf_status(order: Mapping) -> str:
    return "Declined" if to_bool(order.get("declined")) else "Accepted"


# ── Payments ──────────────────────────────────────────────────

def normalize_payment(raw: Any) -> Optional[PaymentView]:
    if not isinstance(raw, Mapping):
        return None
    created_at = to_datetime(raw.get("created_at"))
    return PaymentView(
        id=to_str(raw.get("id")),
        type=to_str(raw.get("type")),
        status=to_str(raw.get("status")) or "Unknown",
        amount=to_amount(raw.get("amount")),
        currency=to_str(raw.get("currency")) or settings.DEFAULT_CURRENCY,
        razorpay_order_id=to_str(raw.get("razorpay_order_id")),
        razorpay_payment_id=to_str(raw.get("razorpay_payment_id")),
        user_id=to_str(raw.get("user_id")),
        created_at=created_at,
        created_at_label=format_datetime(created_at),
    )


# ── Shared parts ──────────────────────────────────────────────

def _customer(raw: Mapping) -> OrderCustomer:
    user = as_mapping(raw.get("user"))
    return OrderCustomer(
        id=to_str(user.get("id")),
        name=to_str(user.get("name")) or "Unknown customer",
        email=to_str(user.get("email")),
        phone=to_str(user.get("phone")),
        gender=to_str(user.get("gender")),
    )


def _partner(raw: Mapping) -> OrderPartner:
    partner = as_mapping(raw.get("partner"))
    return OrderPartner(
        id=to_str(partner.get("id")),
        name=to_str(partner.get("name")) or "Unassigned partner",
    )


def order_search_index(order: OrderView, booking_date: Any = None) -> str:
    """
    `booking_date` is the turf booking's raw date; only its label survives on
    the view, and the label alone would not match other typed date formats.
    """
    tokens = SearchTokens()
    tokens.add([
        order.id,
        order.type,
        order.type_label,
        order.status,
        order.payment_id,
        order.customer,
        order.partner,
        order.plan,
        order.booking,
        order.customer_details,
    ])
    tokens.add_currency(order.amount, order.currency)
    tokens.add_date(order.created_at)

    booking = order.booking
    if booking is not None:
        tokens.add_date(booking_date)
        tokens.add_time(booking.start_time)
        tokens.add_time(booking.end_time)
        for day in {booking.date, to_str(booking_date).strip()}:
            for clock in (booking.start_time, booking.end_time):
                if day and day != EMPTY_LABEL and clock != EMPTY_LABEL:
                    tokens.add(f"{day} {clock}")

    payment = order.payment
    if payment is not None:
        tokens.add([payment.id, payment.status, payment.type, payment.razorpay_order_id,
                    payment.razorpay_payment_id, payment.user_id])
        tokens.add_currency(payment.amount, payment.currency)
        tokens.add_date(payment.created_at)
    return tokens.to_search_string()


# ── Course orders ─────────────────────────────────────────────

def normalize_course_order(raw: Any) -> OrderView:
    """Anything that is not a record degrades to a default course row."""
    if not isinstance(raw, Mapping):
        raw = {}
    plan = as_mapping(raw.get("plan"))
    batch = as_mapping(plan.get("batch"))
    course = as_mapping(batch.get("course") or plan.get("course"))
    amount = to_amount(first_present(plan, ("fees", "price"), 0))
    created_at = to_datetime(raw.get("created_at"))

    order = OrderView(
        id=to_str(raw.get("id")),
        type="course",
        type_label=COURSE_TYPE_LABEL,
        status=derive_course_status(raw.get("status")),
        status_raw=to_str(raw.get("status")).lower(),
        created_at=created_at,
        created_at_label=format_datetime(created_at),
        amount=amount,
        currency=to_str(plan.get("currency")) or settings.DEFAULT_CURRENCY,
        customer_details=raw.get("customer_details"),
        payment_id=to_str(raw.get("payment_id")) or None,
        payment=normalize_payment(raw.get("payment")),
        customer=_customer(raw),
        partner=_partner(raw),
        plan=OrderPlan(
            id=to_str(plan.get("id")),
            course_id=to_str(course.get("id")),
            batch_id=to_str(batch.get("id")),
            duration=to_str(plan.get("duration")),
            fees=amount,
            batch_name=to_str(batch.get("name")),
            course_name=to_str(first_present(course, ("name", "title"))),
            sport=to_str(first_present(course, ("sport", "category"))),
            schedule=to_str(first_present(batch, ("schedule", "timing"))),
        ),
    )
    order.search_index = order_search_index(order)
    return order


# ── Turf orders ───────────────────────────────────────────────

def normalize_turf_order(raw: Any) -> OrderView:
    if not isinstance(raw, Mapping):
        raw = {}
    court = as_mapping(raw.get("court"))
    turf = as_mapping(court.get("turf"))
    declined = to_bool(raw.get("declined"))
    created_at = to_datetime(raw.get("created_at"))
    start_time = format_time(raw.get("start_time"))
    end_time = format_time(raw.get("end_time"))

    order = OrderView(
        id=to_str(raw.get("id")),
        type="turf",
        type_label=TURF_TYPE_LABEL,
        status=derive_turf_status(raw),
        status_raw="declined" if declined else "accepted",
        created_at=created_at,
        created_at_label=format_datetime(created_at),
        amount=to_amount(raw.get("total_amount")),
        currency=settings.DEFAULT_CURRENCY,
        customer_details=raw.get("customer_details"),
        payment_id=to_str(raw.get("payment_id")) or None,
        payment=normalize_payment(raw.get("payment")),
        customer=_customer(raw),
        partner=_partner(raw),
        booking=OrderBooking(
            payment_id=to_str(raw.get("payment_id")),
            declined=declined,
            decline_reason=to_str(raw.get("decline_reason")),
            date=format_date(raw.get("date")),
            start_time=start_time,
            end_time=end_time,
            court_id=to_str(court.get("id")),
            court_name=to_str(first_present(court, ("name", "title"))),
            turf_id=to_str(turf.get("id")),
            turf_name=to_str(first_present(turf, ("name", "title"))),
            turf_sport=to_str(first_present(turf, ("sport", "category"))),
        ),
    )
    order.search_index = order_search_index(order, booking_date=raw.get("date"))
    return order


# ── Combination & totals ──────────────────────────────────────

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def combine_orders(course_orders: Sequence[OrderView], turf_orders: Sequence[OrderView]) -> List[OrderView]:
    """Both kinds in one list, newest first. Undated orders sink to the end."""
    combined = list(course_orders) + list(turf_orders)
    return sorted(combined, key=lambda order: order.created_at or _EPOCH, reverse=True)


def compute_totals(orders: Iterable[OrderView]) -> Totals:
    count = 0
    amount = 0.0
    for order in orders:
        count += 1
        amount += order.amount or 0.0
    return Totals(count=count, amount=round(amount, 2))


# ── Fetch ─────────────────────────────────────────────────────

def referenced_payment_ids(*sources: Iterable[Any]) -> List[str]:
    """Union of payment ids across all raw orders, first occurrence order, no blanks."""
    ids: Dict[str, None] = {}
    for source in sources:
        for row in source:
            payment_id = to_str(as_mapping(row).get("payment_id")).strip()
            if payment_id:
                ids[payment_id] = None
    return list(ids)


def attach_payments(rows: Iterable[Any], payments: Mapping[str, Mapping]) -> List[Any]:
    attached = []
    for row in rows:
        payment = payments.get(to_str(as_mapping(row).get("payment_id")).strip())
        attached.append({**row, "payment": payment} if payment is not None else row)
    return attached


async def _guarded(label: str, call, advisories: List[str]) -> List[Any]:
    try:
        return as_list(await call())
    except BackendError:
        logger.warning("Failed to fetch %s; continuing without them", label, exc_info=True)
        advisories.append(f"{label.capitalize()} could not be loaded.")
        return []


async def fetch_orders(backend: AdminBackend) -> OrdersPayload:
    """
    Course and turf orders fetched concurrently, each source guarded on its own.
    Payment hydration is one batched lookup over the deduplicated ids; if it
    fails the orders are still returned, without payments.
    """
    advisories: List[str] = []
    course_raw, turf_raw = await asyncio.gather(
        _guarded("course orders", backend.list_course_orders, advisories),
        _guarded("turf orders", backend.list_turf_orders, advisories),
    )

    payments: Dict[str, Mapping] = {}
    payment_ids = referenced_payment_ids(course_raw, turf_raw)
    if payment_ids:
        try:
            rows = await backend.get_payments_by_ids(payment_ids)
            payments = {to_str(row.get("id")): row for row in as_list(rows) if isinstance(row, Mapping)}
        except BackendError:
            logger.warning("Failed to hydrate payments for orders", exc_info=True)
            advisories.append("Payment details could not be loaded.")

    course_orders = normalize_each(attach_payments(course_raw, payments), normalize_course_order)
    turf_orders = normalize_each(attach_payments(turf_raw, payments), normalize_turf_order)
    combined = combine_orders(course_orders, turf_orders)

    return OrdersPayload(
        course_orders=course_orders,
        turf_orders=turf_orders,
        combined_orders=combined,
        totals=OrderTotals(
            course=compute_totals(course_orders),
            turf=compute_totals(turf_orders),
            combined=compute_totals(combined),
        ),
        advisories=advisories,
    )
