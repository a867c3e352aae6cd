"""
services/customers/views.py
Customer normalization and fetch helpers.
"""

from typing import Any, List, Optional

from config.settings import settings
from shared.backend.protocol import AdminBackend
from shared.schemas.schemas import CustomerHistory, CustomerView
from shared.utils.formatting import format_date
from shared.utils.parsing import (
    as_list,
    as_mapping,
    normalize_each,
    parse_string_list,
    to_datetime,
    to_str,
    unwrap_count,
)
from shared.utils.search_index import SearchTokens


def resolve_initials(name: Any) -> str:
    """"Priya Nair" -> "PN"; single names give their first two letters."""
    if not isinstance(name, str):
        return ""
    parts = name.split()
    if not parts:
        return ""
    if len(parts) == 1:
        return parts[0][:2].upper()
    return f"{parts[0][0]}{parts[-1][0]}".upper()


def customer_search_index(view: CustomerView) -> str:
    tokens = SearchTokens()
    tokens.add([
        view.id,
        view.name,
        view.email,
        view.phone,
        view.gender,
        view.pincode,
        view.liked_sports,
        view.enrollments,
        view.turf_bookings,
    ])
    tokens.add_date(view.created_at)
    tokens.add_date(view.updated_at)
    return tokens.to_search_string()


def normalize_customer(raw: Any) -> CustomerView:
    if not isinstance(raw, dict):
        return CustomerView()

    created_at = to_datetime(raw.get("created_at"))
    updated_at = to_datetime(raw.get("updated_at")) or created_at
    pincode = raw.get("pincode")
    name = raw.get("name")

    view = CustomerView(
        id=to_str(raw.get("id")),
        name=to_str(name) or "Unknown customer",
        email=to_str(raw.get("email")),
        phone=to_str(raw.get("phone")),
        gender=to_str(raw.get("gender")),
        profile_image=to_str(raw.get("profile_image")),
        initials=resolve_initials(name),
        liked_sports=parse_string_list(raw.get("liked_sports")),
        liked_sports_raw=raw.get("liked_sports") if raw.get("liked_sports") is not None else "",
        pincode=to_str(pincode),
        enrollments=unwrap_count(raw.get("enrollments")),
        turf_bookings=unwrap_count(raw.get("turf_bookings")),
        joined_at_label=format_date(created_at),
        updated_at_label=format_date(updated_at),
        created_at=created_at,
        updated_at=updated_at,
        deleted_at=to_datetime(raw.get("deleted_at")),
    )
    view.search_index = customer_search_index(view)
    return view


async def fetch_customers(backend: AdminBackend, limit: Optional[int] = None, offset: int = 0) -> List[CustomerView]:
    result = await backend.list_customers(limit or settings.CUSTOMER_FETCH_LIMIT, offset)
    records = result if isinstance(result, list) else as_mapping(result).get("customers")
    return normalize_each(records, normalize_customer)


async def fetch_customer_history(backend: AdminBackend, user_id: str) -> Optional[CustomerHistory]:
    history = await backend.get_customer_history(user_id)
    if history is None:
        return None
    enrollments = [row for row in as_list(history.get("enrollments")) if isinstance(row, dict)]
    bookings = [row for row in as_list(history.get("bookings")) if isinstance(row, dict)]
    return CustomerHistory(
        customer_id=user_id,
        enrollments=enrollments,
        bookings=bookings,
        total_enrollments=len(enrollments),
        total_bookings=len(bookings),
    )
