"""
services/support/views.py
Support requests from partners and customers, normalized into one shape.

Upstream rows name the same things differently depending on which client
filed them. Each field is resolved from an explicit, ordered alias list; the
first non-empty value wins.
"""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from config.settings import settings
from shared.backend.protocol import AdminBackend, Audience, BackendError
from shared.schemas.schemas import SupportQueues, SupportRequestView
from shared.utils.formatting import format_datetime
from shared.utils.parsing import as_list, first_filled, first_present, normalize_each, to_bool, to_datetime, to_str
from shared.utils.search_index import SearchTokens

logger = logging.getLogger(__name__)

AUDIENCES: Tuple[Audience, ...] = ("partner", "customer")

ENTITY_KEYS: Dict[str, Tuple[str, ...]] = {
    "partner": ("partner", "partners", "entity"),
    "customer": ("customer", "user", "users", "entity"),
}
ENTITY_NAME_KEYS: Dict[str, Tuple[str, ...]] = {
    "partner": ("partner_name", "entity_name", "name"),
    "customer": ("customer_name", "entity_name", "name"),
}
ENTITY_ID_KEYS = ("partner_id", "customer_id", "user_id")
ENTITY_EMAIL_KEYS = ("entity_email", "email")
ENTITY_PHONE_KEYS = ("entity_phone", "phone")
REQUEST_KEYS = ("request", "subject", "title")
DESCRIPTION_KEYS = ("description", "details", "message")
SCREENSHOT_KEYS = ("screenshot", "screenshot_url", "screenshotLink")
SOLUTION_KEYS = ("solution", "resolution")


def is_audience(value: Any) -> bool:
    return value in AUDIENCES


def type_label(audience: str) -> str:
    return "Partner" if audience == "partner" else "Customer"


def pick_entity(record: Mapping, audience: str) -> Optional[Mapping]:
    """The embedded partner/customer object, if the row carries one."""
    entity = first_filled(record, ENTITY_KEYS.get(audience, ENTITY_KEYS["customer"]))
    return entity if isinstance(entity, Mapping) else None


def support_search_index(view: SupportRequestView) -> str:
    tokens = SearchTokens()
    tokens.add([
        view.id,
        view.audience,
        view.type_label,
        view.request,
        view.description,
        view.solution,
        view.screenshot,
        view.entity_name,
        view.entity_email,
        view.entity_phone,
        view.entity_public_id,
        "resolved" if view.resolved else "open",
    ])
    tokens.add_date(view.created_at)
    tokens.add_date(view.updated_at)
    return tokens.to_search_string()


def normalize_support_request(record: Any, audience: str = "customer") -> SupportRequestView:
    audience = audience if is_audience(audience) else "customer"
    if not isinstance(record, Mapping):
        return SupportRequestView(audience=audience, type_label=type_label(audience))

    entity = pick_entity(record, audience) or {}
    fallback_name = first_filled(record, ENTITY_NAME_KEYS[audience]) or f"Unknown {audience}"
    created_at = to_datetime(first_present(record, ("created_at", "createdAt")))
    updated_at = to_datetime(first_present(record, ("updated_at", "updatedAt")))

    view = SupportRequestView(
        id=to_str(record.get("id")),
        audience=audience,
        type_label=type_label(audience),
        entity_id=to_str(entity.get("id") or first_filled(record, ENTITY_ID_KEYS)),
        entity_public_id=to_str(first_filled(entity, ("public_id", "publicId"))),
        entity_name=to_str(entity.get("name") or fallback_name),
        entity_email=to_str(entity.get("email") or first_filled(record, ENTITY_EMAIL_KEYS)),
        entity_phone=to_str(entity.get("phone") or first_filled(record, ENTITY_PHONE_KEYS)),
        request=to_str(first_filled(record, REQUEST_KEYS)),
        description=to_str(first_filled(record, DESCRIPTION_KEYS)),
        screenshot=to_str(first_filled(record, SCREENSHOT_KEYS)),
        solution=to_str(first_filled(record, SOLUTION_KEYS)),
        resolved=to_bool(record.get("resolved")),
        created_at=created_at,
        created_at_label=format_datetime(created_at),
        updated_at=updated_at,
        updated_at_label=format_datetime(updated_at),
    )
    view.search_index = support_search_index(view)
    return view


async def _fetch_queue(backend: AdminBackend, audience: str, advisories: List[str]) -> List[SupportRequestView]:
    try:
        records = await backend.list_support_requests(audience, settings.SUPPORT_FETCH_LIMIT)
    except BackendError:
        logger.warning("Failed to fetch %s support requests", audience, exc_info=True)
        advisories.append(f"{type_label(audience)} support requests could not be loaded.")
        return []
    return normalize_each(as_list(records), lambda record: normalize_support_request(record, audience))


async def fetch_support_queues(backend: AdminBackend) -> SupportQueues:
    """Both queues concurrently; a failing queue degrades to empty with an advisory."""
    advisories: List[str] = []
    partner_requests, customer_requests = await asyncio.gather(
        _fetch_queue(backend, "partner", advisories),
        _fetch_queue(backend, "customer", advisories),
    )
    return SupportQueues(
        partner_requests=partner_requests,
        customer_requests=customer_requests,
        advisories=advisories,
    )
