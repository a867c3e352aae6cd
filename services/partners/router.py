"""
services/partners/router.py
Partner listing, drill-down detail and moderation (approve, disable, soft delete).

Course and turf tables on the detail page use expandable rows: an expanded
course shows its batches with their plans, an expanded turf its courts.
"""

import logging

from fastapi import APIRouter, Depends

from shared.backend.protocol import AdminBackend, BackendError
from shared.backend.sql_backend import get_backend
from shared.middleware.auth import AdminIdentity, require_admin
from shared.schemas.schemas import (
    MessageResponse,
    PartnerDetail,
    PartnerDisableRequest,
    PartnerView,
    TablePage,
)
from shared.utils.http import not_found, read_failed, write_failed
from shared.utils.table import Column, DataTable, TableState, table_params
from shared.utils.table_session import TableSession

from services.partners.views import (
    clean_identifier,
    derive_partner_status,
    fetch_partner_detail,
    fetch_partners,
    normalize_partner,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/partners", tags=["Partners"])


# ── Tables ────────────────────────────────────────────────────

partners_table = DataTable(
    columns=[
        Column("name", "Partner", hideable=False),
        Column("role", "Type"),
        Column("status", "Status"),
        Column("email", "Email"),
        Column("whatsapp", "WhatsApp"),
        Column("city", "City"),
        Column("sports", "Sports", accessor=lambda row: ", ".join(row.sports), sortable=False),
        Column("created_at", "Joined", sort_type="datetime"),
    ],
    empty_message="No partners have registered yet.",
    no_match_message="No partners match your search.",
)

# Operator view of the partner list: loads apply in request order and
# moderation patches its rows optimistically.
partners_view = TableSession(partners_table)

courses_table = DataTable(
    columns=[
        Column("name", "Course", hideable=False),
        Column("sport", "Sport"),
        Column("level", "Level"),
        Column("price", "Price", sort_type="numeric"),
        Column("batch_count", "Batches", sort_type="numeric"),
        Column("plan_count", "Plans", sort_type="numeric"),
        Column("booking_count", "Bookings", sort_type="numeric"),
        Column("active", "Active"),
    ],
    empty_message="This partner has not listed any courses.",
    no_match_message="No courses match your search.",
    can_expand=lambda course: bool(course.batches),
    render_sub_row=lambda course: course.batches,
)

turfs_table = DataTable(
    columns=[
        Column("name", "Turf", hideable=False),
        Column("sport", "Sport"),
        Column("city", "City"),
        Column("court_count", "Courts", sort_type="numeric"),
        Column("booking_count", "Bookings", sort_type="numeric"),
        Column("active", "Active"),
    ],
    empty_message="This partner has not listed any turfs.",
    no_match_message="No turfs match your search.",
    can_expand=lambda turf: bool(turf.courts),
    render_sub_row=lambda turf: turf.courts,
)


async def _load_detail(backend: AdminBackend, partner_id: str) -> PartnerDetail:
    try:
        detail = await fetch_partner_detail(backend, partner_id)
    except BackendError as exc:
        raise read_failed(exc)
    if detail is None:
        raise not_found("Partner")
    return detail


# ── Reads ─────────────────────────────────────────────────────

@router.get("", response_model=TablePage)
async def list_partners(
    state: TableState = Depends(table_params),
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    token = partners_view.begin()
    try:
        partners = await fetch_partners(backend)
    except BackendError as exc:
        raise read_failed(exc)
    partners_view.apply(token, partners)
    return partners_table.render(partners, state)


@router.get("/{partner_id}", response_model=PartnerDetail)
async def get_partner(
    partner_id: str,
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    """Lookup by id, public id or slug, with coaches and aggregated hierarchies."""
    return await _load_detail(backend, partner_id)


@router.get("/{partner_id}/courses", response_model=TablePage)
async def list_partner_courses(
    partner_id: str,
    state: TableState = Depends(table_params),
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    detail = await _load_detail(backend, partner_id)
    return courses_table.render(detail.courses, state)


@router.get("/{partner_id}/turfs", response_model=TablePage)
async def list_partner_turfs(
    partner_id: str,
    state: TableState = Depends(table_params),
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    detail = await _load_detail(backend, partner_id)
    return turfs_table.render(detail.turfs, state)


# ── Moderation ────────────────────────────────────────────────

async def _moderate(partner_id: str, patch, write) -> PartnerView:
    async def write_existing():
        updated = await write()
        if updated is None:
            raise LookupError(partner_id)
        return updated

    try:
        updated = await partners_view.mutate(partner_id, patch, write_existing)
    except BackendError as exc:
        raise write_failed(exc)
    except LookupError:
        raise not_found("Partner")
    view = normalize_partner(updated)
    partners_view.replace(partner_id, view)
    return view


@router.post("/{partner_id}/approve", response_model=PartnerView)
async def approve_partner(
    partner_id: str,
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    """Mark the partner verified. A disabled partner stays suspended."""
    partner_id = clean_identifier(partner_id)
    view = await _moderate(
        partner_id,
        lambda row: row.model_copy(update={"verified": True, "status": derive_partner_status(row.disabled, True)}),
        lambda: backend.set_partner_verified(partner_id),
    )
    logger.info("Partner %s approved by %s", partner_id, admin.email)
    return view


@router.post("/{partner_id}/disable", response_model=PartnerView)
async def set_partner_disabled(
    partner_id: str,
    data: PartnerDisableRequest,
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    partner_id = clean_identifier(partner_id)
    view = await _moderate(
        partner_id,
        lambda row: row.model_copy(
            update={"disabled": data.disabled, "status": derive_partner_status(data.disabled, row.verified)}
        ),
        lambda: backend.set_partner_disabled(partner_id, data.disabled),
    )
    logger.info(
        "Partner %s %s by %s", partner_id, "disabled" if data.disabled else "re-enabled", admin.email
    )
    return view


@router.post("/{partner_id}/delete", response_model=MessageResponse)
async def delete_partner(
    partner_id: str,
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    """Soft delete: status becomes "deleted" and deleted_at is stamped."""
    partner_id = clean_identifier(partner_id)
    try:
        deleted = await backend.soft_delete_account(partner_id, "partner")
    except BackendError as exc:
        raise write_failed(exc)
    if deleted is None:
        raise not_found("Partner")
    logger.info("Partner %s soft-deleted by %s", partner_id, admin.email)
    return MessageResponse(message="Partner account deleted")
