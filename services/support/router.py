"""
services/support/router.py
Support queues for partners and customers: listing, resolve, and solution notes.
"""

import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Query, status

from shared.backend.protocol import AdminBackend, BackendError
from shared.backend.sql_backend import get_backend
from shared.middleware.auth import AdminIdentity, require_admin
from shared.schemas.schemas import SupportQueues, SupportRequestView, SupportSolutionRequest, TablePage
from shared.utils.http import not_found, write_failed
from shared.utils.table import Column, DataTable, TableState, table_params
from shared.utils.table_session import TableSession

from services.support.views import (
    AUDIENCES,
    fetch_support_queues,
    is_audience,
    normalize_support_request,
    type_label,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/support", tags=["Support"])

support_tables = {
    audience: DataTable(
        columns=[
            Column("entity_name", label, hideable=False),
            Column("request", "Request"),
            Column("description", "Details", sortable=False),
            Column("resolved", "Resolved"),
            Column("created_at", "Raised", sort_type="datetime"),
            Column("updated_at", "Updated", sort_type="datetime"),
        ],
        empty_message=f"No {audience} support requests yet.",
        no_match_message=f"No {audience} support requests match your search.",
    )
    for audience, label in (("partner", "Partner"), ("customer", "Customer"))
}

# Operator view of each queue: loads apply in request order and moderation
# patches rows optimistically.
support_views = {audience: TableSession(table) for audience, table in support_tables.items()}


def _apply_queues(tokens: Dict[str, int], queues: SupportQueues) -> None:
    """A queue that failed to load leaves its view as it was."""
    loaded = {
        "partner": queues.partner_requests,
        "customer": queues.customer_requests,
    }
    for audience, rows in loaded.items():
        if f"{type_label(audience)} support requests could not be loaded." in queues.advisories:
            continue
        support_views[audience].apply(tokens[audience], rows)


def _check_audience(audience: str) -> str:
    if not is_audience(audience):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"audience must be one of {list(AUDIENCES)}",
        )
    return audience


@router.get("", response_model=TablePage)
async def list_support_requests(
    audience: str = Query("partner"),
    state: TableState = Depends(table_params),
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    audience = _check_audience(audience)
    tokens = {name: view.begin() for name, view in support_views.items()}
    queues = await fetch_support_queues(backend)
    _apply_queues(tokens, queues)
    rows = queues.partner_requests if audience == "partner" else queues.customer_requests
    page = support_tables[audience].render(rows, state)
    page.advisories = queues.advisories
    return page


@router.get("/queues", response_model=SupportQueues)
async def get_support_queues(
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    """Both queues, unpaged."""
    tokens = {name: view.begin() for name, view in support_views.items()}
    queues = await fetch_support_queues(backend)
    _apply_queues(tokens, queues)
    return queues


async def _moderate(audience: str, request_id: str, patch, write) -> SupportRequestView:
    view = support_views[audience]

    async def write_existing():
        updated = await write()
        if updated is None:
            raise LookupError(request_id)
        return updated

    try:
        updated = await view.mutate(request_id, patch, write_existing)
    except BackendError as exc:
        raise write_failed(exc)
    except LookupError:
        raise not_found("Support request")
    request = normalize_support_request(updated, audience)
    view.replace(request_id, request)
    return request


@router.post("/{audience}/{request_id}/resolve", response_model=SupportRequestView)
async def resolve_support_request(
    audience: str,
    request_id: str,
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    audience = _check_audience(audience)
    request = await _moderate(
        audience,
        request_id,
        lambda row: row.model_copy(update={"resolved": True}),
        lambda: backend.resolve_support_request(request_id, audience),
    )
    logger.info("%s support request %s resolved by %s", audience.capitalize(), request_id, admin.email)
    return request


@router.put("/{audience}/{request_id}/solution", response_model=SupportRequestView)
async def save_support_solution(
    audience: str,
    request_id: str,
    data: SupportSolutionRequest,
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    """Blank text clears the stored solution."""
    audience = _check_audience(audience)
    solution = data.solution.strip()
    request = await _moderate(
        audience,
        request_id,
        lambda row: row.model_copy(update={"solution": solution}),
        lambda: backend.save_support_solution(request_id, audience, solution or None),
    )
    logger.info("Solution saved on %s support request %s by %s", audience, request_id, admin.email)
    return request
