"""
services/customers/router.py
Customer listing, booking history and soft deletion.
"""

import logging

from fastapi import APIRouter, Depends

from shared.backend.protocol import AdminBackend, BackendError
from shared.backend.sql_backend import get_backend
from shared.middleware.auth import AdminIdentity, require_admin
from shared.schemas.schemas import CustomerHistory, MessageResponse, TablePage
from shared.utils.http import not_found, read_failed, write_failed
from shared.utils.table import Column, DataTable, TableState, table_params

from services.customers.views import fetch_customer_history, fetch_customers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/customers", tags=["Customers"])

customers_table = DataTable(
    columns=[
        Column("name", "Customer", hideable=False),
        Column("email", "Email"),
        Column("phone", "Phone"),
        Column("gender", "Gender"),
        Column("liked_sports", "Liked sports", accessor=lambda row: ", ".join(row.liked_sports), sortable=False),
        Column("pincode", "Pincode"),
        Column("enrollments", "Enrollments", sort_type="numeric"),
        Column("turf_bookings", "Turf bookings", sort_type="numeric"),
        Column("created_at", "Joined", sort_type="datetime"),
    ],
    empty_message="No customers have signed up yet.",
    no_match_message="No customers match your search.",
)


@router.get("", response_model=TablePage)
async def list_customers(
    state: TableState = Depends(table_params),
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    """Active (not soft-deleted) customers as a filtered, sorted page."""
    try:
        customers = await fetch_customers(backend)
    except BackendError as exc:
        raise read_failed(exc)
    return customers_table.render(customers, state)


@router.get("/{customer_id}/history", response_model=CustomerHistory)
async def get_customer_history(
    customer_id: str,
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    try:
        history = await fetch_customer_history(backend, customer_id)
    except BackendError as exc:
        raise read_failed(exc)
    if history is None:
        raise not_found("Customer")
    return history


@router.post("/{customer_id}/delete", response_model=MessageResponse)
async def delete_customer(
    customer_id: str,
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    """Soft delete: the row is stamped with deleted_at and drops out of listings."""
    try:
        deleted = await backend.soft_delete_account(customer_id, "customer")
    except BackendError as exc:
        raise write_failed(exc)
    if deleted is None:
        raise not_found("Customer")
    logger.info("Customer %s soft-deleted by %s", customer_id, admin.email)
    return MessageResponse(message="Customer account deleted")
