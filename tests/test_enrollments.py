"""
tests/test_enrollments.py
Tests for manual enrollment.
"""

import pytest
from httpx import AsyncClient

from tests.conftest import auth_headers


@pytest.mark.asyncio
async def test_manual_enrollment_created(client: AsyncClient, backend):
    response = await client.post(
        "/admin/enrollments",
        json={
            "user_id": " u-1 ",
            "partner_id": "p-1",
            "plan_id": "pl-1",
            "payment_status": "paid",
            "payment_method": "cash",
            "amount_paid": 1500,
            "notes": "Paid at the front desk",
        },
        headers=auth_headers(),
    )
    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "User enrolled successfully"
    assert data["enrollment"]["user_id"] == "u-1"

    (call,) = [call for call in backend.calls if call[0] == "create_manual_enrollment"]
    fields = call[1]
    assert fields["admin_notes"] == "Paid at the front desk"
    assert fields["enrolled_by"] == "admin"
    assert fields["amount_paid"] == 1500


@pytest.mark.asyncio
async def test_defaults_for_optional_fields(client: AsyncClient, backend):
    response = await client.post(
        "/admin/enrollments",
        json={"user_id": "u-1", "partner_id": "p-1", "plan_id": ""},
        headers=auth_headers(),
    )
    assert response.status_code == 201
    fields = backend.enrollments[0]
    assert fields["plan_id"] is None
    assert fields["payment_status"] == "unpaid"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"user_id": "", "partner_id": "p-1"},
    {"user_id": "u-1", "partner_id": "   "},
    {},
])
async def test_ids_are_required(client: AsyncClient, backend, body):
    response = await client.post("/admin/enrollments", json=body, headers=auth_headers())
    assert response.status_code == 400
    assert response.json()["detail"] == "User ID and Partner ID are required"
    assert backend.enrollments == []


@pytest.mark.asyncio
async def test_negative_amount_is_rejected(client: AsyncClient):
    response = await client.post(
        "/admin/enrollments",
        json={"user_id": "u-1", "partner_id": "p-1", "amount_paid": -5},
        headers=auth_headers(),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_backend_failure(client: AsyncClient, backend):
    backend.failing.add("create_manual_enrollment")
    response = await client.post(
        "/admin/enrollments",
        json={"user_id": "u-1", "partner_id": "p-1"},
        headers=auth_headers(),
    )
    assert response.status_code == 500
