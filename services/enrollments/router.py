"""
services/enrollments/router.py
Manual enrollment: an admin enrolls a customer with a partner directly,
e.g. for offline or cash payments.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from shared.backend.protocol import AdminBackend, BackendError
from shared.backend.sql_backend import get_backend
from shared.middleware.auth import AdminIdentity, require_admin
from shared.schemas.schemas import ManualEnrollmentRequest, ManualEnrollmentResponse
from shared.utils.http import write_failed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/enrollments", tags=["Enrollments"])


@router.post("", response_model=ManualEnrollmentResponse, status_code=status.HTTP_201_CREATED)
async def create_manual_enrollment(
    data: ManualEnrollmentRequest,
    admin: AdminIdentity = Depends(require_admin),
    backend: AdminBackend = Depends(get_backend),
):
    if not data.user_id or not data.partner_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User ID and Partner ID are required",
        )

    fields = {
        "user_id": data.user_id,
        "partner_id": data.partner_id,
        "plan_id": data.plan_id or None,
        "payment_status": data.payment_status or "unpaid",
        "payment_method": data.payment_method,
        "amount_paid": data.amount_paid,
        "admin_notes": data.notes,
        "enrolled_by": data.enrolled_by or "admin",
    }
    try:
        enrollment = await backend.create_manual_enrollment(fields)
    except BackendError as exc:
        raise write_failed(exc)

    logger.info(
        "Manual enrollment %s created for user %s with partner %s by %s",
        enrollment.get("id"), data.user_id, data.partner_id, admin.email,
    )
    return ManualEnrollmentResponse(enrollment=enrollment)
