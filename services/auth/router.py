"""
services/auth/router.py
Admin OTP login: send code → verify code → session JWT → logout.
Only addresses on ADMIN_LOGIN_EMAILS can request a code.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from config.redis_client import AuthStore, get_redis
from config.settings import settings
from shared.middleware.auth import AdminIdentity, require_admin
from shared.schemas.schemas import (
    MessageResponse,
    OtpSendRequest,
    OtpSendResponse,
    OtpVerifyRequest,
    TokenResponse,
)
from shared.utils.security import (
    create_session_token,
    generate_otp,
    get_token_remaining_ttl,
    otp_matches,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

OTP_SENDS_PER_WINDOW = 5
OTP_SEND_WINDOW_SECONDS = 600


# ── Helper ────────────────────────────────────────────────────

def _send_otp_email(email: str, otp: str) -> None:
    """Deliver the code through Resend. Blocking; run it in the threadpool."""
    import resend
    resend.api_key = settings.RESEND_API_KEY
    minutes = max(settings.OTP_TTL_SECONDS // 60, 1)
    resend.Emails.send({
        "from": f"{settings.ADMIN_OTP_SENDER} <{settings.EMAIL_FROM}>",
        "to": [email],
        "subject": f"{settings.APP_NAME} login code",
        "html": (
            f"<p>Your login code is <strong>{otp}</strong>.</p>"
            f"<p>It expires in {minutes} minute{'s' if minutes != 1 else ''}.</p>"
        ),
    })


# ── Endpoints ─────────────────────────────────────────────────

@router.post("/otp/send", response_model=OtpSendResponse, summary="Email a login code")
async def send_otp(data: OtpSendRequest, redis=Depends(get_redis)):
    email = data.email.lower()
    if email not in settings.admin_emails_list:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This address is not an admin")

    store = AuthStore(redis)
    if not await store.check_rate_limit(f"admin_otp_sends:{email}", OTP_SENDS_PER_WINDOW, OTP_SEND_WINDOW_SECONDS):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many codes requested. Please wait before trying again.",
        )

    otp = generate_otp()
    await store.save_otp(email, otp, settings.OTP_TTL_SECONDS)

    if settings.email_configured:
        try:
            await run_in_threadpool(_send_otp_email, email, otp)
        except Exception:
            logger.error("Failed to email login code to %s", email, exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Could not send the login code",
            )
        logger.info("Login code sent to %s", email)
    else:
        logger.warning("Email is not configured; login code for %s is %s", email, otp)

    return OtpSendResponse(expires_in=settings.OTP_TTL_SECONDS)


@router.post("/otp/verify", response_model=TokenResponse, summary="Exchange a login code for a session")
async def verify_otp(data: OtpVerifyRequest, redis=Depends(get_redis)):
    email = data.email.lower()
    expected = await AuthStore(redis).pop_otp(email)
    if not otp_matches(expected, data.otp):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired code",
        )

    token, _, expires_in = create_session_token(email)
    logger.info("Admin session started for %s", email)
    return TokenResponse(access_token=token, expires_in=expires_in)


@router.post("/logout", response_model=MessageResponse, summary="End the admin session")
async def logout(admin: AdminIdentity = Depends(require_admin), redis=Depends(get_redis)):
    """Deny-list the session's jti until the token would have expired anyway."""
    ttl = get_token_remaining_ttl(admin.payload)
    if ttl > 0:
        await AuthStore(redis).revoke_session(admin.jti, ttl)
    logger.info("Admin session ended for %s", admin.email)
    return MessageResponse(message="Logged out successfully")
