"""
shared/utils/security.py
One-time codes and admin session JWTs.
"""

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from config.settings import settings


# ── OTP ───────────────────────────────────────────────────────

def generate_otp(length: Optional[int] = None) -> str:
    """Numeric code from the system CSPRNG. Leading zeros are kept."""
    length = length or settings.OTP_LENGTH
    return "".join(secrets.choice("0123456789") for _ in range(length))


def otp_matches(expected: Optional[str], supplied: str) -> bool:
    if not expected:
        return False
    return secrets.compare_digest(expected.encode(), supplied.strip().encode())


# ── JWT ───────────────────────────────────────────────────────

def create_session_token(email: str) -> tuple[str, str, int]:
    """
    Signed admin session token.
    Returns (token, jti, expires_in_seconds); jti is used for deny-listing on logout.
    """
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    lifetime = timedelta(hours=settings.ADMIN_SESSION_HOURS)

    payload = {
        "sub": email.lower(),
        "email": email.lower(),
        "role": "admin",
        "jti": jti,
        "iat": now,
        "exp": now + lifetime,
        "type": "admin_session",
    }
    token = jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token, jti, int(lifetime.total_seconds())


def verify_session_token(token: str) -> dict:
    """
    Decode and verify an admin session token.
    Raises JWTError on invalid/expired token.
    """
    payload = jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
    )
    if payload.get("type") != "admin_session":
        raise JWTError("Invalid token type")
    return payload


def get_token_remaining_ttl(payload: dict) -> int:
    """Returns seconds until token expiry. Used for the deny-list TTL."""
    exp = payload.get("exp", 0)
    remaining = exp - datetime.now(timezone.utc).timestamp()
    return max(0, int(remaining))
