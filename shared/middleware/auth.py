"""
shared/middleware/auth.py
FastAPI dependencies for admin authentication.
The bearer token is validated here; revoked sessions are rejected via the Redis deny-list.
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from config.redis_client import AuthStore, get_redis
from config.settings import settings
from shared.utils.security import verify_session_token

security = HTTPBearer(auto_error=False)


class AdminIdentity:
    def __init__(self, payload: dict):
        self.email: str = payload["email"]
        self.jti: str = payload["jti"]
        self.payload = payload


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    redis=Depends(get_redis),
) -> AdminIdentity:
    """
    Extract and validate the admin session token from the Authorization header.
    The address must still be on the admin allow-list.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = verify_session_token(credentials.credentials)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if await AuthStore(redis).is_session_revoked(payload.get("jti", "")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
        )

    if payload.get("email", "").lower() not in settings.admin_emails_list:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return AdminIdentity(payload)
