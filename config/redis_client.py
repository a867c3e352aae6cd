"""
config/redis_client.py
Async Redis client for admin OTP codes and the session deny-list.
"""

from typing import Optional
import redis.asyncio as aioredis

from config.settings import settings


# ── Global client (initialized on startup) ───────────────────
redis_client: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    """Initialize the Redis connection pool."""
    global redis_client
    redis_client = aioredis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    await redis_client.ping()


async def close_redis() -> None:
    """Close Redis connection pool."""
    global redis_client
    if redis_client:
        await redis_client.aclose()


def get_redis() -> aioredis.Redis:
    """FastAPI dependency to get Redis client."""
    if not redis_client:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return redis_client


class AuthStore:
    """Redis-backed storage for pending OTP codes and revoked session ids."""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    # ── OTP ──────────────────────────────────────────────────
    async def save_otp(self, email: str, otp: str, ttl: int = settings.OTP_TTL_SECONDS) -> None:
        """Replaces any pending code for this address."""
        await self.client.setex(f"admin_otp:{email}", ttl, otp)

    async def pop_otp(self, email: str) -> Optional[str]:
        """
        Read and delete the pending code in one transaction. A code can only
        be used once, even by concurrent verify requests.
        """
        pipe = self.client.pipeline(transaction=True)
        pipe.get(f"admin_otp:{email}")
        pipe.delete(f"admin_otp:{email}")
        otp, _ = await pipe.execute()
        return otp

    # ── Session Deny List ────────────────────────────────────
    async def revoke_session(self, jti: str, ttl_seconds: int) -> None:
        await self.client.setex(f"admin_session_revoked:{jti}", max(ttl_seconds, 1), "1")

    async def is_session_revoked(self, jti: str) -> bool:
        return await self.client.exists(f"admin_session_revoked:{jti}") == 1

    # ── Rate Limiting ────────────────────────────────────────
    async def check_rate_limit(self, key: str, limit: int, window_seconds: int = 60) -> bool:
        """
        Fixed window rate limiter.
        Returns True if request is allowed, False if rate limited.
        """
        pipe = self.client.pipeline()
        pipe.incr(key)
        pipe.expire(key, window_seconds)
        results = await pipe.execute()
        return results[0] <= limit
