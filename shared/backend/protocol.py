"""
shared/backend/protocol.py
The query and mutation operations the admin panel needs from persistence.

Rows come back as plain, loosely-typed dicts shaped like the store's nested
selects; the view layer never assumes more than that.
"""

from typing import Any, Dict, List, Literal, Optional, Protocol, Sequence, runtime_checkable

Audience = Literal["partner", "customer"]
AccountType = Literal["partner", "customer"]
Row = Dict[str, Any]


class BackendError(Exception):
    """A persistence operation failed. `operation` names the call."""

    def __init__(self, operation: str, message: str = "backend operation failed"):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")


@runtime_checkable
class AdminBackend(Protocol):
    # ── Listings ─────────────────────────────────────────────
    async def list_partners(self, limit: int, offset: int = 0) -> Dict[str, Any]:
        """{"partners": [row], "total": int}"""
        ...

    async def list_customers(self, limit: int, offset: int = 0) -> Dict[str, Any]:
        """{"customers": [row], "total": int}. Soft-deleted customers are excluded."""
        ...

    async def get_partner_detail(self, identifier: str) -> Optional[Row]:
        """Looked up by id, then public_id, then slug. None when nothing matches."""
        ...

    async def list_course_orders(self) -> List[Row]:
        ...

    async def list_turf_orders(self) -> List[Row]:
        ...

    async def get_payments_by_ids(self, ids: Sequence[str]) -> List[Row]:
        ...

    async def list_support_requests(self, audience: Audience, limit: int = 100) -> List[Row]:
        ...

    async def get_customer_history(self, user_id: str) -> Optional[Row]:
        """{"enrollments": [row], "bookings": [row]}; None when the customer is unknown."""
        ...

    # ── Mutations ────────────────────────────────────────────
    async def set_partner_verified(self, partner_id: str) -> Optional[Row]:
        ...

    async def set_partner_disabled(self, partner_id: str, disabled: bool) -> Optional[Row]:
        ...

    async def soft_delete_account(self, account_id: str, account_type: AccountType) -> Optional[Row]:
        ...

    async def create_manual_enrollment(self, fields: Row) -> Row:
        ...

    async def resolve_support_request(self, request_id: str, audience: Audience) -> Optional[Row]:
        ...

    async def save_support_solution(
        self, request_id: str, audience: Audience, solution: Optional[str]
    ) -> Optional[Row]:
        ...
