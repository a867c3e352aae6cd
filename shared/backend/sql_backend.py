"""
shared/backend/sql_backend.py
AdminBackend implemented over the async SQLAlchemy models.

Each method runs in its own transactional session and returns plain dicts with
related rows embedded under the keys the normalizers read (`user`, `partner`,
`plan.batch.course`, `court.turf`, ...). Any SQLAlchemyError is logged and
re-raised as BackendError naming the operation.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.database import AsyncSessionLocal, session_scope
from shared.backend.protocol import AccountType, AdminBackend, Audience, BackendError, Row
from shared.models.models import (
    Batch,
    BatchPlan,
    Course,
    Customer,
    CustomerSupportRequest,
    Enrollment,
    Partner,
    PartnerSupportRequest,
    Payment,
    Turf,
    TurfBooking,
    TurfCourt,
    Tutor,
)

logger = logging.getLogger(__name__)


def row_to_dict(obj: Any, only: Optional[Iterable[str]] = None) -> Row:
    """Column attributes of an ORM instance. `only` restricts to the named columns."""
    if obj is None:
        return {}
    keys = [attr.key for attr in obj.__mapper__.column_attrs]
    if only is not None:
        wanted = set(only)
        keys = [key for key in keys if key in wanted]
    return {key: getattr(obj, key) for key in keys}


def _ids(rows: Iterable[Row], key: str = "id") -> List[str]:
    seen = []
    for row in rows:
        value = row.get(key)
        if value and value not in seen:
            seen.append(value)
    return seen


def _by_id(rows: Iterable[Row]) -> Dict[str, Row]:
    return {row["id"]: row for row in rows if row.get("id")}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SqlAlchemyBackend:
    """
    Persistence collaborator for the admin panel.

        backend = SqlAlchemyBackend(AsyncSessionLocal)
        detail = await backend.get_partner_detail("academy-slug")
    """

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with session_scope(self.session_factory) as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Backend operation %s failed: %s", operation, exc, exc_info=True)
            raise BackendError(operation, exc.__class__.__name__) from exc

    async def _all(self, session: AsyncSession, stmt, only: Optional[Iterable[str]] = None) -> List[Row]:
        result = await session.scalars(stmt)
        return [row_to_dict(obj, only) for obj in result]

    # ── Listings ─────────────────────────────────────────────

    async def list_partners(self, limit: int, offset: int = 0) -> Dict[str, Any]:
        async with self._session("list_partners") as session:
            live = Partner.deleted_at.is_(None)
            total = await session.scalar(select(func.count()).select_from(Partner).where(live))
            partners = await self._all(
                session,
                select(Partner).where(live).order_by(Partner.created_at.desc()).offset(offset).limit(limit),
            )
        return {"partners": partners, "total": total or 0}

    async def list_customers(self, limit: int, offset: int = 0) -> Dict[str, Any]:
        async with self._session("list_customers") as session:
            live = Customer.deleted_at.is_(None)
            total = await session.scalar(select(func.count()).select_from(Customer).where(live))
            customers = await self._all(
                session,
                select(Customer).where(live).order_by(Customer.created_at.desc()).offset(offset).limit(limit),
            )
            user_ids = _ids(customers)
            enrollment_counts: Dict[str, int] = {}
            booking_counts: Dict[str, int] = {}
            if user_ids:
                result = await session.execute(
                    select(Enrollment.user_id, func.count())
                    .where(Enrollment.user_id.in_(user_ids))
                    .group_by(Enrollment.user_id)
                )
                enrollment_counts = dict(result.all())
                result = await session.execute(
                    select(TurfBooking.user_id, func.count())
                    .where(TurfBooking.user_id.in_(user_ids))
                    .group_by(TurfBooking.user_id)
                )
                booking_counts = dict(result.all())

        # Same embedded-aggregate shape as a nested count select: [{"count": n}]
        for customer in customers:
            customer["enrollments"] = [{"count": enrollment_counts.get(customer["id"], 0)}]
            customer["turf_bookings"] = [{"count": booking_counts.get(customer["id"], 0)}]
        return {"customers": customers, "total": total or 0}

    async def get_partner_detail(self, identifier: str) -> Optional[Row]:
        async with self._session("get_partner_detail") as session:
            partner = None
            for column in (Partner.id, Partner.public_id, Partner.slug):
                partner = await session.scalar(select(Partner).where(column == identifier).limit(1))
                if partner is not None:
                    break
            if partner is None:
                return None

            detail = row_to_dict(partner)
            detail["tutors"] = await self._all(session, select(Tutor).where(Tutor.partner_id == partner.id))
            detail["courses"] = await self._all(
                session, select(Course).where(Course.partner_id == partner.id).order_by(Course.created_at)
            )
            detail["turfs"] = await self._all(
                session, select(Turf).where(Turf.partner_id == partner.id).order_by(Turf.created_at)
            )

            # Each level needs the ids resolved by the previous one.
            batches, plans, enrollments, courts, bookings = [], [], [], [], []
            course_ids = _ids(detail["courses"])
            if course_ids:
                batches = await self._all(session, select(Batch).where(Batch.course_id.in_(course_ids)))
            batch_ids = _ids(batches)
            if batch_ids:
                plans = await self._all(session, select(BatchPlan).where(BatchPlan.batch_id.in_(batch_ids)))
            plan_ids = _ids(plans)
            if plan_ids:
                enrollments = await self._all(session, select(Enrollment).where(Enrollment.plan_id.in_(plan_ids)))
            turf_ids = _ids(detail["turfs"])
            if turf_ids:
                courts = await self._all(session, select(TurfCourt).where(TurfCourt.turf_id.in_(turf_ids)))
            court_ids = _ids(courts)
            if court_ids:
                bookings = await self._all(session, select(TurfBooking).where(TurfBooking.court_id.in_(court_ids)))

        detail.update(
            batches=batches,
            batch_plans=plans,
            enrollments=enrollments,
            turf_courts=courts,
            turf_bookings=bookings,
        )
        return detail

    async def list_course_orders(self) -> List[Row]:
        async with self._session("list_course_orders") as session:
            orders = await self._all(session, select(Enrollment).order_by(Enrollment.created_at.desc()))
            if not orders:
                return []
            partners = _by_id(await self._all(
                session, select(Partner).where(Partner.id.in_(_ids(orders, "partner_id"))), only=("id", "name")
            ))
            users = _by_id(await self._all(session, select(Customer).where(Customer.id.in_(_ids(orders, "user_id")))))
            plans = _by_id(await self._all(session, select(BatchPlan).where(BatchPlan.id.in_(_ids(orders, "plan_id")))))
            batch_ids = _ids(plans.values(), "batch_id")
            batches = _by_id(await self._all(session, select(Batch).where(Batch.id.in_(batch_ids)))) if batch_ids else {}
            course_ids = _ids(batches.values(), "course_id")
            courses = _by_id(await self._all(session, select(Course).where(Course.id.in_(course_ids)))) if course_ids else {}

        for plan in plans.values():
            batch = batches.get(plan.get("batch_id"))
            if batch is not None:
                batch["course"] = courses.get(batch.get("course_id"))
            plan["batch"] = batch
        for order in orders:
            order["partner"] = partners.get(order.get("partner_id"))
            order["user"] = users.get(order.get("user_id"))
            order["plan"] = plans.get(order.get("plan_id"))
        return orders

    async def list_turf_orders(self) -> List[Row]:
        async with self._session("list_turf_orders") as session:
            orders = await self._all(session, select(TurfBooking).order_by(TurfBooking.created_at.desc()))
            if not orders:
                return []
            partners = _by_id(await self._all(
                session, select(Partner).where(Partner.id.in_(_ids(orders, "partner_id"))), only=("id", "name")
            ))
            users = _by_id(await self._all(
                session,
                select(Customer).where(Customer.id.in_(_ids(orders, "user_id"))),
                only=("id", "name", "email", "phone"),
            ))
            courts = _by_id(await self._all(
                session,
                select(TurfCourt).where(TurfCourt.id.in_(_ids(orders, "court_id"))),
                only=("id", "name", "turf_id"),
            ))
            turf_ids = _ids(courts.values(), "turf_id")
            turfs = _by_id(await self._all(session, select(Turf).where(Turf.id.in_(turf_ids)))) if turf_ids else {}

        for court in courts.values():
            court["turf"] = turfs.get(court.get("turf_id"))
        for order in orders:
            order["partner"] = partners.get(order.get("partner_id"))
            order["user"] = users.get(order.get("user_id"))
            order["court"] = courts.get(order.get("court_id"))
        return orders

    async def get_payments_by_ids(self, ids: Sequence[str]) -> List[Row]:
        unique_ids = []
        for payment_id in ids or []:
            if isinstance(payment_id, str) and payment_id.strip() and payment_id not in unique_ids:
                unique_ids.append(payment_id)
        if not unique_ids:
            return []
        async with self._session("get_payments_by_ids") as session:
            return await self._all(session, select(Payment).where(Payment.id.in_(unique_ids)))

    async def list_support_requests(self, audience: Audience, limit: int = 100) -> List[Row]:
        model, owner_model, owner_key, embed_as = _support_tables(audience)
        async with self._session(f"list_{audience}_support_requests") as session:
            requests = await self._all(session, select(model).order_by(model.created_at.desc()).limit(limit))
            owner_ids = _ids(requests, owner_key)
            owners = _by_id(await self._all(session, select(owner_model).where(owner_model.id.in_(owner_ids)))) if owner_ids else {}

        for request in requests:
            request[embed_as] = owners.get(request.get(owner_key))
        return requests

    async def get_customer_history(self, user_id: str) -> Optional[Row]:
        async with self._session("get_customer_history") as session:
            customer = await session.get(Customer, user_id)
            if customer is None:
                return None
            enrollments = await self._all(
                session, select(Enrollment).where(Enrollment.user_id == user_id).order_by(Enrollment.created_at.desc())
            )
            bookings = await self._all(
                session, select(TurfBooking).where(TurfBooking.user_id == user_id).order_by(TurfBooking.created_at.desc())
            )
            partner_ids = _ids(enrollments, "partner_id") + _ids(bookings, "partner_id")
            partners = _by_id(await self._all(
                session, select(Partner).where(Partner.id.in_(partner_ids)), only=("id", "name", "role", "city")
            )) if partner_ids else {}
            plan_ids = _ids(enrollments, "plan_id")
            plans = _by_id(await self._all(
                session, select(BatchPlan).where(BatchPlan.id.in_(plan_ids)), only=("id", "duration", "fees")
            )) if plan_ids else {}
            court_ids = _ids(bookings, "court_id")
            courts = _by_id(await self._all(
                session,
                select(TurfCourt).where(TurfCourt.id.in_(court_ids)),
                only=("id", "name", "sport", "rate_per_hour"),
            )) if court_ids else {}

        for enrollment in enrollments:
            enrollment["partner"] = partners.get(enrollment.get("partner_id"))
            enrollment["plan"] = plans.get(enrollment.get("plan_id"))
        for booking in bookings:
            partner = partners.get(booking.get("partner_id"))
            booking["partner"] = {key: partner.get(key) for key in ("id", "name", "city")} if partner else None
            booking["court"] = courts.get(booking.get("court_id"))
        return {"enrollments": enrollments, "bookings": bookings}

    # ── Mutations ────────────────────────────────────────────

    async def set_partner_verified(self, partner_id: str) -> Optional[Row]:
        async with self._session("set_partner_verified") as session:
            partner = await session.get(Partner, partner_id)
            if partner is None:
                return None
            partner.verified = True
            partner.updated_at = _now()
            await session.flush()
            return row_to_dict(partner)

    async def set_partner_disabled(self, partner_id: str, disabled: bool) -> Optional[Row]:
        async with self._session("set_partner_disabled") as session:
            partner = await session.get(Partner, partner_id)
            if partner is None:
                return None
            partner.disabled = disabled
            partner.updated_at = _now()
            await session.flush()
            return row_to_dict(partner)

    async def soft_delete_account(self, account_id: str, account_type: AccountType) -> Optional[Row]:
        model = Partner if account_type == "partner" else Customer
        async with self._session(f"soft_delete_{account_type}") as session:
            account = await session.get(model, account_id)
            if account is None:
                return None
            now = _now()
            account.deleted_at = now
            account.updated_at = now
            if account_type == "partner":
                account.status = "deleted"
            await session.flush()
            return row_to_dict(account)

    async def create_manual_enrollment(self, fields: Row) -> Row:
        async with self._session("create_manual_enrollment") as session:
            now = _now()
            enrollment = Enrollment(
                user_id=fields["user_id"],
                partner_id=fields["partner_id"],
                plan_id=fields.get("plan_id"),
                payment_status=fields.get("payment_status") or "unpaid",
                payment_method=fields.get("payment_method"),
                amount_paid=fields.get("amount_paid"),
                admin_notes=fields.get("admin_notes"),
                enrolled_by=fields.get("enrolled_by") or "admin",
                enrolled_at=now,
                status="active",
                created_at=now,
            )
            session.add(enrollment)
            await session.flush()
            user = await session.get(Customer, enrollment.user_id)
            partner = await session.get(Partner, enrollment.partner_id)
            created = row_to_dict(enrollment)
            created["user"] = row_to_dict(user, only=("id", "name", "email")) or None
            created["partner"] = row_to_dict(partner, only=("id", "name", "role")) or None
            return created

    async def resolve_support_request(self, request_id: str, audience: Audience) -> Optional[Row]:
        model = _support_tables(audience)[0]
        async with self._session(f"resolve_{audience}_support_request") as session:
            request = await session.get(model, request_id)
            if request is None:
                return None
            request.resolved = True
            request.updated_at = _now()
            await session.flush()
            return row_to_dict(request)

    async def save_support_solution(
        self, request_id: str, audience: Audience, solution: Optional[str]
    ) -> Optional[Row]:
        model = _support_tables(audience)[0]
        text = (solution or "").strip() or None
        async with self._session(f"save_{audience}_support_solution") as session:
            request = await session.get(model, request_id)
            if request is None:
                return None
            request.solution = text
            request.updated_at = _now()
            await session.flush()
            return row_to_dict(request)


def _support_tables(audience: Audience):
    """(request model, owner model, owner foreign key, embedded key) per audience."""
    if audience == "partner":
        return PartnerSupportRequest, Partner, "partner_id", "partner"
    return CustomerSupportRequest, Customer, "user_id", "customer"


# ── FastAPI dependency ────────────────────────────────────────

def get_backend() -> AdminBackend:
    """Backend for one request. Tests override this dependency with an in-memory fake."""
    return SqlAlchemyBackend(AsyncSessionLocal)
