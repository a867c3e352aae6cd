"""
shared/utils/aggregation.py
Roll-up of booking counts across the partner containment hierarchies:

    Course -> Batch -> Plan -> Enrollment      (academies, gyms)
    Turf   -> Court -> Booking                 (turfs)

Enrollments reference plans only, so the only direct count happens at the plan
level; every parent count is the sum of its children's counts. This module is
the single place that chain is walked. Aggregation is pure and recomputed from
scratch on every call.
"""

from typing import Any, Iterable, List, Mapping, Optional, Sequence

from shared.schemas.schemas import (
    BatchView,
    CourseView,
    CourtView,
    PartnerMetrics,
    PlanView,
    TurfView,
)
from shared.utils.parsing import to_bool, to_str


def _key(value: Any) -> str:
    return to_str(value).strip()


def _belongs_to_partner(child_partner_id: str, partner_id: Optional[str]) -> bool:
    """Children without a partner reference are assumed to be pre-scoped."""
    return not partner_id or not child_partner_id or child_partner_id == partner_id


def enrollment_plan_id(enrollment: Any) -> str:
    if isinstance(enrollment, Mapping):
        plan = enrollment.get("plan")
        plan_id = enrollment.get("plan_id")
        if plan_id is None and isinstance(plan, Mapping):
            plan_id = plan.get("id")
        return _key(plan_id)
    return _key(getattr(enrollment, "plan_id", None))


def booking_court_id(booking: Any) -> str:
    if not isinstance(booking, Mapping):
        return _key(getattr(booking, "court_id", None))
    court = booking.get("court")
    court_id = booking.get("court_id", booking.get("courtId"))
    if court_id is None and isinstance(court, Mapping):
        court_id = court.get("id")
    return _key(court_id)


def booking_counts(booking: Any) -> bool:
    """Declined bookings never count towards a court."""
    if isinstance(booking, Mapping):
        return not to_bool(booking.get("declined"))
    return booking is not None and not to_bool(getattr(booking, "declined", False))


# ── Courses ───────────────────────────────────────────────────

def aggregate_plan(plan: PlanView, enrollments: Sequence[Any]) -> PlanView:
    count = sum(1 for enrollment in enrollments if enrollment_plan_id(enrollment) == plan.id)
    return plan.model_copy(update={"booking_count": count})


def aggregate_batch(
    batch: BatchView,
    plans: Sequence[PlanView],
    enrollments: Sequence[Any],
) -> BatchView:
    batch_plans = [
        aggregate_plan(plan, enrollments)
        for plan in plans
        if plan.batch_id and plan.batch_id == batch.id
    ]
    return batch.model_copy(update={
        "plans": batch_plans,
        "plan_count": len(batch_plans),
        "booking_count": sum(plan.booking_count for plan in batch_plans),
    })


def aggregate_courses(
    partner_id: Optional[str],
    courses: Sequence[CourseView],
    batches: Sequence[BatchView],
    plans: Sequence[PlanView],
    enrollments: Sequence[Any],
) -> List[CourseView]:
    """
    Courses with their batches and plans attached and batch/plan/booking counts
    injected at every level.
    """
    partner_id = _key(partner_id)
    results = []
    for course in courses:
        if not _belongs_to_partner(course.partner_id, partner_id):
            continue
        course_batches = [
            aggregate_batch(batch, plans, enrollments)
            for batch in batches
            if batch.course_id and batch.course_id == course.id
        ]
        results.append(course.model_copy(update={
            "batches": course_batches,
            "batch_count": len(course_batches),
            "plan_count": sum(batch.plan_count for batch in course_batches),
            "booking_count": sum(batch.booking_count for batch in course_batches),
        }))
    return results


# ── Turfs ─────────────────────────────────────────────────────

def aggregate_court(court: CourtView, bookings: Sequence[Any]) -> CourtView:
    count = sum(
        1 for booking in bookings
        if booking_counts(booking) and booking_court_id(booking) == court.id
    )
    return court.model_copy(update={"booking_count": count})


def aggregate_turfs(
    partner_id: Optional[str],
    turfs: Sequence[TurfView],
    courts: Sequence[CourtView],
    bookings: Sequence[Any],
) -> List[TurfView]:
    partner_id = _key(partner_id)
    results = []
    for turf in turfs:
        if not _belongs_to_partner(turf.partner_id, partner_id):
            continue
        turf_courts = [
            aggregate_court(court, bookings)
            for court in courts
            if court.turf_id and court.turf_id == turf.id
        ]
        results.append(turf.model_copy(update={
            "courts": turf_courts,
            "court_count": len(turf_courts),
            "booking_count": sum(court.booking_count for court in turf_courts),
        }))
    return results


# ── Totals ────────────────────────────────────────────────────

def hierarchy_metrics(
    courses: Iterable[CourseView],
    turfs: Iterable[TurfView],
    **counts: int,
) -> PartnerMetrics:
    """Partner-level totals, summed from the already aggregated hierarchy."""
    courses = list(courses)
    turfs = list(turfs)
    return PartnerMetrics(
        courses=len(courses),
        turfs=len(turfs),
        course_batches=sum(course.batch_count for course in courses),
        course_plans=sum(course.plan_count for course in courses),
        course_bookings=sum(course.booking_count for course in courses),
        turf_courts=sum(turf.court_count for turf in turfs),
        turf_bookings=sum(turf.booking_count for turf in turfs),
        **counts,
    )
