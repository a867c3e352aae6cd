"""
tests/test_aggregation.py
Tests for the course and turf roll-ups.
"""

from shared.schemas.schemas import BatchView, CourseView, CourtView, PlanView, TurfView
from shared.utils.aggregation import (
    aggregate_courses,
    aggregate_turfs,
    booking_court_id,
    enrollment_plan_id,
    hierarchy_metrics,
)


def _course_fixture():
    """2 courses x 2 batches x 2 plans, enrollments spread unevenly."""
    courses = [CourseView(id=f"c{c}", partner_id="p-1") for c in (1, 2)]
    batches = [BatchView(id=f"c{c}b{b}", course_id=f"c{c}") for c in (1, 2) for b in (1, 2)]
    plans = [
        PlanView(id=f"{batch.id}p{p}", batch_id=batch.id)
        for batch in batches
        for p in (1, 2)
    ]
    distribution = {
        "c1b1p1": 3, "c1b1p2": 1,
        "c1b2p1": 0, "c1b2p2": 2,
        "c2b1p1": 5, "c2b1p2": 0,
        "c2b2p1": 1, "c2b2p2": 4,
    }
    enrollments = [
        {"id": f"{plan_id}-e{n}", "plan_id": plan_id}
        for plan_id, count in distribution.items()
        for n in range(count)
    ]
    # Enrollments for plans this partner does not own are ignored
    enrollments.append({"id": "stray", "plan_id": "other-plan"})
    return courses, batches, plans, enrollments, distribution


def test_course_rollup_counts_at_every_level():
    courses, batches, plans, enrollments, distribution = _course_fixture()

    result = aggregate_courses("p-1", courses, batches, plans, enrollments)
    by_id = {course.id: course for course in result}

    assert by_id["c1"].booking_count == 6
    assert by_id["c2"].booking_count == 10
    assert by_id["c1"].batch_count == 2
    assert by_id["c1"].plan_count == 4

    for course in result:
        assert course.booking_count == sum(batch.booking_count for batch in course.batches)
        for batch in course.batches:
            plan_ids = {plan.id for plan in batch.plans}
            expected = sum(1 for e in enrollments if e["plan_id"] in plan_ids)
            assert batch.booking_count == expected
            assert batch.plan_count == 2
            for plan in batch.plans:
                assert plan.booking_count == distribution[plan.id]


def test_courses_of_other_partners_are_skipped():
    courses = [CourseView(id="c1", partner_id="p-1"), CourseView(id="c9", partner_id="p-9"), CourseView(id="c0")]
    result = aggregate_courses("p-1", courses, [], [], [])
    assert [course.id for course in result] == ["c1", "c0"]


def test_orphan_batches_and_plans_are_not_attached():
    courses = [CourseView(id="c1")]
    batches = [BatchView(id="b1", course_id="c1"), BatchView(id="b-orphan")]
    plans = [PlanView(id="x", batch_id="b1"), PlanView(id="y")]
    (course,) = aggregate_courses(None, courses, batches, plans, [{"plan_id": "y"}])
    assert [batch.id for batch in course.batches] == ["b1"]
    assert [plan.id for plan in course.batches[0].plans] == ["x"]
    assert course.booking_count == 0


def test_aggregation_does_not_mutate_inputs():
    courses, batches, plans, enrollments, _ = _course_fixture()
    aggregate_courses("p-1", courses, batches, plans, enrollments)
    assert all(course.booking_count == 0 and course.batches == [] for course in courses)
    assert all(plan.booking_count == 0 for plan in plans)


def test_declined_bookings_are_excluded_up_the_chain():
    turfs = [TurfView(id="t1", partner_id="p-1")]
    courts = [CourtView(id="ct1", turf_id="t1"), CourtView(id="ct2", turf_id="t1")]
    bookings = [
        {"id": "1", "court_id": "ct1", "declined": False},
        {"id": "2", "court_id": "ct1"},
        {"id": "3", "court_id": "ct1", "declined": True},
    ]
    (turf,) = aggregate_turfs("p-1", turfs, courts, bookings)

    court = next(c for c in turf.courts if c.id == "ct1")
    assert court.booking_count == 2
    assert turf.booking_count == 2
    assert turf.court_count == 2


def test_booking_court_reference_shapes():
    assert booking_court_id({"court_id": "a"}) == "a"
    assert booking_court_id({"courtId": "b"}) == "b"
    assert booking_court_id({"court": {"id": "c"}}) == "c"
    assert booking_court_id({}) == ""


def test_enrollment_plan_reference_shapes():
    assert enrollment_plan_id({"plan_id": "a"}) == "a"
    assert enrollment_plan_id({"plan": {"id": "b"}}) == "b"
    assert enrollment_plan_id(None) == ""


def test_hierarchy_metrics_sum_aggregated_values():
    courses, batches, plans, enrollments, _ = _course_fixture()
    aggregated = aggregate_courses("p-1", courses, batches, plans, enrollments)
    turfs = aggregate_turfs(
        "p-1",
        [TurfView(id="t1")],
        [CourtView(id="ct1", turf_id="t1")],
        [{"court_id": "ct1"}],
    )
    metrics = hierarchy_metrics(aggregated, turfs, coaches=3)
    assert metrics.courses == 2
    assert metrics.course_batches == 4
    assert metrics.course_plans == 8
    assert metrics.course_bookings == 16
    assert metrics.turfs == 1
    assert metrics.turf_courts == 1
    assert metrics.turf_bookings == 1
    assert metrics.coaches == 3
