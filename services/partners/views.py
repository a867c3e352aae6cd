"""
services/partners/views.py
Partner normalization: the partner row itself, its coaches, and the two
containment hierarchies (courses/batches/plans for academies and gyms,
turfs/courts for turfs). Counts are never taken from upstream; they are
injected by shared.utils.aggregation once the flat collections are normalized.
"""

from typing import Any, List, Mapping, Optional

from config.settings import settings
from shared.backend.protocol import AdminBackend
from shared.schemas.schemas import (
    Address,
    BatchView,
    CoachView,
    CourseView,
    CourtView,
    GalleryItem,
    PartnerDetail,
    PartnerView,
    PlanView,
    RoleTerminology,
    TurfView,
)
from shared.utils.aggregation import aggregate_courses, aggregate_turfs, hierarchy_metrics
from shared.utils.formatting import format_date
from shared.utils.parsing import (
    as_list,
    as_mapping,
    extract_metadata,
    first_present,
    normalize_each,
    parse_gallery,
    parse_mapping,
    parse_string_list,
    to_bool,
    to_datetime,
    to_number,
    to_str,
    unwrap_count,
)
from shared.utils.search_index import SearchTokens

PARTNER_ROLES = ("academy", "gym", "turf")
DEFAULT_ROLE = "academy"

_TERMINOLOGY = {
    "academy": RoleTerminology(
        singular="Course", plural="Courses", search_placeholder="Search courses",
        user_singular="Student", user_plural="Students",
    ),
    "gym": RoleTerminology(
        singular="Program", plural="Programs", search_placeholder="Search programs",
        user_singular="Member", user_plural="Members",
    ),
    "turf": RoleTerminology(
        singular="Turf", plural="Turfs", search_placeholder="Search turfs",
        user_singular="Player", user_plural="Players",
    ),
}

# Known keys per level; anything else scalar ends up in `metadata`.
PLAN_FIELDS = frozenset({
    "students", "id", "plan_id", "batch_id", "course_id", "partner_id", "name", "title",
    "duration", "fees", "price", "amount", "sessions", "session_count", "frequency",
    "billing_cycle", "cycle", "description", "active", "currency", "start_date", "end_date",
    "valid_from", "valid_to", "created_at", "updated_at",
})
BATCH_FIELDS = frozenset({
    "batch_plans", "plans", "id", "name", "title", "schedule", "timing", "capacity",
    "description", "note", "days", "days_of_week", "active", "start_date", "end_date",
    "starts_at", "ends_at", "created_at", "updated_at", "course_id", "partner_id",
})
COURSE_FIELDS = frozenset({
    "batches", "id", "name", "title", "slug", "sport", "category", "level", "difficulty",
    "price", "fee", "fees", "currency", "description", "duration", "sessions", "active",
    "start_date", "end_date", "starts_at", "ends_at", "created_at", "updated_at", "partner_id",
})
COURT_FIELDS = frozenset({
    "id", "court_id", "uuid", "name", "sport", "surface", "type", "indoor", "is_indoor",
    "pricing", "rate", "rate_per_hour", "active", "turf_id", "partner_id", "created_at",
    "updated_at", "metadata",
})
TURF_FIELDS = frozenset({
    "courts", "address", "id", "name", "sport", "category", "city", "state", "addressText",
    "active", "created_at", "updated_at", "partner_id", "metadata",
})


# ── Small helpers ─────────────────────────────────────────────

def _records(value: Any) -> List[dict]:
    return [item for item in as_list(value) if isinstance(item, Mapping)]


def _optional_int(value: Any) -> Optional[int]:
    number = to_number(value)
    return int(number) if number is not None else None


def _optional_float(value: Any) -> Optional[float]:
    number = to_number(value)
    return float(number) if number is not None else None


def _text(value: Any) -> str:
    """Strings stay as they are; lists (e.g. days of week) are comma-joined."""
    if isinstance(value, (list, tuple)):
        return ", ".join(to_str(item).strip() for item in value if not (item is None or item == ""))
    return to_str(value)


def derive_partner_status(disabled: Any, verified: Any) -> str:
    """Disabled dominates verified."""
    if to_bool(disabled):
        return "suspended"
    if to_bool(verified):
        return "active"
    return "pending"


def resolve_role(raw: Mapping) -> str:
    role = to_str(first_present(raw, ("role", "type", "partner_type", "category"))).strip().lower()
    return role if role in PARTNER_ROLES else DEFAULT_ROLE


def role_terminology(role: Optional[str]) -> RoleTerminology:
    return _TERMINOLOGY.get((role or "").lower(), _TERMINOLOGY[DEFAULT_ROLE])


def parse_address(value: Any) -> Optional[Address]:
    address = parse_mapping(value)
    if address is None:
        return None
    return Address(
        street=to_str(address.get("street")),
        area=to_str(first_present(address, ("area", "locality"))),
        city=to_str(first_present(address, ("city", "town"))),
        state=to_str(address.get("state")),
        pincode=to_str(first_present(address, ("pincode", "pin", "zip"))),
        map_link=to_str(first_present(address, ("map_link", "mapLink"))),
    )


def format_address(address: Optional[Address]) -> str:
    if address is None:
        return ""
    parts = (address.street, address.area, address.city, address.state, address.pincode)
    return ", ".join(part.strip() for part in parts if part and part.strip())


# ── Partner ───────────────────────────────────────────────────

def partner_search_index(view: PartnerView) -> str:
    tokens = SearchTokens()
    tokens.add([
        view.id,
        view.slug,
        view.public_id,
        view.name,
        view.email,
        view.whatsapp,
        view.role,
        view.status,
        view.city,
        view.state,
        view.pin,
        view.address_text,
        view.sports,
        "verified" if view.verified else "unverified",
    ])
    tokens.add_date(view.created_at)
    return tokens.to_search_string()


def normalize_partner(raw: Any) -> PartnerView:
    if not isinstance(raw, Mapping):
        return PartnerView()

    address = parse_address(raw.get("address"))
    created_at = to_datetime(raw.get("created_at"))
    updated_at = to_datetime(raw.get("updated_at"))
    last_active = to_datetime(raw.get("last_active_at")) or updated_at or created_at
    gallery = [GalleryItem(**item) for item in parse_gallery(raw.get("gallery"))]
    partner_id = to_str(raw.get("id"))

    view = PartnerView(
        id=partner_id,
        slug=to_str(raw.get("slug")) or partner_id,
        public_id=to_str(raw.get("public_id")),
        name=to_str(raw.get("name")) or "Unnamed partner",
        email=to_str(raw.get("email")),
        whatsapp=to_str(raw.get("whatsapp")),
        whatsapp_verified=to_bool(raw.get("whatsapp_verified")),
        role=resolve_role(raw),
        status=derive_partner_status(raw.get("disabled"), raw.get("verified")),
        verified=to_bool(raw.get("verified")),
        disabled=to_bool(raw.get("disabled")),
        city=to_str(raw.get("city")) or (address.city if address else ""),
        state=to_str(raw.get("state")) or (address.state if address else ""),
        pin=to_str(raw.get("pin")) or (address.pincode if address else ""),
        street=to_str(raw.get("street")) or (address.street if address else ""),
        address=address,
        address_text=format_address(address),
        about=to_str(raw.get("about")),
        logo=to_str(first_present(raw, ("logo_image", "logo"))),
        sports=parse_string_list(raw.get("sports")),
        sports_raw=raw.get("sports") if raw.get("sports") is not None else "",
        gallery=gallery,
        joined_at_label=format_date(created_at),
        last_active_label=format_date(last_active),
        created_at=created_at,
        updated_at=updated_at,
        deleted_at=to_datetime(raw.get("deleted_at")),
    )
    view.search_index = partner_search_index(view)
    return view


# ── Coaches ───────────────────────────────────────────────────

def normalize_coach(raw: Any) -> CoachView:
    if not isinstance(raw, Mapping):
        return CoachView()
    return CoachView(
        id=to_str(first_present(raw, ("id", "uuid"))),
        name=to_str(first_present(raw, ("name", "full_name", "display_name"))) or "Unknown coach",
        sport=to_str(first_present(raw, ("sport", "specialization", "expertise"))),
        bio=to_str(first_present(raw, ("bio", "about"))),
        avatar=to_str(first_present(raw, ("profile_image", "avatar", "image"))),
        updated_at=to_datetime(raw.get("updated_at")),
    )


# ── Course hierarchy ──────────────────────────────────────────

def normalize_plan(raw: Any) -> PlanView:
    if not isinstance(raw, Mapping):
        return PlanView()
    price = _optional_float(first_present(raw, ("fees", "price", "amount")))
    return PlanView(
        id=to_str(raw.get("id")),
        batch_id=to_str(raw.get("batch_id")),
        course_id=to_str(raw.get("course_id")),
        name=to_str(first_present(raw, ("name", "title", "duration"))) or "Unnamed plan",
        duration=to_str(raw.get("duration")),
        fees=price,
        price=price,
        currency=to_str(raw.get("currency")) or None,
        sessions=_optional_int(first_present(raw, ("sessions", "session_count"))),
        frequency=to_str(first_present(raw, ("frequency", "billing_cycle", "cycle"))),
        description=to_str(raw.get("description")),
        start_date=to_datetime(first_present(raw, ("start_date", "valid_from"))),
        end_date=to_datetime(first_present(raw, ("end_date", "valid_to"))),
        active=to_bool(raw.get("active"), default=True),
        booking_count=unwrap_count(raw.get("students")),
        created_at=to_datetime(raw.get("created_at")),
        updated_at=to_datetime(raw.get("updated_at")),
        metadata=extract_metadata(raw, PLAN_FIELDS),
    )


def normalize_batch(raw: Any) -> BatchView:
    if not isinstance(raw, Mapping):
        return BatchView()
    plans = normalize_each(_records(first_present(raw, ("batch_plans", "plans"))), normalize_plan)
    return BatchView(
        id=to_str(raw.get("id")),
        course_id=to_str(raw.get("course_id")),
        name=to_str(first_present(raw, ("name", "title"))) or "Unnamed batch",
        schedule=to_str(first_present(raw, ("schedule", "timing"))),
        capacity=_optional_int(raw.get("capacity")),
        description=to_str(raw.get("description")),
        note=to_str(raw.get("note")),
        days=_text(first_present(raw, ("days", "days_of_week"))),
        active=to_bool(raw.get("active"), default=True),
        starts_at=to_datetime(first_present(raw, ("start_date", "starts_at"))),
        ends_at=to_datetime(first_present(raw, ("end_date", "ends_at"))),
        created_at=to_datetime(raw.get("created_at")),
        updated_at=to_datetime(raw.get("updated_at")),
        plan_count=len(plans),
        booking_count=sum(plan.booking_count for plan in plans),
        plans=plans,
        metadata=extract_metadata(raw, BATCH_FIELDS),
    )


def course_search_index(view: CourseView) -> str:
    tokens = SearchTokens()
    tokens.add([
        view.id,
        view.name,
        view.slug,
        view.sport,
        view.level,
        view.description,
        view.duration,
        view.batch_count,
        view.plan_count,
        view.booking_count,
        [batch.name for batch in view.batches],
        [batch.schedule for batch in view.batches],
        [plan.name for batch in view.batches for plan in batch.plans],
        "active" if view.active else "inactive",
    ])
    tokens.add_currency(view.price if view.price is not None else view.fees, view.currency or settings.DEFAULT_CURRENCY)
    tokens.add_date(view.start_date)
    tokens.add_date(view.created_at)
    return tokens.to_search_string()


def normalize_course(raw: Any) -> CourseView:
    if not isinstance(raw, Mapping):
        return CourseView()
    batches = normalize_each(_records(raw.get("batches")), normalize_batch)
    view = CourseView(
        id=to_str(raw.get("id")),
        partner_id=to_str(raw.get("partner_id")),
        name=to_str(first_present(raw, ("name", "title"))) or "Untitled",
        slug=to_str(raw.get("slug")),
        sport=to_str(first_present(raw, ("sport", "category"))),
        level=to_str(first_present(raw, ("level", "difficulty"))),
        description=to_str(raw.get("description")),
        price=_optional_float(first_present(raw, ("price", "fee"))),
        fees=_optional_float(raw.get("fees")),
        currency=to_str(raw.get("currency")) or None,
        duration=to_str(raw.get("duration")),
        sessions=_optional_int(raw.get("sessions")),
        active=to_bool(raw.get("active"), default=True),
        start_date=to_datetime(first_present(raw, ("start_date", "starts_at"))),
        end_date=to_datetime(first_present(raw, ("end_date", "ends_at"))),
        created_at=to_datetime(raw.get("created_at")),
        updated_at=to_datetime(raw.get("updated_at")),
        batch_count=len(batches),
        plan_count=sum(batch.plan_count for batch in batches),
        booking_count=sum(batch.booking_count for batch in batches),
        batches=batches,
        metadata=extract_metadata(raw, COURSE_FIELDS),
    )
    view.search_index = course_search_index(view)
    return view


# ── Turf hierarchy ────────────────────────────────────────────

def normalize_court(raw: Any) -> CourtView:
    if not isinstance(raw, Mapping):
        return CourtView()
    indoor = first_present(raw, ("indoor", "is_indoor"))
    return CourtView(
        id=to_str(first_present(raw, ("id", "court_id", "uuid"))),
        turf_id=to_str(raw.get("turf_id")),
        name=to_str(raw.get("name")) or "Unnamed court",
        sport=to_str(raw.get("sport")),
        surface=to_str(first_present(raw, ("surface", "type"))),
        indoor=None if indoor is None else to_bool(indoor),
        pricing=_optional_float(first_present(raw, ("pricing", "rate", "rate_per_hour"))),
        active=to_bool(raw.get("active"), default=True),
        created_at=to_datetime(raw.get("created_at")),
        updated_at=to_datetime(raw.get("updated_at")),
        metadata=extract_metadata(raw, COURT_FIELDS),
    )


def turf_search_index(view: TurfView) -> str:
    tokens = SearchTokens()
    tokens.add([
        view.id,
        view.name,
        view.sport,
        view.city,
        view.state,
        view.address_text,
        view.court_count,
        view.booking_count,
        [court.name for court in view.courts],
        [court.sport for court in view.courts],
        [court.surface for court in view.courts],
        "active" if view.active else "inactive",
    ])
    tokens.add_date(view.created_at)
    return tokens.to_search_string()


def normalize_turf(raw: Any) -> TurfView:
    if not isinstance(raw, Mapping):
        return TurfView()
    address = parse_address(raw.get("address"))
    view = TurfView(
        id=to_str(raw.get("id")),
        partner_id=to_str(raw.get("partner_id")),
        name=to_str(raw.get("name")) or "Unnamed turf",
        sport=to_str(first_present(raw, ("sport", "category"))),
        city=to_str(raw.get("city")) or (address.city if address else ""),
        state=to_str(raw.get("state")) or (address.state if address else ""),
        address_text=format_address(address),
        active=to_bool(raw.get("active"), default=True),
        courts=normalize_each(_records(raw.get("courts")), normalize_court),
        created_at=to_datetime(raw.get("created_at")),
        updated_at=to_datetime(raw.get("updated_at")),
        metadata=extract_metadata(raw, TURF_FIELDS),
    )
    view.search_index = turf_search_index(view)
    return view


# ── Detail ────────────────────────────────────────────────────

def _dedupe(items: List[Any]) -> List[Any]:
    """First occurrence per id wins; id-less items are kept."""
    seen = set()
    result = []
    for item in items:
        if item.id and item.id in seen:
            continue
        if item.id:
            seen.add(item.id)
        result.append(item)
    return result


def _flatten_courses(raw: Mapping, courses: List[CourseView]):
    """
    Batches and plans arrive both as flat collections and embedded under their
    parent. Merge both into flat lists keyed by parent id.
    """
    batches: List[BatchView] = normalize_each(_records(raw.get("batches")), normalize_batch)
    plans: List[PlanView] = normalize_each(_records(raw.get("batch_plans")), normalize_plan)
    for course in courses:
        for batch in course.batches:
            batches.append(batch if batch.course_id else batch.model_copy(update={"course_id": course.id}))
    for batch in list(batches):
        for plan in batch.plans:
            update = {} if plan.batch_id else {"batch_id": batch.id}
            if not plan.course_id:
                update["course_id"] = batch.course_id
            plans.append(plan.model_copy(update=update) if update else plan)
    return _dedupe(batches), _dedupe(plans)


def _flatten_turfs(raw: Mapping, turfs: List[TurfView]) -> List[CourtView]:
    courts: List[CourtView] = normalize_each(_records(raw.get("turf_courts")), normalize_court)
    for turf in turfs:
        for court in turf.courts:
            courts.append(court if court.turf_id else court.model_copy(update={"turf_id": turf.id}))
    return _dedupe(courts)


def normalize_partner_detail(raw: Any) -> Optional[PartnerDetail]:
    """
    Partner plus coaches and the aggregated course and turf hierarchies.
    Academies never list turfs.
    """
    if not isinstance(raw, Mapping):
        return None

    base = normalize_partner(raw)
    coaches = normalize_each(_records(raw.get("tutors")), normalize_coach)

    raw_courses = normalize_each(_records(raw.get("courses")), normalize_course)
    batches, plans = _flatten_courses(raw, raw_courses)
    courses = aggregate_courses(base.id, raw_courses, batches, plans, _records(raw.get("enrollments")))

    turfs: List[TurfView] = []
    if base.role != "academy":
        raw_turfs = normalize_each(_records(raw.get("turfs")), normalize_turf)
        courts = _flatten_turfs(raw, raw_turfs)
        bookings = _records(first_present(raw, ("turf_bookings", "turfBookings")))
        turfs = aggregate_turfs(base.id, raw_turfs, courts, bookings)

    # Counts changed during aggregation; rebuild the indexes from the final values.
    courses = [course.model_copy(update={"search_index": course_search_index(course)}) for course in courses]
    turfs = [turf.model_copy(update={"search_index": turf_search_index(turf)}) for turf in turfs]

    metrics = hierarchy_metrics(
        courses,
        turfs,
        coaches=len(coaches),
        gallery=len(base.gallery),
        sports=len(base.sports),
    )
    return PartnerDetail(
        **base.model_dump(),
        terminology=role_terminology(base.role),
        coaches=coaches,
        courses=courses,
        turfs=turfs,
        metrics=metrics,
    )


# ── Fetch ─────────────────────────────────────────────────────

async def fetch_partners(backend: AdminBackend, limit: Optional[int] = None, offset: int = 0) -> List[PartnerView]:
    result = await backend.list_partners(limit or settings.PARTNER_FETCH_LIMIT, offset)
    records = result if isinstance(result, list) else as_mapping(result).get("partners")
    return normalize_each(records, normalize_partner)


def clean_identifier(identifier: Any) -> str:
    """Route params can arrive as the literal strings "undefined"/"null"."""
    text = to_str(identifier).strip()
    return "" if text in ("undefined", "null") else text


async def fetch_partner_detail(backend: AdminBackend, identifier: Any) -> Optional[PartnerDetail]:
    identifier = clean_identifier(identifier)
    if not identifier:
        return None
    raw = await backend.get_partner_detail(identifier)
    if raw is None:
        return None
    return normalize_partner_detail(raw)
