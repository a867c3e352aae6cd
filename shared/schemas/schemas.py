"""
shared/schemas/schemas.py
All Pydantic v2 view models and request/response schemas for the admin panel.

View models are the UI-stable shapes produced by the normalizers. Every field
has a default so a view can always be rendered, whatever the backend sent.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class SearchableView(BaseSchema):
    """View models carrying a precomputed free-text index (serialized as `__searchIndex`)."""
    search_index: str = Field("", alias="__searchIndex")


class MessageResponse(BaseSchema):
    message: str
    success: bool = True


class Totals(BaseSchema):
    count: int = 0
    amount: float = 0.0


# ── Customers ─────────────────────────────────────────────────

class CustomerView(SearchableView):
    id: str = ""
    name: str = "Unknown customer"
    email: str = ""
    phone: str = ""
    gender: str = ""
    profile_image: str = ""
    initials: str = ""
    liked_sports: List[str] = []
    liked_sports_raw: Any = ""
    pincode: str = ""
    enrollments: int = 0
    turf_bookings: int = 0
    joined_at_label: str = "-"
    updated_at_label: str = "-"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class CustomerHistory(BaseSchema):
    customer_id: str
    enrollments: List[Dict[str, Any]] = []
    bookings: List[Dict[str, Any]] = []
    total_enrollments: int = 0
    total_bookings: int = 0


# ── Partners ──────────────────────────────────────────────────

PartnerRole = Literal["academy", "gym", "turf"]
PartnerStatus = Literal["active", "pending", "suspended"]


class Address(BaseSchema):
    street: str = ""
    area: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    map_link: str = ""


class GalleryItem(BaseSchema):
    id: str
    type: Literal["image", "video"]
    title: str
    src: str


class RoleTerminology(BaseSchema):
    singular: str
    plural: str
    search_placeholder: str
    user_singular: str
    user_plural: str


class PartnerView(SearchableView):
    id: str = ""
    slug: str = ""
    public_id: str = ""
    name: str = "Unnamed partner"
    email: str = ""
    whatsapp: str = ""
    whatsapp_verified: bool = False
    role: PartnerRole = "academy"
    status: PartnerStatus = "pending"
    verified: bool = False
    disabled: bool = False
    city: str = ""
    state: str = ""
    pin: str = ""
    street: str = ""
    address: Optional[Address] = None
    address_text: str = ""
    about: str = ""
    logo: str = ""
    sports: List[str] = []
    sports_raw: Any = ""
    gallery: List[GalleryItem] = []
    joined_at_label: str = "-"
    last_active_label: str = "-"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class CoachView(BaseSchema):
    id: str = ""
    name: str = "Unknown coach"
    sport: str = ""
    bio: str = ""
    avatar: str = ""
    updated_at: Optional[datetime] = None


class PlanView(BaseSchema):
    id: str = ""
    batch_id: str = ""
    course_id: str = ""
    name: str = "Unnamed plan"
    duration: str = ""
    fees: Optional[float] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    sessions: Optional[int] = None
    frequency: str = ""
    description: str = ""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    active: bool = True
    booking_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    metadata: Dict[str, Any] = {}


class BatchView(BaseSchema):
    id: str = ""
    course_id: str = ""
    name: str = "Unnamed batch"
    schedule: str = ""
    capacity: Optional[int] = None
    description: str = ""
    note: str = ""
    days: str = ""
    active: bool = True
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    plan_count: int = 0
    booking_count: int = 0
    plans: List[PlanView] = []
    metadata: Dict[str, Any] = {}


class CourseView(SearchableView):
    id: str = ""
    partner_id: str = ""
    name: str = "Untitled"
    slug: str = ""
    sport: str = ""
    level: str = ""
    description: str = ""
    price: Optional[float] = None
    fees: Optional[float] = None
    currency: Optional[str] = None
    duration: str = ""
    sessions: Optional[int] = None
    active: bool = True
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    batch_count: int = 0
    plan_count: int = 0
    booking_count: int = 0
    batches: List[BatchView] = []
    metadata: Dict[str, Any] = {}


class CourtView(BaseSchema):
    id: str = ""
    turf_id: str = ""
    name: str = "Unnamed court"
    sport: str = ""
    surface: str = ""
    indoor: Optional[bool] = None
    pricing: Optional[float] = None
    active: bool = True
    booking_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    metadata: Dict[str, Any] = {}


class TurfView(SearchableView):
    id: str = ""
    partner_id: str = ""
    name: str = "Unnamed turf"
    sport: str = ""
    city: str = ""
    state: str = ""
    address_text: str = ""
    active: bool = True
    court_count: int = 0
    booking_count: int = 0
    courts: List[CourtView] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    metadata: Dict[str, Any] = {}


class PartnerMetrics(BaseSchema):
    coaches: int = 0
    courses: int = 0
    turfs: int = 0
    gallery: int = 0
    sports: int = 0
    course_batches: int = 0
    course_plans: int = 0
    course_bookings: int = 0
    turf_courts: int = 0
    turf_bookings: int = 0


class PartnerDetail(PartnerView):
    terminology: Optional[RoleTerminology] = None
    coaches: List[CoachView] = []
    courses: List[CourseView] = []
    turfs: List[TurfView] = []
    metrics: PartnerMetrics = PartnerMetrics()


class PartnerDisableRequest(BaseSchema):
    disabled: bool


# ── Orders ────────────────────────────────────────────────────

class PaymentView(BaseSchema):
    id: str = ""
    type: str = ""
    status: str = "Unknown"
    amount: float = 0.0
    currency: str = "INR"
    razorpay_order_id: str = ""
    razorpay_payment_id: str = ""
    user_id: str = ""
    created_at: Optional[datetime] = None
    created_at_label: str = "-"


class OrderCustomer(BaseSchema):
    id: str = ""
    name: str = "Unknown customer"
    email: str = ""
    phone: str = ""
    gender: str = ""


class OrderPartner(BaseSchema):
    id: str = ""
    name: str = "Unassigned partner"


class OrderPlan(BaseSchema):
    id: str = ""
    course_id: str = ""
    batch_id: str = ""
    duration: str = ""
    fees: float = 0.0
    batch_name: str = ""
    course_name: str = ""
    sport: str = ""
    schedule: str = ""


class OrderBooking(BaseSchema):
    payment_id: str = ""
    declined: bool = False
    decline_reason: str = ""
    date: str = "-"
    start_time: str = "-"
    end_time: str = "-"
    court_id: str = ""
    court_name: str = ""
    turf_id: str = ""
    turf_name: str = ""
    turf_sport: str = ""


class OrderView(SearchableView):
    id: str = ""
    type: Literal["course", "turf"]
    type_label: str = ""
    status: str = ""
    status_raw: str = ""
    created_at: Optional[datetime] = None
    created_at_label: str = "-"
    amount: float = 0.0
    currency: str = "INR"
    customer_details: Any = None
    payment_id: Optional[str] = None
    payment: Optional[PaymentView] = None
    customer: OrderCustomer = OrderCustomer()
    partner: OrderPartner = OrderPartner()
    plan: Optional[OrderPlan] = None
    booking: Optional[OrderBooking] = None

    @model_validator(mode="after")
    def exactly_one_detail(self):
        if (self.plan is None) == (self.booking is None):
            raise ValueError("an order carries exactly one of plan or booking")
        if self.type == "course" and self.plan is None:
            raise ValueError("course orders carry a plan")
        if self.type == "turf" and self.booking is None:
            raise ValueError("turf orders carry a booking")
        return self


class OrderTotals(BaseSchema):
    course: Totals = Totals()
    turf: Totals = Totals()
    combined: Totals = Totals()


class OrdersPayload(BaseSchema):
    course_orders: List[OrderView] = []
    turf_orders: List[OrderView] = []
    combined_orders: List[OrderView] = []
    totals: OrderTotals = OrderTotals()
    advisories: List[str] = []


class OrdersSummary(BaseSchema):
    totals: OrderTotals = OrderTotals()
    advisories: List[str] = []


# ── Support ───────────────────────────────────────────────────

SupportAudience = Literal["partner", "customer"]


class SupportRequestView(SearchableView):
    id: str = ""
    audience: SupportAudience = "customer"
    type_label: str = "Customer"
    entity_id: str = ""
    entity_public_id: str = ""
    entity_name: str = "Unknown"
    entity_email: str = ""
    entity_phone: str = ""
    request: str = ""
    description: str = ""
    screenshot: str = ""
    solution: str = ""
    resolved: bool = False
    created_at: Optional[datetime] = None
    created_at_label: str = "-"
    updated_at: Optional[datetime] = None
    updated_at_label: str = "-"


class SupportQueues(BaseSchema):
    partner_requests: List[SupportRequestView] = []
    customer_requests: List[SupportRequestView] = []
    advisories: List[str] = []


class SupportSolutionRequest(BaseSchema):
    solution: str = Field("", max_length=5000)


# ── Enrollments ───────────────────────────────────────────────

class ManualEnrollmentRequest(BaseSchema):
    user_id: str = ""
    partner_id: str = ""
    plan_id: Optional[str] = None
    payment_status: str = "unpaid"
    payment_method: Optional[str] = None
    amount_paid: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)
    enrolled_by: str = "admin"

    @field_validator("user_id", "partner_id", mode="before")
    @classmethod
    def strip_ids(cls, v):
        return v.strip() if isinstance(v, str) else v


class ManualEnrollmentResponse(BaseSchema):
    success: bool = True
    enrollment: Dict[str, Any]
    message: str = "User enrolled successfully"


# ── Dashboard ─────────────────────────────────────────────────

class DayPoint(BaseSchema):
    date: str
    value: float


class DashboardMetrics(BaseSchema):
    partners: int = 0
    active_partners: int = 0
    pending_partners: int = 0
    new_partners: int = 0          # last 30 days
    customers: int = 0
    new_customers: int = 0
    verified_customers: int = 0    # customers with an email on file
    orders: int = 0
    recent_orders: int = 0
    order_growth: float = 0.0      # percent of all orders placed in the last 30 days
    revenue: float = 0.0
    recent_revenue: float = 0.0
    open_support_requests: int = 0


class DashboardPayload(BaseSchema):
    metrics: DashboardMetrics = DashboardMetrics()
    orders_per_day: List[DayPoint] = []
    revenue_per_day: List[DayPoint] = []
    partners_per_day: List[DayPoint] = []
    customers_per_day: List[DayPoint] = []
    partner_support_per_day: List[DayPoint] = []
    customer_support_per_day: List[DayPoint] = []
    recent_partners: List[PartnerView] = []
    recent_customers: List[CustomerView] = []
    advisories: List[str] = []


# ── Tables ────────────────────────────────────────────────────

class SortState(BaseSchema):
    column: str
    desc: bool = False


class ColumnState(BaseSchema):
    id: str
    header: str
    visible: bool = True
    sortable: bool = True
    hideable: bool = True


class TablePage(BaseSchema):
    rows: List[Any] = []
    columns: List[ColumnState] = []
    total_rows: int = 0
    filtered_rows: int = 0
    page: int = 1
    page_size: int = 10
    page_count: int = 1
    page_sizes: List[int] = []
    sort: Optional[SortState] = None
    global_filter: str = ""
    expanded: Dict[str, Any] = {}
    empty_message: Optional[str] = None
    advisories: List[str] = []


# ── Auth ──────────────────────────────────────────────────────

class OtpSendRequest(BaseSchema):
    email: EmailStr


class OtpSendResponse(BaseSchema):
    message: str = "Verification code sent"
    expires_in: int


class OtpVerifyRequest(BaseSchema):
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=10, pattern=r"^\d+$")


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
