"""
shared/models/models.py
SQLAlchemy ORM models for the marketplace store the admin panel reads.
String UUID primary keys; list-like and structured columns are JSON because
upstream clients write them in several encodings.
"""

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from config.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )


# ── Accounts ──────────────────────────────────────────────────

class Partner(TimestampMixin, Base):
    __tablename__ = "partners"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    public_id: Mapped[Optional[str]] = mapped_column(String(32), unique=True)
    slug: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[Optional[str]] = mapped_column(String(20))  # academy | gym | turf
    email: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    whatsapp: Mapped[Optional[str]] = mapped_column(String(20))
    whatsapp_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    logo_image: Mapped[Optional[str]] = mapped_column(Text)
    about: Mapped[Optional[str]] = mapped_column(Text)
    address: Mapped[Optional[Any]] = mapped_column(JSON)
    sports: Mapped[Optional[Any]] = mapped_column(JSON)
    gallery: Mapped[Optional[Any]] = mapped_column(JSON)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[Optional[str]] = mapped_column(String(20))
    last_active_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (Index("ix_partners_created_at", "created_at"),)


class Customer(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    gender: Mapped[Optional[str]] = mapped_column(String(20))
    profile_image: Mapped[Optional[str]] = mapped_column(Text)
    liked_sports: Mapped[Optional[Any]] = mapped_column(JSON)
    pincode: Mapped[Optional[str]] = mapped_column(String(10))
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class Tutor(Base):
    __tablename__ = "tutors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    partner_id: Mapped[str] = mapped_column(ForeignKey("partners.id", ondelete="CASCADE"), index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    sport: Mapped[Optional[str]] = mapped_column(String(100))
    bio: Mapped[Optional[str]] = mapped_column(Text)
    profile_image: Mapped[Optional[str]] = mapped_column(Text)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


# ── Academy / Gym Hierarchy ───────────────────────────────────

class Course(TimestampMixin, Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    partner_id: Mapped[str] = mapped_column(ForeignKey("partners.id", ondelete="CASCADE"), index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    slug: Mapped[Optional[str]] = mapped_column(String(255))
    sport: Mapped[Optional[str]] = mapped_column(String(100))
    level: Mapped[Optional[str]] = mapped_column(String(50))
    description: Mapped[Optional[str]] = mapped_column(Text)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    currency: Mapped[Optional[str]] = mapped_column(String(3))
    duration: Mapped[Optional[str]] = mapped_column(String(100))
    sessions: Mapped[Optional[int]] = mapped_column(Integer)
    active: Mapped[Optional[bool]] = mapped_column(Boolean, default=True)
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)


class Batch(TimestampMixin, Base):
    __tablename__ = "batches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    course_id: Mapped[str] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), index=True)
    partner_id: Mapped[Optional[str]] = mapped_column(String(36))
    name: Mapped[Optional[str]] = mapped_column(String(255))
    schedule: Mapped[Optional[str]] = mapped_column(String(255))
    capacity: Mapped[Optional[int]] = mapped_column(Integer)
    days: Mapped[Optional[str]] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text)
    note: Mapped[Optional[str]] = mapped_column(Text)
    active: Mapped[Optional[bool]] = mapped_column(Boolean, default=True)
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)


class BatchPlan(TimestampMixin, Base):
    __tablename__ = "batch_plans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    batch_id: Mapped[str] = mapped_column(ForeignKey("batches.id", ondelete="CASCADE"), index=True)
    course_id: Mapped[Optional[str]] = mapped_column(String(36))
    name: Mapped[Optional[str]] = mapped_column(String(255))
    duration: Mapped[Optional[str]] = mapped_column(String(100))
    fees: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    currency: Mapped[Optional[str]] = mapped_column(String(3))
    sessions: Mapped[Optional[int]] = mapped_column(Integer)
    frequency: Mapped[Optional[str]] = mapped_column(String(50))
    description: Mapped[Optional[str]] = mapped_column(Text)
    active: Mapped[Optional[bool]] = mapped_column(Boolean, default=True)


class Enrollment(Base):
    __tablename__ = "enrollments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    partner_id: Mapped[str] = mapped_column(ForeignKey("partners.id"), index=True)
    plan_id: Mapped[Optional[str]] = mapped_column(ForeignKey("batch_plans.id"), index=True)
    payment_id: Mapped[Optional[str]] = mapped_column(String(36))
    status: Mapped[Optional[str]] = mapped_column(String(30))
    payment_status: Mapped[Optional[str]] = mapped_column(String(30))
    payment_method: Mapped[Optional[str]] = mapped_column(String(30))
    amount_paid: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    admin_notes: Mapped[Optional[str]] = mapped_column(Text)
    enrolled_by: Mapped[Optional[str]] = mapped_column(String(50))
    enrolled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    customer_details: Mapped[Optional[Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# ── Turf Hierarchy ────────────────────────────────────────────

class Turf(TimestampMixin, Base):
    __tablename__ = "turfs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    partner_id: Mapped[str] = mapped_column(ForeignKey("partners.id", ondelete="CASCADE"), index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    sport: Mapped[Optional[str]] = mapped_column(String(100))
    address: Mapped[Optional[Any]] = mapped_column(JSON)
    city: Mapped[Optional[str]] = mapped_column(String(100))
    state: Mapped[Optional[str]] = mapped_column(String(100))
    active: Mapped[Optional[bool]] = mapped_column(Boolean, default=True)


class TurfCourt(TimestampMixin, Base):
    __tablename__ = "turf_courts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    turf_id: Mapped[str] = mapped_column(ForeignKey("turfs.id", ondelete="CASCADE"), index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    sport: Mapped[Optional[str]] = mapped_column(String(100))
    surface: Mapped[Optional[str]] = mapped_column(String(50))
    indoor: Mapped[Optional[bool]] = mapped_column(Boolean)
    rate_per_hour: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    active: Mapped[Optional[bool]] = mapped_column(Boolean, default=True)


class TurfBooking(Base):
    __tablename__ = "turf_bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    court_id: Mapped[str] = mapped_column(ForeignKey("turf_courts.id"), index=True)
    user_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"), index=True)
    partner_id: Mapped[Optional[str]] = mapped_column(ForeignKey("partners.id"), index=True)
    payment_id: Mapped[Optional[str]] = mapped_column(String(36))
    date: Mapped[Optional[date]] = mapped_column(Date)
    start_time: Mapped[Optional[time]] = mapped_column(Time)
    end_time: Mapped[Optional[time]] = mapped_column(Time)
    total_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    declined: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    decline_reason: Mapped[Optional[str]] = mapped_column(Text)
    customer_details: Mapped[Optional[Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# ── Payments ──────────────────────────────────────────────────

class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    type: Mapped[Optional[str]] = mapped_column(String(30))
    status: Mapped[Optional[str]] = mapped_column(String(30))
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    currency: Mapped[Optional[str]] = mapped_column(String(3))
    razorpay_order_id: Mapped[Optional[str]] = mapped_column(String(100))
    razorpay_payment_id: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# ── Support ───────────────────────────────────────────────────

class SupportRequestMixin(TimestampMixin):
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    request: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    screenshot: Mapped[Optional[str]] = mapped_column(Text)
    solution: Mapped[Optional[str]] = mapped_column(Text)
    resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class PartnerSupportRequest(SupportRequestMixin, Base):
    __tablename__ = "support_requests"

    partner_id: Mapped[Optional[str]] = mapped_column(ForeignKey("partners.id"), index=True)


class CustomerSupportRequest(SupportRequestMixin, Base):
    __tablename__ = "users_support_requests"

    user_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"), index=True)
