import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


# Services a provider has declared as specializations. No rows means "offers everything".
provider_services = Table(
    "provider_services",
    Base.metadata,
    Column("provider_id", Integer, ForeignKey("providers.id"), primary_key=True),
    Column("service_id", Integer, ForeignKey("services.id"), primary_key=True),
)


class Provider(Base):
    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, nullable=False, default=generate_public_id)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    # Home base
    town = Column(String(100), nullable=False, index=True)
    suburb = Column(String(100), nullable=True)
    max_distance_tier = Column(Integer, default=2, nullable=False)  # 0-4, willingness to travel
    rating = Column(Float, default=0.0, nullable=False)  # 0-5
    total_jobs_completed = Column(Integer, default=0, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)  # Set by external verification workflow
    active = Column(Boolean, default=True, nullable=False)  # Soft-deactivate only, never deleted
    available = Column(Boolean, default=True, nullable=False)  # Toggled by the provider
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    services = relationship("Service", secondary=provider_services)
    bookings = relationship("Booking", back_populates="provider")


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, nullable=False, default=generate_public_id)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    town = Column(String(100), nullable=False)
    suburb = Column(String(100), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    packages = relationship("ActivePackage", back_populates="client")
    bookings = relationship("Booking", back_populates="client")


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    price_one_off = Column(Numeric(10, 2), nullable=False)
    duration_minutes = Column(Integer, default=60, nullable=False)
    # one-off, subscription-eligible
    service_type = Column(String(50), default="one-off", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class SubscriptionPackage(Base):
    __tablename__ = "subscription_packages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    duration_days = Column(Integer, default=30, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    entitlements = relationship("PackageEntitlement", back_populates="package")


class PackageEntitlement(Base):
    __tablename__ = "package_entitlements"
    __table_args__ = (UniqueConstraint("package_id", "service_id", name="uq_package_service"),)

    id = Column(Integer, primary_key=True, index=True)
    package_id = Column(Integer, ForeignKey("subscription_packages.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    quantity_per_cycle = Column(Integer, nullable=False)
    cycle_days = Column(Integer, nullable=False)

    package = relationship("SubscriptionPackage", back_populates="entitlements")
    service = relationship("Service")


class ActivePackage(Base):
    __tablename__ = "active_packages"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("subscription_packages.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=False)
    # active, superseded, cancelled
    status = Column(String(20), default="active", nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    client = relationship("Client", back_populates="packages")
    package = relationship("SubscriptionPackage")


class UsageRecord(Base):
    """Append-only log of entitlement consumption"""

    __tablename__ = "usage_records"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    package_id = Column(Integer, ForeignKey("subscription_packages.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    used_at = Column(DateTime, nullable=False, index=True)


class EntitlementCounter(Base):
    """Lock row serializing consumption per (client, package, service)"""

    __tablename__ = "entitlement_counters"
    __table_args__ = (
        UniqueConstraint("client_id", "package_id", "service_id", name="uq_entitlement_counter"),
    )

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    package_id = Column(Integer, ForeignKey("subscription_packages.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    version = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime, nullable=True)


class LocationDistance(Base):
    __tablename__ = "location_map"
    __table_args__ = (UniqueConstraint("town", "suburb_a", "suburb_b", name="uq_location_pair"),)

    id = Column(Integer, primary_key=True, index=True)
    town = Column(String(100), nullable=False)
    suburb_a = Column(String(100), nullable=False)
    suburb_b = Column(String(100), nullable=False)
    distance = Column(Integer, nullable=False)  # Tier 0-4


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(
        String(36), unique=True, nullable=False, index=True, default=generate_public_id
    )
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=True, index=True)

    # Scheduling
    booking_date = Column(Date, nullable=False)
    booking_time = Column(String(5), nullable=False)  # HH:MM format
    duration_minutes = Column(Integer, nullable=False)
    location_town = Column(String(100), nullable=False)
    location_suburb = Column(String(100), nullable=False)
    special_instructions = Column(Text, nullable=True)
    emergency_booking = Column(Boolean, default=False, nullable=False)

    # Lifecycle: pending -> assigned -> accepted -> in_progress -> completed
    # cancelled / declined reachable from pending, assigned, accepted
    status = Column(String(30), default="pending", nullable=False, index=True)
    # pending_assignment, auto_assigned, manual_assignment_required, assigned
    assignment_status = Column(String(40), default="pending_assignment", nullable=False, index=True)
    acceptance_deadline = Column(DateTime, nullable=False)  # Set once at creation

    # Pricing, frozen at creation
    is_weekend = Column(Boolean, default=False, nullable=False)
    covered_by_package = Column(Boolean, default=False, nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)  # What the client pays
    platform_commission = Column(Numeric(10, 2), nullable=False)
    taxable_amount = Column(Numeric(10, 2), nullable=False)
    income_tax = Column(Numeric(10, 2), nullable=False)
    withholding_tax = Column(Numeric(10, 2), nullable=False)
    weekend_bonus = Column(Numeric(10, 2), nullable=False)
    net_payout = Column(Numeric(10, 2), nullable=False)

    # Audit trail
    assigned_at = Column(DateTime, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)  # Provider check-in
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="bookings")
    service = relationship("Service")
    provider = relationship("Provider", back_populates="bookings")
    history = relationship(
        "BookingStatusChange", back_populates="booking", order_by="BookingStatusChange.id"
    )


class BookingStatusChange(Base):
    __tablename__ = "booking_status_history"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    from_status = Column(String(30), nullable=True)
    to_status = Column(String(30), nullable=False)
    event = Column(String(30), nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)

    booking = relationship("Booking", back_populates="history")


class BookingAssignmentAttempt(Base):
    """Providers that held a booking and let it go (deadline missed or rejected)"""

    __tablename__ = "booking_assignment_attempts"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False)
    outcome = Column(String(30), nullable=False)  # expired, rejected
    created_at = Column(DateTime, nullable=False)


class RecurringSchedule(Base):
    __tablename__ = "recurring_schedules"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    frequency = Column(String(20), nullable=False)  # weekly, bi-weekly, monthly
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    booking_time = Column(String(5), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    location_town = Column(String(100), nullable=False)
    location_suburb = Column(String(100), nullable=False)
    special_instructions = Column(Text, nullable=True)
    emergency_booking = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    occurrences = relationship(
        "ScheduleOccurrence", back_populates="schedule", order_by="ScheduleOccurrence.occurrence_date"
    )


class ScheduleOccurrence(Base):
    """Tag linking a schedule to a booking it generated. Bookings never point back."""

    __tablename__ = "schedule_occurrences"
    __table_args__ = (
        UniqueConstraint("schedule_id", "occurrence_date", name="uq_schedule_occurrence"),
    )

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(Integer, ForeignKey("recurring_schedules.id"), nullable=False)
    # Null between claiming the date and creating its booking
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    occurrence_date = Column(Date, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    schedule = relationship("RecurringSchedule", back_populates="occurrences")


class PlatformSetting(Base):
    __tablename__ = "platform_settings"

    key = Column(String(100), primary_key=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class NotificationOutbox(Base):
    __tablename__ = "notification_outbox"

    id = Column(Integer, primary_key=True, index=True)
    # booking_created, provider_assigned, assignment_failed, booking_status_changed
    event_type = Column(String(50), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    payload = Column(JSON, nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)  # pending, dispatched
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)
    dispatched_at = Column(DateTime, nullable=True)
