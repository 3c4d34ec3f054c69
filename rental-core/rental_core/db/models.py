"""SQLAlchemy ORM models.

Parent/child links are plain foreign keys without ORM cascades; removing a
subtree is the job of ``rental_core.services.cascade``. All datetimes are
stored as naive UTC.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from rental_core.db.session import Base

RESERVATION_STATUSES = ("pending", "confirmed", "cancelled", "completed")
FUEL_TYPES = ("petrol", "diesel", "electric", "hybrid", "other")
TRANSMISSIONS = ("manual", "automatic", "semi-automatic")
DEFAULT_CAR_IMAGE = "/images/default-car.jpg"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class User(TimestampMixin, Base):
    """Account that owns locations and books cars."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_admin: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("0"),
    )
    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("1"),
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)


class State(TimestampMixin, Base):
    """Root of the rental hierarchy."""

    __tablename__ = "states"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)


class City(TimestampMixin, Base):
    __tablename__ = "cities"
    __table_args__ = (
        UniqueConstraint("state_id", "name", name="uq_cities_state_name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    state_id: Mapped[int] = mapped_column(
        ForeignKey("states.id"),
        nullable=False,
        index=True,
    )


class Location(TimestampMixin, Base):
    """Rental branch owned by a user; soft-deletable."""

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[str] = mapped_column(String(200), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(16), nullable=False)
    city_id: Mapped[int] = mapped_column(
        ForeignKey("cities.id"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)


class Car(TimestampMixin, Base):
    __tablename__ = "cars"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    location_id: Mapped[int] = mapped_column(
        ForeignKey("locations.id"),
        nullable=False,
        index=True,
    )
    brand: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    model: Mapped[str] = mapped_column(String(50), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    price_by_day: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    registration_number: Mapped[str] = mapped_column(
        String(12),
        nullable=False,
        unique=True,
        index=True,
    )
    available: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("1"),
    )
    fuel_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    transmission: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    seats: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    image_url: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        default=DEFAULT_CAR_IMAGE,
    )
    mileage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    features: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)


class Reservation(TimestampMixin, Base):
    """Booking of a car over the half-open interval [start_date, end_date)."""

    __tablename__ = "reservations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    car_id: Mapped[int] = mapped_column(
        ForeignKey("cars.id"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="pending",
        server_default=text("'pending'"),
        index=True,
    )
    # Snapshot of days x daily rate at booking time.
    total_price: Mapped[float] = mapped_column(Float, nullable=False)


class CarBookingLease(Base):
    """At most one row per car: the writer currently allowed to book it."""

    __tablename__ = "car_booking_leases"

    car_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    token: Mapped[str] = mapped_column(String(36), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
