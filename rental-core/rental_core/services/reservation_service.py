"""Reservation scheduling: date checks, overlap detection, pricing, status flow."""

import asyncio
import logging
import math
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError

from rental_core.config import settings
from rental_core.core.domain_exceptions import (
    ConflictError,
    InvalidReferenceError,
    NotFoundError,
    StateTransitionError,
    ValidationError,
)
from rental_core.db.models import Car, CarBookingLease, Reservation
from rental_core.db.store import EntityStore
from rental_core.services.references import ensure_references
from rental_core.services.visibility import visibility_criteria

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
CANCELLED = "cancelled"
ALLOWED_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Naive values are taken as UTC already; aware ones are converted."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """Half-open [start, end) comparison: touching intervals do not overlap."""
    return start_a < end_b and start_b < end_a


def rental_days(start_date: datetime, end_date: datetime) -> int:
    return math.ceil((end_date - start_date).total_seconds() / SECONDS_PER_DAY)


def compute_total_price(start_date: datetime, end_date: datetime, price_by_day: float) -> float:
    return rental_days(start_date, end_date) * price_by_day


# Store calls made while the lease is held: car re-read, overlap scan, insert.
LEASE_CRITICAL_SECTION_CALLS = 3


def ensure_lease_outlives_booking(config=settings) -> None:
    """Reject a lease TTL that a slow but live holder could outlast."""
    worst_case = LEASE_CRITICAL_SECTION_CALLS * config.STORE_TIMEOUT_SECONDS
    if config.BOOKING_LEASE_TTL_SECONDS <= worst_case:
        raise ValueError(
            f"BOOKING_LEASE_TTL_SECONDS ({config.BOOKING_LEASE_TTL_SECONDS}) must exceed "
            f"{worst_case}s, the longest a booking can hold its lease"
        )


async def _try_acquire_lease(store: EntityStore, car_id: int, token: str) -> bool:
    now = utcnow()
    try:
        await store.insert_values(
            CarBookingLease,
            {"car_id": car_id, "token": token, "acquired_at": now},
        )
        return True
    except IntegrityError:
        pass

    # Held by someone else. Take it over only if the holder looks dead.
    stale_before = now - timedelta(seconds=settings.BOOKING_LEASE_TTL_SECONDS)
    taken = await store.update_where(
        CarBookingLease,
        {"token": token, "acquired_at": now},
        CarBookingLease.car_id == car_id,
        CarBookingLease.acquired_at < stale_before,
    )
    if taken:
        logger.warning("Took over abandoned booking lease for car %s", car_id)
    return taken == 1


@asynccontextmanager
async def car_booking_lease(store: EntityStore, car_id: int) -> AsyncIterator[str]:
    """Hold the single-writer slot for ``car_id`` while checking and booking.

    The slot is a row keyed by car id, so two writers in different processes
    cannot hold it together; the loser retries with backoff and then gives up
    with ``ConflictError``.
    """
    token = str(uuid.uuid4())
    delay = settings.BOOKING_LEASE_BACKOFF_SECONDS
    for attempt in range(settings.BOOKING_LEASE_RETRIES + 1):
        if await _try_acquire_lease(store, car_id, token):
            break
        if attempt == settings.BOOKING_LEASE_RETRIES:
            raise ConflictError("Another booking for this car is in progress, retry shortly")
        await asyncio.sleep(delay)
        delay *= 2

    try:
        yield token
    finally:
        await store.delete_where(
            CarBookingLease,
            CarBookingLease.car_id == car_id,
            CarBookingLease.token == token,
        )


async def find_overlapping(
    store: EntityStore,
    car_id: int,
    start_date: datetime,
    end_date: datetime,
) -> list[Reservation]:
    active = await store.find(
        Reservation,
        Reservation.car_id == car_id,
        Reservation.status != CANCELLED,
    )
    return [
        reservation
        for reservation in active
        if intervals_overlap(start_date, end_date, reservation.start_date, reservation.end_date)
    ]


async def create_reservation(
    store: EntityStore,
    car_id: int,
    user_id: int,
    start_date: datetime,
    end_date: datetime,
    now: datetime | None = None,
) -> Reservation:
    """Book ``car_id`` for [start_date, end_date) when no active booking overlaps."""
    start = to_utc_naive(start_date)
    end = to_utc_naive(end_date)
    current_time = to_utc_naive(now) if now is not None else utcnow()

    if start <= current_time:
        raise ValidationError("Start date must be in the future")
    if end <= start:
        raise ValidationError("End date must be after start date")

    await ensure_references(store, "reservation", {"car_id": car_id, "user_id": user_id})

    async with car_booking_lease(store, car_id):
        car = await store.get(Car, car_id, *visibility_criteria(Car))
        if car is None:
            # Deleted or hidden between the reference check and taking the lease.
            raise InvalidReferenceError(field="car_id", message="Referenced car does not exist")

        if await find_overlapping(store, car_id, start, end):
            raise ConflictError("Car already reserved for these dates")

        reservation = await store.insert(
            Reservation(
                car_id=car_id,
                user_id=user_id,
                start_date=start,
                end_date=end,
                status="pending",
                total_price=compute_total_price(start, end, car.price_by_day),
            )
        )

    logger.info(
        "Reservation created",
        extra={
            "reservation_id": reservation.id,
            "car_id": car_id,
            "user_id": user_id,
            "total_price": reservation.total_price,
        },
    )
    return reservation


async def transition_reservation(store: EntityStore, reservation_id: int, new_status: str) -> Reservation:
    """Move a reservation along pending -> confirmed -> completed, or to cancelled."""
    new_status = (new_status or "").strip().lower()
    reservation = await store.get(Reservation, reservation_id)
    if reservation is None:
        raise NotFoundError("Reservation not found")

    current_status = reservation.status
    if new_status not in ALLOWED_TRANSITIONS.get(current_status, set()):
        raise StateTransitionError(
            f"Invalid status transition: {current_status} -> {new_status or '(empty)'}"
        )

    # Compare-and-set so two admins cannot both move the same reservation.
    changed = await store.update_where(
        Reservation,
        {"status": new_status},
        Reservation.id == reservation_id,
        Reservation.status == current_status,
    )
    if not changed:
        raise StateTransitionError("Reservation status changed concurrently, reload and retry")

    logger.info(
        "Reservation status changed",
        extra={"reservation_id": reservation_id, "from": current_status, "to": new_status},
    )
    return await store.get(Reservation, reservation_id)


async def list_user_reservations(
    store: EntityStore,
    user_id: int,
    status: str | None = None,
) -> list[Reservation]:
    criteria = [Reservation.user_id == user_id]
    if status is not None:
        criteria.append(Reservation.status == status.lower())
    return await store.find(Reservation, *criteria, order_by=(Reservation.start_date.desc(),))


async def is_car_available(
    store: EntityStore,
    car_id: int,
    start_date: datetime,
    end_date: datetime,
) -> bool:
    start = to_utc_naive(start_date)
    end = to_utc_naive(end_date)
    if end <= start:
        raise ValidationError("End date must be after start date")
    if not await store.exists(Car, Car.id == car_id, *visibility_criteria(Car)):
        raise NotFoundError("Car not found")
    return not await find_overlapping(store, car_id, start, end)
