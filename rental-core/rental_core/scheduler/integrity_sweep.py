"""Daily integrity sweep.

Uses APScheduler's AsyncIOScheduler to run a daily job that finishes any
cascade interrupted half way (rows whose parent is gone) and clears booking
leases left behind by crashed writers.
"""

import logging
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rental_core.config import settings
from rental_core.db.models import CarBookingLease
from rental_core.db.session import SessionLocal
from rental_core.db.store import EntityStore
from rental_core.services.cascade import CASCADE_CHILDREN, cascade_delete
from rental_core.services.registry import get_spec
from rental_core.services.reservation_service import utcnow

logger = logging.getLogger(__name__)

# Parents before children, so one pass clears whole orphaned subtrees.
SWEEP_ORDER = ("state", "user", "city", "location", "car")


async def sweep_orphans(store: EntityStore) -> dict[str, int]:
    """Cascade-delete every row whose foreign key points at a missing parent."""
    removed: dict[str, int] = {}
    for parent_type in SWEEP_ORDER:
        parent_model = get_spec(parent_type).model
        for child_type, foreign_key in CASCADE_CHILDREN[parent_type]:
            child_model = get_spec(child_type).model
            orphan_ids = await store.ids(
                child_model,
                getattr(child_model, foreign_key).not_in(select(parent_model.id)),
            )
            if not orphan_ids:
                continue
            logger.warning(
                "Found %d orphaned %s rows (missing %s)",
                len(orphan_ids),
                child_type,
                parent_type,
            )
            report = await cascade_delete(store, child_type, ids=orphan_ids)
            for entity_type, count in report.deleted.items():
                removed[entity_type] = removed.get(entity_type, 0) + count
    return removed


async def sweep_stale_leases(store: EntityStore) -> int:
    stale_before = utcnow() - timedelta(seconds=settings.BOOKING_LEASE_TTL_SECONDS)
    return await store.delete_where(CarBookingLease, CarBookingLease.acquired_at < stale_before)


async def run_integrity_sweep(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> dict:
    factory = session_factory or SessionLocal
    async with factory() as session:
        store = EntityStore(session)
        orphans = await sweep_orphans(store)
        leases = await sweep_stale_leases(store)

    logger.info(
        "Integrity sweep complete: %d orphaned rows removed, %d stale leases cleared.",
        sum(orphans.values()),
        leases,
    )
    return {"orphans": orphans, "stale_leases": leases}


async def _scheduled_sweep() -> None:
    try:
        await run_integrity_sweep()
    except Exception:
        logger.exception("Unhandled error in integrity sweep job.")


def start_scheduler() -> AsyncIOScheduler:
    """Create, configure, and start the integrity sweep scheduler.

    Must be called from inside a running event loop. Returns the scheduler
    instance so the caller can shut it down.
    """
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        _scheduled_sweep,
        trigger="cron",
        hour=settings.INTEGRITY_SWEEP_HOUR,
        minute=0,
        id="daily_integrity_sweep",
        name="Remove orphaned rows and stale booking leases",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        "Integrity sweep scheduler started (daily job at %02d:00).",
        settings.INTEGRITY_SWEEP_HOUR,
    )
    return scheduler
