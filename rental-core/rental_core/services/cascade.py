"""Cascade engine: removes a record together with everything beneath it.

The hierarchy is described by ``CASCADE_CHILDREN`` rather than hooks on each
model. Ids are resolved top-down, one query per dependency edge, and each
level is removed with one batch delete after its descendants are gone, so a
parent is never deleted while a child still points at it. There is no
atomicity across levels: a failure leaves the tree partially deleted but
consistent, and running the same cascade again finishes it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError

from rental_core.core.domain_exceptions import CascadeFailure, ValidationError
from rental_core.db.store import EntityStore
from rental_core.services.registry import get_spec

logger = logging.getLogger(__name__)

T = TypeVar("T")

# parent type -> ((child type, foreign key on child), ...)
CASCADE_CHILDREN: dict[str, tuple[tuple[str, str], ...]] = {
    "state": (("city", "state_id"),),
    "city": (("location", "city_id"),),
    "location": (("car", "location_id"),),
    "car": (("reservation", "car_id"),),
    "reservation": (),
    "user": (("location", "user_id"), ("reservation", "user_id")),
}


@dataclass
class CascadeReport:
    root: str
    deleted: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.deleted.values())

    def record(self, entity_type: str, count: int) -> None:
        self.deleted[entity_type] = self.deleted.get(entity_type, 0) + count


async def _guarded(awaitable: Awaitable[T], level: str, report: CascadeReport) -> T:
    try:
        return await awaitable
    except (OperationalError, InterfaceError):
        # Store unreachable: not a cascade problem, let it through untouched.
        raise
    except (SQLAlchemyError, asyncio.TimeoutError) as exc:
        logger.exception(
            "Cascade from %s failed at level %s",
            report.root,
            level,
            extra={"deleted": dict(report.deleted)},
        )
        raise CascadeFailure(level=level, deleted=report.deleted, cause=exc) from exc


async def _cascade_level(
    store: EntityStore,
    entity_type: str,
    ids: Sequence[int],
    report: CascadeReport,
) -> None:
    if not ids:
        return
    model = get_spec(entity_type).model

    for child_type, foreign_key in CASCADE_CHILDREN[entity_type]:
        child_model = get_spec(child_type).model
        child_ids = await _guarded(
            store.ids(child_model, getattr(child_model, foreign_key).in_(ids)),
            level=child_type,
            report=report,
        )
        await _cascade_level(store, child_type, child_ids, report)

    removed = await _guarded(
        store.delete_where(model, model.id.in_(ids)),
        level=entity_type,
        report=report,
    )
    report.record(entity_type, removed)
    logger.info(
        "Cascade level %s: removed %d of %d",
        entity_type,
        removed,
        len(ids),
        extra={"root": report.root},
    )


async def cascade_delete(
    store: EntityStore,
    entity_type: str,
    ids: Iterable[int] | None = None,
    criteria: Sequence | None = None,
) -> CascadeReport:
    """Delete the records selected by ``ids`` or ``criteria`` and all descendants.

    Soft-deleted records are selected like live ones. Selecting nothing, or
    records that are already gone, is a no-op.
    """
    if ids is None and criteria is None:
        raise ValidationError("cascade_delete needs ids or criteria")
    model = get_spec(entity_type).model
    report = CascadeReport(root=entity_type)

    if ids is None:
        root_ids = await _guarded(store.ids(model, *criteria), level=entity_type, report=report)
    else:
        root_ids = sorted(set(ids))

    await _cascade_level(store, entity_type, root_ids, report)
    return report


async def dependents_exist(store: EntityStore, entity_type: str, entity_id: int) -> str | None:
    """Name of the first child type still pointing at the record, if any."""
    for child_type, foreign_key in CASCADE_CHILDREN[entity_type]:
        child_model = get_spec(child_type).model
        if await store.exists(child_model, getattr(child_model, foreign_key) == entity_id):
            return child_type
    return None
