"""Soft-delete visibility for reads.

Reads exclude User and Location rows whose ``deleted_at`` is set, and
everything beneath them: a Car under a soft-deleted Location, or a
Reservation made by a soft-deleted User, is hidden too. A caller sees them by
passing ``include_deleted=True`` or by filtering on ``deleted_at`` itself;
either one switches the default off. Get-by-id and list reads share the same
rule.
"""

from collections.abc import Iterable

from sqlalchemy import select

from rental_core.db.models import Car, Location, Reservation, User

SOFT_DELETE_FIELD = "deleted_at"

# model -> ((foreign key, parent model), ...) whose hiding hides the model
HIDDEN_WITH_PARENT: dict[type, tuple[tuple[str, type], ...]] = {
    Location: (("user_id", User),),
    Car: (("location_id", Location),),
    Reservation: (("car_id", Car), ("user_id", User)),
}


def is_soft_deletable(model: type) -> bool:
    return hasattr(model, SOFT_DELETE_FIELD)


def filters_on_deletion(filter_keys: Iterable[str]) -> bool:
    return any(key.split("__", 1)[0] == SOFT_DELETE_FIELD for key in filter_keys)


def _live_criteria(model: type) -> list:
    criteria = []
    if is_soft_deletable(model):
        criteria.append(getattr(model, SOFT_DELETE_FIELD).is_(None))
    for foreign_key, parent in HIDDEN_WITH_PARENT.get(model, ()):
        parent_criteria = _live_criteria(parent)
        if parent_criteria:
            criteria.append(getattr(model, foreign_key).in_(select(parent.id).where(*parent_criteria)))
    return criteria


def visibility_criteria(
    model: type,
    include_deleted: bool = False,
    filter_keys: Iterable[str] = (),
) -> list:
    """Criteria to AND into a read on ``model``; empty when nothing is hidden."""
    if include_deleted or filters_on_deletion(filter_keys):
        return []
    return _live_criteria(model)
