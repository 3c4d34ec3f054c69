"""Entity operations exposed to the transport layer.

Each write runs shape validation, normalization, reference and uniqueness
checks, in that order, before anything reaches the store.
"""

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from rental_core.core.domain_exceptions import (
    InvalidReferenceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from rental_core.db.store import EntityStore
from rental_core.services import reservation_service
from rental_core.services.cascade import CascadeReport, cascade_delete, dependents_exist
from rental_core.services.normalization import (
    duplicate_from_integrity_error,
    ensure_unique,
    normalize_values,
)
from rental_core.services.references import ensure_references
from rental_core.services.registry import EntitySpec, get_spec
from rental_core.services.visibility import visibility_criteria

logger = logging.getLogger(__name__)

FILTER_OPERATORS = ("eq", "ne", "gte", "lte", "in", "icontains")


@dataclass(frozen=True)
class Actor:
    """Acting caller as resolved by the authentication layer."""

    user_id: int
    is_admin: bool = False


def _parse_payload(schema: type[BaseModel], payload: dict[str, Any], partial: bool) -> dict[str, Any]:
    try:
        parsed = schema.model_validate(payload or {})
    except PydanticValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'payload'}: {error['msg']}"
            for error in exc.errors()
        )
        raise ValidationError(details) from exc
    return parsed.model_dump(exclude_unset=partial)


def _reject_null_required(spec: EntitySpec, values: dict[str, Any]) -> None:
    columns = spec.model.__table__.columns
    for field, value in values.items():
        if value is None and field in columns and not columns[field].nullable:
            raise ValidationError(f"{field} cannot be null")


def _translate_integrity_error(entity_type: str, exc: IntegrityError) -> Exception | None:
    duplicate = duplicate_from_integrity_error(entity_type, exc)
    if duplicate is not None:
        return duplicate
    message = str(exc.orig).lower()
    if "foreign key" in message:
        # A parent vanished between the reference check and the write.
        return InvalidReferenceError(field="reference", message="Referenced record no longer exists")
    return None


def build_criteria(model: type, filters: dict[str, Any] | None) -> list:
    """Turn ``{"field__op": value}`` filters into SQLAlchemy criteria."""
    criteria = []
    for key, value in (filters or {}).items():
        field, _, op = key.partition("__")
        op = op or "eq"
        if field not in model.__table__.columns:
            raise ValidationError(f"Unknown filter field: {field}")
        if op not in FILTER_OPERATORS:
            raise ValidationError(f"Unknown filter operator: {op}")
        column = getattr(model, field)
        if op == "eq":
            criteria.append(column.is_(None) if value is None else column == value)
        elif op == "ne":
            criteria.append(column.is_not(None) if value is None else column != value)
        elif op == "gte":
            criteria.append(column >= value)
        elif op == "lte":
            criteria.append(column <= value)
        elif op == "in":
            criteria.append(column.in_(list(value)))
        else:
            criteria.append(column.ilike(f"%{value}%"))
    return criteria


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def text_search(model: type, fields: tuple[str, ...], term: str):
    """Case-insensitive substring match on any of ``fields``."""
    pattern = f"%{escape_like(term.strip())}%"
    return or_(*(getattr(model, field).ilike(pattern, escape="\\") for field in fields))


async def get_entity(
    store: EntityStore,
    entity_type: str,
    entity_id: int,
    include_deleted: bool = False,
):
    spec = get_spec(entity_type)
    entity = await store.get(
        spec.model,
        entity_id,
        *visibility_criteria(spec.model, include_deleted=include_deleted),
    )
    if entity is None:
        raise NotFoundError(f"{spec.label} not found")
    return entity


async def find(
    store: EntityStore,
    entity_type: str,
    filters: dict[str, Any] | None = None,
    include_deleted: bool = False,
    order_by: tuple = (),
    limit: int | None = None,
    offset: int = 0,
    extra_criteria: tuple = (),
) -> list:
    spec = get_spec(entity_type)
    criteria = build_criteria(spec.model, filters) + list(extra_criteria)
    criteria += visibility_criteria(spec.model, include_deleted=include_deleted, filter_keys=(filters or {}).keys())
    return await store.find(
        spec.model,
        *criteria,
        order_by=order_by or (spec.model.id.asc(),),
        limit=limit,
        offset=offset,
    )


async def count(
    store: EntityStore,
    entity_type: str,
    filters: dict[str, Any] | None = None,
    include_deleted: bool = False,
) -> int:
    spec = get_spec(entity_type)
    criteria = build_criteria(spec.model, filters)
    criteria += visibility_criteria(spec.model, include_deleted=include_deleted, filter_keys=(filters or {}).keys())
    return await store.count(spec.model, *criteria)


async def create_entity(store: EntityStore, entity_type: str, payload: dict[str, Any]):
    spec = get_spec(entity_type)
    values = _parse_payload(spec.create_schema, payload, partial=False)

    if entity_type == "reservation":
        return await reservation_service.create_reservation(
            store,
            car_id=values["car_id"],
            user_id=values["user_id"],
            start_date=values["start_date"],
            end_date=values["end_date"],
        )

    values = normalize_values(entity_type, values)
    await ensure_references(store, entity_type, values)
    await ensure_unique(store, entity_type, values)

    try:
        entity = await store.insert(spec.model(**values))
    except IntegrityError as exc:
        translated = _translate_integrity_error(entity_type, exc)
        if translated is None:
            raise
        raise translated from exc

    logger.info("%s created", spec.label, extra={"entity_id": entity.id})
    return entity


async def update_entity(store: EntityStore, entity_type: str, entity_id: int, patch: dict[str, Any]):
    spec = get_spec(entity_type)
    values = _parse_payload(spec.update_schema, patch, partial=True)

    if entity_type == "reservation":
        # Dates and price are fixed at booking time; only the status moves.
        return await reservation_service.transition_reservation(store, entity_id, values["status"])

    entity = await get_entity(store, entity_type, entity_id)
    _reject_null_required(spec, values)
    values = normalize_values(entity_type, values)
    changed = {field: value for field, value in values.items() if getattr(entity, field) != value}
    if not changed:
        return entity

    await ensure_references(store, entity_type, changed)
    await ensure_unique(store, entity_type, changed, current=entity)

    try:
        entity = await store.update(entity, changed)
    except IntegrityError as exc:
        translated = _translate_integrity_error(entity_type, exc)
        if translated is None:
            raise
        raise translated from exc

    logger.info("%s updated", spec.label, extra={"entity_id": entity.id, "fields": sorted(changed)})
    return entity


async def delete_entity(
    store: EntityStore,
    entity_type: str,
    entity_id: int,
    cascade: bool = True,
) -> CascadeReport:
    """Hard delete. Soft-deleted records can be hard deleted too."""
    spec = get_spec(entity_type)
    await get_entity(store, entity_type, entity_id, include_deleted=True)

    if not cascade:
        dependent = await dependents_exist(store, entity_type, entity_id)
        if dependent is not None:
            raise InvalidReferenceError(
                field=dependent,
                message=f"{spec.label} is still referenced by {dependent} records",
            )

    report = await cascade_delete(store, entity_type, ids=[entity_id])
    logger.info(
        "%s deleted",
        spec.label,
        extra={"entity_id": entity_id, "deleted": report.deleted},
    )
    return report


async def soft_delete(store: EntityStore, entity_type: str, entity_id: int):
    spec = get_spec(entity_type)
    if not spec.soft_delete:
        raise ValidationError(f"{spec.label} does not support soft delete")

    entity = await get_entity(store, entity_type, entity_id)
    entity = await store.update(entity, {"deleted_at": reservation_service.utcnow()})
    logger.info("%s soft-deleted", spec.label, extra={"entity_id": entity_id})
    return entity


def ensure_can_mutate(entity, actor: Actor) -> None:
    """Owners and admins may change a record that has an owner."""
    owner_id = getattr(entity, "user_id", None)
    if actor.is_admin or owner_id is None or owner_id == actor.user_id:
        return
    raise PermissionDeniedError("Unauthorized access")
