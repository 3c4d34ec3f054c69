"""Foreign key checks run before any write is committed."""

import logging
from typing import Any

from rental_core.core.domain_exceptions import InvalidReferenceError
from rental_core.db.store import EntityStore
from rental_core.services.registry import get_spec
from rental_core.services.visibility import visibility_criteria

logger = logging.getLogger(__name__)


async def validate_reference(store: EntityStore, entity_type: str, entity_id: Any) -> bool:
    """True when ``entity_id`` names a live record of ``entity_type``.

    Soft-deleted records count as missing.
    """
    if entity_id is None:
        return False
    model = get_spec(entity_type).model
    return await store.exists(model, model.id == entity_id, *visibility_criteria(model))


async def ensure_references(store: EntityStore, entity_type: str, values: dict[str, Any]) -> None:
    """Check every foreign key present in ``values``.

    On create pass the full payload, on update only the changed fields.
    Raises ``InvalidReferenceError`` naming the first offending field.
    """
    spec = get_spec(entity_type)
    fields = [field for field in spec.references if field in values]
    if not fields:
        return

    # One session cannot run statements concurrently; checks go one at a time.
    for field in fields:
        if not await validate_reference(store, spec.references[field], values[field]):
            target = get_spec(spec.references[field]).label
            logger.info(
                "Rejected %s write with dangling %s",
                entity_type,
                field,
                extra={"field": field, "value": values[field]},
            )
            raise InvalidReferenceError(field=field, message=f"Referenced {target.lower()} does not exist")
