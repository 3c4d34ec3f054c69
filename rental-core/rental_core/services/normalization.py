"""Canonical forms for user-supplied values and uniqueness checks over them."""

import logging
import re
from typing import Any

from rental_core.core.domain_exceptions import DuplicateError, ValidationError
from rental_core.db.store import EntityStore
from rental_core.services.registry import get_spec

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^\+\d{7,15}$")
REGISTRATION_PATTERN = re.compile(r"^[A-Z0-9]{6,12}$")
_PHONE_STRIP = re.compile(r"[^\d+]")


def title_case(value: str) -> str:
    """Trim, collapse runs of whitespace and title-case every token."""
    return " ".join(token[:1].upper() + token[1:].lower() for token in value.split())


def normalize_phone(value: str) -> str:
    digits = _PHONE_STRIP.sub("", value.strip())
    # Only a leading '+' survives.
    if digits.startswith("+"):
        digits = "+" + digits[1:].replace("+", "")
    else:
        digits = digits.replace("+", "")
    if not PHONE_PATTERN.match(digits):
        raise ValidationError(f"{value} is not a valid phone number")
    return digits


def normalize_registration(value: str) -> str:
    canonical = value.strip().upper()
    if not REGISTRATION_PATTERN.match(canonical):
        raise ValidationError("Invalid registration number format")
    return canonical


def _strip(value: str) -> str:
    return value.strip()


def _lower(value: str) -> str:
    return value.strip().lower()


NORMALIZERS = {
    ("state", "name"): title_case,
    ("city", "name"): title_case,
    ("location", "name"): _strip,
    ("location", "address"): _strip,
    ("location", "phone_number"): normalize_phone,
    ("car", "brand"): _strip,
    ("car", "model"): _strip,
    ("car", "registration_number"): normalize_registration,
    ("user", "name"): _strip,
    ("user", "email"): _lower,
}


def normalize(entity_type: str, field: str, raw_value: Any) -> Any:
    """Return the canonical form of ``raw_value`` for ``entity_type.field``."""
    normalizer = NORMALIZERS.get((entity_type, field))
    if normalizer is None or raw_value is None:
        return raw_value
    if not isinstance(raw_value, str):
        raise ValidationError(f"{field} must be a string")
    value = normalizer(raw_value)
    if not value:
        raise ValidationError(f"{field} cannot be blank")
    return value


def normalize_values(entity_type: str, values: dict[str, Any]) -> dict[str, Any]:
    return {field: normalize(entity_type, field, value) for field, value in values.items()}


def _scope_label(entity_type: str, scope: tuple[str, ...]) -> str:
    return f"{entity_type}.{'+'.join(scope)}"


async def ensure_unique(
    store: EntityStore,
    entity_type: str,
    values: dict[str, Any],
    current: Any | None = None,
) -> None:
    """Reject ``values`` if a uniqueness scope already holds them.

    ``values`` must already be normalized. On update pass the existing record
    as ``current``: scopes whose fields did not change are skipped, and the
    record itself is excluded from the lookup.
    """
    spec = get_spec(entity_type)
    model = spec.model
    for scope in spec.unique_scopes:
        if not any(field in values for field in scope):
            continue
        candidate = {
            field: values[field] if field in values else getattr(current, field, None)
            for field in scope
        }
        if current is not None and all(
            candidate[field] == getattr(current, field) for field in scope
        ):
            continue

        criteria = [getattr(model, field) == candidate[field] for field in scope]
        if current is not None:
            criteria.append(model.id != current.id)
        if await store.exists(model, *criteria):
            label = _scope_label(entity_type, scope)
            logger.info("Uniqueness pre-check rejected %s", label, extra={"values": candidate})
            raise DuplicateError(
                scope=label,
                message=f"{spec.label} with this {' and '.join(scope)} already exists",
            )


def duplicate_from_integrity_error(entity_type: str, exc: Exception) -> DuplicateError | None:
    """Map a unique-constraint violation raised by the store back to its scope.

    The pre-check and the write are not atomic, so the database constraint is
    the final word; this keeps its error in the same shape as the pre-check.
    """
    spec = get_spec(entity_type)
    message = str(getattr(exc, "orig", exc)).lower()
    if "unique" not in message and "duplicate" not in message:
        return None
    for scope in spec.unique_scopes:
        if all(field in message for field in scope):
            return DuplicateError(
                scope=_scope_label(entity_type, scope),
                message=f"{spec.label} with this {' and '.join(scope)} already exists",
            )
    if spec.unique_scopes:
        return DuplicateError(scope=_scope_label(entity_type, spec.unique_scopes[0]))
    return None
