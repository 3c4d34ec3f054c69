"""State listing, search and bulk import."""

import logging
import math
from datetime import datetime

from rental_core.core.domain_exceptions import DomainException, DuplicateError
from rental_core.db.models import State
from rental_core.db.store import EntityStore
from rental_core.services.entity_service import create_entity, escape_like

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
AUTOCOMPLETE_LIMIT = 10
SORT_OPTIONS = {
    "name_asc": State.name.asc(),
    "name_desc": State.name.desc(),
    "date_asc": State.created_at.asc(),
    "date_desc": State.created_at.desc(),
}


async def list_states(
    store: EntityStore,
    search: str | None = None,
    sort: str = "name_asc",
    page: int = 1,
    limit: int = 10,
    created_after: datetime | None = None,
    created_before: datetime | None = None,
) -> dict:
    """Paged listing; unknown sort keys fall back to name ascending."""
    criteria = []
    if search:
        criteria.append(State.name.ilike(f"%{escape_like(search.strip())}%", escape="\\"))
    if created_after is not None:
        criteria.append(State.created_at >= created_after)
    if created_before is not None:
        criteria.append(State.created_at <= created_before)

    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    order = SORT_OPTIONS.get(sort, SORT_OPTIONS["name_asc"])

    total = await store.count(State, *criteria)
    states = await store.find(
        State,
        *criteria,
        order_by=(order, State.id.asc()),
        limit=limit,
        offset=(page - 1) * limit,
    )
    return {
        "data": states,
        "meta": {
            "total": total,
            "pages": math.ceil(total / limit),
            "page": page,
            "limit": limit,
        },
    }


async def search_states(store: EntityStore, query: str) -> list[State]:
    term = escape_like(query.strip())
    return await store.find(
        State,
        State.name.ilike(f"%{term}%", escape="\\"),
        order_by=(State.name.asc(),),
    )


async def autocomplete_states(store: EntityStore, prefix: str) -> list[str]:
    term = escape_like(prefix.strip())
    states = await store.find(
        State,
        State.name.ilike(f"{term}%", escape="\\"),
        order_by=(State.name.asc(),),
        limit=AUTOCOMPLETE_LIMIT,
    )
    return [state.name for state in states]


async def bulk_import_states(store: EntityStore, names: list[str]) -> dict:
    """Insert every name it can; duplicates and invalid names are reported, not fatal."""
    inserted: list[str] = []
    duplicates: list[str] = []
    rejected: list[dict] = []
    for name in names:
        try:
            state = await create_entity(store, "state", {"name": name})
        except DuplicateError:
            duplicates.append(name)
        except DomainException as exc:
            rejected.append({"name": name, "error": exc.message})
        else:
            inserted.append(state.name)

    logger.info(
        "Bulk state import finished",
        extra={"inserted": len(inserted), "duplicates": len(duplicates), "rejected": len(rejected)},
    )
    return {
        "inserted": len(inserted),
        "duplicates": len(duplicates),
        "duplicates_list": duplicates,
        "rejected": rejected,
    }
