from typing import List

from fastapi import APIRouter, Depends

from rental_core.core.domain_exceptions import PermissionDeniedError
from rental_core.db.models import Location
from rental_core.db.store import EntityStore
from rental_core.routes.deps import get_store, require_actor
from rental_core.schemas.common import APIResponse
from rental_core.schemas.entities import LocationCreate, LocationUpdate
from rental_core.schemas.responses import DeleteResult, LocationOut
from rental_core.services import entity_service
from rental_core.services.entity_service import Actor, text_search

router = APIRouter(prefix="/api/locations", tags=["locations"])


async def _owned_location(store: EntityStore, location_id: int, actor: Actor, include_deleted: bool = False):
    location = await entity_service.get_entity(store, "location", location_id, include_deleted=include_deleted)
    entity_service.ensure_can_mutate(location, actor)
    return location


@router.get("/", response_model=APIResponse[List[LocationOut]])
async def list_locations(
    city_id: int | None = None,
    user_id: int | None = None,
    deleted: bool | None = None,
    search: str | None = None,
    store: EntityStore = Depends(get_store),
):
    filters: dict = {}
    if city_id is not None:
        filters["city_id"] = city_id
    if user_id is not None:
        filters["user_id"] = user_id
    # Filtering on the deletion marker switches the default exclusion off.
    if deleted is True:
        filters["deleted_at__ne"] = None
    elif deleted is False:
        filters["deleted_at"] = None

    locations = await entity_service.find(
        store,
        "location",
        filters,
        order_by=(Location.created_at.desc(), Location.id.desc()),
        extra_criteria=(text_search(Location, ("name", "address"), search),) if search else (),
    )
    return APIResponse(success=True, data=[LocationOut.model_validate(location) for location in locations])


@router.get("/{location_id}", response_model=APIResponse[LocationOut])
async def get_location(location_id: int, store: EntityStore = Depends(get_store)):
    location = await entity_service.get_entity(store, "location", location_id)
    return APIResponse(success=True, data=LocationOut.model_validate(location))


@router.post("/", status_code=201, response_model=APIResponse[LocationOut])
async def create_location(
    payload: LocationCreate,
    actor: Actor = Depends(require_actor),
    store: EntityStore = Depends(get_store),
):
    entity_service.ensure_can_mutate(payload, actor)
    location = await entity_service.create_entity(store, "location", payload.model_dump())
    return APIResponse(success=True, data=LocationOut.model_validate(location))


@router.put("/{location_id}", response_model=APIResponse[LocationOut])
async def update_location(
    location_id: int,
    payload: LocationUpdate,
    actor: Actor = Depends(require_actor),
    store: EntityStore = Depends(get_store),
):
    location = await _owned_location(store, location_id, actor)
    patch = payload.model_dump(exclude_unset=True)
    if patch.get("user_id", location.user_id) != location.user_id and not actor.is_admin:
        raise PermissionDeniedError("Only admins can change a location's owner")
    location = await entity_service.update_entity(store, "location", location_id, patch)
    return APIResponse(success=True, data=LocationOut.model_validate(location))


@router.delete("/{location_id}/soft", response_model=APIResponse[LocationOut])
async def soft_delete_location(
    location_id: int,
    actor: Actor = Depends(require_actor),
    store: EntityStore = Depends(get_store),
):
    await _owned_location(store, location_id, actor)
    location = await entity_service.soft_delete(store, "location", location_id)
    return APIResponse(success=True, data=LocationOut.model_validate(location))


@router.delete("/{location_id}", response_model=APIResponse[DeleteResult])
async def delete_location(
    location_id: int,
    cascade: bool = True,
    actor: Actor = Depends(require_actor),
    store: EntityStore = Depends(get_store),
):
    await _owned_location(store, location_id, actor, include_deleted=True)
    report = await entity_service.delete_entity(store, "location", location_id, cascade=cascade)
    return APIResponse(success=True, data=DeleteResult(deleted=report.deleted))
