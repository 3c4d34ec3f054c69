from typing import List

from fastapi import APIRouter, Depends

from rental_core.db.models import City
from rental_core.db.store import EntityStore
from rental_core.routes.deps import get_store, require_admin
from rental_core.schemas.common import APIResponse
from rental_core.schemas.entities import CityCreate, CityUpdate
from rental_core.schemas.responses import CityOut, DeleteResult
from rental_core.services import entity_service

router = APIRouter(prefix="/api/cities", tags=["cities"])


@router.get("/", response_model=APIResponse[List[CityOut]])
async def list_cities(
    state_id: int | None = None,
    search: str | None = None,
    store: EntityStore = Depends(get_store),
):
    filters: dict = {}
    if state_id is not None:
        filters["state_id"] = state_id
    if search:
        filters["name__icontains"] = search.strip()

    cities = await entity_service.find(store, "city", filters, order_by=(City.name.asc(),))
    return APIResponse(success=True, data=[CityOut.model_validate(city) for city in cities])


@router.get("/{city_id}", response_model=APIResponse[CityOut])
async def get_city(city_id: int, store: EntityStore = Depends(get_store)):
    city = await entity_service.get_entity(store, "city", city_id)
    return APIResponse(success=True, data=CityOut.model_validate(city))


@router.post("/", status_code=201, response_model=APIResponse[CityOut], dependencies=[Depends(require_admin)])
async def create_city(payload: CityCreate, store: EntityStore = Depends(get_store)):
    city = await entity_service.create_entity(store, "city", payload.model_dump())
    return APIResponse(success=True, data=CityOut.model_validate(city))


@router.put("/{city_id}", response_model=APIResponse[CityOut], dependencies=[Depends(require_admin)])
async def update_city(city_id: int, payload: CityUpdate, store: EntityStore = Depends(get_store)):
    city = await entity_service.update_entity(store, "city", city_id, payload.model_dump(exclude_unset=True))
    return APIResponse(success=True, data=CityOut.model_validate(city))


@router.delete("/{city_id}", response_model=APIResponse[DeleteResult], dependencies=[Depends(require_admin)])
async def delete_city(city_id: int, cascade: bool = True, store: EntityStore = Depends(get_store)):
    report = await entity_service.delete_entity(store, "city", city_id, cascade=cascade)
    return APIResponse(success=True, data=DeleteResult(deleted=report.deleted))
