from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends

from rental_core.db.models import Car
from rental_core.db.store import EntityStore
from rental_core.routes.deps import get_store, require_admin
from rental_core.schemas.common import APIResponse
from rental_core.schemas.entities import CarCreate, CarUpdate
from rental_core.schemas.responses import AvailabilityOut, CarOut, DeleteResult
from rental_core.services import entity_service, reservation_service

router = APIRouter(prefix="/api/cars", tags=["cars"])


@router.get("/", response_model=APIResponse[List[CarOut]])
async def list_cars(
    location_id: int | None = None,
    available: bool | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    brand: str | None = None,
    store: EntityStore = Depends(get_store),
):
    filters: dict = {}
    if location_id is not None:
        filters["location_id"] = location_id
    if available is not None:
        filters["available"] = available
    if min_price is not None:
        filters["price_by_day__gte"] = min_price
    if max_price is not None:
        filters["price_by_day__lte"] = max_price
    if brand:
        filters["brand__icontains"] = brand.strip()

    cars = await entity_service.find(store, "car", filters, order_by=(Car.price_by_day.asc(), Car.id.asc()))
    return APIResponse(success=True, data=[CarOut.model_validate(car) for car in cars])


@router.get("/{car_id}", response_model=APIResponse[CarOut])
async def get_car(car_id: int, store: EntityStore = Depends(get_store)):
    car = await entity_service.get_entity(store, "car", car_id)
    return APIResponse(success=True, data=CarOut.model_validate(car))


@router.get("/{car_id}/availability", response_model=APIResponse[AvailabilityOut])
async def car_availability(
    car_id: int,
    start_date: datetime,
    end_date: datetime,
    store: EntityStore = Depends(get_store),
):
    available = await reservation_service.is_car_available(store, car_id, start_date, end_date)
    return APIResponse(success=True, data=AvailabilityOut(car_id=car_id, available=available))


@router.post("/", status_code=201, response_model=APIResponse[CarOut], dependencies=[Depends(require_admin)])
async def create_car(payload: CarCreate, store: EntityStore = Depends(get_store)):
    car = await entity_service.create_entity(store, "car", payload.model_dump())
    return APIResponse(success=True, data=CarOut.model_validate(car))


@router.put("/{car_id}", response_model=APIResponse[CarOut], dependencies=[Depends(require_admin)])
async def update_car(car_id: int, payload: CarUpdate, store: EntityStore = Depends(get_store)):
    car = await entity_service.update_entity(store, "car", car_id, payload.model_dump(exclude_unset=True))
    return APIResponse(success=True, data=CarOut.model_validate(car))


@router.delete("/{car_id}", response_model=APIResponse[DeleteResult], dependencies=[Depends(require_admin)])
async def delete_car(car_id: int, store: EntityStore = Depends(get_store)):
    report = await entity_service.delete_entity(store, "car", car_id)
    return APIResponse(success=True, data=DeleteResult(deleted=report.deleted))
