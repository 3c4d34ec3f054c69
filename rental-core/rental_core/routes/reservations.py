from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from rental_core.db.store import EntityStore
from rental_core.routes.deps import get_store, require_actor, require_admin
from rental_core.schemas.common import APIResponse
from rental_core.schemas.entities import ReservationUpdate
from rental_core.schemas.responses import ReservationOut
from rental_core.services import entity_service, reservation_service
from rental_core.services.entity_service import Actor

router = APIRouter(prefix="/api/reservations", tags=["reservations"])


class ReservationRequest(BaseModel):
    car_id: int
    start_date: datetime
    end_date: datetime


@router.post("/", status_code=201, response_model=APIResponse[ReservationOut])
async def create_reservation(
    payload: ReservationRequest,
    actor: Actor = Depends(require_actor),
    store: EntityStore = Depends(get_store),
):
    reservation = await entity_service.create_entity(
        store,
        "reservation",
        {**payload.model_dump(), "user_id": actor.user_id},
    )
    return APIResponse(success=True, data=ReservationOut.model_validate(reservation))


@router.get("/my-reservations", response_model=APIResponse[List[ReservationOut]])
async def my_reservations(
    status: str | None = None,
    actor: Actor = Depends(require_actor),
    store: EntityStore = Depends(get_store),
):
    reservations = await reservation_service.list_user_reservations(store, actor.user_id, status=status)
    return APIResponse(success=True, data=[ReservationOut.model_validate(r) for r in reservations])


@router.get("/{reservation_id}", response_model=APIResponse[ReservationOut])
async def get_reservation(
    reservation_id: int,
    actor: Actor = Depends(require_actor),
    store: EntityStore = Depends(get_store),
):
    reservation = await entity_service.get_entity(store, "reservation", reservation_id)
    entity_service.ensure_can_mutate(reservation, actor)
    return APIResponse(success=True, data=ReservationOut.model_validate(reservation))


@router.patch(
    "/{reservation_id}/status",
    response_model=APIResponse[ReservationOut],
    dependencies=[Depends(require_admin)],
)
async def update_reservation_status(
    reservation_id: int,
    payload: ReservationUpdate,
    store: EntityStore = Depends(get_store),
):
    reservation = await entity_service.update_entity(
        store, "reservation", reservation_id, payload.model_dump()
    )
    return APIResponse(success=True, data=ReservationOut.model_validate(reservation))
