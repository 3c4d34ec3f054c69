from typing import List

from fastapi import APIRouter, Depends

from rental_core.core.domain_exceptions import PermissionDeniedError
from rental_core.db.models import User
from rental_core.db.store import EntityStore
from rental_core.routes.deps import get_actor, get_store, require_actor, require_admin
from rental_core.schemas.common import APIResponse
from rental_core.schemas.entities import UserCreate, UserUpdate
from rental_core.schemas.responses import DeleteResult, UserOut
from rental_core.services import entity_service
from rental_core.services.entity_service import Actor

router = APIRouter(prefix="/api/users", tags=["users"])


def _ensure_self_or_admin(user_id: int, actor: Actor) -> None:
    if not actor.is_admin and actor.user_id != user_id:
        raise PermissionDeniedError("Unauthorized access")


@router.get("/", response_model=APIResponse[List[UserOut]], dependencies=[Depends(require_admin)])
async def list_users(deleted: bool | None = None, store: EntityStore = Depends(get_store)):
    filters: dict = {}
    if deleted is True:
        filters["deleted_at__ne"] = None
    elif deleted is False:
        filters["deleted_at"] = None
    users = await entity_service.find(store, "user", filters, order_by=(User.name.asc(), User.id.asc()))
    return APIResponse(success=True, data=[UserOut.model_validate(user) for user in users])


@router.get("/me", response_model=APIResponse[UserOut])
async def get_me(actor: Actor = Depends(require_actor), store: EntityStore = Depends(get_store)):
    user = await entity_service.get_entity(store, "user", actor.user_id)
    return APIResponse(success=True, data=UserOut.model_validate(user))


@router.get("/{user_id}", response_model=APIResponse[UserOut])
async def get_user(
    user_id: int,
    actor: Actor = Depends(require_actor),
    store: EntityStore = Depends(get_store),
):
    _ensure_self_or_admin(user_id, actor)
    user = await entity_service.get_entity(store, "user", user_id)
    return APIResponse(success=True, data=UserOut.model_validate(user))


@router.post("/", status_code=201, response_model=APIResponse[UserOut])
async def create_user(
    payload: UserCreate,
    actor: Actor | None = Depends(get_actor),
    store: EntityStore = Depends(get_store),
):
    if payload.is_admin and not (actor and actor.is_admin):
        raise PermissionDeniedError("Only admins can create admin users")
    user = await entity_service.create_entity(store, "user", payload.model_dump())
    return APIResponse(success=True, data=UserOut.model_validate(user))


@router.put("/{user_id}", response_model=APIResponse[UserOut])
async def update_user(
    user_id: int,
    payload: UserUpdate,
    actor: Actor = Depends(require_actor),
    store: EntityStore = Depends(get_store),
):
    _ensure_self_or_admin(user_id, actor)
    patch = payload.model_dump(exclude_unset=True)
    if "is_admin" in patch and not actor.is_admin:
        raise PermissionDeniedError("Only admins can change admin rights")
    user = await entity_service.update_entity(store, "user", user_id, patch)
    return APIResponse(success=True, data=UserOut.model_validate(user))


@router.delete("/{user_id}/soft", response_model=APIResponse[UserOut])
async def soft_delete_user(
    user_id: int,
    actor: Actor = Depends(require_actor),
    store: EntityStore = Depends(get_store),
):
    _ensure_self_or_admin(user_id, actor)
    user = await entity_service.soft_delete(store, "user", user_id)
    return APIResponse(success=True, data=UserOut.model_validate(user))


@router.delete("/{user_id}", response_model=APIResponse[DeleteResult], dependencies=[Depends(require_admin)])
async def delete_user(user_id: int, cascade: bool = True, store: EntityStore = Depends(get_store)):
    report = await entity_service.delete_entity(store, "user", user_id, cascade=cascade)
    return APIResponse(success=True, data=DeleteResult(deleted=report.deleted))
