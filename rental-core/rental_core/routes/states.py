from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query

from rental_core.db.store import EntityStore
from rental_core.routes.deps import get_store, require_admin
from rental_core.schemas.common import APIResponse, Page, PageMeta
from rental_core.schemas.entities import StateCreate, StateUpdate
from rental_core.schemas.responses import BulkImportResult, DeleteResult, StateOut
from rental_core.services import entity_service, state_service

router = APIRouter(prefix="/api/states", tags=["states"])


@router.get("/", response_model=APIResponse[Page[StateOut]])
async def list_states(
    search: str | None = None,
    sort: str = "name_asc",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    created_after: datetime | None = None,
    created_before: datetime | None = None,
    store: EntityStore = Depends(get_store),
):
    result = await state_service.list_states(
        store,
        search=search,
        sort=sort,
        page=page,
        limit=limit,
        created_after=created_after,
        created_before=created_before,
    )
    return APIResponse(
        success=True,
        data=Page[StateOut](
            data=[StateOut.model_validate(state) for state in result["data"]],
            meta=PageMeta(**result["meta"]),
        ),
    )


@router.get("/search/{query}", response_model=APIResponse[List[StateOut]])
async def search_states(query: str, store: EntityStore = Depends(get_store)):
    states = await state_service.search_states(store, query)
    return APIResponse(success=True, data=[StateOut.model_validate(state) for state in states])


@router.get("/autocomplete/{prefix}", response_model=APIResponse[List[str]])
async def autocomplete_states(prefix: str, store: EntityStore = Depends(get_store)):
    return APIResponse(success=True, data=await state_service.autocomplete_states(store, prefix))


@router.post(
    "/bulk-import",
    status_code=201,
    response_model=APIResponse[BulkImportResult],
    dependencies=[Depends(require_admin)],
)
async def bulk_import_states(names: List[str], store: EntityStore = Depends(get_store)):
    result = await state_service.bulk_import_states(store, names)
    return APIResponse(success=True, data=BulkImportResult(**result))


@router.get("/{state_id}", response_model=APIResponse[StateOut])
async def get_state(state_id: int, store: EntityStore = Depends(get_store)):
    state = await entity_service.get_entity(store, "state", state_id)
    return APIResponse(success=True, data=StateOut.model_validate(state))


@router.post(
    "/",
    status_code=201,
    response_model=APIResponse[StateOut],
    dependencies=[Depends(require_admin)],
)
async def create_state(payload: StateCreate, store: EntityStore = Depends(get_store)):
    state = await entity_service.create_entity(store, "state", payload.model_dump())
    return APIResponse(success=True, data=StateOut.model_validate(state))


@router.put("/{state_id}", response_model=APIResponse[StateOut], dependencies=[Depends(require_admin)])
async def update_state(state_id: int, payload: StateUpdate, store: EntityStore = Depends(get_store)):
    state = await entity_service.update_entity(
        store, "state", state_id, payload.model_dump(exclude_unset=True)
    )
    return APIResponse(success=True, data=StateOut.model_validate(state))


@router.delete("/{state_id}", response_model=APIResponse[DeleteResult], dependencies=[Depends(require_admin)])
async def delete_state(state_id: int, cascade: bool = True, store: EntityStore = Depends(get_store)):
    report = await entity_service.delete_entity(store, "state", state_id, cascade=cascade)
    return APIResponse(success=True, data=DeleteResult(deleted=report.deleted))
