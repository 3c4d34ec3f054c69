"""Shared route dependencies."""

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rental_core.core.domain_exceptions import PermissionDeniedError
from rental_core.db.session import get_db
from rental_core.db.store import EntityStore
from rental_core.services.entity_service import Actor


async def get_store(db: AsyncSession = Depends(get_db)) -> EntityStore:
    return EntityStore(db)


def get_actor(
    x_user_id: int | None = Header(default=None),
    x_admin: bool = Header(default=False),
) -> Actor | None:
    # Identity is established upstream by the auth layer and forwarded here.
    if x_user_id is None:
        return None
    return Actor(user_id=x_user_id, is_admin=x_admin)


def require_actor(actor: Actor | None = Depends(get_actor)) -> Actor:
    if actor is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return actor


def require_admin(actor: Actor = Depends(require_actor)) -> Actor:
    if not actor.is_admin:
        raise PermissionDeniedError("Admin access required")
    return actor
