"""Entity store: the persistence handle the core services work against.

Each write commits on its own. Callers never get atomicity across two store
calls, so every multi-step operation in the services is written to be safe
to retry after a partial failure.
"""

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from typing import Any, TypeVar

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rental_core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntityStore:
    """Async get/find/insert/update/delete over ORM models."""

    def __init__(self, session: AsyncSession, timeout: float | None = None):
        self.session = session
        self.timeout = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS

    async def _run(self, awaitable: Awaitable[T], timeout: float | None) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout or self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Store operation timed out after %ss.", timeout or self.timeout)
            await self.session.rollback()
            raise

    async def _commit_or_rollback(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def _execute_write(self, stmt) -> int:
        """Execute one DML statement and commit; returns the matched row count."""
        try:
            result = await self.session.execute(stmt)
            rowcount = result.rowcount or 0
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return rowcount

    async def get(self, model: type[T], entity_id: int, *criteria, timeout: float | None = None) -> T | None:
        stmt = (
            select(model)
            .where(model.id == entity_id, *criteria)
            .execution_options(populate_existing=True)
        )
        return await self._run(self.session.scalar(stmt), timeout)

    async def find(
        self,
        model: type[T],
        *criteria,
        order_by: Sequence[Any] = (),
        limit: int | None = None,
        offset: int | None = None,
        timeout: float | None = None,
    ) -> list[T]:
        stmt = select(model).where(*criteria).execution_options(populate_existing=True)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)

        async def _find() -> list[T]:
            return list((await self.session.scalars(stmt)).all())

        return await self._run(_find(), timeout)

    async def exists(self, model: type, *criteria, timeout: float | None = None) -> bool:
        stmt = select(model.id).where(*criteria).limit(1)
        return await self._run(self.session.scalar(stmt), timeout) is not None

    async def count(self, model: type, *criteria, timeout: float | None = None) -> int:
        stmt = select(func.count()).select_from(model).where(*criteria)
        return int(await self._run(self.session.scalar(stmt), timeout) or 0)

    async def ids(self, model: type, *criteria, timeout: float | None = None) -> list[int]:
        stmt = select(model.id).where(*criteria)

        async def _ids() -> list[int]:
            return list((await self.session.scalars(stmt)).all())

        return await self._run(_ids(), timeout)

    async def insert(self, entity: T, timeout: float | None = None) -> T:
        async def _insert() -> T:
            self.session.add(entity)
            await self._commit_or_rollback()
            await self.session.refresh(entity)
            return entity

        return await self._run(_insert(), timeout)

    async def insert_values(self, model: type, values: dict[str, Any], timeout: float | None = None) -> None:
        """Insert one row without tracking an ORM instance for it."""
        stmt = insert(model).values(**values)
        await self._run(self._execute_write(stmt), timeout)

    async def update(self, entity: T, values: dict[str, Any], timeout: float | None = None) -> T:
        async def _update() -> T:
            for field, value in values.items():
                setattr(entity, field, value)
            await self._commit_or_rollback()
            await self.session.refresh(entity)
            return entity

        return await self._run(_update(), timeout)

    async def update_where(
        self,
        model: type,
        values: dict[str, Any],
        *criteria,
        timeout: float | None = None,
    ) -> int:
        """Conditional bulk update; returns the number of rows matched."""
        stmt = update(model).where(*criteria).values(**values)
        return await self._run(self._execute_write(stmt), timeout)

    async def delete_where(self, model: type, *criteria, timeout: float | None = None) -> int:
        """Batch delete; returns the number of rows removed."""
        stmt = delete(model).where(*criteria)
        return await self._run(self._execute_write(stmt), timeout)
