"""Owner-scoped access to the ``memories`` table.

Every statement built here filters on ``Memory.user_id``; a memory owned by
someone else behaves exactly like a memory that does not exist.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any, TypeVar

from sqlalchemy import Select, asc, delete, desc, extract, select, update
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from recuerdos.core.errors import DatabaseUnavailable
from recuerdos.models.memory import Memory
from recuerdos.schemas import MemoryFilters

logger = logging.getLogger(__name__)

T = TypeVar("T")

READ_ATTEMPTS = 2
UPDATABLE_FIELDS = {"title", "description", "date", "photo_url", "photo_storage_key"}


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_list_query(owner_id: int, filters: MemoryFilters) -> Select:
    query = select(Memory).where(Memory.user_id == owner_id)

    if filters.search:
        query = query.where(Memory.title.ilike(f"%{_escape_like(filters.search)}%", escape="\\"))
    if filters.year is not None:
        query = query.where(extract("year", Memory.date) == filters.year)
    if filters.month is not None:
        query = query.where(extract("month", Memory.date) == filters.month)

    direction = asc if filters.ascending else desc
    return query.order_by(direction(Memory.date), direction(Memory.id))


def build_get_query(owner_id: int, memory_id: int) -> Select:
    return select(Memory).where(Memory.id == memory_id, Memory.user_id == owner_id)


class MemoryStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _read(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        for attempt in range(1, READ_ATTEMPTS + 1):
            try:
                return await fn()
            except DBAPIError as exc:
                await self.session.rollback()
                if attempt < READ_ATTEMPTS and exc.connection_invalidated:
                    logger.warning("memory_store event=read_retry operation=%s attempt=%s", operation, attempt)
                    continue
                logger.exception("memory_store event=read_failed operation=%s", operation)
                raise DatabaseUnavailable() from exc
            except SQLAlchemyError as exc:
                await self.session.rollback()
                logger.exception("memory_store event=read_failed operation=%s", operation)
                raise DatabaseUnavailable() from exc
        raise DatabaseUnavailable()

    async def _write(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            result = await fn()
            await self.session.commit()
            return result
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("memory_store event=write_failed operation=%s", operation)
            raise DatabaseUnavailable() from exc

    async def list(self, owner_id: int, filters: MemoryFilters) -> list[Memory]:
        async def run() -> list[Memory]:
            result = await self.session.execute(build_list_query(owner_id, filters))
            return list(result.scalars().all())

        return await self._read("list", run)

    async def get(self, owner_id: int, memory_id: int) -> Memory | None:
        async def run() -> Memory | None:
            result = await self.session.execute(build_get_query(owner_id, memory_id))
            return result.scalar_one_or_none()

        return await self._read("get", run)

    async def insert(
        self,
        owner_id: int,
        title: str,
        description: str | None,
        memory_date: date,
        photo_url: str,
        photo_storage_key: str,
    ) -> Memory:
        memory = Memory(
            user_id=owner_id,
            title=title,
            description=description,
            date=memory_date,
            photo_url=photo_url,
            photo_storage_key=photo_storage_key,
        )

        async def run() -> Memory:
            self.session.add(memory)
            await self.session.flush()
            # load server-side timestamps while still inside the transaction
            await self.session.refresh(memory)
            return memory

        return await self._write("insert", run)

    async def update(self, owner_id: int, memory_id: int, values: dict[str, Any]) -> bool:
        unknown = set(values) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update memory fields: {sorted(unknown)}")
        if ("photo_url" in values) != ("photo_storage_key" in values):
            raise ValueError("photo_url and photo_storage_key must be updated together")
        if not values:
            return True

        async def run() -> bool:
            result = await self.session.execute(
                update(Memory)
                .where(Memory.id == memory_id, Memory.user_id == owner_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

        return await self._write("update", run)

    async def delete(self, owner_id: int, memory_id: int) -> bool:
        async def run() -> bool:
            result = await self.session.execute(
                delete(Memory)
                .where(Memory.id == memory_id, Memory.user_id == owner_id)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

        return await self._write("delete", run)

    async def storage_keys(self, owner_id: int) -> list[str]:
        async def run() -> list[str]:
            result = await self.session.execute(
                select(Memory.photo_storage_key).where(Memory.user_id == owner_id)
            )
            return [key for (key,) in result.all()]

        return await self._read("storage_keys", run)
