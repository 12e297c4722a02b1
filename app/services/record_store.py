"""
Record store capability.

Generic key-indexed durable storage used by the delivery ledger and the job
queue. Both keep their working set in memory and write every transition
through to the store when one is configured.
"""
from typing import Protocol, Sequence, TypeVar

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.errors import StoreUnavailable
from app.models.base import Base


M = TypeVar("M", bound=Base)


class RecordStore(Protocol):
    async def save(self, record: Base) -> None:
        ...

    async def get(self, model: type[M], record_id: str) -> M | None:
        ...

    async def delete(self, model: type[Base], record_ids: Sequence[str]) -> None:
        ...


class SqlRecordStore:
    """RecordStore over SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def save(self, record: Base) -> None:
        """Insert or update a record by primary key."""
        try:
            async with self.session_factory() as db:
                await db.merge(record)
                await db.commit()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(str(e)) from e

    async def get(self, model: type[M], record_id: str) -> M | None:
        try:
            async with self.session_factory() as db:
                return await db.get(model, record_id)
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(str(e)) from e

    async def delete(self, model: type[Base], record_ids: Sequence[str]) -> None:
        if not record_ids:
            return
        try:
            async with self.session_factory() as db:
                await db.execute(delete(model).where(model.id.in_(list(record_ids))))
                await db.commit()
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(str(e)) from e
