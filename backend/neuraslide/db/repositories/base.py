"""
Base repository with ownership-scoped CRUD operations.

Repositories work inside a session owned by the caller so a service can
compose several operations in one transaction. Owned lookups always use the
compound ``(id, user_id)`` predicate; a record belonging to someone else is
indistinguishable from one that does not exist.
"""

from typing import Any, Generic, Optional, Sequence, Type, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from neuraslide.infrastructure.database import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Generic async repository for SQLAlchemy models."""

    def __init__(self, model: Type[T]):
        self.model = model

    async def get_by_id(self, session: AsyncSession, id: Any) -> Optional[T]:
        """Get a single record by primary key."""
        return await session.get(self.model, id)

    async def get_owned(self, session: AsyncSession, id: Any, user_id: str) -> Optional[T]:
        """Get a record only if it belongs to ``user_id``."""
        stmt = select(self.model).where(self.model.id == id, self.model.user_id == user_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    def _apply_filters(self, stmt: Select, filters: dict[str, Any] | None) -> Select:
        if filters:
            for key, value in filters.items():
                if value is not None and hasattr(self.model, key):
                    stmt = stmt.where(getattr(self.model, key) == value)
        return stmt

    async def list(
        self,
        session: AsyncSession,
        *,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Sequence[T]:
        """List records with optional equality filters, ordering ("-" prefix = desc) and paging."""
        stmt = self._apply_filters(select(self.model), filters)

        if order_by and hasattr(self.model, order_by.lstrip("-")):
            col = getattr(self.model, order_by.lstrip("-"))
            stmt = stmt.order_by(col.desc() if order_by.startswith("-") else col)

        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        return result.scalars().all()

    async def count(self, session: AsyncSession, filters: dict[str, Any] | None = None) -> int:
        """Count records matching equality filters."""
        stmt = self._apply_filters(select(func.count()).select_from(self.model), filters)
        result = await session.execute(stmt)
        return result.scalar_one()

    async def create(self, session: AsyncSession, **kwargs: Any) -> T:
        """Insert a new record and return it with defaults populated."""
        instance = self.model(**kwargs)
        session.add(instance)
        await session.flush()
        await session.refresh(instance)
        return instance

    async def update(self, session: AsyncSession, instance: T, **kwargs: Any) -> T:
        """Apply attribute changes to an already-loaded record."""
        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)
        await session.flush()
        await session.refresh(instance)
        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        await session.delete(instance)
        await session.flush()
