"""Generic collection access over the async ORM"""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Generic, TypeVar, cast

from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import Base

ModelT = TypeVar("ModelT", bound=Base)


class Repository(Generic[ModelT]):
    """find/insert/update/delete for one mapped collection"""

    def __init__(self, model: type[ModelT]):
        self.model = model

    async def get(self, db: AsyncSession, id_: Any) -> ModelT | None:
        return await db.get(self.model, id_)

    async def find_one(self, db: AsyncSession, *clauses: ColumnElement[bool]) -> ModelT | None:
        result = await db.execute(select(self.model).where(*clauses).limit(1))
        return result.scalars().first()

    async def find_many(
        self,
        db: AsyncSession,
        *clauses: ColumnElement[bool],
        offset: int = 0,
        limit: int | None = None,
        order_by: Sequence[Any] = (),
    ) -> list[ModelT]:
        query = select(self.model).where(*clauses)
        if order_by:
            query = query.order_by(*order_by)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def find_ids(self, db: AsyncSession, *clauses: ColumnElement[bool]) -> list[Any]:
        result = await db.execute(select(self.model.id).where(*clauses))  # type: ignore[attr-defined]
        return list(result.scalars().all())

    async def count(self, db: AsyncSession, *clauses: ColumnElement[bool]) -> int:
        result = await db.execute(select(func.count()).select_from(self.model).where(*clauses))
        return int(result.scalar() or 0)

    async def insert(self, db: AsyncSession, obj: ModelT) -> ModelT:
        db.add(obj)
        await db.flush()
        return obj

    async def update_many(
        self, db: AsyncSession, clauses: Sequence[ColumnElement[bool]], patch: dict[str, Any]
    ) -> int:
        if not clauses:
            raise ValueError("update_many requires at least one filter clause")
        result = await db.execute(update(self.model).where(*clauses).values(**patch))
        return int(cast(CursorResult[Any], result).rowcount or 0)

    async def update_one(
        self, db: AsyncSession, clauses: Sequence[ColumnElement[bool]], patch: dict[str, Any]
    ) -> bool:
        return await self.update_many(db, clauses, patch) > 0

    async def delete_many(self, db: AsyncSession, *clauses: ColumnElement[bool]) -> int:
        if not clauses:
            raise ValueError("delete_many requires at least one filter clause")
        result = await db.execute(delete(self.model).where(*clauses))
        return int(cast(CursorResult[Any], result).rowcount or 0)


class MembershipSet:
    """
    A set-valued field stored as an association table with a unique
    (owner, member) constraint.

    add() inserts inside a SAVEPOINT and treats a unique violation as
    "already a member"; remove() is a single DELETE. Neither reads first,
    so concurrent writers on the same owner never lose each other's updates.
    """

    def __init__(self, model: type[Base], owner_field: str, member_field: str):
        self.model = model
        self.owner_field = owner_field
        self.member_field = member_field

    @property
    def _owner_col(self):
        return getattr(self.model, self.owner_field)

    @property
    def _member_col(self):
        return getattr(self.model, self.member_field)

    async def add(self, db: AsyncSession, owner_id: Any, member_id: Any) -> bool:
        try:
            async with db.begin_nested():
                db.add(self.model(**{self.owner_field: owner_id, self.member_field: member_id}))
        except IntegrityError:
            return False
        return True

    async def remove(self, db: AsyncSession, owner_id: Any, member_id: Any) -> bool:
        result = await db.execute(
            delete(self.model).where(self._owner_col == owner_id, self._member_col == member_id)
        )
        return int(cast(CursorResult[Any], result).rowcount or 0) > 0

    async def remove_owner(self, db: AsyncSession, *owner_ids: Any) -> int:
        if not owner_ids:
            return 0
        result = await db.execute(delete(self.model).where(self._owner_col.in_(owner_ids)))
        return int(cast(CursorResult[Any], result).rowcount or 0)

    async def remove_member_everywhere(self, db: AsyncSession, *member_ids: Any) -> int:
        if not member_ids:
            return 0
        result = await db.execute(delete(self.model).where(self._member_col.in_(member_ids)))
        return int(cast(CursorResult[Any], result).rowcount or 0)

    async def contains(self, db: AsyncSession, owner_id: Any, member_id: Any) -> bool:
        result = await db.execute(
            select(func.count()).select_from(self.model).where(
                self._owner_col == owner_id, self._member_col == member_id
            )
        )
        return int(result.scalar() or 0) > 0

    async def members(self, db: AsyncSession, owner_id: Any) -> list[Any]:
        result = await db.execute(
            select(self._member_col).where(self._owner_col == owner_id).order_by(self.model.id)  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def owners(self, db: AsyncSession, member_id: Any) -> list[Any]:
        result = await db.execute(select(self._owner_col).where(self._member_col == member_id))
        return list(result.scalars().all())

    async def owners_of_any(self, db: AsyncSession, member_ids: Sequence[Any]) -> list[Any]:
        if not member_ids:
            return []
        result = await db.execute(select(self._owner_col).where(self._member_col.in_(member_ids)).distinct())
        return list(result.scalars().all())

    async def size(self, db: AsyncSession, owner_id: Any) -> int:
        result = await db.execute(
            select(func.count()).select_from(self.model).where(self._owner_col == owner_id)
        )
        return int(result.scalar() or 0)
