"""Notification collection: typed filters and aggregate helpers"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, fields
from typing import Union

from sqlalchemy import ColumnElement, delete, func, insert, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.notification import Notification, NotificationActor, NotificationReader
from .base import MembershipSet, Repository


@dataclass(frozen=True)
class NotificationTarget:
    """The refs a notification points at; unused refs stay None"""
    forum_id: str | None = None
    comment_id: str | None = None
    reply_comment_id: str | None = None
    announcement_id: str | None = None
    follower_user_id: str | None = None

    def as_columns(self) -> dict[str, str | None]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def of(cls, notification: Notification) -> NotificationTarget:
        return cls(**{f.name: getattr(notification, f.name) for f in fields(cls)})


@dataclass(frozen=True)
class NotificationFilterByKey:
    """Exact aggregation key: recipient, kind, and every target ref (absent refs match NULL)"""
    recipient_id: str
    action_kind: str
    target: NotificationTarget

    def clauses(self) -> list[ColumnElement[bool]]:
        out: list[ColumnElement[bool]] = [
            Notification.recipient_id == self.recipient_id,
            Notification.action_kind == self.action_kind,
        ]
        for name, value in self.target.as_columns().items():
            column = getattr(Notification, name)
            out.append(column.is_(None) if value is None else column == value)
        return out


@dataclass(frozen=True)
class NotificationFilterByForum:
    forum_ids: tuple[str, ...]

    def clauses(self) -> list[ColumnElement[bool]]:
        return [Notification.forum_id.in_(self.forum_ids)]


@dataclass(frozen=True)
class NotificationFilterByComments:
    """Matches a comment either as the commented target or as the reply target"""
    comment_ids: tuple[str, ...]

    def clauses(self) -> list[ColumnElement[bool]]:
        return [
            or_(
                Notification.comment_id.in_(self.comment_ids),
                Notification.reply_comment_id.in_(self.comment_ids),
            )
        ]


@dataclass(frozen=True)
class NotificationFilterByAnnouncement:
    announcement_ids: tuple[str, ...]

    def clauses(self) -> list[ColumnElement[bool]]:
        return [Notification.announcement_id.in_(self.announcement_ids)]


@dataclass(frozen=True)
class NotificationFilterByFollower:
    follower_user_id: str

    def clauses(self) -> list[ColumnElement[bool]]:
        return [Notification.follower_user_id == self.follower_user_id]


@dataclass(frozen=True)
class NotificationFilterByRecipient:
    recipient_id: str

    def clauses(self) -> list[ColumnElement[bool]]:
        return [Notification.recipient_id == self.recipient_id]


NotificationFilter = Union[
    NotificationFilterByKey,
    NotificationFilterByForum,
    NotificationFilterByComments,
    NotificationFilterByAnnouncement,
    NotificationFilterByFollower,
    NotificationFilterByRecipient,
]


def _actor_count():
    return (
        select(func.count(NotificationActor.id))
        .where(NotificationActor.notification_id == Notification.id)
        .correlate(Notification)
        .scalar_subquery()
    )


def _reader_count():
    return (
        select(func.count(NotificationReader.id))
        .where(NotificationReader.notification_id == Notification.id)
        .correlate(Notification)
        .scalar_subquery()
    )


def unread_clause() -> ColumnElement[bool]:
    return _actor_count() != _reader_count()


def read_clause() -> ColumnElement[bool]:
    return _actor_count() == _reader_count()


class NotificationRepository(Repository[Notification]):
    def __init__(self):
        super().__init__(Notification)
        self.actors = MembershipSet(NotificationActor, "notification_id", "user_id")
        self.readers = MembershipSet(NotificationReader, "notification_id", "user_id")

    async def find_by_key(self, db: AsyncSession, key: NotificationFilterByKey) -> Notification | None:
        # oldest first, so a raced duplicate keeps merging into the same record
        rows = await self.find_many(
            db, *key.clauses(), limit=1, order_by=(Notification.created_at, Notification.id)
        )
        return rows[0] if rows else None

    async def matching(self, db: AsyncSession, flt: NotificationFilter) -> list[tuple[str, str]]:
        """(notification_id, recipient_id) pairs matching a filter"""
        result = await db.execute(
            select(Notification.id, Notification.recipient_id).where(*flt.clauses())
        )
        return [(row[0], row[1]) for row in result.all()]

    async def delete_ids(self, db: AsyncSession, ids: Iterable[str]) -> int:
        id_list = list(ids)
        if not id_list:
            return 0
        await db.execute(delete(NotificationActor).where(NotificationActor.notification_id.in_(id_list)))
        await db.execute(delete(NotificationReader).where(NotificationReader.notification_id.in_(id_list)))
        return await self.delete_many(db, Notification.id.in_(id_list))

    async def acted_by(self, db: AsyncSession, user_id: str) -> list[Notification]:
        result = await db.execute(
            select(Notification)
            .join(NotificationActor, NotificationActor.notification_id == Notification.id)
            .where(NotificationActor.user_id == user_id)
        )
        return list(result.scalars().all())

    async def actor_lists(self, db: AsyncSession, ids: Iterable[str]) -> dict[str, list[str]]:
        """Actors per notification in insertion order (most recent last)"""
        id_list = list(ids)
        out: dict[str, list[str]] = {nid: [] for nid in id_list}
        if not id_list:
            return out
        result = await db.execute(
            select(NotificationActor.notification_id, NotificationActor.user_id)
            .where(NotificationActor.notification_id.in_(id_list))
            .order_by(NotificationActor.id)
        )
        for nid, uid in result.all():
            out[nid].append(uid)
        return out

    async def reader_counts(self, db: AsyncSession, ids: Iterable[str]) -> dict[str, int]:
        id_list = list(ids)
        out: dict[str, int] = {nid: 0 for nid in id_list}
        if not id_list:
            return out
        result = await db.execute(
            select(NotificationReader.notification_id, func.count(NotificationReader.id))
            .where(NotificationReader.notification_id.in_(id_list))
            .group_by(NotificationReader.notification_id)
        )
        for nid, n in result.all():
            out[nid] = int(n)
        return out

    async def mark_read(self, db: AsyncSession, *clauses: ColumnElement[bool]) -> None:
        """readers := actors for every notification matching the clauses"""
        ids = select(Notification.id).where(*clauses)
        await db.execute(delete(NotificationReader).where(NotificationReader.notification_id.in_(ids)))
        await db.execute(
            insert(NotificationReader.__table__).from_select(
                ["notification_id", "user_id"],
                select(NotificationActor.notification_id, NotificationActor.user_id).where(
                    NotificationActor.notification_id.in_(ids)
                ),
            )
        )


notification_repository = NotificationRepository()
