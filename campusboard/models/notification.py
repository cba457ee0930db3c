"""Notification models"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ..database import Base
from .user import new_id


class NotificationKind:
    LIKE_FORUM = "like-forum"
    LIKE_COMMENT = "like-comment"
    NEW_FORUM = "new-forum"
    NEW_COMMENT = "new-comment"
    NEW_REPLY = "new-reply"
    NEW_ANNOUNCEMENT = "new-announcement"
    NEW_FOLLOWER = "new-follower"

    ALL = (
        LIKE_FORUM,
        LIKE_COMMENT,
        NEW_FORUM,
        NEW_COMMENT,
        NEW_REPLY,
        NEW_ANNOUNCEMENT,
        NEW_FOLLOWER,
    )


# text appended after the actor name
ACTION_TEXT: dict[str, str] = {
    NotificationKind.LIKE_FORUM: "liked your forum",
    NotificationKind.LIKE_COMMENT: "liked your comment",
    NotificationKind.NEW_FORUM: "posted a new forum",
    NotificationKind.NEW_COMMENT: "commented on your forum",
    NotificationKind.NEW_REPLY: "replied to your comment",
    NotificationKind.NEW_ANNOUNCEMENT: "New announcement",
    NotificationKind.NEW_FOLLOWER: "started following you",
}


class Notification(Base):
    """One aggregated notification per (recipient, kind, target)"""
    __tablename__: str = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    action_kind: Mapped[str] = mapped_column(String(32), nullable=False)
    recipient_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    # target refs, only the subset relevant to action_kind is set
    forum_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    comment_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    reply_comment_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    announcement_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    follower_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class NotificationActor(Base):
    """Actors of a notification; id order is insertion order"""
    __tablename__: str = "notification_actors"
    __table_args__: tuple[UniqueConstraint, ...] = (
        UniqueConstraint("notification_id", "user_id", name="uq_notification_actor"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    notification_id: Mapped[str] = mapped_column(String(36), ForeignKey("notifications.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)


class NotificationReader(Base):
    """Actors the recipient has already seen"""
    __tablename__: str = "notification_readers"
    __table_args__: tuple[UniqueConstraint, ...] = (
        UniqueConstraint("notification_id", "user_id", name="uq_notification_reader"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    notification_id: Mapped[str] = mapped_column(String(36), ForeignKey("notifications.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
