"""User models"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ..database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class UserType:
    STUDENT = "std"
    TEACHER = "tch"
    ADMIN = "adm"


class User(Base):
    """Users"""
    __tablename__: str = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_type: Mapped[str] = mapped_column(String(8), default=UserType.STUDENT)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)
    student_id: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    image_ref: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_admin(self) -> bool:
        return self.user_type == UserType.ADMIN


class UserFollow(Base):
    """Follower -> following edges"""
    __tablename__: str = "user_follows"
    __table_args__: tuple[UniqueConstraint, ...] = (
        UniqueConstraint("follower_id", "following_id", name="uq_user_follow"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    follower_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    following_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class UserNotifySubscription(Base):
    """subscriber wants new-forum notifications from publisher"""
    __tablename__: str = "user_notify_subscriptions"
    __table_args__: tuple[UniqueConstraint, ...] = (
        UniqueConstraint("publisher_id", "subscriber_id", name="uq_user_notify_subscription"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    publisher_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    subscriber_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
