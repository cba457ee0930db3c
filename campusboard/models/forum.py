"""Forum models"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Integer, String, Text, DateTime, Boolean, ForeignKey, UniqueConstraint, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ..database import Base
from .user import new_id


class Category(Base):
    """Forum categories"""

    __tablename__: str = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    hex_color: Mapped[str] = mapped_column(String(7), default="#000000")


class Forum(Base):
    """Forums (threads)"""

    __tablename__: str = "forums"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False)
    image_refs: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class ForumCategory(Base):
    """Forum <-> category tags"""

    __tablename__: str = "forum_categories"
    __table_args__: tuple[UniqueConstraint, ...] = (
        UniqueConstraint("forum_id", "category_id", name="uq_forum_category"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    forum_id: Mapped[str] = mapped_column(String(36), ForeignKey("forums.id"), nullable=False, index=True)
    category_id: Mapped[int] = mapped_column(Integer, ForeignKey("categories.id"), nullable=False, index=True)


class ForumLike(Base):
    """Forum like set"""

    __tablename__: str = "forum_likes"
    __table_args__: tuple[UniqueConstraint, ...] = (
        UniqueConstraint("forum_id", "user_id", name="uq_forum_like_forum_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    forum_id: Mapped[str] = mapped_column(String(36), ForeignKey("forums.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ForumFavorite(Base):
    """Forum favorite set"""

    __tablename__: str = "forum_favorites"
    __table_args__: tuple[UniqueConstraint, ...] = (
        UniqueConstraint("forum_id", "user_id", name="uq_forum_favorite_forum_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    forum_id: Mapped[str] = mapped_column(String(36), ForeignKey("forums.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Comment(Base):
    """Comments; a reply has parent_id set to its top-level comment"""

    __tablename__: str = "comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    forum_id: Mapped[str] = mapped_column(String(36), ForeignKey("forums.id"), nullable=False, index=True)
    parent_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("comments.id"), nullable=True, index=True)
    author_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False)
    image_refs: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None


class CommentLike(Base):
    """Comment like set"""

    __tablename__: str = "comment_likes"
    __table_args__: tuple[UniqueConstraint, ...] = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_like_comment_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    comment_id: Mapped[str] = mapped_column(String(36), ForeignKey("comments.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
