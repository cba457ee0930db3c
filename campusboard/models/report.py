"""Report models"""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from ..database import Base
from .user import new_id


class ReportStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"
    INVALID = "invalid"
    CLOSED = "closed"


TERMINAL_REPORT_STATUSES = frozenset(
    {ReportStatus.RESOLVED, ReportStatus.REJECTED, ReportStatus.INVALID, ReportStatus.CLOSED}
)


class Report(Base):
    """Complaint against a forum or a comment"""
    __tablename__: str = "reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    report_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    # no FK: reports outlive the reporter
    reporter_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    defendant_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=ReportStatus.PENDING.value, index=True)
    forum_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    comment_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    reply_comment_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def target_type(self) -> str:
        return "comment" if self.comment_id else "forum"
