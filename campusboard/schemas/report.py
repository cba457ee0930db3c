"""Report schemas"""
from datetime import datetime
from pydantic import BaseModel, Field

from ..models.report import ReportStatus


class ReportCreate(BaseModel):
    forum_id: str
    comment_id: str | None = None
    reply_comment_id: str | None = None
    reason: str = Field(..., min_length=1, max_length=2000)


class ReportStatusUpdate(BaseModel):
    status: ReportStatus


class ReportResponse(BaseModel):
    id: str
    report_code: str
    reporter_id: str
    defendant_id: str
    reason: str
    status: ReportStatus
    forum_id: str
    comment_id: str | None = None
    reply_comment_id: str | None = None
    target_type: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ReportListResponse(BaseModel):
    items: list[ReportResponse]
    total: int


class ReportStatusUpdateResponse(BaseModel):
    report: ReportResponse
    closed_count: int = 0
