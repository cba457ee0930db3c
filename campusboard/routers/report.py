"""Report API routes for members"""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from ..schemas.report import ReportCreate, ReportResponse
from ..services.report_service import report_service
from ..utils.deps import require_member

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.post("", response_model=ReportResponse, summary="Report a forum or a comment")
async def create_report(
    data: ReportCreate,
    current_user: Annotated[User, Depends(require_member)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await report_service.create_report(
        db,
        current_user,
        data.forum_id,
        data.reason,
        comment_id=data.comment_id,
        reply_comment_id=data.reply_comment_id,
    )
