"""Admin API routes"""
import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.report import ReportStatus
from ..models.user import User
from ..schemas.admin import CascadeResponse, CategoryCreate, CategoryIdsRequest, CategoryResponse, IdsRequest
from ..schemas.announcement import AnnouncementCreate, AnnouncementResponse
from ..schemas.report import ReportListResponse, ReportResponse, ReportStatusUpdate, ReportStatusUpdateResponse
from ..schemas.user import UserCreate, UserResponse
from ..services.announcement_service import announcement_service
from ..services.forum_service import forum_service
from ..services.moderation_service import moderation_service
from ..services.report_service import report_service
from ..services.user_service import user_service
from ..utils.deps import get_session_id, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ============ Users ============

@router.post("/users", response_model=UserResponse, summary="Create a user")
async def create_user(
    data: UserCreate,
    _: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await user_service.create_user(db, data)


@router.delete("/users/{user_id}", response_model=CascadeResponse, summary="Delete a user and their content")
async def delete_user(
    user_id: str,
    current_user: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    session_id: Annotated[str | None, Depends(get_session_id)],
):
    plan = await moderation_service.delete_user(db, user_id, session_id)
    logger.info("admin %s deleted user %s", current_user.id, user_id)
    return CascadeResponse(deleted=plan.deleted_count + 1, refreshed_users=len(plan.recipients - {user_id}))


# ============ Announcements ============

@router.post("/announcements", response_model=AnnouncementResponse, summary="Publish an announcement")
async def create_announcement(
    data: AnnouncementCreate,
    current_user: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await announcement_service.create_announcement(db, current_user, data)


@router.delete("/announcements/{announcement_id}", response_model=CascadeResponse, summary="Delete an announcement")
async def delete_announcement(
    announcement_id: str,
    current_user: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    plan = await moderation_service.delete_announcement(db, announcement_id, current_user)
    return CascadeResponse(deleted=plan.deleted_count, refreshed_users=len(plan.recipients))


# ============ Categories ============

@router.post("/categories", response_model=CategoryResponse, summary="Create a category")
async def create_category(
    data: CategoryCreate,
    _: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await forum_service.create_category(db, data.name, data.hex_color)


@router.post("/categories/delete", response_model=CascadeResponse, summary="Delete categories")
async def delete_categories(
    data: CategoryIdsRequest,
    _: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    session_id: Annotated[str | None, Depends(get_session_id)],
):
    """Forums left without any category are deleted, the rest are untagged"""
    plan = await moderation_service.delete_categories(db, data.ids, session_id)
    return CascadeResponse(deleted=plan.deleted_count, refreshed_users=len(plan.recipients))


# ============ Reports ============

@router.get("/reports", response_model=ReportListResponse, summary="List reports")
async def list_reports(
    _: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    report_status: Annotated[ReportStatus | None, Query(alias="status")] = None,
    target_type: Annotated[Literal["forum", "comment"] | None, Query()] = None,
):
    total, items = await report_service.list_reports(
        db,
        status=report_status.value if report_status else None,
        target_type=target_type,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    return ReportListResponse(items=[ReportResponse.model_validate(r) for r in items], total=total)


@router.get("/reports/stats", summary="Report counts by status")
async def report_stats(
    _: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await report_service.count_by_status(db)


@router.get("/reports/{report_id}", response_model=ReportResponse, summary="Report detail")
async def get_report(
    report_id: str,
    _: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await report_service.get_report(db, report_id)


@router.put("/reports/{report_id}/status", response_model=ReportStatusUpdateResponse, summary="Decide a report")
async def update_report_status(
    report_id: str,
    data: ReportStatusUpdate,
    current_user: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """A decision also closes the other pending reports on the same content"""
    report = await report_service.update_status(db, report_id, data.status.value)
    closed = await report_service.close_superseded(db, report)
    logger.info("admin %s set report %s to %s", current_user.id, report.report_code, report.status)
    return ReportStatusUpdateResponse(report=ReportResponse.model_validate(report), closed_count=closed)


@router.post("/reports/delete", summary="Delete reports")
async def delete_reports(
    data: IdsRequest,
    _: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    deleted = await report_service.delete_reports(db, data.ids)
    return {"deleted": deleted}
