"""API routes"""

from fastapi import APIRouter

from . import admin, forum, notification, report, user

api_router = APIRouter()

api_router.include_router(user.router)
api_router.include_router(forum.router)
api_router.include_router(notification.router)
api_router.include_router(report.router)
api_router.include_router(admin.router)
