"""Announcement service"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError
from ..models.announcement import Announcement
from ..models.notification import NotificationKind
from ..models.user import User, UserType
from ..repositories import announcement_seen, announcements, users
from ..repositories.notifications import NotificationTarget
from ..schemas.announcement import AnnouncementCreate
from .notification_service import ReconcileAction, notification_service

logger = logging.getLogger(__name__)


class AnnouncementService:
    @staticmethod
    async def get_announcement(db: AsyncSession, announcement_id: str) -> Announcement:
        announcement = await announcements.get(db, announcement_id)
        if announcement is None:
            raise NotFoundError("Announcement not found")
        return announcement

    @staticmethod
    async def create_announcement(db: AsyncSession, author: User, data: AnnouncementCreate) -> Announcement:
        """Publish and notify every member"""
        announcement = Announcement(
            title=data.title,
            description=data.description,
            author_id=author.id,
            image_refs=list(data.image_refs),
        )
        await announcements.insert(db, announcement)

        recipients = await users.find_ids(db, User.user_type != UserType.ADMIN, User.id != author.id)
        results = await notification_service.fan_out(
            db,
            NotificationKind.NEW_ANNOUNCEMENT,
            author.id,
            recipients,
            NotificationTarget(announcement_id=announcement.id),
        )
        await db.commit()
        logger.info("announcement %s published to %d users", announcement.id, len(results))

        for recipient_id, result in results:
            await notification_service.publish(recipient_id, result, ReconcileAction.PUSH)
        return announcement

    @staticmethod
    async def see_announcement(db: AsyncSession, announcement_id: str, user: User) -> int:
        announcement = await AnnouncementService.get_announcement(db, announcement_id)
        await announcement_seen.add(db, announcement.id, user.id)
        await db.commit()
        return await announcement_seen.size(db, announcement.id)


announcement_service = AnnouncementService()
