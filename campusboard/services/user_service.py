"""User service"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError, ValidationError
from ..models.notification import NotificationKind
from ..models.user import User, UserType
from ..repositories import followers, notify_subscribers, users
from ..repositories.notifications import NotificationTarget
from ..schemas.user import UserCreate, UserProfileUpdate
from .notification_service import NotificationEvent, ReconcileAction, notification_service
from .presence_service import admin_roster
from .storage_service import get_storage_provider

logger = logging.getLogger(__name__)

USER_TYPES = (UserType.STUDENT, UserType.TEACHER, UserType.ADMIN)


class UserService:
    """Profiles and the social graph"""

    @staticmethod
    async def get_user(db: AsyncSession, user_id: str) -> User:
        user = await users.get(db, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    async def create_user(db: AsyncSession, data: UserCreate) -> User:
        if data.user_type not in USER_TYPES:
            raise ValidationError(f"Unknown user type: {data.user_type}")
        user = User(
            user_type=data.user_type,
            display_name=data.display_name,
            full_name=data.full_name,
            email=data.email,
            student_id=data.student_id,
            image_ref=data.image_ref,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ValidationError("Email or student id already registered")
        await db.refresh(user)
        logger.info("user %s created (%s)", user.id, user.user_type)
        return user

    @staticmethod
    async def update_profile(db: AsyncSession, user: User, data: UserProfileUpdate) -> User:
        """Update profile fields and mirror them onto the live admin roster"""
        changes = data.model_dump(exclude_unset=True)
        for name, value in changes.items():
            setattr(user, name, value)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ValidationError("Student id already registered")
        await db.refresh(user)

        roster_changes: dict[str, str | None] = {}
        if "display_name" in changes:
            roster_changes["display_name"] = user.display_name
        if "full_name" in changes:
            roster_changes["full_name"] = user.full_name
        if "student_id" in changes:
            roster_changes["student_id"] = user.student_id
        if "image_ref" in changes:
            roster_changes["image_url"] = (
                get_storage_provider().public_url(user.image_ref) if user.image_ref else None
            )
        if roster_changes:
            await admin_roster.user_updated(user.id, **roster_changes)
        return user

    @staticmethod
    async def follow(db: AsyncSession, follower: User, target_id: str, is_follow: bool) -> tuple[bool, int]:
        """Follow or unfollow; the followed user gets a new-follower notification"""
        if follower.id == target_id:
            raise ValidationError("You cannot follow yourself")
        target = await UserService.get_user(db, target_id)

        if is_follow:
            changed = await followers.add(db, target.id, follower.id)
        else:
            changed = await followers.remove(db, target.id, follower.id)

        action = ReconcileAction.PUSH if is_follow else ReconcileAction.POP
        result = None
        if changed:
            event = NotificationEvent(
                NotificationKind.NEW_FOLLOWER,
                follower.id,
                target.id,
                NotificationTarget(follower_user_id=follower.id),
            )
            result = await notification_service.reconcile(db, event, action)
        await db.commit()

        if result is not None:
            await notification_service.publish(target.id, result, action)
        return is_follow, await followers.size(db, target.id)

    @staticmethod
    async def subscribe(db: AsyncSession, subscriber: User, publisher_id: str, on: bool) -> bool:
        """Opt in or out of new-forum notifications from a user"""
        if subscriber.id == publisher_id:
            raise ValidationError("You cannot subscribe to yourself")
        publisher = await UserService.get_user(db, publisher_id)
        if on:
            await notify_subscribers.add(db, publisher.id, subscriber.id)
        else:
            await notify_subscribers.remove(db, publisher.id, subscriber.id)
        await db.commit()
        return on


user_service = UserService()
