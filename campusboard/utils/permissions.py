"""Ownership checks shared by the services"""
import logging

from ..exceptions import PermissionDeniedError
from ..models.user import User

logger = logging.getLogger(__name__)


def is_owner(user: User, owner_id: str) -> bool:
    return user.id == owner_id


def ensure_owner(user: User, owner_id: str, what: str) -> None:
    """Only the author may change the target"""
    if not is_owner(user, owner_id):
        logger.warning("permission denied: %s is not the owner of %s", user.id, what)
        raise PermissionDeniedError(f"You do not own this {what}")


def ensure_owner_or_admin(user: User, owner_id: str, what: str) -> None:
    """The author or any admin may remove the target"""
    if user.is_admin:
        return
    ensure_owner(user, owner_id, what)


def ensure_member(user: User) -> None:
    """Admins cannot act as members (like, comment, report...)"""
    if user.is_admin:
        logger.warning("permission denied: admin %s attempted a member action", user.id)
        raise PermissionDeniedError("Admins cannot perform member actions")
