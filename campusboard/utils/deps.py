"""Request dependencies"""
import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from .security import decode_token

security = HTTPBearer(auto_error=False)

logger = logging.getLogger(__name__)


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> User:
    """Resolve the bearer token to a user"""
    if not credentials:
        logger.info("auth: missing credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials)
    if payload is None:
        logger.info("auth: token decode failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    sub = payload.get("sub")
    if not sub:
        logger.info("auth: token missing sub")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    result = await db.execute(select(User).where(User.id == str(sub)))
    user = result.scalar_one_or_none()
    if user is None:
        logger.info("auth: user not found (id=%s)", sub)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


async def require_admin(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    """Admin-only routes"""
    if not current_user.is_admin:
        logger.warning("permission denied: user %s (type=%s) on admin route", current_user.id, current_user.user_type)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin permission required",
        )
    return current_user


async def require_member(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    """Member routes; admins act through /api/admin"""
    if current_user.is_admin:
        logger.warning("permission denied: admin %s on member route", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admins cannot perform member actions",
        )
    return current_user


async def get_session_id(x_session_id: Annotated[str | None, Header()] = None) -> str | None:
    """Presence session id of the calling browser tab, if it sent one"""
    return x_session_id or None
