"""WebSocket routes: forum rooms, per-user notifications, admin roster"""
import json
import logging
from typing import Annotated

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from sqlalchemy import select

from ..database import AsyncSessionLocal
from ..models.user import User
from ..services.presence_service import RosterEntry, admin_roster, presence_registry
from ..services.storage_service import get_storage_provider
from ..services.websocket_service import admin_manager, create_message, forum_manager, notification_manager
from ..utils.security import decode_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])

POLICY_VIOLATION = 1008


def _get_token_from_websocket(websocket: WebSocket, query_token: str | None) -> str | None:
    auth = websocket.headers.get("authorization")
    if auth:
        parts = auth.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
    return query_token


async def _get_active_user(token: str | None) -> User | None:
    if not token:
        return None

    payload = decode_token(token)
    if payload is None:
        return None

    sub = payload.get("sub")
    if not sub:
        return None

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(User).where(User.id == str(sub)))
        return result.scalar_one_or_none()


def _parse_client_message(data: str) -> dict | None:
    try:
        message = json.loads(data)
    except ValueError:
        return None
    return message if isinstance(message, dict) else None


@router.websocket("/ws/forum")
async def forum_socket(
    websocket: WebSocket,
    session_id: Annotated[str | None, Query(alias="sessionId")] = None,
):
    """
    Forum room presence.

    Client messages:
        "ping"                                     -> "pong"
        {"event": "join", "roomId": "<forum id>"}  -> {"event": "joined", ...}
        {"event": "leave"}                         -> {"event": "left", ...}

    A second join with the same sessionId from another socket evicts this one
    (close code 4001).
    """
    connection_id = await forum_manager.connect(websocket)
    session = session_id or connection_id
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
                continue

            message = _parse_client_message(data)
            if message is None:
                logger.debug("forum socket %s sent unparseable frame", connection_id)
                continue

            event = message.get("event")
            if event == "join" and message.get("roomId"):
                room_id = str(message["roomId"])
                await presence_registry.join(session, room_id, connection_id)
                await forum_manager.send_to(
                    connection_id, create_message("joined", {"roomId": room_id, "sessionId": session})
                )
            elif event == "leave":
                record = await presence_registry.disconnect(connection_id)
                await forum_manager.send_to(
                    connection_id, create_message("left", {"roomId": record.room_id if record else None})
                )
            else:
                logger.debug("forum socket %s sent unknown event %s", connection_id, event)
    except WebSocketDisconnect:
        logger.info("forum socket %s disconnected", connection_id)
    except Exception as e:
        logger.error("forum socket %s error: %s", connection_id, e)
    finally:
        await presence_registry.disconnect(connection_id)
        forum_manager.disconnect(connection_id)


@router.websocket("/ws/notification")
async def notification_socket(
    websocket: WebSocket,
    token: Annotated[str | None, Query()] = None,
):
    """Per-user notification events; the connection also shows up on the admin roster"""
    user = await _get_active_user(_get_token_from_websocket(websocket, token))
    if user is None:
        await websocket.close(code=POLICY_VIOLATION)
        return

    connection_id = await notification_manager.connect(websocket)
    notification_manager.join_room(connection_id, user.id)
    await admin_roster.user_connected(
        RosterEntry(
            connection_id=connection_id,
            user_id=user.id,
            user_type=user.user_type,
            display_name=user.display_name,
            full_name=user.full_name,
            image_url=get_storage_provider().public_url(user.image_ref) if user.image_ref else None,
            student_id=user.student_id,
        )
    )
    try:
        await notification_manager.send_to(
            connection_id, create_message("connected", {"user_id": user.id, "connection_id": connection_id})
        )
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
                continue
            logger.debug("notification socket %s (user %s): %s", connection_id, user.id, data)
    except WebSocketDisconnect:
        logger.info("notification socket %s of user %s disconnected", connection_id, user.id)
    except Exception as e:
        logger.error("notification socket %s error: %s", connection_id, e)
    finally:
        notification_manager.disconnect(connection_id)
        await admin_roster.user_disconnected(connection_id)


@router.websocket("/ws/admin")
async def admin_socket(
    websocket: WebSocket,
    token: Annotated[str | None, Query()] = None,
):
    """Live roster of connected users, admins only"""
    user = await _get_active_user(_get_token_from_websocket(websocket, token))
    if user is None or not user.is_admin:
        await websocket.close(code=POLICY_VIOLATION)
        return

    connection_id = await admin_manager.connect(websocket)
    try:
        await admin_roster.admin_connected(connection_id)
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info("admin socket %s disconnected", connection_id)
    except Exception as e:
        logger.error("admin socket %s error: %s", connection_id, e)
    finally:
        admin_manager.disconnect(connection_id)


@router.get("/ws/status")
async def websocket_status():
    return {
        "forum_connections": forum_manager.get_total_connections(),
        "notification_connections": notification_manager.get_total_connections(),
        "admin_connections": admin_manager.get_total_connections(),
        "forum_sessions": len(presence_registry.records()),
        "roster_size": len(admin_roster.snapshot()),
    }
