"""WebSocket endpoint for the real-time hub.

Auth:
- Tokenless connections are allowed only when APP_ENV=test, to keep fixtures simple.
- Otherwise a JWT must be supplied and must match the path user_id.

Protocol:
- Client frames are JSON objects with an ``action`` of join, leave, typing or ping.
- Joining ``Conversation_{id}`` or ``ChatRoom_{id}`` is checked against the database.
- ``User_{id}`` is joined automatically on connect and cannot be joined by others.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from socialapp import oauth2
from socialapp.core.config import settings
from socialapp.core.database import get_db
from socialapp.core.exceptions import InvalidTokenException
from socialapp.modules.messaging.models import (
    ChatConversation,
    ChatRoomMember,
    Conversation,
)
from socialapp.modules.notifications.realtime import manager, user_group

router = APIRouter()
logger = logging.getLogger(__name__)

WS_UNAUTHORIZED = 4401


def _is_test_env() -> bool:
    return (
        settings.environment.lower() == "test"
        or os.getenv("APP_ENV", "").lower() == "test"
    )


async def _authenticate_websocket(
    websocket: WebSocket, claimed_user_id: int, token: Optional[str], db: Session
) -> Optional[int]:
    """Validate the handshake; closes the socket and returns None on failure."""
    if not token:
        if _is_test_env():
            return claimed_user_id
        await websocket.close(code=WS_UNAUTHORIZED, reason="Missing authentication token")
        return None

    try:
        user = oauth2.get_user_from_token(token, db)
    except InvalidTokenException as exc:
        await websocket.close(code=WS_UNAUTHORIZED, reason=exc.message)
        return None
    if user.id != claimed_user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="User mismatch")
        return None
    return user.id


def _release_connection(db: Session) -> None:
    """End the session transaction so an idle socket holds no pooled connection."""
    db.rollback()


def _may_join(db: Session, user_id: int, group: str) -> bool:
    """True when `user_id` participates in the resource behind `group`."""
    prefix, _, raw_id = group.partition("_")
    if not raw_id.isdigit():
        return False
    resource_id = int(raw_id)

    if prefix == "User":
        return resource_id == user_id
    if prefix == "Conversation":
        direct = db.query(Conversation).filter(Conversation.id == resource_id).first()
        if direct is not None and direct.has_participant(user_id):
            return True
        friend_chat = (
            db.query(ChatConversation).filter(ChatConversation.id == resource_id).first()
        )
        return friend_chat is not None and friend_chat.has_participant(user_id)
    if prefix == "ChatRoom":
        return (
            db.query(ChatRoomMember.id)
            .filter(
                ChatRoomMember.room_id == resource_id,
                ChatRoomMember.user_id == user_id,
                ChatRoomMember.is_active.is_(True),
            )
            .first()
            is not None
        )
    return False


async def _handle_frame(
    websocket: WebSocket, db: Session, user_id: int, frame: dict
) -> None:
    action = frame.get("action")
    group = frame.get("group")

    if action == "ping":
        await websocket.send_json({"type": "pong"})
        return

    if action not in {"join", "leave", "typing"}:
        await websocket.send_json({"type": "error", "message": "Unknown action"})
        return
    if not isinstance(group, str) or not group:
        await websocket.send_json({"type": "error", "message": "Missing group"})
        return

    if action == "join":
        try:
            allowed = _may_join(db, user_id, group)
        finally:
            _release_connection(db)
        if not allowed:
            await websocket.send_json(
                {"type": "error", "message": "Not allowed to join group", "group": group}
            )
            return
        await manager.join_group(user_id, group)
        await websocket.send_json({"type": "joined", "group": group})
        return

    if action == "leave":
        if group != user_group(user_id):
            await manager.leave_group(user_id, group)
        await websocket.send_json({"type": "left", "group": group})
        return

    # typing
    if user_id not in manager.group_members(group):
        await websocket.send_json(
            {"type": "error", "message": "Join the group first", "group": group}
        )
        return
    await manager.send_to_group(
        group,
        {
            "type": "typing",
            "group": group,
            "user_id": user_id,
            "is_typing": bool(frame.get("is_typing", True)),
        },
        exclude_user_id=user_id,
    )


@router.websocket("/ws/{user_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    user_id: int,
    token: Optional[str] = Query(None, description="Bearer token for socket auth"),
    db: Session = Depends(get_db),
):
    """Authenticate, register with the hub, then serve JSON frames until disconnect."""
    try:
        authenticated_user = await _authenticate_websocket(websocket, user_id, token, db)
    finally:
        _release_connection(db)
    if authenticated_user is None:
        return

    connected = await manager.connect(websocket, authenticated_user)
    if not connected:
        return

    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue
            if not isinstance(frame, dict):
                await websocket.send_json({"type": "error", "message": "Invalid frame"})
                continue
            await _handle_frame(websocket, db, authenticated_user, frame)
    except WebSocketDisconnect as exc:
        await manager.disconnect(
            websocket,
            authenticated_user,
            reason=f"disconnect:{getattr(exc, 'code', 'unknown')}",
        )
        logger.info("WebSocket disconnected for user_id=%s", authenticated_user)
    except Exception as exc:
        logger.exception("WebSocket error for user_id=%s: %s", authenticated_user, exc)
        await manager.disconnect(websocket, authenticated_user, reason="error")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)


__all__ = ["router"]
