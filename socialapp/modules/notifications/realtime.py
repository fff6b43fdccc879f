"""WebSocket connection management for the real-time hub.

Sockets are registered per user, and users are grouped by name
(`User_{id}`, `Conversation_{id}`, `ChatRoom_{id}`) so services can fan a
payload out to everybody interested in one resource.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

import orjson
from fastapi import BackgroundTasks, WebSocket, status

from socialapp.core.config import settings

logger = logging.getLogger(__name__)


def user_group(user_id: int) -> str:
    return f"User_{user_id}"


def conversation_group(conversation_id: int) -> str:
    return f"Conversation_{conversation_id}"


def chat_room_group(room_id: int) -> str:
    return f"ChatRoom_{room_id}"


class ConnectionManager:
    """Tracks active WebSocket connections per user plus named groups.

    Every user connection joins its `User_{id}` group. Presence counts are
    mirrored into Redis when a client is configured so other instances can
    answer "is this user online"; Redis failures are logged and ignored.
    """

    def __init__(
        self,
        *,
        max_connections_per_user: int = 5,
        registry_ttl: int = 600,
        redis_client=None,
    ) -> None:
        self.active_connections: Dict[int, List[WebSocket]] = {}
        self.connection_counts: Dict[int, int] = {}
        self.last_disconnect_reason: Dict[int, str] = {}
        self.groups: Dict[str, Set[int]] = {}
        self._lock = asyncio.Lock()
        self.max_connections_per_user = max_connections_per_user
        self.registry_ttl = registry_ttl
        self.redis_client = redis_client

    async def connect(self, websocket: WebSocket, user_id: int) -> bool:
        """Accept and register a WebSocket connection for a given user."""
        await websocket.accept()
        async with self._lock:
            slots = self.active_connections.setdefault(user_id, [])
            if len(slots) >= self.max_connections_per_user:
                await websocket.close(
                    code=status.WS_1008_POLICY_VIOLATION,
                    reason="socket limit exceeded",
                )
                if not slots:
                    self.active_connections.pop(user_id, None)
                self.last_disconnect_reason[user_id] = "limit_exceeded"
                logger.warning(
                    "WebSocket connection rejected for user %s (limit=%s)",
                    user_id,
                    self.max_connections_per_user,
                )
                return False

            slots.append(websocket)
            self.connection_counts[user_id] = len(slots)
            self.groups.setdefault(user_group(user_id), set()).add(user_id)
            logger.info(
                "WebSocket connected for user %s (connections=%s)",
                user_id,
                self.connection_counts[user_id],
            )

        self._sync_presence(user_id)
        return True

    async def disconnect(
        self,
        websocket: WebSocket,
        user_id: int,
        *,
        reason: str = "client_disconnected",
    ) -> None:
        """Remove a WebSocket connection; the last one also drops group memberships."""
        async with self._lock:
            slots = self.active_connections.get(user_id, [])
            if websocket in slots:
                slots.remove(websocket)
            if not slots:
                self.active_connections.pop(user_id, None)
                self._drop_user_from_groups(user_id)
            self.connection_counts[user_id] = len(slots)
            self.last_disconnect_reason[user_id] = reason
            logger.info(
                "WebSocket disconnected for user %s (reason=%s, remaining=%s)",
                user_id,
                reason,
                self.connection_counts.get(user_id, 0),
            )

        self._sync_presence(user_id, reason=reason)

    async def join_group(self, user_id: int, group: str) -> None:
        async with self._lock:
            self.groups.setdefault(group, set()).add(user_id)
        logger.debug("User %s joined group %s", user_id, group)

    async def leave_group(self, user_id: int, group: str) -> None:
        async with self._lock:
            members = self.groups.get(group)
            if members is not None:
                members.discard(user_id)
                if not members:
                    self.groups.pop(group, None)
        logger.debug("User %s left group %s", user_id, group)

    def group_members(self, group: str) -> Set[int]:
        return set(self.groups.get(group, set()))

    async def send_personal_message(self, message: dict, user_id: int) -> None:
        """Send a payload to all active WebSocket connections of a user."""
        if user_id not in self.active_connections:
            return

        broken_connections: List[WebSocket] = []
        for connection in list(self.active_connections[user_id]):
            try:
                await connection.send_json(message)
            except Exception as exc:
                logger.error("Error sending message to user %s: %s", user_id, exc)
                broken_connections.append(connection)

        if not broken_connections:
            return

        async with self._lock:
            slots = self.active_connections.get(user_id, [])
            for connection in broken_connections:
                if connection in slots:
                    slots.remove(connection)
            if not slots:
                self.active_connections.pop(user_id, None)
                self._drop_user_from_groups(user_id)
            self.connection_counts[user_id] = len(slots)

        self._sync_presence(user_id, reason="send_failure_cleanup")

    async def send_to_group(
        self,
        group: str,
        message: dict,
        *,
        exclude_user_id: Optional[int] = None,
    ) -> int:
        """Send a payload to every member of `group`; returns recipients reached."""
        recipients = [
            uid for uid in self.group_members(group) if uid != exclude_user_id
        ]
        for uid in recipients:
            await self.send_personal_message(message, uid)
        return len(recipients)

    async def broadcast(self, message: dict) -> None:
        """Send a message to every connected user."""
        for user_id in list(self.active_connections.keys()):
            await self.send_personal_message(message, user_id)

    def is_online(self, user_id: int) -> bool:
        return bool(self.active_connections.get(user_id))

    def _drop_user_from_groups(self, user_id: int) -> None:
        for name in list(self.groups):
            members = self.groups[name]
            members.discard(user_id)
            if not members:
                self.groups.pop(name, None)

    def _sync_presence(self, user_id: int, *, reason: Optional[str] = None) -> None:
        """Mirror lightweight presence state to Redis for other instances."""
        if self.redis_client is None:
            return
        try:
            payload = {
                "count": self.connection_counts.get(user_id, 0),
                "last_disconnect_reason": reason
                or self.last_disconnect_reason.get(user_id),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
            self.redis_client.setex(
                f"presence:{user_id}", self.registry_ttl, orjson.dumps(payload)
            )
        except Exception as exc:
            logger.error("Failed to mirror presence for user %s: %s", user_id, exc)

    def metrics(self) -> dict:
        """Return a snapshot suitable for logging/metrics exporters."""
        return {
            "active_users": len(self.active_connections),
            "connection_counts": dict(self.connection_counts),
            "groups": {name: len(members) for name, members in self.groups.items()},
            "last_disconnect_reason": dict(self.last_disconnect_reason),
        }


manager = ConnectionManager(
    max_connections_per_user=settings.max_sockets_per_user,
    registry_ttl=settings.presence_ttl_seconds,
    redis_client=settings.redis_client,
)


def queue_group_message(
    background_tasks: Optional[BackgroundTasks],
    group: str,
    message: Dict[str, Any],
    *,
    exclude_user_id: Optional[int] = None,
) -> None:
    """Schedule a hub push to run after the response is sent.

    Services run synchronously inside request handlers, so pushes are deferred
    onto the request's BackgroundTasks. Without one there is nothing to push on.
    """
    if background_tasks is None:
        logger.debug("No background task runner; skipped push to %s", group)
        return
    background_tasks.add_task(
        manager.send_to_group, group, message, exclude_user_id=exclude_user_id
    )


__all__ = [
    "ConnectionManager",
    "manager",
    "queue_group_message",
    "user_group",
    "conversation_group",
    "chat_room_group",
]
