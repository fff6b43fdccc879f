"""Direct messaging with time-window batching.

Messages a conversation receives within `MESSAGE_BATCH_WINDOW_MINUTES` of the
latest batch's end are appended to that batch's JSON list instead of getting
a row each. Attachments keep their own rows keyed by the message item id.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import orjson
from cachetools import TTLCache
from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from socialapp import schemas
from socialapp.core.config import settings
from socialapp.core.db_defaults import as_utc
from socialapp.modules.messaging.models import (
    Conversation,
    MessageAttachment,
    MessageBatch,
    MessageItemType,
)
from socialapp.modules.notifications.realtime import (
    conversation_group,
    manager,
    queue_group_message,
    user_group,
)
from socialapp.modules.users.models import User
from socialapp.services.social.relations import get_active_user, is_blocked_between
from socialapp.utils import ordered_pair

logger = logging.getLogger(__name__)

MAX_BATCHES_PER_PAGE = 10

# (conversation_id, user_id) -> True while the user is typing
typing_cache: TTLCache = TTLCache(maxsize=10000, ttl=settings.typing_ttl_seconds)
_typing_lock = threading.Lock()


def parse_items(batch: MessageBatch) -> List[dict]:
    """Decode a batch's message list; corrupt payloads decode to nothing."""
    try:
        items = orjson.loads(batch.messages_data or "[]")
    except orjson.JSONDecodeError:
        logger.warning("Corrupt messages_data in batch %s", batch.id)
        return []
    return items if isinstance(items, list) else []


def _dump_items(items: List[dict]) -> str:
    return orjson.dumps(items).decode()


class MessageService:
    """Encapsulates batched direct-message workflows."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------ helpers
    def _get_conversation_or_404(
        self, conversation_id: int, current_user: User
    ) -> Conversation:
        conversation = (
            self.db.query(Conversation).filter(Conversation.id == conversation_id).first()
        )
        if conversation is None or not conversation.has_participant(current_user.id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Conversation not found",
            )
        return conversation

    def _serialize_conversation(
        self, conversation: Conversation, current_user: User
    ) -> dict:
        is_user1 = conversation.user1_id == current_user.id
        other = conversation.user2 if is_user1 else conversation.user1
        other_flag = (
            conversation.is_user2_online if is_user1 else conversation.is_user1_online
        )
        return {
            "id": conversation.id,
            "other_user": schemas.UserBrief.model_validate(other),
            "last_message_at": conversation.last_message_at,
            "last_message_content": conversation.last_message_content,
            "last_message_sender_id": conversation.last_message_sender_id,
            "unread_count": (
                conversation.unread_count_user1
                if is_user1
                else conversation.unread_count_user2
            ),
            "is_other_user_online": bool(other_flag) or manager.is_online(other.id),
            "other_user_last_seen": (
                conversation.user2_last_seen if is_user1 else conversation.user1_last_seen
            ),
            "created_at": conversation.created_at,
        }

    def _attach_files(self, items: List[dict]) -> List[dict]:
        ids = [item["id"] for item in items if item.get("attachment_ids")]
        by_item: Dict[str, List[MessageAttachment]] = {}
        if ids:
            rows = (
                self.db.query(MessageAttachment)
                .filter(MessageAttachment.message_item_id.in_(ids))
                .all()
            )
            for row in rows:
                by_item.setdefault(row.message_item_id, []).append(row)
        return [
            {
                **item,
                "attachments": [
                    schemas.MessageAttachmentOut.model_validate(a).model_dump(mode="json")
                    for a in by_item.get(item["id"], [])
                ],
            }
            for item in items
        ]

    # ------------------------------------------------------------ conversations
    def get_or_create_conversation(
        self, *, current_user: User, other_user_id: int
    ) -> dict:
        if other_user_id == current_user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot create conversation with yourself",
            )
        other = get_active_user(self.db, other_user_id)
        if other is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
            )
        if is_blocked_between(self.db, current_user.id, other_user_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You cannot message this user",
            )

        user1_id, user2_id = ordered_pair(current_user.id, other_user_id)
        conversation = (
            self.db.query(Conversation)
            .filter(Conversation.user1_id == user1_id, Conversation.user2_id == user2_id)
            .first()
        )
        if conversation is None:
            conversation = Conversation(user1_id=user1_id, user2_id=user2_id)
            self.db.add(conversation)
            self.db.commit()
            self.db.refresh(conversation)
            logger.info(
                "Conversation %s opened between %s and %s",
                conversation.id,
                user1_id,
                user2_id,
            )
        return self._serialize_conversation(conversation, current_user)

    def list_conversations(self, *, current_user: User) -> List[dict]:
        conversations = (
            self.db.query(Conversation)
            .filter(
                or_(
                    Conversation.user1_id == current_user.id,
                    Conversation.user2_id == current_user.id,
                )
            )
            .order_by(
                Conversation.last_message_at.desc().nulls_last(),
                Conversation.created_at.desc(),
            )
            .all()
        )
        return [self._serialize_conversation(c, current_user) for c in conversations]

    def delete_conversation(self, *, conversation_id: int, current_user: User) -> None:
        conversation = self._get_conversation_or_404(conversation_id, current_user)
        self.db.delete(conversation)
        self.db.commit()
        logger.info("Conversation %s deleted by user %s", conversation_id, current_user.id)

    def total_unread(self, *, current_user: User) -> int:
        conversations = (
            self.db.query(Conversation)
            .filter(
                or_(
                    Conversation.user1_id == current_user.id,
                    Conversation.user2_id == current_user.id,
                )
            )
            .all()
        )
        return sum(
            c.unread_count_user1 if c.user1_id == current_user.id else c.unread_count_user2
            for c in conversations
        )

    # ------------------------------------------------------------------ sending
    def send_message(
        self,
        *,
        conversation_id: int,
        payload: schemas.MessageSend,
        current_user: User,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> dict:
        conversation = self._get_conversation_or_404(conversation_id, current_user)
        other_id = conversation.other_user_id(current_user.id)
        if is_blocked_between(self.db, current_user.id, other_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You cannot message this user",
            )

        now = datetime.now(timezone.utc)
        window = timedelta(minutes=settings.message_batch_window_minutes)
        batch = (
            self.db.query(MessageBatch)
            .filter(MessageBatch.conversation_id == conversation.id)
            .order_by(MessageBatch.batch_end_time.desc(), MessageBatch.id.desc())
            .first()
        )
        if batch is None or as_utc(batch.batch_end_time) < now - window:
            batch = MessageBatch(
                conversation_id=conversation.id,
                batch_start_time=now,
                batch_end_time=now,
                messages_data="[]",
                message_count=0,
            )
            self.db.add(batch)
            self.db.flush()

        item_id = str(uuid.uuid4())
        attachment_rows = [
            MessageAttachment(
                message_batch_id=batch.id,
                message_item_id=item_id,
                uploaded_at=now,
                **attachment.model_dump(),
            )
            for attachment in payload.attachments
        ]
        self.db.add_all(attachment_rows)
        self.db.flush()

        content = payload.content.strip() if payload.content else None
        item = {
            "id": item_id,
            "content": content,
            "sent_at": now.isoformat(),
            "read_at": None,
            "is_read": False,
            "sender_id": current_user.id,
            "message_type": (
                MessageItemType.MEDIA.value if attachment_rows else MessageItemType.TEXT.value
            ),
            "attachment_ids": [row.id for row in attachment_rows],
            "system_action": None,
        }
        items = parse_items(batch)
        items.append(item)
        batch.messages_data = _dump_items(items)
        batch.message_count = len(items)
        batch.batch_end_time = now
        batch.sender_id = current_user.id

        conversation.last_message_at = now
        conversation.last_message_content = (content or "[Media]")[:500]
        conversation.last_message_sender_id = current_user.id
        if conversation.user1_id == other_id:
            conversation.unread_count_user1 = (conversation.unread_count_user1 or 0) + 1
        else:
            conversation.unread_count_user2 = (conversation.unread_count_user2 or 0) + 1

        self.db.commit()
        logger.info(
            "Message %s stored in batch %s of conversation %s",
            item_id,
            batch.id,
            conversation.id,
        )

        message = self._attach_files([item])[0]
        event = {
            "type": "new_message",
            "conversation_id": conversation.id,
            "message": message,
        }
        queue_group_message(
            background_tasks,
            conversation_group(conversation.id),
            event,
            exclude_user_id=current_user.id,
        )
        queue_group_message(background_tasks, user_group(other_id), event)
        return message

    # ------------------------------------------------------------------ reading
    def get_messages(
        self,
        *,
        conversation_id: int,
        current_user: User,
        before: Optional[datetime] = None,
        limit: int = 50,
    ) -> dict:
        """Newest-first items older than `before`, read from the latest batches."""
        conversation = self._get_conversation_or_404(conversation_id, current_user)
        limit = min(max(1, limit), 100)
        cutoff = as_utc(before) if before is not None else datetime.now(timezone.utc)

        batches = (
            self.db.query(MessageBatch)
            .filter(
                MessageBatch.conversation_id == conversation.id,
                MessageBatch.batch_start_time < cutoff,
            )
            .order_by(MessageBatch.batch_end_time.desc(), MessageBatch.id.desc())
            .limit(MAX_BATCHES_PER_PAGE)
            .all()
        )
        items: List[dict] = []
        for batch in batches:
            for item in parse_items(batch):
                sent_at = datetime.fromisoformat(item["sent_at"])
                if as_utc(sent_at) < cutoff:
                    items.append(item)
        items.sort(key=lambda i: datetime.fromisoformat(i["sent_at"]), reverse=True)
        items = items[:limit]
        return {
            "messages": self._attach_files(items),
            "has_more": len(items) == limit,
        }

    def mark_as_read(
        self,
        *,
        conversation_id: int,
        current_user: User,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> int:
        """Mark the other party's items read and zero the caller's unread count."""
        conversation = self._get_conversation_or_404(conversation_id, current_user)
        now_iso = datetime.now(timezone.utc).isoformat()
        marked = 0
        for batch in conversation.batches:
            items = parse_items(batch)
            changed = False
            for item in items:
                if item.get("sender_id") != current_user.id and not item.get("is_read"):
                    item["is_read"] = True
                    item["read_at"] = now_iso
                    changed = True
                    marked += 1
            if changed:
                batch.messages_data = _dump_items(items)

        if conversation.user1_id == current_user.id:
            conversation.unread_count_user1 = 0
        else:
            conversation.unread_count_user2 = 0
        self.db.commit()

        queue_group_message(
            background_tasks,
            conversation_group(conversation.id),
            {
                "type": "messages_read",
                "conversation_id": conversation.id,
                "reader_id": current_user.id,
                "read_at": now_iso,
            },
            exclude_user_id=current_user.id,
        )
        return marked

    # ------------------------------------------------------- presence & typing
    def set_online(
        self, *, conversation_id: int, current_user: User, is_online: bool
    ) -> dict:
        conversation = self._get_conversation_or_404(conversation_id, current_user)
        now = datetime.now(timezone.utc)
        if conversation.user1_id == current_user.id:
            conversation.is_user1_online = is_online
            if not is_online:
                conversation.user1_last_seen = now
        else:
            conversation.is_user2_online = is_online
            if not is_online:
                conversation.user2_last_seen = now
        self.db.commit()
        return {"conversation_id": conversation.id, "is_online": is_online}

    def set_typing(
        self,
        *,
        conversation_id: int,
        current_user: User,
        is_typing: bool,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> dict:
        conversation = self._get_conversation_or_404(conversation_id, current_user)
        key = (conversation.id, current_user.id)
        with _typing_lock:
            if is_typing:
                typing_cache[key] = True
            else:
                typing_cache.pop(key, None)
        queue_group_message(
            background_tasks,
            conversation_group(conversation.id),
            {
                "type": "typing",
                "conversation_id": conversation.id,
                "user_id": current_user.id,
                "is_typing": is_typing,
            },
            exclude_user_id=current_user.id,
        )
        return {"conversation_id": conversation.id, "is_typing": is_typing}

    def get_typing_users(self, *, conversation_id: int, current_user: User) -> dict:
        conversation = self._get_conversation_or_404(conversation_id, current_user)
        with _typing_lock:
            typing_cache.expire()
            typers = [
                user_id
                for (conv_id, user_id) in list(typing_cache.keys())
                if conv_id == conversation.id and user_id != current_user.id
            ]
        return {"conversation_id": conversation.id, "typing_user_ids": sorted(typers)}
