"""One-to-one chat restricted to friends (mutual followers with no block)."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session, joinedload

from socialapp import schemas
from socialapp.core.config import settings
from socialapp.core.database.query_helpers import apply_page, count_rows, page_window
from socialapp.core.db_defaults import as_utc
from socialapp.core.exceptions import PermissionDeniedException
from socialapp.modules.messaging.models import ChatConversation, SimpleMessage
from socialapp.modules.notifications.realtime import (
    conversation_group,
    queue_group_message,
    user_group,
)
from socialapp.modules.users.models import User
from socialapp.services.social.relations import are_friends, get_active_user
from socialapp.utils import ordered_pair, truncate_preview

logger = logging.getLogger(__name__)


def _is_recently_active(user: User) -> bool:
    if user.last_active is None:
        return False
    window = timedelta(seconds=settings.online_window_seconds)
    return as_utc(user.last_active) >= datetime.now(timezone.utc) - window


class SimpleChatService:
    def __init__(self, db: Session):
        self.db = db

    # ----- Helpers -----
    def _require_friends(self, current_user: User, other_user_id: int) -> None:
        if not are_friends(self.db, current_user.id, other_user_id):
            raise PermissionDeniedException("You can only chat with friends")

    def _conversation_or_404(
        self, conversation_id: int, current_user: User
    ) -> ChatConversation:
        conversation = (
            self.db.query(ChatConversation)
            .filter(ChatConversation.id == conversation_id)
            .first()
        )
        if conversation is None or not conversation.has_participant(current_user.id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Conversation not found",
            )
        return conversation

    def _message_or_404(self, message_id: int) -> SimpleMessage:
        message = (
            self.db.query(SimpleMessage)
            .filter(SimpleMessage.id == message_id, SimpleMessage.is_deleted.is_(False))
            .first()
        )
        if message is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Message not found"
            )
        return message

    def _last_read(self, conversation: ChatConversation, user_id: int):
        if conversation.user1_id == user_id:
            return conversation.user1_last_read
        return conversation.user2_last_read

    def _unread_count(self, conversation: ChatConversation, user_id: int) -> int:
        query = self.db.query(func.count(SimpleMessage.id)).filter(
            SimpleMessage.conversation_id == conversation.id,
            SimpleMessage.sender_id != user_id,
            SimpleMessage.is_deleted.is_(False),
        )
        last_read = self._last_read(conversation, user_id)
        if last_read is not None:
            query = query.filter(SimpleMessage.sent_at > last_read)
        return query.scalar() or 0

    def _serialize_conversation(
        self, conversation: ChatConversation, current_user: User
    ) -> schemas.ChatConversationOut:
        other = (
            conversation.user2
            if conversation.user1_id == current_user.id
            else conversation.user1
        )
        return schemas.ChatConversationOut(
            id=conversation.id,
            other_user=schemas.UserBrief.model_validate(other),
            last_message=conversation.last_message,
            last_message_at=conversation.last_message_at,
            message_count=conversation.message_count or 0,
            unread_count=self._unread_count(conversation, current_user.id),
            is_online=_is_recently_active(other),
            created_at=conversation.created_at,
        )

    @staticmethod
    def _serialize_message(message: SimpleMessage) -> schemas.SimpleMessageOut:
        out = schemas.SimpleMessageOut.model_validate(message)
        if message.sender is not None:
            out.sender = schemas.UserBrief.model_validate(message.sender)
        return out

    # ----- Conversations -----
    def get_or_create_conversation(
        self, *, current_user: User, other_user_id: int
    ) -> schemas.ChatConversationOut:
        if other_user_id == current_user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot create conversation with yourself",
            )
        if get_active_user(self.db, other_user_id) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
            )
        self._require_friends(current_user, other_user_id)

        user1_id, user2_id = ordered_pair(current_user.id, other_user_id)
        conversation = (
            self.db.query(ChatConversation)
            .filter(
                ChatConversation.user1_id == user1_id,
                ChatConversation.user2_id == user2_id,
            )
            .first()
        )
        if conversation is None:
            conversation = ChatConversation(user1_id=user1_id, user2_id=user2_id)
            self.db.add(conversation)
            logger.info("Friend chat opened between %s and %s", user1_id, user2_id)
        elif conversation.user1_id == current_user.id:
            conversation.is_user1_active = True
        else:
            conversation.is_user2_active = True
        self.db.commit()
        self.db.refresh(conversation)
        return self._serialize_conversation(conversation, current_user)

    def list_conversations(
        self, *, current_user: User
    ) -> List[schemas.ChatConversationOut]:
        conversations = (
            self.db.query(ChatConversation)
            .options(
                joinedload(ChatConversation.user1), joinedload(ChatConversation.user2)
            )
            .filter(
                or_(
                    and_(
                        ChatConversation.user1_id == current_user.id,
                        ChatConversation.is_user1_active.is_(True),
                    ),
                    and_(
                        ChatConversation.user2_id == current_user.id,
                        ChatConversation.is_user2_active.is_(True),
                    ),
                )
            )
            .order_by(
                ChatConversation.last_message_at.desc().nulls_last(),
                ChatConversation.created_at.desc(),
            )
            .all()
        )
        return [self._serialize_conversation(c, current_user) for c in conversations]

    def hide_conversation(self, *, conversation_id: int, current_user: User) -> None:
        conversation = self._conversation_or_404(conversation_id, current_user)
        if conversation.user1_id == current_user.id:
            conversation.is_user1_active = False
        else:
            conversation.is_user2_active = False
        self.db.commit()

    def mark_read(self, *, conversation_id: int, current_user: User) -> dict:
        conversation = self._conversation_or_404(conversation_id, current_user)
        now = datetime.now(timezone.utc)
        if conversation.user1_id == current_user.id:
            conversation.user1_last_read = now
        else:
            conversation.user2_last_read = now
        self.db.commit()
        return {"conversation_id": conversation.id, "read_at": now}

    # ----- Messages -----
    def send_message(
        self,
        *,
        conversation_id: int,
        payload: schemas.SimpleMessageCreate,
        current_user: User,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> schemas.SimpleMessageOut:
        conversation = self._conversation_or_404(conversation_id, current_user)
        other_id = conversation.other_user_id(current_user.id)
        self._require_friends(current_user, other_id)

        if payload.reply_to_message_id is not None:
            replied = (
                self.db.query(SimpleMessage.id)
                .filter(
                    SimpleMessage.id == payload.reply_to_message_id,
                    SimpleMessage.conversation_id == conversation.id,
                )
                .first()
            )
            if replied is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Replied message is not in this conversation",
                )

        now = datetime.now(timezone.utc)
        content = payload.content.strip() if payload.content else None
        message = SimpleMessage(
            conversation_id=conversation.id,
            sender_id=current_user.id,
            content=content,
            message_type=payload.message_type,
            media_url=payload.media_url,
            media_public_id=payload.media_public_id,
            media_file_name=payload.media_file_name,
            media_mime_type=payload.media_mime_type,
            media_file_size=payload.media_file_size,
            reply_to_message_id=payload.reply_to_message_id,
            sent_at=now,
        )
        self.db.add(message)

        conversation.is_user1_active = True
        conversation.is_user2_active = True
        conversation.last_message_at = now
        if content:
            conversation.last_message = truncate_preview(content)
        else:
            conversation.last_message = f"📁 {payload.media_file_name or 'File'}"
        conversation.message_count = (conversation.message_count or 0) + 1
        self.db.commit()
        self.db.refresh(message)

        out = self._serialize_message(message)
        event = {
            "type": "simple_message",
            "conversation_id": conversation.id,
            "message": out.model_dump(mode="json"),
        }
        queue_group_message(
            background_tasks,
            conversation_group(conversation.id),
            event,
            exclude_user_id=current_user.id,
        )
        queue_group_message(background_tasks, user_group(other_id), event)
        return out

    def get_messages(
        self,
        *,
        conversation_id: int,
        current_user: User,
        page: int = 1,
        page_size: int = 50,
    ) -> dict:
        """One page of messages; pages run newest first, items oldest first."""
        conversation = self._conversation_or_404(conversation_id, current_user)
        page, page_size = page_window(page, page_size, max_page_size=100)
        query = self.db.query(SimpleMessage).filter(
            SimpleMessage.conversation_id == conversation.id,
            SimpleMessage.is_deleted.is_(False),
        )
        total = count_rows(query)
        newest_first = apply_page(
            query.options(joinedload(SimpleMessage.sender)).order_by(
                SimpleMessage.sent_at.desc(), SimpleMessage.id.desc()
            ),
            page,
            page_size,
        ).all()
        return {
            "messages": [self._serialize_message(m) for m in reversed(newest_first)],
            "total_count": total,
            "page": page,
            "page_size": page_size,
            "has_more": page * page_size < total,
        }

    def edit_message(
        self,
        *,
        message_id: int,
        payload: schemas.SimpleMessageUpdate,
        current_user: User,
    ) -> schemas.SimpleMessageOut:
        message = self._message_or_404(message_id)
        if message.sender_id != current_user.id:
            raise PermissionDeniedException("You can only edit your own messages")
        message.content = payload.content
        message.edited_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(message)
        return self._serialize_message(message)

    def delete_message(self, *, message_id: int, current_user: User) -> None:
        message = self._message_or_404(message_id)
        if message.sender_id != current_user.id:
            raise PermissionDeniedException("You can only delete your own messages")
        message.is_deleted = True
        self.db.commit()
        logger.info("Friend chat message %s deleted by user %s", message.id, current_user.id)
