"""Pydantic schemas for direct messages, chat rooms and simple chat."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from socialapp.modules.messaging.models import (
    AttachmentMediaType,
    ChatMemberRole,
    ChatMessageType,
    ChatRoomType,
    MessageItemType,
    SimpleMessageType,
)
from socialapp.modules.users.schemas import UserBrief


class MessageReactionKind(str, enum.Enum):
    LIKE = "like"
    LOVE = "love"
    HAHA = "haha"
    WOW = "wow"
    SAD = "sad"
    ANGRY = "angry"
    THUMBS_UP = "thumbs_up"
    THUMBS_DOWN = "thumbs_down"


# ===== Batched direct messages =====


class MessageAttachmentIn(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    original_file_name: Optional[str] = Field(None, max_length=255)
    media_type: AttachmentMediaType = AttachmentMediaType.FILE
    mime_type: Optional[str] = Field(None, max_length=100)
    file_size: Optional[int] = Field(None, ge=0)
    media_url: str = Field(..., min_length=1)
    thumbnail_url: Optional[str] = None
    public_id: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None


class MessageAttachmentOut(MessageAttachmentIn):
    id: int
    message_item_id: str
    uploaded_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MessageSend(BaseModel):
    content: Optional[str] = Field(None, max_length=2000)
    attachments: List[MessageAttachmentIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def _require_content_or_attachment(self):
        if not (self.content and self.content.strip()) and not self.attachments:
            raise ValueError("Message must have content or at least one attachment")
        return self


class MessageItemOut(BaseModel):
    id: str
    content: Optional[str] = None
    sent_at: datetime
    read_at: Optional[datetime] = None
    is_read: bool = False
    sender_id: int
    message_type: MessageItemType = MessageItemType.TEXT
    attachment_ids: List[int] = Field(default_factory=list)
    system_action: Optional[str] = None
    attachments: List[MessageAttachmentOut] = Field(default_factory=list)


class MessagesPage(BaseModel):
    messages: List[MessageItemOut]
    has_more: bool


class ConversationOut(BaseModel):
    id: int
    other_user: UserBrief
    last_message_at: Optional[datetime] = None
    last_message_content: Optional[str] = None
    last_message_sender_id: Optional[int] = None
    unread_count: int = 0
    is_other_user_online: bool = False
    other_user_last_seen: Optional[datetime] = None
    created_at: datetime


class OnlineStatusUpdate(BaseModel):
    is_online: bool


class TypingUpdate(BaseModel):
    is_typing: bool


class TypingOut(BaseModel):
    conversation_id: int
    typing_user_ids: List[int]


# ===== Chat rooms =====


class ChatRoomCreate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    room_type: ChatRoomType = ChatRoomType.GROUP
    member_ids: List[int] = Field(default_factory=list)


class ChatRoomUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class ChatMembersAdd(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)


class ChatMemberOut(BaseModel):
    user: UserBrief
    role: ChatMemberRole
    joined_at: datetime
    is_muted: bool = False


class ChatMessageCreate(BaseModel):
    content: Optional[str] = Field(None, max_length=4000)
    message_type: ChatMessageType = ChatMessageType.TEXT
    attachment_url: Optional[str] = None
    attachment_type: Optional[str] = Field(None, max_length=100)
    attachment_name: Optional[str] = Field(None, max_length=255)
    reply_to_message_id: Optional[int] = None

    @model_validator(mode="after")
    def _require_content_or_attachment(self):
        if not (self.content and self.content.strip()) and not self.attachment_url:
            raise ValueError("Message must have content or an attachment")
        return self


class ChatMessageUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=4000)


class ChatMessageOut(BaseModel):
    id: int
    room_id: int
    sender_id: Optional[int] = None
    sender: Optional[UserBrief] = None
    content: Optional[str] = None
    message_type: ChatMessageType
    attachment_url: Optional[str] = None
    attachment_type: Optional[str] = None
    attachment_name: Optional[str] = None
    reply_to_message_id: Optional[int] = None
    sent_at: datetime
    edited_at: Optional[datetime] = None
    is_deleted: bool = False

    model_config = ConfigDict(from_attributes=True)


class ChatRoomOut(BaseModel):
    id: int
    name: Optional[str] = None
    display_name: str
    description: Optional[str] = None
    room_type: ChatRoomType
    created_by: Optional[int] = None
    created_at: datetime
    last_activity: datetime
    unread_count: int = 0
    last_message: Optional[ChatMessageOut] = None
    members: List[ChatMemberOut] = Field(default_factory=list)


class ChatRoomListOut(BaseModel):
    rooms: List[ChatRoomOut]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class ChatMessagesPage(BaseModel):
    messages: List[ChatMessageOut]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class ChatRoomRead(BaseModel):
    message_ids: Optional[List[int]] = None


# ===== Simple chat =====


class SimpleMessageCreate(BaseModel):
    content: Optional[str] = Field(None, max_length=4000)
    message_type: SimpleMessageType = SimpleMessageType.TEXT
    media_url: Optional[str] = None
    media_public_id: Optional[str] = None
    media_file_name: Optional[str] = Field(None, max_length=255)
    media_mime_type: Optional[str] = Field(None, max_length=100)
    media_file_size: Optional[int] = Field(None, ge=0)
    reply_to_message_id: Optional[int] = None

    @model_validator(mode="after")
    def _require_content_or_media(self):
        if not (self.content and self.content.strip()) and not self.media_url:
            raise ValueError("Message must have content or media")
        return self


class SimpleMessageUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=4000)


class SimpleMessageOut(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    sender: Optional[UserBrief] = None
    content: Optional[str] = None
    message_type: SimpleMessageType
    media_url: Optional[str] = None
    media_public_id: Optional[str] = None
    media_file_name: Optional[str] = None
    media_mime_type: Optional[str] = None
    media_file_size: Optional[int] = None
    reply_to_message_id: Optional[int] = None
    sent_at: datetime
    edited_at: Optional[datetime] = None
    is_deleted: bool = False

    model_config = ConfigDict(from_attributes=True)


class SimpleMessagesPage(BaseModel):
    messages: List[SimpleMessageOut]
    total_count: int
    page: int
    page_size: int
    has_more: bool


class ChatConversationOut(BaseModel):
    id: int
    other_user: UserBrief
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    message_count: int = 0
    unread_count: int = 0
    is_online: bool = False
    created_at: datetime


class MessageReactionCreate(BaseModel):
    reaction_type: MessageReactionKind


class MessageReactionOut(BaseModel):
    id: int
    message_id: int
    user: UserBrief
    reaction_type: str
    created_at: datetime


class MessageReactionSummary(BaseModel):
    message_id: int
    total: int
    counts: Dict[str, int]
    current_user_reaction: Optional[str] = None
    recent: List[MessageReactionOut] = Field(default_factory=list)


class MessageReactionToggleOut(BaseModel):
    action: str
    reaction_type: Optional[str] = None
    summary: MessageReactionSummary
