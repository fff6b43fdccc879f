"""SQLAlchemy models and enums for the messaging domain.

Three conversation styles live side by side:
- batched direct messages (`Conversation` + `MessageBatch`), where messages sent
  within one time window are packed into a JSON list on a single row;
- chat rooms with members, roles and per-message read receipts;
- simple one-to-one chat between friends with per-message reactions.
"""

from __future__ import annotations

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy import (
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from socialapp.core.database import Base
from socialapp.core.db_defaults import timestamp_default, utcnow


class MessageItemType(str, enum.Enum):
    TEXT = "text"
    MEDIA = "media"
    SYSTEM = "system"


class AttachmentMediaType(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"


class ChatRoomType(enum.IntEnum):
    PRIVATE = 0
    GROUP = 1


class ChatMemberRole(enum.IntEnum):
    MEMBER = 1
    ADMIN = 2
    OWNER = 3


class ChatMessageType(enum.IntEnum):
    TEXT = 1
    IMAGE = 2
    FILE = 3
    SYSTEM = 4


class SimpleMessageType(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    FILE = "file"


# ===== Batched direct messages =====


class Conversation(Base):
    """Direct conversation between two users; `user1_id` is always the smaller id."""

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_conversation_pair"),
        CheckConstraint("user1_id < user2_id", name="ck_conversation_ordered_pair"),
    )

    id = Column(Integer, primary_key=True)
    user1_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user2_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    last_message_content = Column(String(500), nullable=True)
    last_message_sender_id = Column(Integer, nullable=True)
    unread_count_user1 = Column(Integer, nullable=False, default=0)
    unread_count_user2 = Column(Integer, nullable=False, default=0)
    is_user1_online = Column(Boolean, nullable=False, default=False)
    is_user2_online = Column(Boolean, nullable=False, default=False)
    user1_last_seen = Column(DateTime(timezone=True), nullable=True)
    user2_last_seen = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=timestamp_default(),
    )

    user1 = relationship("User", foreign_keys=[user1_id])
    user2 = relationship("User", foreign_keys=[user2_id])
    batches = relationship(
        "MessageBatch",
        back_populates="conversation",
        cascade="all, delete-orphan",
    )

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def other_user_id(self, user_id: int) -> int:
        return self.user2_id if user_id == self.user1_id else self.user1_id


class MessageBatch(Base):
    """Messages of one conversation sent inside a single batching window."""

    __tablename__ = "message_batches"
    __table_args__ = (
        Index("ix_message_batches_conversation_end", "conversation_id", "batch_end_time"),
    )

    id = Column(Integer, primary_key=True)
    conversation_id = Column(
        Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    batch_start_time = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    batch_end_time = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    messages_data = Column(Text, nullable=False, default="[]")
    message_count = Column(Integer, nullable=False, default=0)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=timestamp_default(),
    )

    conversation = relationship("Conversation", back_populates="batches")
    attachments = relationship(
        "MessageAttachment",
        back_populates="batch",
        cascade="all, delete-orphan",
    )


class MessageAttachment(Base):
    """File metadata for a media item stored inside a message batch."""

    __tablename__ = "message_attachments"

    id = Column(Integer, primary_key=True)
    message_batch_id = Column(
        Integer,
        ForeignKey("message_batches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    message_item_id = Column(String(36), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    original_file_name = Column(String(255), nullable=True)
    media_type = Column(
        SAEnum(AttachmentMediaType, name="attachment_media_type_enum"),
        nullable=False,
        default=AttachmentMediaType.FILE,
    )
    mime_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)
    media_url = Column(String, nullable=False)
    thumbnail_url = Column(String, nullable=True)
    public_id = Column(String, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    duration = Column(Float, nullable=True)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    batch = relationship("MessageBatch", back_populates="attachments")


# ===== Chat rooms =====


class ChatRoom(Base):
    __tablename__ = "chat_rooms"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=True)
    description = Column(String(500), nullable=True)
    room_type = Column(Integer, nullable=False, default=ChatRoomType.GROUP)
    created_by = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=timestamp_default(),
    )
    last_activity = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    is_active = Column(Boolean, nullable=False, default=True)

    creator = relationship("User", foreign_keys=[created_by])
    members = relationship(
        "ChatRoomMember",
        back_populates="room",
        cascade="all, delete-orphan",
    )
    messages = relationship(
        "ChatMessage",
        back_populates="room",
        cascade="all, delete-orphan",
    )


class ChatRoomMember(Base):
    __tablename__ = "chat_room_members"
    __table_args__ = (
        UniqueConstraint("room_id", "user_id", name="uq_chat_room_member"),
    )

    id = Column(Integer, primary_key=True)
    room_id = Column(
        Integer, ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_read_at = Column(DateTime(timezone=True), nullable=True)
    role = Column(Integer, nullable=False, default=ChatMemberRole.MEMBER)
    is_active = Column(Boolean, nullable=False, default=True)
    is_muted = Column(Boolean, nullable=False, default=False)

    room = relationship("ChatRoom", back_populates="members")
    user = relationship("User")

    @property
    def can_manage(self) -> bool:
        return self.role in (ChatMemberRole.ADMIN, ChatMemberRole.OWNER)


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (Index("ix_chat_messages_room_sent", "room_id", "sent_at"),)

    id = Column(Integer, primary_key=True)
    room_id = Column(
        Integer, ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False
    )
    sender_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    content = Column(Text, nullable=True)
    message_type = Column(Integer, nullable=False, default=ChatMessageType.TEXT)
    attachment_url = Column(String, nullable=True)
    attachment_type = Column(String(100), nullable=True)
    attachment_name = Column(String(255), nullable=True)
    reply_to_message_id = Column(
        Integer, ForeignKey("chat_messages.id", ondelete="SET NULL"), nullable=True
    )
    sent_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)

    room = relationship("ChatRoom", back_populates="messages")
    sender = relationship("User")
    reply_to = relationship("ChatMessage", remote_side=[id])
    read_statuses = relationship(
        "ChatMessageReadStatus",
        back_populates="message",
        cascade="all, delete-orphan",
    )


class ChatMessageReadStatus(Base):
    __tablename__ = "chat_message_read_status"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_chat_message_read"),
    )

    id = Column(Integer, primary_key=True)
    message_id = Column(
        Integer, ForeignKey("chat_messages.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    read_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    message = relationship("ChatMessage", back_populates="read_statuses")


# ===== Simple chat between friends =====


class ChatConversation(Base):
    """Friend-only conversation; each side can hide it independently."""

    __tablename__ = "chat_conversations"
    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_chat_conversation_pair"),
        CheckConstraint("user1_id < user2_id", name="ck_chat_conversation_ordered_pair"),
    )

    id = Column(Integer, primary_key=True)
    user1_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user2_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=timestamp_default(),
    )
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    last_message = Column(String(110), nullable=True)
    message_count = Column(Integer, nullable=False, default=0)
    is_user1_active = Column(Boolean, nullable=False, default=True)
    is_user2_active = Column(Boolean, nullable=False, default=True)
    user1_last_read = Column(DateTime(timezone=True), nullable=True)
    user2_last_read = Column(DateTime(timezone=True), nullable=True)

    user1 = relationship("User", foreign_keys=[user1_id])
    user2 = relationship("User", foreign_keys=[user2_id])
    messages = relationship(
        "SimpleMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
    )

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def other_user_id(self, user_id: int) -> int:
        return self.user2_id if user_id == self.user1_id else self.user1_id


class SimpleMessage(Base):
    __tablename__ = "simple_messages"
    __table_args__ = (
        Index("ix_simple_messages_conversation_sent", "conversation_id", "sent_at"),
    )

    id = Column(Integer, primary_key=True)
    conversation_id = Column(
        Integer, ForeignKey("chat_conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content = Column(Text, nullable=True)
    message_type = Column(
        SAEnum(SimpleMessageType, name="simple_message_type_enum"),
        nullable=False,
        default=SimpleMessageType.TEXT,
    )
    media_url = Column(String, nullable=True)
    media_public_id = Column(String, nullable=True)
    media_file_name = Column(String(255), nullable=True)
    media_mime_type = Column(String(100), nullable=True)
    media_file_size = Column(Integer, nullable=True)
    reply_to_message_id = Column(
        Integer, ForeignKey("simple_messages.id", ondelete="SET NULL"), nullable=True
    )
    sent_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)

    conversation = relationship("ChatConversation", back_populates="messages")
    sender = relationship("User")
    reply_to = relationship("SimpleMessage", remote_side=[id])
    reactions = relationship(
        "MessageReaction",
        back_populates="message",
        cascade="all, delete-orphan",
    )


class MessageReaction(Base):
    __tablename__ = "message_reactions"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_message_reaction_user"),
    )

    id = Column(Integer, primary_key=True)
    message_id = Column(
        Integer, ForeignKey("simple_messages.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    reaction_type = Column(String(20), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=timestamp_default(),
    )

    message = relationship("SimpleMessage", back_populates="reactions")
    user = relationship("User")
