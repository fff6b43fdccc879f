"""Messaging domain exports."""

from .models import (
    ChatConversation,
    ChatMemberRole,
    ChatMessage,
    ChatMessageReadStatus,
    ChatMessageType,
    ChatRoom,
    ChatRoomMember,
    ChatRoomType,
    Conversation,
    MessageAttachment,
    MessageBatch,
    MessageItemType,
    MessageReaction,
    SimpleMessage,
    SimpleMessageType,
)

__all__ = [
    "ChatConversation",
    "ChatMemberRole",
    "ChatMessage",
    "ChatMessageReadStatus",
    "ChatMessageType",
    "ChatRoom",
    "ChatRoomMember",
    "ChatRoomType",
    "Conversation",
    "MessageAttachment",
    "MessageBatch",
    "MessageItemType",
    "MessageReaction",
    "SimpleMessage",
    "SimpleMessageType",
]
