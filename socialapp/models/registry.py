"""Aggregated model imports so `Base.metadata` knows every table."""

from socialapp.models.base import Base
from socialapp.modules.messaging.models import (
    AttachmentMediaType,
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
from socialapp.modules.notifications.models import Notification, NotificationType
from socialapp.modules.posts.models import (
    Comment,
    CommentReport,
    MediaType,
    Post,
    PostMedia,
    PostPrivacy,
    Reaction,
    ReactionType,
    ReportStatus,
)
from socialapp.modules.social.models import UserBlock, UserFollower
from socialapp.modules.users.models import User, UserRole

__all__ = [
    "Base",
    "AttachmentMediaType",
    "ChatConversation",
    "ChatMemberRole",
    "ChatMessage",
    "ChatMessageReadStatus",
    "ChatMessageType",
    "ChatRoom",
    "ChatRoomMember",
    "ChatRoomType",
    "Comment",
    "CommentReport",
    "Conversation",
    "MediaType",
    "MessageAttachment",
    "MessageBatch",
    "MessageItemType",
    "MessageReaction",
    "Notification",
    "NotificationType",
    "Post",
    "PostMedia",
    "PostPrivacy",
    "Reaction",
    "ReactionType",
    "ReportStatus",
    "SimpleMessage",
    "SimpleMessageType",
    "User",
    "UserBlock",
    "UserFollower",
    "UserRole",
]
