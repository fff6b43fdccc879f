"""Messaging services: batched direct messages, chat rooms and friend chat."""

from .chat_service import ChatService
from .message_reaction_service import MessageReactionService
from .message_service import MessageService
from .simple_chat_service import SimpleChatService

__all__ = [
    "ChatService",
    "MessageReactionService",
    "MessageService",
    "SimpleChatService",
]
