"""Centralized API router registration with feature grouping.

Groups:
- Accounts: auth, users, admin.
- User-generated content: posts, comments, reactions.
- Social graph: follows, blocks, notifications.
- Messaging: batched direct messages, chat rooms, friend chat.
"""

from fastapi import APIRouter

from socialapp.routers import (
    admin,
    auth,
    block,
    chat,
    comment,
    follow,
    message,
    notifications,
    post,
    reaction,
    simple_chat,
    user,
)

api_router = APIRouter()

# Accounts
api_router.include_router(auth.router)
api_router.include_router(user.router)
api_router.include_router(admin.router)

# Core content
api_router.include_router(post.router)
api_router.include_router(comment.router)
api_router.include_router(reaction.router)

# Social graph
api_router.include_router(follow.router)
api_router.include_router(block.router)
api_router.include_router(notifications.router)

# Messaging
api_router.include_router(message.router)
api_router.include_router(chat.router)
api_router.include_router(simple_chat.router)

__all__ = ["api_router"]
