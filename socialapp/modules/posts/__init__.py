"""Post domain exports."""

from .models import (
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

__all__ = [
    "Comment",
    "CommentReport",
    "MediaType",
    "Post",
    "PostMedia",
    "PostPrivacy",
    "Reaction",
    "ReactionType",
    "ReportStatus",
]
