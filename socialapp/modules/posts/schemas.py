"""Pydantic schemas for posts, comments, reports and reactions."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from socialapp.modules.posts.models import (
    MediaType,
    PostPrivacy,
    ReactionType,
    ReportStatus,
)
from socialapp.modules.users.schemas import UserBrief


class ReactionEntityType(str, enum.Enum):
    POST = "post"
    COMMENT = "comment"


# ===== Posts =====


class PostMediaIn(BaseModel):
    media_url: str = Field(..., min_length=1)
    media_type: MediaType = MediaType.IMAGE
    media_public_id: Optional[str] = None
    media_mime_type: Optional[str] = Field(None, max_length=100)


class PostMediaOut(PostMediaIn):
    id: int
    order_index: int

    model_config = ConfigDict(from_attributes=True)


class PostCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=500)
    privacy: PostPrivacy = PostPrivacy.PUBLIC
    location: Optional[str] = Field(None, max_length=255)
    media: List[PostMediaIn] = Field(default_factory=list)


class PostUpdate(BaseModel):
    content: Optional[str] = Field(None, min_length=1, max_length=500)
    privacy: Optional[PostPrivacy] = None
    location: Optional[str] = Field(None, max_length=255)
    media: Optional[List[PostMediaIn]] = None


class PostOut(BaseModel):
    id: int
    user_id: int
    content: str
    privacy: PostPrivacy
    location: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    author: UserBrief
    media: List[PostMediaOut] = Field(default_factory=list)
    comments_count: int = 0
    reactions_count: int = 0
    reaction_counts: Dict[str, int] = Field(default_factory=dict)
    current_user_reaction: Optional[ReactionType] = None
    is_liked_by_current_user: bool = False


class PostListOut(BaseModel):
    posts: List[PostOut]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


# ===== Comments =====


class CommentCreate(BaseModel):
    post_id: int = Field(..., gt=0)
    content: str = Field(..., min_length=1, max_length=300)
    parent_comment_id: Optional[int] = Field(None, gt=0)


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=300)


class CommentOut(BaseModel):
    id: int
    post_id: int
    user_id: int
    parent_comment_id: Optional[int] = None
    content: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    author: UserBrief
    replies_count: int = 0
    reaction_counts: Dict[str, int] = Field(default_factory=dict)
    current_user_reaction: Optional[ReactionType] = None


class CommentReportCreate(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class CommentReportStatusUpdate(BaseModel):
    status: ReportStatus


class CommentReportOut(BaseModel):
    id: int
    comment_id: int
    reporter_id: int
    reason: str
    status: ReportStatus
    created_at: datetime
    resolved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ===== Reactions =====


class ReactionToggle(BaseModel):
    entity_type: ReactionEntityType
    entity_id: int = Field(..., gt=0)
    reaction_type: ReactionType


class ReactionSummary(BaseModel):
    total: int
    counts: Dict[str, int]
    current_user_reaction: Optional[ReactionType] = None


class ReactionToggleOut(ReactionSummary):
    action: str
    reaction_type: Optional[ReactionType] = None


class ReactionUserOut(BaseModel):
    user: UserBrief
    reaction_type: ReactionType
    created_at: datetime
