"""Pydantic schemas for follow and block payloads."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from socialapp.modules.users.schemas import UserBrief


class FollowStatus(BaseModel):
    is_following: bool
    is_followed_by: bool
    is_friend: bool


class FollowUserOut(BaseModel):
    user: UserBrief
    followed_at: datetime


class FollowListOut(BaseModel):
    users: List[FollowUserOut]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class BlockCreate(BaseModel):
    blocked_user_id: int = Field(..., gt=0)
    reason: Optional[str] = Field(None, max_length=500)


class BlockOut(BaseModel):
    blocker_id: int
    blocked_user_id: int
    reason: Optional[str] = None
    created_at: datetime
    already_blocked: bool = False


class BlockStatus(BaseModel):
    is_blocked: bool
    is_blocked_by: bool
    blocked_at: Optional[datetime] = None
    reason: Optional[str] = None


class BlockedUserOut(BaseModel):
    user: UserBrief
    reason: Optional[str] = None
    blocked_at: datetime


class BlockedUsersPage(BaseModel):
    blocked_users: List[BlockedUserOut]
    total_count: int
    page: int
    page_size: int
    has_more: bool
