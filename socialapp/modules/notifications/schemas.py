"""Pydantic schemas for notification listings and bulk actions."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from socialapp.modules.users.schemas import UserBrief


class NotificationOut(BaseModel):
    id: int
    user_id: int
    from_user_id: Optional[int] = None
    post_id: Optional[int] = None
    comment_id: Optional[int] = None
    notification_type: int
    type_name: str
    content: str
    is_read: bool
    created_at: datetime
    from_user: Optional[UserBrief] = None

    model_config = ConfigDict(from_attributes=True)


class NotificationListOut(BaseModel):
    notifications: List[NotificationOut]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class NotificationMarkRead(BaseModel):
    notification_ids: List[int] = Field(..., min_length=1)


class NotificationStats(BaseModel):
    total_notifications: int
    unread_count: int
    today_count: int
    this_week_count: int


class SystemNotificationCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=500)
