"""Pydantic schemas for accounts, profiles and auth payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from socialapp.modules.users.models import UserRole

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"


class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: EmailStr


class UserCreate(UserBase):
    password: str = Field(..., min_length=6, max_length=128)
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)


class UserUpdate(BaseModel):
    username: Optional[str] = Field(
        None, min_length=3, max_length=50, pattern=USERNAME_PATTERN
    )
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    profile_picture_url: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6, max_length=128)


class RoleUpdate(BaseModel):
    role: UserRole


class UserBrief(BaseModel):
    """Compact author/participant representation embedded in other payloads."""

    id: int
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: str
    profile_picture_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserOut(BaseModel):
    id: int
    username: str
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    bio: Optional[str] = None
    profile_picture_url: Optional[str] = None
    role: UserRole
    created_at: datetime
    last_active: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AdminUserOut(UserOut):
    """Account view for administrators, including soft-delete state."""

    is_deleted: bool = False
    deleted_at: Optional[datetime] = None


class AvailabilityOut(BaseModel):
    is_available: bool


class UserProfileOut(BaseModel):
    id: int
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: str
    bio: Optional[str] = None
    profile_picture_url: Optional[str] = None
    created_at: datetime
    last_active: Optional[datetime] = None
    followers_count: int = 0
    following_count: int = 0
    posts_count: int = 0
    is_following: bool = False
    is_followed_by: bool = False
    is_blocked: bool = False


class UserSearchResult(BaseModel):
    users: list[UserBrief]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class Token(BaseModel):
    access_token: str
    token_type: str


class LoginResponse(Token):
    user: UserOut


class TokenData(BaseModel):
    id: Optional[int] = None
