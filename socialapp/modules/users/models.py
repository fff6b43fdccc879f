"""SQLAlchemy models and enums for the users domain."""

from __future__ import annotations

import enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import relationship

from socialapp.core.database import Base
from socialapp.core.db_defaults import timestamp_default, utcnow


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


class User(Base):
    """Application user model. Rows are soft-deleted, never removed."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, nullable=False)
    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    hashed_password = Column(String, nullable=False)
    first_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=True)
    bio = Column(String(500), nullable=True)
    profile_picture_url = Column(String, nullable=True)
    role = Column(
        SQLAlchemyEnum(UserRole, name="user_role_enum"),
        nullable=False,
        default=UserRole.USER,
    )
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=timestamp_default(),
    )
    last_active = Column(DateTime(timezone=True), nullable=True, default=utcnow)

    posts = relationship("Post", back_populates="owner", cascade="all, delete-orphan")
    notifications = relationship(
        "Notification",
        back_populates="user",
        foreign_keys="Notification.user_id",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str | None:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else None

    @property
    def display_name(self) -> str:
        """Full name when any part is set, otherwise the username."""
        return self.full_name or self.username

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
