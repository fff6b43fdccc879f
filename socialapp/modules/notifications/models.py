"""SQLAlchemy model and enum for user notifications."""

from __future__ import annotations

import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from socialapp.core.database import Base
from socialapp.core.db_defaults import timestamp_default, utcnow


class NotificationType(enum.IntEnum):
    LIKE = 1
    COMMENT = 2
    FOLLOW = 3
    COMMENT_REPLY = 4
    COMMENT_LIKE = 5
    MENTION = 6
    WELCOME = 7
    SYSTEM = 8


class Notification(Base):
    """A single notification addressed to `user_id`."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    from_user_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=True, index=True
    )
    comment_id = Column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True
    )
    notification_type = Column(Integer, nullable=False)
    content = Column(String(500), nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=timestamp_default(),
    )

    user = relationship("User", foreign_keys=[user_id], back_populates="notifications")
    from_user = relationship("User", foreign_keys=[from_user_id])

    @property
    def type_name(self) -> str:
        try:
            return NotificationType(self.notification_type).name.lower()
        except ValueError:
            return "unknown"
