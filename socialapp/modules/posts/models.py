"""Post domain SQLAlchemy models and enums.

Posts own ordered media rows, comments (threaded through `parent_comment_id`)
and reactions. Reactions point at exactly one of post/comment.
"""

from __future__ import annotations

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from socialapp.core.database import Base
from socialapp.core.db_defaults import timestamp_default, utcnow


class PostPrivacy(str, enum.Enum):
    PUBLIC = "public"
    FOLLOWERS = "followers"
    PRIVATE = "private"


class MediaType(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"
    FILE = "file"


class ReactionType(str, enum.Enum):
    LIKE = "like"
    LOVE = "love"
    HAHA = "haha"
    WOW = "wow"
    SAD = "sad"
    ANGRY = "angry"


class ReportStatus(str, enum.Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class Post(Base):
    """Post entity."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, nullable=False)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content = Column(String(500), nullable=False)
    privacy = Column(
        Enum(PostPrivacy, name="post_privacy_enum"),
        nullable=False,
        default=PostPrivacy.PUBLIC,
    )
    location = Column(String(255), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=timestamp_default(),
    )
    updated_at = Column(DateTime(timezone=True), nullable=True)

    owner = relationship("User", back_populates="posts")
    media = relationship(
        "PostMedia",
        back_populates="post",
        order_by="PostMedia.order_index",
        cascade="all, delete-orphan",
    )
    comments = relationship(
        "Comment",
        back_populates="post",
        cascade="all, delete-orphan",
    )
    reactions = relationship(
        "Reaction",
        back_populates="post",
        cascade="all, delete-orphan",
    )


class PostMedia(Base):
    """One media attachment of a post; `order_index` keeps upload order."""

    __tablename__ = "post_media"

    id = Column(Integer, primary_key=True)
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    media_url = Column(String, nullable=False)
    media_type = Column(
        Enum(MediaType, name="media_type_enum"), nullable=False, default=MediaType.IMAGE
    )
    media_public_id = Column(String, nullable=True)
    media_mime_type = Column(String(100), nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=timestamp_default(),
    )

    post = relationship("Post", back_populates="media")


class Comment(Base):
    """Comment on a post; replies reference their parent comment."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, nullable=False)
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    parent_comment_id = Column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True
    )
    content = Column(String(300), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=timestamp_default(),
    )
    updated_at = Column(DateTime(timezone=True), nullable=True)

    owner = relationship("User")
    post = relationship("Post", back_populates="comments")
    parent = relationship("Comment", remote_side=[id], back_populates="replies")
    replies = relationship(
        "Comment",
        back_populates="parent",
        order_by="Comment.created_at",
        cascade="all, delete-orphan",
    )
    reactions = relationship(
        "Reaction",
        back_populates="comment",
        cascade="all, delete-orphan",
    )
    reports = relationship(
        "CommentReport",
        back_populates="comment",
        cascade="all, delete-orphan",
    )


class CommentReport(Base):
    """A user's report against a comment, reviewed by admins."""

    __tablename__ = "comment_reports"
    __table_args__ = (
        UniqueConstraint("comment_id", "reporter_id", name="uq_comment_report_reporter"),
    )

    id = Column(Integer, primary_key=True)
    comment_id = Column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False
    )
    reporter_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    reason = Column(String(500), nullable=False)
    status = Column(
        Enum(ReportStatus, name="report_status_enum"),
        nullable=False,
        default=ReportStatus.PENDING,
    )
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=timestamp_default(),
    )
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    comment = relationship("Comment", back_populates="reports")
    reporter = relationship("User")


class Reaction(Base):
    """Reaction by a user on exactly one post or comment."""

    __tablename__ = "reactions"
    __table_args__ = (
        UniqueConstraint("user_id", "post_id", name="uq_reaction_user_post"),
        UniqueConstraint("user_id", "comment_id", name="uq_reaction_user_comment"),
        CheckConstraint(
            "(post_id IS NULL) <> (comment_id IS NULL)", name="ck_reaction_single_target"
        ),
        Index("ix_reactions_post_type", "post_id", "reaction_type"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    post_id = Column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=True
    )
    comment_id = Column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True
    )
    reaction_type = Column(Enum(ReactionType, name="reaction_type"), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=timestamp_default(),
    )

    user = relationship("User")
    post = relationship("Post", back_populates="reactions")
    comment = relationship("Comment", back_populates="reactions")

    @property
    def entity_type(self) -> str:
        return "post" if self.post_id is not None else "comment"

    @property
    def entity_id(self) -> int:
        return self.post_id if self.post_id is not None else self.comment_id
