"""Service layer for comments, threaded replies and comment reports."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from socialapp import schemas
from socialapp.core.exceptions import ResourceNotFoundException
from socialapp.modules.notifications.models import NotificationType
from socialapp.modules.notifications.service import NotificationService
from socialapp.modules.posts.models import Comment, CommentReport, Post, ReportStatus
from socialapp.modules.users.models import User, UserRole
from socialapp.services.posts.post_service import can_view_post
from socialapp.services.reactions.aggregates import reaction_counts, user_reactions
from socialapp.services.social.relations import exclude_hidden_users

logger = logging.getLogger(__name__)


class CommentService:
    def __init__(self, db: Session):
        self.db = db

    # ----- Helpers -----
    def _visible_post_or_404(self, post_id: int, current_user: User) -> Post:
        post = self.db.query(Post).filter(Post.id == post_id).first()
        if post is None or not can_view_post(self.db, current_user, post):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Post not found"
            )
        return post

    def _comment_or_404(self, comment_id: int) -> Comment:
        comment = (
            self.db.query(Comment)
            .options(joinedload(Comment.owner))
            .filter(Comment.id == comment_id)
            .first()
        )
        if comment is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found"
            )
        return comment

    def get_visible_comment_or_404(self, comment_id: int, current_user: User) -> Comment:
        comment = self._comment_or_404(comment_id)
        if not can_view_post(self.db, current_user, comment.post):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found"
            )
        return comment

    def _prepare_comments(
        self, comments: List[Comment], viewer: User
    ) -> List[schemas.CommentOut]:
        ids = [c.id for c in comments]
        replies = {}
        if ids:
            replies = dict(
                self.db.query(Comment.parent_comment_id, func.count(Comment.id))
                .filter(Comment.parent_comment_id.in_(ids))
                .group_by(Comment.parent_comment_id)
                .all()
            )
        counts = reaction_counts(self.db, "comment", ids)
        mine = user_reactions(self.db, viewer.id, "comment", ids)
        return [
            schemas.CommentOut(
                id=c.id,
                post_id=c.post_id,
                user_id=c.user_id,
                parent_comment_id=c.parent_comment_id,
                content=c.content,
                created_at=c.created_at,
                updated_at=c.updated_at,
                author=schemas.UserBrief.model_validate(c.owner),
                replies_count=replies.get(c.id, 0),
                reaction_counts=counts.get(c.id, {}),
                current_user_reaction=mine.get(c.id),
            )
            for c in comments
        ]

    def _descendant_ids(self, comment_id: int) -> List[int]:
        """The comment id plus every reply below it, breadth first."""
        collected = [comment_id]
        frontier = [comment_id]
        while frontier:
            children = [
                row[0]
                for row in self.db.query(Comment.id)
                .filter(Comment.parent_comment_id.in_(frontier))
                .all()
            ]
            collected.extend(children)
            frontier = children
        return collected

    # ----- Comments -----
    def create_comment(
        self,
        *,
        payload: schemas.CommentCreate,
        current_user: User,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> schemas.CommentOut:
        post = self._visible_post_or_404(payload.post_id, current_user)

        parent = None
        if payload.parent_comment_id is not None:
            parent = (
                self.db.query(Comment)
                .filter(
                    Comment.id == payload.parent_comment_id,
                    Comment.post_id == post.id,
                )
                .first()
            )
            if parent is None:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Parent comment not found",
                )

        comment = Comment(
            post_id=post.id,
            user_id=current_user.id,
            parent_comment_id=parent.id if parent is not None else None,
            content=payload.content,
        )
        self.db.add(comment)
        self.db.commit()
        self.db.refresh(comment)
        logger.info("Comment %s added to post %s by user %s", comment.id, post.id, current_user.id)

        notifications = NotificationService(self.db)
        notifications.create_notification(
            user_id=post.user_id,
            notification_type=NotificationType.COMMENT,
            from_user=current_user,
            post_id=post.id,
            comment_id=comment.id,
            background_tasks=background_tasks,
        )
        if parent is not None and parent.user_id != post.user_id:
            notifications.create_notification(
                user_id=parent.user_id,
                notification_type=NotificationType.COMMENT_REPLY,
                from_user=current_user,
                post_id=post.id,
                comment_id=comment.id,
                background_tasks=background_tasks,
            )

        return self._prepare_comments([comment], current_user)[0]

    def list_post_comments(
        self, *, post_id: int, current_user: User
    ) -> List[schemas.CommentOut]:
        """Top-level comments of a post, oldest first."""
        self._visible_post_or_404(post_id, current_user)
        query = (
            self.db.query(Comment)
            .options(joinedload(Comment.owner))
            .filter(Comment.post_id == post_id, Comment.parent_comment_id.is_(None))
        )
        query = exclude_hidden_users(query, Comment.user_id, current_user.id)
        comments = query.order_by(Comment.created_at.asc(), Comment.id.asc()).all()
        return self._prepare_comments(comments, current_user)

    def list_replies(
        self, *, comment_id: int, current_user: User
    ) -> List[schemas.CommentOut]:
        parent = self.get_visible_comment_or_404(comment_id, current_user)
        query = (
            self.db.query(Comment)
            .options(joinedload(Comment.owner))
            .filter(Comment.parent_comment_id == parent.id)
        )
        query = exclude_hidden_users(query, Comment.user_id, current_user.id)
        replies = query.order_by(Comment.created_at.asc(), Comment.id.asc()).all()
        return self._prepare_comments(replies, current_user)

    def update_comment(
        self,
        *,
        comment_id: int,
        payload: schemas.CommentUpdate,
        current_user: User,
    ) -> schemas.CommentOut:
        comment = self._comment_or_404(comment_id)
        if comment.user_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to edit this comment",
            )
        comment.content = payload.content
        comment.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(comment)
        return self._prepare_comments([comment], current_user)[0]

    def delete_comment(self, *, comment_id: int, current_user: User) -> None:
        comment = self._comment_or_404(comment_id)
        if comment.user_id != current_user.id and current_user.role != UserRole.ADMIN:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to delete this comment",
            )
        doomed = self._descendant_ids(comment.id)
        NotificationService(self.db).remove_for(comment_ids=doomed, commit=False)
        self.db.delete(comment)
        self.db.commit()
        logger.info(
            "Comment %s deleted with %s replies by user %s",
            comment_id,
            len(doomed) - 1,
            current_user.id,
        )

    # ----- Reports -----
    def report_comment(
        self,
        *,
        comment_id: int,
        payload: schemas.CommentReportCreate,
        current_user: User,
    ) -> CommentReport:
        comment = self.get_visible_comment_or_404(comment_id, current_user)
        existing = (
            self.db.query(CommentReport.id)
            .filter(
                CommentReport.comment_id == comment.id,
                CommentReport.reporter_id == current_user.id,
            )
            .first()
        )
        if existing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You have already reported this comment",
            )

        report = CommentReport(
            comment_id=comment.id,
            reporter_id=current_user.id,
            reason=payload.reason,
            status=ReportStatus.PENDING,
        )
        self.db.add(report)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You have already reported this comment",
            )
        self.db.refresh(report)
        logger.info("Comment %s reported by user %s", comment.id, current_user.id)
        return report

    def list_reports(self, *, status_filter: Optional[ReportStatus] = None) -> List[CommentReport]:
        query = self.db.query(CommentReport)
        if status_filter is not None:
            query = query.filter(CommentReport.status == status_filter)
        return query.order_by(CommentReport.created_at.desc(), CommentReport.id.desc()).all()

    def update_report_status(
        self, *, report_id: int, new_status: ReportStatus
    ) -> CommentReport:
        report = self.db.query(CommentReport).filter(CommentReport.id == report_id).first()
        if report is None:
            raise ResourceNotFoundException("Comment report", report_id)
        report.status = new_status
        report.resolved_at = (
            None if new_status == ReportStatus.PENDING else datetime.now(timezone.utc)
        )
        self.db.commit()
        self.db.refresh(report)
        logger.info("Comment report %s set to %s", report.id, new_status.value)
        return report
