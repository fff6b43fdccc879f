"""Notification service: creation, listing, read-state and cleanup.

Creation never notifies the actor about their own action. After a row is
committed, its serialized payload is pushed to the recipient's `User_{id}`
hub group.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from socialapp.core.database.query_helpers import (
    apply_page,
    build_page_meta,
    count_rows,
    page_window,
)
from socialapp.core.db_defaults import as_utc
from socialapp.core.exceptions import ResourceNotFoundException, ValidationException
from socialapp.modules.notifications.models import Notification, NotificationType
from socialapp.modules.notifications.realtime import queue_group_message, user_group
from socialapp.modules.notifications.schemas import NotificationOut
from socialapp.modules.users.models import User

logger = logging.getLogger(__name__)

_TEMPLATES = {
    NotificationType.LIKE: "{actor} liked your post",
    NotificationType.COMMENT: "{actor} commented on your post",
    NotificationType.FOLLOW: "{actor} started following you",
    NotificationType.COMMENT_REPLY: "{actor} replied to your comment",
    NotificationType.COMMENT_LIKE: "{actor} liked your comment",
    NotificationType.MENTION: "{actor} mentioned you",
}


def serialize_notification(notification: Notification) -> dict:
    return NotificationOut.model_validate(notification).model_dump(mode="json")


class NotificationService:
    """Encapsulates notification persistence and delivery."""

    def __init__(self, db: Session):
        self.db = db

    # ===== Creation =====

    def create_notification(
        self,
        *,
        user_id: int,
        notification_type: NotificationType,
        from_user: Optional[User] = None,
        post_id: Optional[int] = None,
        comment_id: Optional[int] = None,
        content: Optional[str] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Optional[Notification]:
        """Persist one notification and queue its real-time push.

        Returns None when the actor is the recipient.
        """
        if from_user is not None and from_user.id == user_id:
            return None

        recipient = self.db.query(User).filter(User.id == user_id).first()
        if recipient is None:
            raise ResourceNotFoundException("User", user_id)

        if content is None:
            template = _TEMPLATES.get(notification_type)
            actor = from_user.display_name if from_user is not None else "Someone"
            content = template.format(actor=actor) if template else ""

        notification = Notification(
            user_id=user_id,
            from_user_id=from_user.id if from_user is not None else None,
            post_id=post_id,
            comment_id=comment_id,
            notification_type=int(notification_type),
            content=content[:500],
            is_read=False,
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        logger.info(
            "Notification %s (%s) created for user %s",
            notification.id,
            NotificationType(notification_type).name,
            user_id,
        )

        queue_group_message(
            background_tasks,
            user_group(user_id),
            {"type": "notification", "notification": serialize_notification(notification)},
        )
        return notification

    def create_bulk_notifications(
        self,
        *,
        user_ids: Iterable[int],
        notification_type: NotificationType,
        content: str,
        from_user: Optional[User] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> List[Notification]:
        """Create one notification per recipient, skipping the actor and unknown ids."""
        wanted = {uid for uid in user_ids if from_user is None or uid != from_user.id}
        if not wanted:
            return []
        existing_ids = {
            row.id for row in self.db.query(User.id).filter(User.id.in_(wanted)).all()
        }
        created = [
            Notification(
                user_id=uid,
                from_user_id=from_user.id if from_user is not None else None,
                notification_type=int(notification_type),
                content=content[:500],
                is_read=False,
            )
            for uid in sorted(existing_ids)
        ]
        self.db.add_all(created)
        self.db.commit()
        for notification in created:
            self.db.refresh(notification)
            queue_group_message(
                background_tasks,
                user_group(notification.user_id),
                {
                    "type": "notification",
                    "notification": serialize_notification(notification),
                },
            )
        logger.info(
            "Created %s bulk notifications of type %s",
            len(created),
            NotificationType(notification_type).name,
        )
        return created

    def send_system_notification(
        self,
        *,
        content: str,
        sender: User,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> int:
        """Send a System notification to every active account except the sender."""
        user_ids = [
            row.id
            for row in self.db.query(User.id).filter(User.is_deleted.is_(False)).all()
        ]
        created = self.create_bulk_notifications(
            user_ids=user_ids,
            notification_type=NotificationType.SYSTEM,
            content=content,
            from_user=sender,
            background_tasks=background_tasks,
        )
        return len(created)

    def send_welcome(
        self, user: User, *, background_tasks: Optional[BackgroundTasks] = None
    ) -> Optional[Notification]:
        return self.create_notification(
            user_id=user.id,
            notification_type=NotificationType.WELCOME,
            content=f"Welcome to SocialApp, {user.display_name}!",
            background_tasks=background_tasks,
        )

    # ===== Queries =====

    def list_notifications(
        self,
        *,
        current_user: User,
        page: int = 1,
        page_size: int = 20,
        is_read: Optional[bool] = None,
        notification_type: Optional[int] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> dict:
        if from_date and to_date and as_utc(from_date) > as_utc(to_date):
            raise ValidationException(
                "from_date must not be after to_date", field="from_date"
            )
        page, page_size = page_window(page, page_size)
        query = (
            self.db.query(Notification)
            .options(joinedload(Notification.from_user))
            .filter(Notification.user_id == current_user.id)
        )
        if is_read is not None:
            query = query.filter(Notification.is_read.is_(is_read))
        if notification_type is not None:
            query = query.filter(Notification.notification_type == notification_type)
        if from_date is not None:
            query = query.filter(Notification.created_at >= from_date)
        if to_date is not None:
            query = query.filter(Notification.created_at <= to_date)

        total = count_rows(query)
        rows = apply_page(
            query.order_by(Notification.created_at.desc(), Notification.id.desc()),
            page,
            page_size,
        ).all()
        return {
            "notifications": [NotificationOut.model_validate(n) for n in rows],
            **build_page_meta(total, page, page_size),
        }

    def unread_count(self, *, current_user: User) -> int:
        return (
            self.db.query(func.count(Notification.id))
            .filter(
                Notification.user_id == current_user.id,
                Notification.is_read.is_(False),
            )
            .scalar()
            or 0
        )

    def get_stats(self, *, current_user: User) -> dict:
        now = datetime.now(timezone.utc)
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_ago = today - timedelta(days=7)
        base = self.db.query(Notification).filter(
            Notification.user_id == current_user.id
        )
        return {
            "total_notifications": base.count(),
            "unread_count": base.filter(Notification.is_read.is_(False)).count(),
            "today_count": base.filter(Notification.created_at >= today).count(),
            "this_week_count": base.filter(Notification.created_at >= week_ago).count(),
        }

    # ===== Read state =====

    def mark_as_read(self, *, current_user: User, notification_ids: List[int]) -> int:
        """Mark the caller's unread notifications read; returns rows changed.

        Already-read or foreign ids are ignored, so repeating a call yields 0.
        """
        updated = (
            self.db.query(Notification)
            .filter(
                Notification.user_id == current_user.id,
                Notification.id.in_(notification_ids),
                Notification.is_read.is_(False),
            )
            .update({Notification.is_read: True}, synchronize_session=False)
        )
        self.db.commit()
        return updated

    def mark_all_as_read(self, *, current_user: User) -> int:
        updated = (
            self.db.query(Notification)
            .filter(
                Notification.user_id == current_user.id,
                Notification.is_read.is_(False),
            )
            .update({Notification.is_read: True}, synchronize_session=False)
        )
        self.db.commit()
        return updated

    # ===== Deletion =====

    def delete_notification(self, *, current_user: User, notification_id: int) -> None:
        notification = (
            self.db.query(Notification)
            .filter(
                Notification.id == notification_id,
                Notification.user_id == current_user.id,
            )
            .first()
        )
        if notification is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Notification not found",
            )
        self.db.delete(notification)
        self.db.commit()

    def delete_read(self, *, current_user: User) -> int:
        deleted = (
            self.db.query(Notification)
            .filter(
                Notification.user_id == current_user.id,
                Notification.is_read.is_(True),
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted

    def remove_for(
        self,
        *,
        notification_type: Optional[NotificationType] = None,
        from_user_id: Optional[int] = None,
        post_id: Optional[int] = None,
        comment_ids: Optional[List[int]] = None,
        commit: bool = True,
    ) -> int:
        """Delete notifications tied to an undone action or a removed entity."""
        query = self.db.query(Notification)
        if notification_type is not None:
            query = query.filter(Notification.notification_type == int(notification_type))
        if from_user_id is not None:
            query = query.filter(Notification.from_user_id == from_user_id)
        if post_id is not None:
            query = query.filter(Notification.post_id == post_id)
        if comment_ids is not None:
            if not comment_ids:
                return 0
            query = query.filter(Notification.comment_id.in_(comment_ids))
        deleted = query.delete(synchronize_session=False)
        if commit:
            self.db.commit()
        return deleted
