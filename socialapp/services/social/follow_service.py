"""Business logic for follow/unfollow flows and follower listings."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy.orm import Session

from socialapp.core.database.query_helpers import (
    apply_page,
    build_page_meta,
    count_rows,
    page_window,
)
from socialapp.modules.notifications.models import NotificationType
from socialapp.modules.notifications.service import NotificationService
from socialapp.modules.social.models import UserFollower
from socialapp.modules.users.models import User
from socialapp.modules.users.schemas import UserBrief
from socialapp.services.social.relations import (
    exclude_hidden_users,
    friend_ids,
    get_active_user,
    is_blocked_between,
    is_following,
)

logger = logging.getLogger(__name__)


class FollowService:
    """Encapsulates follow/unfollow workflows and related listings."""

    def __init__(self, db: Session):
        self.db = db

    def follow_user(
        self,
        *,
        current_user: User,
        target_user_id: int,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Dict[str, str]:
        if target_user_id == current_user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You cannot follow yourself",
            )

        user_to_follow = get_active_user(self.db, target_user_id)
        if not user_to_follow:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User to follow not found",
            )

        if is_blocked_between(self.db, current_user.id, target_user_id):
            logger.warning(
                "Follow rejected between %s and %s: block in place",
                current_user.id,
                target_user_id,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cannot follow this user",
            )

        if is_following(self.db, current_user.id, target_user_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You already follow this user",
            )

        self.db.add(
            UserFollower(follower_id=current_user.id, following_id=target_user_id)
        )
        self.db.commit()
        logger.info("User %s followed user %s", current_user.id, target_user_id)

        NotificationService(self.db).create_notification(
            user_id=target_user_id,
            notification_type=NotificationType.FOLLOW,
            from_user=current_user,
            background_tasks=background_tasks,
        )
        return {"message": "Successfully followed user"}

    def unfollow_user(self, *, current_user: User, target_user_id: int) -> None:
        follow = (
            self.db.query(UserFollower)
            .filter(
                UserFollower.follower_id == current_user.id,
                UserFollower.following_id == target_user_id,
            )
            .first()
        )
        if not follow:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="You do not follow this user",
            )
        self.db.delete(follow)
        self.db.commit()
        logger.info("User %s unfollowed user %s", current_user.id, target_user_id)

    def _listing(
        self,
        *,
        current_user: User,
        user_id: int,
        direction: str,
        page: int,
        page_size: int,
    ) -> dict:
        if get_active_user(self.db, user_id) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
            )
        page, page_size = page_window(page, page_size)
        if direction == "followers":
            anchor, other = UserFollower.following_id, UserFollower.follower_id
        else:
            anchor, other = UserFollower.follower_id, UserFollower.following_id

        query = (
            self.db.query(UserFollower, User)
            .join(User, User.id == other)
            .filter(anchor == user_id, User.is_deleted.is_(False))
        )
        query = exclude_hidden_users(query, other, current_user.id)
        total = count_rows(query)
        rows = apply_page(
            query.order_by(UserFollower.created_at.desc(), UserFollower.id.desc()),
            page,
            page_size,
        ).all()
        return {
            "users": [
                {"user": UserBrief.model_validate(user), "followed_at": edge.created_at}
                for edge, user in rows
            ],
            **build_page_meta(total, page, page_size),
        }

    def get_followers(
        self, *, current_user: User, user_id: int, page: int = 1, page_size: int = 20
    ) -> dict:
        return self._listing(
            current_user=current_user,
            user_id=user_id,
            direction="followers",
            page=page,
            page_size=page_size,
        )

    def get_following(
        self, *, current_user: User, user_id: int, page: int = 1, page_size: int = 20
    ) -> dict:
        return self._listing(
            current_user=current_user,
            user_id=user_id,
            direction="following",
            page=page,
            page_size=page_size,
        )

    def get_status(self, *, current_user: User, user_id: int) -> Dict[str, bool]:
        following = is_following(self.db, current_user.id, user_id)
        followed_by = is_following(self.db, user_id, current_user.id)
        return {
            "is_following": following,
            "is_followed_by": followed_by,
            "is_friend": following and followed_by,
        }

    def get_friends(self, *, current_user: User):
        ids = friend_ids(self.db, current_user.id)
        if not ids:
            return []
        query = self.db.query(User).filter(User.id.in_(ids), User.is_deleted.is_(False))
        query = exclude_hidden_users(query, User.id, current_user.id)
        return [UserBrief.model_validate(u) for u in query.order_by(User.username).all()]
