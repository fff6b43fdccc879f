"""High-level business services for the users domain."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from socialapp import schemas
from socialapp.core.database.query_helpers import (
    apply_page,
    build_page_meta,
    count_rows,
    page_window,
)
from socialapp.core.exceptions import (
    AccountDeletedException,
    InvalidCredentialsException,
    ResourceAlreadyExistsException,
    ResourceNotFoundException,
)
from socialapp.modules.notifications.service import NotificationService
from socialapp.modules.posts.models import Post
from socialapp.modules.social.models import UserFollower
from socialapp.modules.users.models import User, UserRole
from socialapp.services.social.relations import (
    exclude_hidden_users,
    friend_ids,
    has_blocked,
    is_blocked_between,
    is_following,
)
from socialapp.utils import hash as hash_password
from socialapp.utils import verify

logger = logging.getLogger(__name__)


class UserService:
    """Encapsulates shared user operations used by routers."""

    def __init__(self, db: Session):
        self.db = db

    # ----- Registration & credentials -----
    def create_user(
        self,
        payload: schemas.UserCreate,
        *,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> User:
        self._ensure_unique(username=payload.username, email=payload.email)

        new_user = User(
            username=payload.username,
            email=payload.email,
            hashed_password=hash_password(payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
        self.db.add(new_user)
        self._commit_unique(username=payload.username, email=payload.email)
        self.db.refresh(new_user)
        logger.info("User %s registered (id=%s)", new_user.username, new_user.id)

        NotificationService(self.db).send_welcome(
            new_user, background_tasks=background_tasks
        )
        return new_user

    def authenticate(self, identifier: str, password: str) -> User:
        """Resolve a login by username or email; raises on any mismatch."""
        user = (
            self.db.query(User)
            .filter(or_(User.username == identifier, User.email == identifier))
            .first()
        )
        if user is None or not verify(password, user.hashed_password):
            logger.warning("Failed login attempt for %s", identifier)
            raise InvalidCredentialsException()
        if user.is_deleted:
            logger.warning("Login attempt on deleted account %s", user.id)
            raise AccountDeletedException()

        user.last_active = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(user)
        return user

    def change_password(
        self, current_user: User, payload: schemas.PasswordChange
    ) -> None:
        if not verify(payload.current_password, current_user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect",
            )
        current_user.hashed_password = hash_password(payload.new_password)
        self.db.commit()
        logger.info("Password changed for user %s", current_user.id)

    def _is_taken(self, column, value: str, exclude_id: Optional[int] = None) -> bool:
        query = self.db.query(User.id).filter(column == value)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        return query.first() is not None

    def _ensure_unique(
        self,
        *,
        username: Optional[str] = None,
        email: Optional[str] = None,
        exclude_id: Optional[int] = None,
    ) -> None:
        if username is not None and self._is_taken(User.username, username, exclude_id):
            raise ResourceAlreadyExistsException("User", "username")
        if email is not None and self._is_taken(User.email, email, exclude_id):
            raise ResourceAlreadyExistsException("User", "email")

    def _commit_unique(
        self,
        *,
        username: Optional[str] = None,
        email: Optional[str] = None,
        exclude_id: Optional[int] = None,
    ) -> None:
        """Commit; a unique-column race is reported against the column that collided."""
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(
                "Unique constraint raced for username=%s email=%s", username, email
            )
            self._ensure_unique(username=username, email=email, exclude_id=exclude_id)
            raise

    def is_username_available(
        self, username: str, *, current_user: Optional[User] = None
    ) -> bool:
        """A user's own username counts as available to them."""
        exclude_id = current_user.id if current_user is not None else None
        return not self._is_taken(User.username, username, exclude_id)

    def is_email_available(
        self, email: str, *, current_user: Optional[User] = None
    ) -> bool:
        exclude_id = current_user.id if current_user is not None else None
        return not self._is_taken(User.email, email, exclude_id)
    # ----- Access helpers -----
    def get_user_or_404(self, user_id: int, *, include_deleted: bool = False) -> User:
        query = self.db.query(User).filter(User.id == user_id)
        if not include_deleted:
            query = query.filter(User.is_deleted.is_(False))
        user = query.first()
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    # ----- Profiles -----
    def get_profile(self, *, current_user: User, user_id: int) -> dict:
        user = self.get_user_or_404(user_id)
        return self._build_profile(current_user, user)

    def get_profile_by_username(self, *, current_user: User, username: str) -> dict:
        user = (
            self.db.query(User)
            .filter(User.username == username, User.is_deleted.is_(False))
            .first()
        )
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return self._build_profile(current_user, user)

    def _build_profile(self, viewer: User, user: User) -> dict:
        if viewer.id != user.id and is_blocked_between(self.db, viewer.id, user.id):
            raise HTTPException(status_code=404, detail="User not found")

        followers_count = (
            self.db.query(func.count(UserFollower.id))
            .filter(UserFollower.following_id == user.id)
            .scalar()
        )
        following_count = (
            self.db.query(func.count(UserFollower.id))
            .filter(UserFollower.follower_id == user.id)
            .scalar()
        )
        posts_count = (
            self.db.query(func.count(Post.id)).filter(Post.user_id == user.id).scalar()
        )
        return {
            "id": user.id,
            "username": user.username,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "display_name": user.display_name,
            "bio": user.bio,
            "profile_picture_url": user.profile_picture_url,
            "created_at": user.created_at,
            "last_active": user.last_active,
            "followers_count": followers_count or 0,
            "following_count": following_count or 0,
            "posts_count": posts_count or 0,
            "is_following": is_following(self.db, viewer.id, user.id),
            "is_followed_by": is_following(self.db, user.id, viewer.id),
            "is_blocked": has_blocked(self.db, viewer.id, user.id),
        }

    def update_profile(self, current_user: User, update: schemas.UserUpdate) -> User:
        changes = update.model_dump(exclude_unset=True)
        new_username = changes.get("username")
        if new_username and new_username != current_user.username:
            self._ensure_unique(username=new_username, exclude_id=current_user.id)
        for key, value in changes.items():
            if key == "username" and not value:
                continue
            setattr(current_user, key, value)
        self._commit_unique(username=new_username, exclude_id=current_user.id)
        self.db.refresh(current_user)
        return current_user

    def soft_delete(self, user: User) -> User:
        user.is_deleted = True
        user.deleted_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(user)
        logger.info("User %s soft-deleted", user.id)
        return user

    # ----- Search -----
    def search_users(
        self,
        *,
        current_user: User,
        q: str,
        page: int = 1,
        page_size: int = 20,
        friends_only: bool = False,
    ) -> dict:
        """Case-insensitive substring search over username and names."""
        page, page_size = page_window(page, page_size)
        term = f"%{q.strip()}%"
        query = self.db.query(User).filter(
            User.is_deleted.is_(False),
            User.id != current_user.id,
            or_(
                User.username.ilike(term),
                User.first_name.ilike(term),
                User.last_name.ilike(term),
            ),
        )
        query = exclude_hidden_users(query, User.id, current_user.id)
        if friends_only:
            ids = friend_ids(self.db, current_user.id)
            if not ids:
                return {"users": [], **build_page_meta(0, page, page_size)}
            query = query.filter(User.id.in_(ids))

        total = count_rows(query)
        users = apply_page(query.order_by(User.username.asc()), page, page_size).all()
        return {
            "users": [schemas.UserBrief.model_validate(u) for u in users],
            **build_page_meta(total, page, page_size),
        }

    # ----- Administration -----
    def set_role(self, user_id: int, role: UserRole) -> User:
        user = self.admin_get(user_id)
        user.role = role
        self.db.commit()
        self.db.refresh(user)
        logger.info("User %s role set to %s", user.id, role.value)
        return user

    def admin_get(self, user_id: int) -> User:
        """Any account by id, soft-deleted ones included."""
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise ResourceNotFoundException("User", user_id)
        return user

    def admin_update_profile(self, user_id: int, update: schemas.UserUpdate) -> User:
        user = self.update_profile(self.admin_get(user_id), update)
        logger.info("Profile of user %s updated by an administrator", user.id)
        return user

    def admin_delete(self, user_id: int) -> User:
        return self.soft_delete(self.admin_get(user_id))

    def restore(self, user_id: int) -> User:
        user = self.admin_get(user_id)
        user.is_deleted = False
        user.deleted_at = None
        self.db.commit()
        self.db.refresh(user)
        logger.info("User %s restored", user.id)
        return user
