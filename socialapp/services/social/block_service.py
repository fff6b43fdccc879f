"""Blocking workflows. A block in either direction hides the pair from each other."""

from __future__ import annotations

import logging
from typing import Tuple

from fastapi import HTTPException, status
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload

from socialapp import schemas
from socialapp.core.database.query_helpers import page_window, paginate_query
from socialapp.modules.social.models import UserBlock, UserFollower
from socialapp.modules.users.models import User

logger = logging.getLogger(__name__)


class BlockService:
    def __init__(self, db: Session):
        self.db = db

    def block_user(
        self, *, current_user: User, payload: schemas.BlockCreate
    ) -> Tuple[UserBlock, bool]:
        """Create the block (or return the existing one) and drop follows both ways.

        Returns `(block, created)`.
        """
        if payload.blocked_user_id == current_user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You cannot block yourself",
            )
        target = self.db.query(User).filter(User.id == payload.blocked_user_id).first()
        if target is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
            )

        existing = (
            self.db.query(UserBlock)
            .filter(
                UserBlock.blocker_id == current_user.id,
                UserBlock.blocked_user_id == target.id,
            )
            .first()
        )
        if existing is not None:
            return existing, False

        block = UserBlock(
            blocker_id=current_user.id,
            blocked_user_id=target.id,
            reason=payload.reason,
        )
        self.db.add(block)
        removed = (
            self.db.query(UserFollower)
            .filter(
                or_(
                    and_(
                        UserFollower.follower_id == current_user.id,
                        UserFollower.following_id == target.id,
                    ),
                    and_(
                        UserFollower.follower_id == target.id,
                        UserFollower.following_id == current_user.id,
                    ),
                )
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(block)
        logger.info(
            "User %s blocked user %s (removed %s follow edges)",
            current_user.id,
            target.id,
            removed,
        )
        return block, True

    def unblock_user(self, *, current_user: User, user_id: int) -> None:
        block = (
            self.db.query(UserBlock)
            .filter(
                UserBlock.blocker_id == current_user.id,
                UserBlock.blocked_user_id == user_id,
            )
            .first()
        )
        if block is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="User is not blocked"
            )
        self.db.delete(block)
        self.db.commit()
        logger.info("User %s unblocked user %s", current_user.id, user_id)

    def get_status(self, *, current_user: User, user_id: int) -> dict:
        mine = (
            self.db.query(UserBlock)
            .filter(
                UserBlock.blocker_id == current_user.id,
                UserBlock.blocked_user_id == user_id,
            )
            .first()
        )
        theirs = (
            self.db.query(UserBlock.id)
            .filter(
                UserBlock.blocker_id == user_id,
                UserBlock.blocked_user_id == current_user.id,
            )
            .first()
        )
        return {
            "is_blocked": mine is not None,
            "is_blocked_by": theirs is not None,
            "blocked_at": mine.created_at if mine is not None else None,
            "reason": mine.reason if mine is not None else None,
        }

    def list_blocked(
        self, *, current_user: User, page: int = 1, page_size: int = 20
    ) -> dict:
        page, page_size = page_window(page, page_size)
        query = self.db.query(UserBlock).filter(UserBlock.blocker_id == current_user.id)
        total = query.count()
        blocks = paginate_query(
            query.options(joinedload(UserBlock.blocked_user)).order_by(
                UserBlock.created_at.desc(), UserBlock.id.desc()
            ),
            skip=(page - 1) * page_size,
            limit=page_size,
        ).all()
        return {
            "blocked_users": [
                {
                    "user": schemas.UserBrief.model_validate(b.blocked_user),
                    "reason": b.reason,
                    "blocked_at": b.created_at,
                }
                for b in blocks
            ],
            "total_count": total,
            "page": page,
            "page_size": page_size,
            "has_more": page * page_size < total,
        }
