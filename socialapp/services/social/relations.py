"""Query helpers for the follow/block graph shared by every service."""

from __future__ import annotations

from typing import Set

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Query, Session

from socialapp.modules.social.models import UserBlock, UserFollower
from socialapp.modules.users.models import User


def is_blocked_between(db: Session, user_a_id: int, user_b_id: int) -> bool:
    """True when either user has blocked the other."""
    return (
        db.query(UserBlock.id)
        .filter(
            or_(
                and_(
                    UserBlock.blocker_id == user_a_id,
                    UserBlock.blocked_user_id == user_b_id,
                ),
                and_(
                    UserBlock.blocker_id == user_b_id,
                    UserBlock.blocked_user_id == user_a_id,
                ),
            )
        )
        .first()
        is not None
    )


def has_blocked(db: Session, blocker_id: int, blocked_id: int) -> bool:
    return (
        db.query(UserBlock.id)
        .filter(
            UserBlock.blocker_id == blocker_id,
            UserBlock.blocked_user_id == blocked_id,
        )
        .first()
        is not None
    )


def exclude_hidden_users(query: Query, column, user_id: int) -> Query:
    """Filter `query` so `column` never matches a user hidden from `user_id`."""
    blocked = select(UserBlock.blocked_user_id).where(UserBlock.blocker_id == user_id)
    blockers = select(UserBlock.blocker_id).where(UserBlock.blocked_user_id == user_id)
    return query.filter(column.not_in(blocked), column.not_in(blockers))


def is_following(db: Session, follower_id: int, following_id: int) -> bool:
    return (
        db.query(UserFollower.id)
        .filter(
            UserFollower.follower_id == follower_id,
            UserFollower.following_id == following_id,
        )
        .first()
        is not None
    )


def following_ids(db: Session, user_id: int) -> Set[int]:
    rows = (
        db.query(UserFollower.following_id)
        .filter(UserFollower.follower_id == user_id)
        .all()
    )
    return {row[0] for row in rows}


def friend_ids(db: Session, user_id: int) -> Set[int]:
    """Users with a follow edge in both directions."""
    followers = {
        row[0]
        for row in db.query(UserFollower.follower_id)
        .filter(UserFollower.following_id == user_id)
        .all()
    }
    return following_ids(db, user_id) & followers


def are_friends(db: Session, user_a_id: int, user_b_id: int) -> bool:
    """Mutual followers with no block in either direction."""
    return (
        is_following(db, user_a_id, user_b_id)
        and is_following(db, user_b_id, user_a_id)
        and not is_blocked_between(db, user_a_id, user_b_id)
    )


def get_active_user(db: Session, user_id: int) -> User | None:
    return (
        db.query(User)
        .filter(User.id == user_id, User.is_deleted.is_(False))
        .first()
    )
