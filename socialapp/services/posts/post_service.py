"""Service layer for post operations."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from socialapp import schemas
from socialapp.core.database.query_helpers import (
    apply_page,
    build_page_meta,
    count_rows,
    page_window,
)
from socialapp.modules.notifications.service import NotificationService
from socialapp.modules.posts.models import (
    Comment,
    Post,
    PostMedia,
    PostPrivacy,
    ReactionType,
)
from socialapp.modules.social.models import UserFollower
from socialapp.modules.users.models import User, UserRole
from socialapp.services.reactions.aggregates import reaction_counts, user_reactions
from socialapp.services.social.relations import (
    exclude_hidden_users,
    following_ids,
    is_blocked_between,
    is_following,
)

logger = logging.getLogger(__name__)


def can_view_post(db: Session, viewer: User, post: Post) -> bool:
    """Owner always; otherwise privacy level plus no block either way."""
    if post.user_id == viewer.id:
        return True
    if post.owner is not None and post.owner.is_deleted:
        return False
    if is_blocked_between(db, viewer.id, post.user_id):
        return False
    if post.privacy == PostPrivacy.PUBLIC:
        return True
    if post.privacy == PostPrivacy.FOLLOWERS:
        return is_following(db, viewer.id, post.user_id)
    return False


def visible_posts_query(db: Session, viewer: User) -> Query:
    """Posts `viewer` may see, as a query ready for further filtering."""
    followed = select(UserFollower.following_id).where(
        UserFollower.follower_id == viewer.id
    )
    query = (
        db.query(Post)
        .join(User, User.id == Post.user_id)
        .filter(
            or_(
                Post.user_id == viewer.id,
                and_(
                    User.is_deleted.is_(False),
                    or_(
                        Post.privacy == PostPrivacy.PUBLIC,
                        and_(
                            Post.privacy == PostPrivacy.FOLLOWERS,
                            Post.user_id.in_(followed),
                        ),
                    ),
                ),
            )
        )
    )
    return exclude_hidden_users(query, Post.user_id, viewer.id)


class PostService:
    def __init__(self, db: Session):
        self.db = db

    # ----- Serialization -----
    def _prepare_post_list(
        self, posts: List[Post], viewer: Optional[User]
    ) -> List[schemas.PostOut]:
        post_ids = [p.id for p in posts]
        comment_counts: Dict[int, int] = {}
        if post_ids:
            comment_counts = dict(
                self.db.query(Comment.post_id, func.count(Comment.id))
                .filter(Comment.post_id.in_(post_ids))
                .group_by(Comment.post_id)
                .all()
            )
        counts = reaction_counts(self.db, "post", post_ids)
        mine = user_reactions(
            self.db, viewer.id if viewer is not None else None, "post", post_ids
        )

        prepared = []
        for post in posts:
            per_type = counts.get(post.id, {})
            own = mine.get(post.id)
            prepared.append(
                schemas.PostOut(
                    id=post.id,
                    user_id=post.user_id,
                    content=post.content,
                    privacy=post.privacy,
                    location=post.location,
                    created_at=post.created_at,
                    updated_at=post.updated_at,
                    author=schemas.UserBrief.model_validate(post.owner),
                    media=[schemas.PostMediaOut.model_validate(m) for m in post.media],
                    comments_count=comment_counts.get(post.id, 0),
                    reactions_count=sum(per_type.values()),
                    reaction_counts=per_type,
                    current_user_reaction=own,
                    is_liked_by_current_user=own == ReactionType.LIKE,
                )
            )
        return prepared

    def _prepare_post_response(self, post: Post, viewer: Optional[User]) -> schemas.PostOut:
        return self._prepare_post_list([post], viewer)[0]

    # ----- Access helpers -----
    def _get_post(self, post_id: int) -> Optional[Post]:
        return (
            self.db.query(Post)
            .options(joinedload(Post.owner), selectinload(Post.media))
            .filter(Post.id == post_id)
            .first()
        )

    def get_visible_post_or_404(self, *, post_id: int, current_user: User) -> Post:
        post = self._get_post(post_id)
        if post is None or not can_view_post(self.db, current_user, post):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Post not found"
            )
        return post

    @staticmethod
    def _build_media(items: List[schemas.PostMediaIn]) -> List[PostMedia]:
        return [
            PostMedia(
                media_url=item.media_url,
                media_type=item.media_type,
                media_public_id=item.media_public_id,
                media_mime_type=item.media_mime_type,
                order_index=index,
            )
            for index, item in enumerate(items)
        ]

    # ----- CRUD -----
    def create_post(
        self, *, post: schemas.PostCreate, current_user: User
    ) -> schemas.PostOut:
        new_post = Post(
            user_id=current_user.id,
            content=post.content,
            privacy=post.privacy,
            location=post.location,
        )
        new_post.media = self._build_media(post.media)
        self.db.add(new_post)
        self.db.commit()
        self.db.refresh(new_post)
        logger.info(
            "Post %s created by user %s (%s media)",
            new_post.id,
            current_user.id,
            len(post.media),
        )
        return self._prepare_post_response(new_post, current_user)

    def get_post(self, *, post_id: int, current_user: User) -> schemas.PostOut:
        post = self.get_visible_post_or_404(post_id=post_id, current_user=current_user)
        return self._prepare_post_response(post, current_user)

    def update_post(
        self, *, post_id: int, updated_post: schemas.PostUpdate, current_user: User
    ) -> schemas.PostOut:
        post = self._get_post(post_id)
        if post is None or post.user_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Post not found"
            )

        changes = updated_post.model_dump(exclude_unset=True, exclude={"media"})
        for key, value in changes.items():
            if value is None and key != "location":
                continue
            setattr(post, key, value)
        if updated_post.media is not None:
            post.media = self._build_media(updated_post.media)
        post.updated_at = datetime.now(timezone.utc)

        self.db.commit()
        self.db.refresh(post)
        logger.info("Post %s updated by user %s", post.id, current_user.id)
        return self._prepare_post_response(post, current_user)

    def delete_post(self, *, post_id: int, current_user: User) -> None:
        post = self._get_post(post_id)
        is_admin = current_user.role == UserRole.ADMIN
        if post is None or (post.user_id != current_user.id and not is_admin):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Post not found"
            )

        comment_ids = [
            row[0]
            for row in self.db.query(Comment.id).filter(Comment.post_id == post.id).all()
        ]
        notifications = NotificationService(self.db)
        notifications.remove_for(post_id=post.id, commit=False)
        notifications.remove_for(comment_ids=comment_ids, commit=False)
        self.db.delete(post)
        self.db.commit()
        logger.info("Post %s deleted by user %s", post_id, current_user.id)

    # ----- Listings -----
    def list_posts(
        self,
        *,
        current_user: User,
        page: int = 1,
        page_size: int = 20,
        username: Optional[str] = None,
        only_following: bool = False,
    ) -> dict:
        """Paged feed, newest first, with privacy and block rules applied."""
        page, page_size = page_window(page, page_size)
        query = visible_posts_query(self.db, current_user)
        if username:
            query = query.filter(User.username == username)
        if only_following:
            authors = following_ids(self.db, current_user.id) | {current_user.id}
            query = query.filter(Post.user_id.in_(authors))
        return self._page(query, page, page_size, current_user)

    def list_user_posts(
        self,
        *,
        user_id: int,
        current_user: User,
        page: int = 1,
        page_size: int = 20,
    ) -> dict:
        page, page_size = page_window(page, page_size)
        author = self.db.query(User).filter(User.id == user_id).first()
        if (
            author is None
            or (author.is_deleted and author.id != current_user.id)
            or (
                author.id != current_user.id
                and is_blocked_between(self.db, current_user.id, author.id)
            )
        ):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
            )
        query = visible_posts_query(self.db, current_user).filter(
            Post.user_id == user_id
        )
        return self._page(query, page, page_size, current_user)

    def _page(self, query: Query, page: int, page_size: int, viewer: User) -> dict:
        total = count_rows(query)
        posts = (
            apply_page(
                query.options(joinedload(Post.owner), selectinload(Post.media)).order_by(
                    Post.created_at.desc(), Post.id.desc()
                ),
                page,
                page_size,
            ).all()
        )
        return {
            "posts": self._prepare_post_list(posts, viewer),
            **build_page_meta(total, page, page_size),
        }
