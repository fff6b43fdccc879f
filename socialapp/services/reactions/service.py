"""Toggle-style reactions on posts and comments."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy.orm import Session, joinedload

from socialapp import schemas
from socialapp.modules.notifications.models import NotificationType
from socialapp.modules.notifications.service import NotificationService
from socialapp.modules.posts.models import Comment, Post, Reaction, ReactionType
from socialapp.modules.users.models import User
from socialapp.services.posts.post_service import can_view_post
from socialapp.services.reactions.aggregates import reaction_counts
from socialapp.services.social.relations import exclude_hidden_users

logger = logging.getLogger(__name__)


class ReactionService:
    """One reaction per (user, entity); re-sending the same type removes it."""

    def __init__(self, db: Session):
        self.db = db

    def _resolve_target(
        self, entity_type: schemas.ReactionEntityType, entity_id: int, current_user: User
    ) -> Tuple[Optional[Post], Optional[Comment]]:
        if entity_type == schemas.ReactionEntityType.POST:
            post = self.db.query(Post).filter(Post.id == entity_id).first()
            if post is None or not can_view_post(self.db, current_user, post):
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND, detail="Post not found"
                )
            return post, None

        comment = self.db.query(Comment).filter(Comment.id == entity_id).first()
        if comment is None or not can_view_post(self.db, current_user, comment.post):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found"
            )
        return None, comment

    def _target_filter(self, entity_type: schemas.ReactionEntityType, entity_id: int):
        if entity_type == schemas.ReactionEntityType.POST:
            return Reaction.post_id == entity_id
        return Reaction.comment_id == entity_id

    def _summary(
        self, entity_type: schemas.ReactionEntityType, entity_id: int, current_user: User
    ) -> dict:
        counts = reaction_counts(self.db, entity_type.value, [entity_id]).get(entity_id, {})
        mine = (
            self.db.query(Reaction.reaction_type)
            .filter(
                self._target_filter(entity_type, entity_id),
                Reaction.user_id == current_user.id,
            )
            .first()
        )
        return {
            "total": sum(counts.values()),
            "counts": counts,
            "current_user_reaction": mine[0] if mine else None,
        }

    def toggle_reaction(
        self,
        *,
        payload: schemas.ReactionToggle,
        current_user: User,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> dict:
        post, comment = self._resolve_target(
            payload.entity_type, payload.entity_id, current_user
        )
        existing = (
            self.db.query(Reaction)
            .filter(
                self._target_filter(payload.entity_type, payload.entity_id),
                Reaction.user_id == current_user.id,
            )
            .first()
        )

        if post is not None:
            owner_id = post.user_id
            notification_type = NotificationType.LIKE
            note_kwargs = {"post_id": post.id}
        else:
            owner_id = comment.user_id
            notification_type = NotificationType.COMMENT_LIKE
            note_kwargs = {"post_id": comment.post_id, "comment_id": comment.id}

        notifications = NotificationService(self.db)
        if existing is None:
            self.db.add(
                Reaction(
                    user_id=current_user.id,
                    post_id=post.id if post is not None else None,
                    comment_id=comment.id if comment is not None else None,
                    reaction_type=payload.reaction_type,
                )
            )
            self.db.commit()
            action = "added"
            notifications.create_notification(
                user_id=owner_id,
                notification_type=notification_type,
                from_user=current_user,
                background_tasks=background_tasks,
                **note_kwargs,
            )
        elif existing.reaction_type == payload.reaction_type:
            self.db.delete(existing)
            notifications.remove_for(
                notification_type=notification_type,
                from_user_id=current_user.id,
                post_id=note_kwargs["post_id"],
                comment_ids=[comment.id] if comment is not None else None,
                commit=False,
            )
            self.db.commit()
            action = "removed"
        else:
            existing.reaction_type = payload.reaction_type
            self.db.commit()
            action = "updated"

        logger.info(
            "Reaction %s on %s %s by user %s (%s)",
            action,
            payload.entity_type.value,
            payload.entity_id,
            current_user.id,
            payload.reaction_type.value,
        )
        summary = self._summary(payload.entity_type, payload.entity_id, current_user)
        return {
            "action": action,
            "reaction_type": None if action == "removed" else payload.reaction_type,
            **summary,
        }

    def get_reactions(
        self,
        *,
        entity_type: schemas.ReactionEntityType,
        entity_id: int,
        current_user: User,
    ) -> dict:
        self._resolve_target(entity_type, entity_id, current_user)
        return self._summary(entity_type, entity_id, current_user)

    def get_reaction_users(
        self,
        *,
        entity_type: schemas.ReactionEntityType,
        entity_id: int,
        current_user: User,
        reaction_type: Optional[ReactionType] = None,
    ) -> List[dict]:
        self._resolve_target(entity_type, entity_id, current_user)
        query = (
            self.db.query(Reaction)
            .options(joinedload(Reaction.user))
            .filter(self._target_filter(entity_type, entity_id))
        )
        if reaction_type is not None:
            query = query.filter(Reaction.reaction_type == reaction_type)
        query = exclude_hidden_users(query, Reaction.user_id, current_user.id)
        reactions = query.order_by(Reaction.created_at.desc(), Reaction.id.desc()).all()
        return [
            {
                "user": schemas.UserBrief.model_validate(r.user),
                "reaction_type": r.reaction_type,
                "created_at": r.created_at,
            }
            for r in reactions
        ]
