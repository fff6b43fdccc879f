"""Emoji reactions on friend-chat messages."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from socialapp import schemas
from socialapp.modules.messaging.models import MessageReaction, SimpleMessage
from socialapp.modules.notifications.realtime import conversation_group, queue_group_message
from socialapp.modules.users.models import User

logger = logging.getLogger(__name__)

RECENT_REACTIONS = 5


class MessageReactionService:
    def __init__(self, db: Session):
        self.db = db

    def _message_for_participant(self, message_id: int, current_user: User) -> SimpleMessage:
        message = (
            self.db.query(SimpleMessage)
            .filter(SimpleMessage.id == message_id, SimpleMessage.is_deleted.is_(False))
            .first()
        )
        if message is None or not message.conversation.has_participant(current_user.id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Message not found"
            )
        return message

    def _own_reaction(self, message_id: int, user_id: int) -> Optional[MessageReaction]:
        return (
            self.db.query(MessageReaction)
            .filter(
                MessageReaction.message_id == message_id,
                MessageReaction.user_id == user_id,
            )
            .first()
        )

    @staticmethod
    def _serialize(reaction: MessageReaction) -> schemas.MessageReactionOut:
        return schemas.MessageReactionOut(
            id=reaction.id,
            message_id=reaction.message_id,
            user=schemas.UserBrief.model_validate(reaction.user),
            reaction_type=reaction.reaction_type,
            created_at=reaction.created_at,
        )

    def _summary(self, message_id: int, current_user: User) -> schemas.MessageReactionSummary:
        counts = dict(
            self.db.query(MessageReaction.reaction_type, func.count(MessageReaction.id))
            .filter(MessageReaction.message_id == message_id)
            .group_by(MessageReaction.reaction_type)
            .all()
        )
        recent = (
            self.db.query(MessageReaction)
            .options(joinedload(MessageReaction.user))
            .filter(MessageReaction.message_id == message_id)
            .order_by(MessageReaction.created_at.desc(), MessageReaction.id.desc())
            .limit(RECENT_REACTIONS)
            .all()
        )
        mine = self._own_reaction(message_id, current_user.id)
        return schemas.MessageReactionSummary(
            message_id=message_id,
            total=sum(counts.values()),
            counts=counts,
            current_user_reaction=mine.reaction_type if mine is not None else None,
            recent=[self._serialize(r) for r in recent],
        )

    def toggle_reaction(
        self,
        *,
        message_id: int,
        payload: schemas.MessageReactionCreate,
        current_user: User,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> schemas.MessageReactionToggleOut:
        message = self._message_for_participant(message_id, current_user)
        kind = payload.reaction_type.value
        existing = self._own_reaction(message.id, current_user.id)

        if existing is None:
            self.db.add(
                MessageReaction(
                    message_id=message.id, user_id=current_user.id, reaction_type=kind
                )
            )
            action = "added"
        elif existing.reaction_type == kind:
            self.db.delete(existing)
            action = "removed"
        else:
            existing.reaction_type = kind
            action = "updated"
        self.db.commit()
        logger.info(
            "Message reaction %s on %s by user %s (%s)",
            action,
            message.id,
            current_user.id,
            kind,
        )

        summary = self._summary(message.id, current_user)
        queue_group_message(
            background_tasks,
            conversation_group(message.conversation_id),
            {
                "type": "message_reaction",
                "message_id": message.id,
                "user_id": current_user.id,
                "action": action,
                "reaction_type": None if action == "removed" else kind,
            },
            exclude_user_id=current_user.id,
        )
        return schemas.MessageReactionToggleOut(
            action=action,
            reaction_type=None if action == "removed" else kind,
            summary=summary,
        )

    def remove_reaction(self, *, message_id: int, current_user: User) -> None:
        message = self._message_for_participant(message_id, current_user)
        existing = self._own_reaction(message.id, current_user.id)
        if existing is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Reaction not found"
            )
        self.db.delete(existing)
        self.db.commit()

    def get_summary(
        self, *, message_id: int, current_user: User
    ) -> schemas.MessageReactionSummary:
        message = self._message_for_participant(message_id, current_user)
        return self._summary(message.id, current_user)

    def get_by_type(
        self,
        *,
        message_id: int,
        reaction_type: schemas.MessageReactionKind,
        current_user: User,
    ) -> List[schemas.MessageReactionOut]:
        message = self._message_for_participant(message_id, current_user)
        reactions = (
            self.db.query(MessageReaction)
            .options(joinedload(MessageReaction.user))
            .filter(
                MessageReaction.message_id == message.id,
                MessageReaction.reaction_type == reaction_type.value,
            )
            .order_by(MessageReaction.created_at.desc(), MessageReaction.id.desc())
            .all()
        )
        return [self._serialize(r) for r in reactions]
