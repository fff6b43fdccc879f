"""Grouped reaction lookups used when serializing posts and comments."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from socialapp.modules.posts.models import Reaction, ReactionType


def _target_column(entity_type: str):
    return Reaction.post_id if entity_type == "post" else Reaction.comment_id


def reaction_counts(
    db: Session, entity_type: str, entity_ids: Iterable[int]
) -> Dict[int, Dict[str, int]]:
    """Map entity id -> {reaction_type: count} for the given ids."""
    ids = list(entity_ids)
    if not ids:
        return {}
    column = _target_column(entity_type)
    rows = (
        db.query(column, Reaction.reaction_type, func.count(Reaction.id))
        .filter(column.in_(ids))
        .group_by(column, Reaction.reaction_type)
        .all()
    )
    counts: Dict[int, Dict[str, int]] = defaultdict(dict)
    for entity_id, reaction_type, count in rows:
        counts[entity_id][ReactionType(reaction_type).value] = count
    return counts


def user_reactions(
    db: Session, user_id: Optional[int], entity_type: str, entity_ids: Iterable[int]
) -> Dict[int, ReactionType]:
    """Map entity id -> the reaction `user_id` left on it."""
    ids = list(entity_ids)
    if user_id is None or not ids:
        return {}
    column = _target_column(entity_type)
    rows = (
        db.query(column, Reaction.reaction_type)
        .filter(Reaction.user_id == user_id, column.in_(ids))
        .all()
    )
    return {entity_id: ReactionType(reaction_type) for entity_id, reaction_type in rows}
