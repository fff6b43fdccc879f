"""Reaction router: toggle and inspect reactions on posts and comments."""

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query
from sqlalchemy.orm import Session

from socialapp.core.database import get_db
from socialapp.modules.posts.models import ReactionType
from socialapp.modules.users.models import User
from socialapp.services.reactions.service import ReactionService

from .. import oauth2, schemas

router = APIRouter(prefix="/reactions", tags=["Reactions"])


def get_reaction_service(db: Session = Depends(get_db)) -> ReactionService:
    return ReactionService(db)


@router.post("", response_model=schemas.ReactionToggleOut)
def toggle_reaction(
    payload: schemas.ReactionToggle,
    background_tasks: BackgroundTasks,
    service: ReactionService = Depends(get_reaction_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """
    Toggle a reaction.

    Sending the caller's current type removes the reaction, a different type
    replaces it, and anything else adds it.
    """
    return service.toggle_reaction(
        payload=payload,
        current_user=current_user,
        background_tasks=background_tasks,
    )


@router.get("/{entity_type}/{entity_id}", response_model=schemas.ReactionSummary)
def get_reactions(
    entity_type: schemas.ReactionEntityType,
    entity_id: int = Path(..., gt=0),
    service: ReactionService = Depends(get_reaction_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_reactions(
        entity_type=entity_type, entity_id=entity_id, current_user=current_user
    )


@router.get(
    "/{entity_type}/{entity_id}/users", response_model=List[schemas.ReactionUserOut]
)
def get_reaction_users(
    entity_type: schemas.ReactionEntityType,
    entity_id: int = Path(..., gt=0),
    reaction_type: Optional[ReactionType] = Query(None),
    service: ReactionService = Depends(get_reaction_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_reaction_users(
        entity_type=entity_type,
        entity_id=entity_id,
        current_user=current_user,
        reaction_type=reaction_type,
    )
