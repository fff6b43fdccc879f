"""Friend-chat router: one-to-one conversations between mutual followers."""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query, status
from sqlalchemy.orm import Session

from socialapp.core.database import get_db
from socialapp.modules.users.models import User
from socialapp.services.messaging.message_reaction_service import MessageReactionService
from socialapp.services.messaging.simple_chat_service import SimpleChatService

from .. import oauth2, schemas

router = APIRouter(prefix="/simple-chat", tags=["Simple Chat"])


def get_simple_chat_service(db: Session = Depends(get_db)) -> SimpleChatService:
    return SimpleChatService(db)


def get_message_reaction_service(db: Session = Depends(get_db)) -> MessageReactionService:
    return MessageReactionService(db)


# ----- Conversations -----


@router.post("/conversations/{user_id}", response_model=schemas.ChatConversationOut)
def open_conversation(
    user_id: int = Path(..., gt=0),
    service: SimpleChatService = Depends(get_simple_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """
    Get or create a conversation with a friend.

    Returns 403 unless the two users follow each other and neither blocks
    the other. Re-opening a hidden conversation shows it again.
    """
    return service.get_or_create_conversation(
        current_user=current_user, other_user_id=user_id
    )


@router.get("/conversations", response_model=List[schemas.ChatConversationOut])
def list_conversations(
    service: SimpleChatService = Depends(get_simple_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.list_conversations(current_user=current_user)


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
def hide_conversation(
    conversation_id: int = Path(..., gt=0),
    service: SimpleChatService = Depends(get_simple_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Hide the conversation for the caller only."""
    service.hide_conversation(conversation_id=conversation_id, current_user=current_user)


@router.put("/conversations/{conversation_id}/read")
def mark_read(
    conversation_id: int = Path(..., gt=0),
    service: SimpleChatService = Depends(get_simple_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.mark_read(conversation_id=conversation_id, current_user=current_user)


# ----- Messages -----


@router.post(
    "/conversations/{conversation_id}/messages",
    status_code=status.HTTP_201_CREATED,
    response_model=schemas.SimpleMessageOut,
)
def send_message(
    payload: schemas.SimpleMessageCreate,
    background_tasks: BackgroundTasks,
    conversation_id: int = Path(..., gt=0),
    service: SimpleChatService = Depends(get_simple_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.send_message(
        conversation_id=conversation_id,
        payload=payload,
        current_user=current_user,
        background_tasks=background_tasks,
    )


@router.get(
    "/conversations/{conversation_id}/messages", response_model=schemas.SimpleMessagesPage
)
def get_messages(
    conversation_id: int = Path(..., gt=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1),
    service: SimpleChatService = Depends(get_simple_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_messages(
        conversation_id=conversation_id,
        current_user=current_user,
        page=page,
        page_size=page_size,
    )


@router.put("/messages/{message_id}", response_model=schemas.SimpleMessageOut)
def edit_message(
    payload: schemas.SimpleMessageUpdate,
    message_id: int = Path(..., gt=0),
    service: SimpleChatService = Depends(get_simple_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.edit_message(
        message_id=message_id, payload=payload, current_user=current_user
    )


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_message(
    message_id: int = Path(..., gt=0),
    service: SimpleChatService = Depends(get_simple_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    service.delete_message(message_id=message_id, current_user=current_user)


# ----- Reactions -----


@router.post(
    "/messages/{message_id}/reactions", response_model=schemas.MessageReactionToggleOut
)
def toggle_message_reaction(
    payload: schemas.MessageReactionCreate,
    background_tasks: BackgroundTasks,
    message_id: int = Path(..., gt=0),
    service: MessageReactionService = Depends(get_message_reaction_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Add, switch or remove (same type again) the caller's reaction."""
    return service.toggle_reaction(
        message_id=message_id,
        payload=payload,
        current_user=current_user,
        background_tasks=background_tasks,
    )


@router.delete(
    "/messages/{message_id}/reactions", status_code=status.HTTP_204_NO_CONTENT
)
def remove_message_reaction(
    message_id: int = Path(..., gt=0),
    service: MessageReactionService = Depends(get_message_reaction_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    service.remove_reaction(message_id=message_id, current_user=current_user)


@router.get(
    "/messages/{message_id}/reactions", response_model=schemas.MessageReactionSummary
)
def get_message_reactions(
    message_id: int = Path(..., gt=0),
    service: MessageReactionService = Depends(get_message_reaction_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_summary(message_id=message_id, current_user=current_user)


@router.get(
    "/messages/{message_id}/reactions/{reaction_type}",
    response_model=List[schemas.MessageReactionOut],
)
def get_message_reactions_by_type(
    reaction_type: schemas.MessageReactionKind,
    message_id: int = Path(..., gt=0),
    service: MessageReactionService = Depends(get_message_reaction_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_by_type(
        message_id=message_id, reaction_type=reaction_type, current_user=current_user
    )
