"""Direct-message router: conversations, batched messages, presence and typing."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query, status
from sqlalchemy.orm import Session

from socialapp.core.database import get_db
from socialapp.modules.users.models import User
from socialapp.services.messaging.message_service import MessageService

from .. import oauth2, schemas

router = APIRouter(prefix="/conversations", tags=["Messages"])


def get_message_service(db: Session = Depends(get_db)) -> MessageService:
    """Provide a MessageService instance via FastAPI DI."""
    return MessageService(db)


@router.get("", response_model=List[schemas.ConversationOut])
def list_conversations(
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Caller's conversations, most recent activity first."""
    return service.list_conversations(current_user=current_user)


@router.get("/unread-count")
def get_unread_count(
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return {"unread_count": service.total_unread(current_user=current_user)}


@router.post("/{user_id}", response_model=schemas.ConversationOut)
def open_conversation(
    user_id: int = Path(..., gt=0),
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Get or create the conversation between the caller and `user_id`."""
    return service.get_or_create_conversation(
        current_user=current_user, other_user_id=user_id
    )


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_conversation(
    conversation_id: int = Path(..., gt=0),
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    service.delete_conversation(
        conversation_id=conversation_id, current_user=current_user
    )


@router.post(
    "/{conversation_id}/messages",
    status_code=status.HTTP_201_CREATED,
    response_model=schemas.MessageItemOut,
)
def send_message(
    payload: schemas.MessageSend,
    background_tasks: BackgroundTasks,
    conversation_id: int = Path(..., gt=0),
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """
    Send a message.

    Parameters:
      - payload: Text content, attachments, or both.
      - background_tasks: Used to push `new_message` to connected clients.

    Process:
      - Append to the open batch, or start one when the window has passed.
      - Update the conversation preview and the receiver's unread count.
    """
    return service.send_message(
        conversation_id=conversation_id,
        payload=payload,
        current_user=current_user,
        background_tasks=background_tasks,
    )


@router.get("/{conversation_id}/messages", response_model=schemas.MessagesPage)
def get_messages(
    conversation_id: int = Path(..., gt=0),
    before: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_messages(
        conversation_id=conversation_id,
        current_user=current_user,
        before=before,
        limit=limit,
    )


@router.put("/{conversation_id}/read")
def mark_conversation_read(
    background_tasks: BackgroundTasks,
    conversation_id: int = Path(..., gt=0),
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    marked = service.mark_as_read(
        conversation_id=conversation_id,
        current_user=current_user,
        background_tasks=background_tasks,
    )
    return {"marked": marked}


@router.put("/{conversation_id}/online")
def update_online_status(
    payload: schemas.OnlineStatusUpdate,
    conversation_id: int = Path(..., gt=0),
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.set_online(
        conversation_id=conversation_id,
        current_user=current_user,
        is_online=payload.is_online,
    )


@router.post("/{conversation_id}/typing")
def update_typing(
    payload: schemas.TypingUpdate,
    background_tasks: BackgroundTasks,
    conversation_id: int = Path(..., gt=0),
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.set_typing(
        conversation_id=conversation_id,
        current_user=current_user,
        is_typing=payload.is_typing,
        background_tasks=background_tasks,
    )


@router.get("/{conversation_id}/typing", response_model=schemas.TypingOut)
def get_typing_users(
    conversation_id: int = Path(..., gt=0),
    service: MessageService = Depends(get_message_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_typing_users(
        conversation_id=conversation_id, current_user=current_user
    )
