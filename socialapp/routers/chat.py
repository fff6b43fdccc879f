"""Chat-room router: rooms, membership, room messages and read receipts."""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query, status
from sqlalchemy.orm import Session

from socialapp.core.database import get_db
from socialapp.modules.users.models import User
from socialapp.services.messaging.chat_service import ChatService

from .. import oauth2, schemas

router = APIRouter(prefix="/chat", tags=["Chat"])


def get_chat_service(db: Session = Depends(get_db)) -> ChatService:
    """Provide a ChatService instance via FastAPI DI."""
    return ChatService(db)


# ----- Rooms -----


@router.post("/rooms", status_code=status.HTTP_201_CREATED, response_model=schemas.ChatRoomOut)
def create_room(
    payload: schemas.ChatRoomCreate,
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """
    Create a chat room.

    A private room with a single other member reuses the existing private
    room between the two users when there is one.
    """
    return service.create_room(payload=payload, current_user=current_user)


@router.get("/rooms", response_model=schemas.ChatRoomListOut)
def list_rooms(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.list_rooms(current_user=current_user, page=page, page_size=page_size)


@router.get("/rooms/{room_id}", response_model=schemas.ChatRoomOut)
def get_room(
    room_id: int = Path(..., gt=0),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_room(room_id=room_id, current_user=current_user)


@router.put("/rooms/{room_id}", response_model=schemas.ChatRoomOut)
def update_room(
    payload: schemas.ChatRoomUpdate,
    room_id: int = Path(..., gt=0),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.update_room(room_id=room_id, payload=payload, current_user=current_user)


@router.delete("/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_room(
    room_id: int = Path(..., gt=0),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Deactivate a room. Only its creator may do this."""
    service.delete_room(room_id=room_id, current_user=current_user)


@router.post("/private/{user_id}", response_model=schemas.ChatRoomOut)
def get_private_room(
    user_id: int = Path(..., gt=0),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_or_create_private_room(
        current_user=current_user, other_user_id=user_id
    )


# ----- Members -----


@router.post("/rooms/{room_id}/members", response_model=schemas.ChatRoomOut)
def add_members(
    payload: schemas.ChatMembersAdd,
    background_tasks: BackgroundTasks,
    room_id: int = Path(..., gt=0),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.add_members(
        room_id=room_id,
        payload=payload,
        current_user=current_user,
        background_tasks=background_tasks,
    )


@router.delete(
    "/rooms/{room_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT
)
def remove_member(
    room_id: int = Path(..., gt=0),
    user_id: int = Path(..., gt=0),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    service.remove_member(room_id=room_id, user_id=user_id, current_user=current_user)


@router.post("/rooms/{room_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
def leave_room(
    room_id: int = Path(..., gt=0),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    service.leave_room(room_id=room_id, current_user=current_user)


# ----- Messages -----


@router.post(
    "/rooms/{room_id}/messages",
    status_code=status.HTTP_201_CREATED,
    response_model=schemas.ChatMessageOut,
)
def send_room_message(
    payload: schemas.ChatMessageCreate,
    background_tasks: BackgroundTasks,
    room_id: int = Path(..., gt=0),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.send_message(
        room_id=room_id,
        payload=payload,
        current_user=current_user,
        background_tasks=background_tasks,
    )


@router.get("/rooms/{room_id}/messages", response_model=schemas.ChatMessagesPage)
def list_room_messages(
    room_id: int = Path(..., gt=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Pages run newest first; messages inside a page are oldest first."""
    return service.list_messages(
        room_id=room_id, current_user=current_user, page=page, page_size=page_size
    )


@router.put("/messages/{message_id}", response_model=schemas.ChatMessageOut)
def edit_room_message(
    payload: schemas.ChatMessageUpdate,
    message_id: int = Path(..., gt=0),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.edit_message(
        message_id=message_id, payload=payload, current_user=current_user
    )


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_room_message(
    message_id: int = Path(..., gt=0),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    service.delete_message(message_id=message_id, current_user=current_user)


# ----- Read state -----


@router.post("/rooms/{room_id}/read")
def mark_room_read(
    payload: schemas.ChatRoomRead,
    room_id: int = Path(..., gt=0),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.mark_read(room_id=room_id, payload=payload, current_user=current_user)


@router.get("/rooms/{room_id}/unread-count")
def get_room_unread_count(
    room_id: int = Path(..., gt=0),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.unread_count(room_id=room_id, current_user=current_user)


@router.get("/users/search", response_model=List[schemas.UserBrief])
def search_chat_users(
    q: str = Query(..., min_length=1, max_length=100),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Candidates for a room: up to 20 matches, excluding blocked users."""
    return service.search_users(current_user=current_user, q=q)
