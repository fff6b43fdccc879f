"""Multi-user chat rooms: rooms, membership, messages and read receipts."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from socialapp import schemas
from socialapp.core.database.query_helpers import (
    apply_page,
    build_page_meta,
    count_rows,
    page_window,
)
from socialapp.core.exceptions import BusinessLogicException, PermissionDeniedException
from socialapp.modules.messaging.models import (
    ChatMemberRole,
    ChatMessage,
    ChatMessageReadStatus,
    ChatMessageType,
    ChatRoom,
    ChatRoomMember,
    ChatRoomType,
)
from socialapp.modules.notifications.realtime import chat_room_group, queue_group_message
from socialapp.modules.users.models import User
from socialapp.services.social.relations import (
    exclude_hidden_users,
    get_active_user,
    is_blocked_between,
)

logger = logging.getLogger(__name__)

USER_SEARCH_LIMIT = 20


class ChatService:
    """Room lifecycle and messaging for group and private chat rooms."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------ helpers
    def _room_or_404(self, room_id: int) -> ChatRoom:
        room = (
            self.db.query(ChatRoom)
            .filter(ChatRoom.id == room_id, ChatRoom.is_active.is_(True))
            .first()
        )
        if room is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Chat room not found"
            )
        return room

    def _membership(self, room_id: int, user_id: int) -> Optional[ChatRoomMember]:
        return (
            self.db.query(ChatRoomMember)
            .filter(
                ChatRoomMember.room_id == room_id,
                ChatRoomMember.user_id == user_id,
                ChatRoomMember.is_active.is_(True),
            )
            .first()
        )

    def _member_room_or_404(self, room_id: int, current_user: User):
        room = self._room_or_404(room_id)
        member = self._membership(room.id, current_user.id)
        if member is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Chat room not found"
            )
        return room, member

    def _require_manager(self, member: ChatRoomMember) -> None:
        if not member.can_manage:
            raise PermissionDeniedException("Only room owners and admins can do this")

    def _validate_members(self, current_user: User, user_ids: List[int]) -> List[User]:
        users = []
        for user_id in dict.fromkeys(user_ids):
            if user_id == current_user.id:
                continue
            user = get_active_user(self.db, user_id)
            if user is None or is_blocked_between(self.db, current_user.id, user_id):
                raise BusinessLogicException(
                    "invalid_room_member",
                    f"User {user_id} cannot be added to this room",
                    details={"user_id": user_id},
                )
            users.append(user)
        return users

    def _active_members(self, room_id: int) -> List[ChatRoomMember]:
        return (
            self.db.query(ChatRoomMember)
            .options(joinedload(ChatRoomMember.user))
            .filter(
                ChatRoomMember.room_id == room_id,
                ChatRoomMember.is_active.is_(True),
            )
            .order_by(ChatRoomMember.joined_at.asc(), ChatRoomMember.id.asc())
            .all()
        )

    def _unread_for(self, room_id: int, member: ChatRoomMember) -> int:
        query = self.db.query(func.count(ChatMessage.id)).filter(
            ChatMessage.room_id == room_id,
            ChatMessage.is_deleted.is_(False),
            or_(ChatMessage.sender_id.is_(None), ChatMessage.sender_id != member.user_id),
        )
        if member.last_read_at is not None:
            query = query.filter(ChatMessage.sent_at > member.last_read_at)
        return query.scalar() or 0

    def _serialize_message(self, message: ChatMessage) -> schemas.ChatMessageOut:
        out = schemas.ChatMessageOut.model_validate(message)
        if message.sender is not None:
            out.sender = schemas.UserBrief.model_validate(message.sender)
        return out

    def _serialize_room(self, room: ChatRoom, current_user: User) -> schemas.ChatRoomOut:
        members = self._active_members(room.id)
        me = next((m for m in members if m.user_id == current_user.id), None)

        display_name = room.name or "Chat room"
        if room.room_type == ChatRoomType.PRIVATE:
            other = next((m.user for m in members if m.user_id != current_user.id), None)
            if other is not None:
                display_name = other.full_name or other.username

        last = (
            self.db.query(ChatMessage)
            .options(joinedload(ChatMessage.sender))
            .filter(ChatMessage.room_id == room.id, ChatMessage.is_deleted.is_(False))
            .order_by(ChatMessage.sent_at.desc(), ChatMessage.id.desc())
            .first()
        )
        return schemas.ChatRoomOut(
            id=room.id,
            name=room.name,
            display_name=display_name,
            description=room.description,
            room_type=room.room_type,
            created_by=room.created_by,
            created_at=room.created_at,
            last_activity=room.last_activity,
            unread_count=self._unread_for(room.id, me) if me is not None else 0,
            last_message=self._serialize_message(last) if last is not None else None,
            members=[
                schemas.ChatMemberOut(
                    user=schemas.UserBrief.model_validate(m.user),
                    role=m.role,
                    joined_at=m.joined_at,
                    is_muted=m.is_muted,
                )
                for m in members
            ],
        )

    def _find_private_room(self, user_a_id: int, user_b_id: int) -> Optional[ChatRoom]:
        candidate_ids = [
            row[0]
            for row in self.db.query(ChatRoomMember.room_id)
            .join(ChatRoom, ChatRoom.id == ChatRoomMember.room_id)
            .filter(
                ChatRoom.room_type == ChatRoomType.PRIVATE,
                ChatRoom.is_active.is_(True),
                ChatRoomMember.user_id.in_([user_a_id, user_b_id]),
                ChatRoomMember.is_active.is_(True),
            )
            .group_by(ChatRoomMember.room_id)
            .having(func.count(ChatRoomMember.user_id.distinct()) == 2)
            .all()
        ]
        if not candidate_ids:
            return None
        return (
            self.db.query(ChatRoom)
            .filter(ChatRoom.id.in_(candidate_ids))
            .order_by(ChatRoom.id.asc())
            .first()
        )

    def _post_system_message(self, room: ChatRoom, actor: User, content: str) -> ChatMessage:
        message = ChatMessage(
            room_id=room.id,
            sender_id=actor.id,
            content=content,
            message_type=ChatMessageType.SYSTEM,
        )
        self.db.add(message)
        return message

    # -------------------------------------------------------------------- rooms
    def create_room(
        self, *, payload: schemas.ChatRoomCreate, current_user: User
    ) -> schemas.ChatRoomOut:
        others = self._validate_members(current_user, payload.member_ids)

        if payload.room_type == ChatRoomType.PRIVATE:
            if len(others) != 1:
                raise BusinessLogicException(
                    "invalid_private_room",
                    "A private room needs exactly one other member",
                )
            existing = self._find_private_room(current_user.id, others[0].id)
            if existing is not None:
                return self._serialize_room(existing, current_user)

        room = ChatRoom(
            name=payload.name,
            description=payload.description,
            room_type=payload.room_type,
            created_by=current_user.id,
        )
        room.members = [
            ChatRoomMember(user_id=current_user.id, role=ChatMemberRole.OWNER)
        ] + [ChatRoomMember(user_id=user.id, role=ChatMemberRole.MEMBER) for user in others]
        self.db.add(room)
        self.db.commit()
        self.db.refresh(room)
        logger.info(
            "Chat room %s created by user %s with %s members",
            room.id,
            current_user.id,
            len(others) + 1,
        )
        return self._serialize_room(room, current_user)

    def get_or_create_private_room(
        self, *, current_user: User, other_user_id: int
    ) -> schemas.ChatRoomOut:
        if other_user_id == current_user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot create a private room with yourself",
            )
        payload = schemas.ChatRoomCreate(
            room_type=ChatRoomType.PRIVATE, member_ids=[other_user_id]
        )
        return self.create_room(payload=payload, current_user=current_user)

    def list_rooms(
        self, *, current_user: User, page: int = 1, page_size: int = 20
    ) -> dict:
        page, page_size = page_window(page, page_size)
        query = (
            self.db.query(ChatRoom)
            .join(ChatRoomMember, ChatRoomMember.room_id == ChatRoom.id)
            .filter(
                ChatRoom.is_active.is_(True),
                ChatRoomMember.user_id == current_user.id,
                ChatRoomMember.is_active.is_(True),
            )
        )
        total = count_rows(query)
        rooms = apply_page(
            query.order_by(ChatRoom.last_activity.desc(), ChatRoom.id.desc()),
            page,
            page_size,
        ).all()
        return {
            "rooms": [self._serialize_room(room, current_user) for room in rooms],
            **build_page_meta(total, page, page_size),
        }

    def get_room(self, *, room_id: int, current_user: User) -> schemas.ChatRoomOut:
        room, _ = self._member_room_or_404(room_id, current_user)
        return self._serialize_room(room, current_user)

    def update_room(
        self, *, room_id: int, payload: schemas.ChatRoomUpdate, current_user: User
    ) -> schemas.ChatRoomOut:
        room, member = self._member_room_or_404(room_id, current_user)
        self._require_manager(member)
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(room, key, value)
        self.db.commit()
        self.db.refresh(room)
        return self._serialize_room(room, current_user)

    def delete_room(self, *, room_id: int, current_user: User) -> None:
        room, _ = self._member_room_or_404(room_id, current_user)
        if room.created_by != current_user.id:
            raise PermissionDeniedException("Only the room creator can delete this room")
        room.is_active = False
        self.db.commit()
        logger.info("Chat room %s deactivated by user %s", room.id, current_user.id)

    # ------------------------------------------------------------------ members
    def add_members(
        self,
        *,
        room_id: int,
        payload: schemas.ChatMembersAdd,
        current_user: User,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> schemas.ChatRoomOut:
        room, member = self._member_room_or_404(room_id, current_user)
        self._require_manager(member)
        users = self._validate_members(current_user, payload.user_ids)

        added = []
        for user in users:
            existing = (
                self.db.query(ChatRoomMember)
                .filter(
                    ChatRoomMember.room_id == room.id,
                    ChatRoomMember.user_id == user.id,
                )
                .first()
            )
            if existing is not None and existing.is_active:
                continue
            if existing is not None:
                existing.is_active = True
                existing.role = ChatMemberRole.MEMBER
                existing.joined_at = datetime.now(timezone.utc)
                existing.last_read_at = None
            else:
                self.db.add(
                    ChatRoomMember(room_id=room.id, user_id=user.id, role=ChatMemberRole.MEMBER)
                )
            self._post_system_message(
                room, current_user, f"{current_user.display_name} added {user.display_name}"
            )
            added.append(user.id)

        if added:
            room.last_activity = datetime.now(timezone.utc)
        self.db.commit()
        logger.info("Users %s added to chat room %s", added, room.id)

        for user_id in added:
            queue_group_message(
                background_tasks,
                chat_room_group(room.id),
                {"type": "member_added", "room_id": room.id, "user_id": user_id},
            )
        return self._serialize_room(room, current_user)

    def remove_member(
        self, *, room_id: int, user_id: int, current_user: User
    ) -> None:
        room, member = self._member_room_or_404(room_id, current_user)
        self._require_manager(member)
        target = self._membership(room.id, user_id)
        if target is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Member not found"
            )
        if target.role == ChatMemberRole.OWNER and target.user_id != current_user.id:
            raise PermissionDeniedException(
                "The room owner can only be removed by themselves"
            )
        target.is_active = False
        self.db.commit()
        logger.info("User %s removed from chat room %s", user_id, room.id)

    def leave_room(self, *, room_id: int, current_user: User) -> None:
        _, member = self._member_room_or_404(room_id, current_user)
        member.is_active = False
        self.db.commit()

    # ----------------------------------------------------------------- messages
    def send_message(
        self,
        *,
        room_id: int,
        payload: schemas.ChatMessageCreate,
        current_user: User,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> schemas.ChatMessageOut:
        room = self._room_or_404(room_id)
        if self._membership(room.id, current_user.id) is None:
            raise PermissionDeniedException("You are not a member of this room")
        if payload.reply_to_message_id is not None:
            replied = (
                self.db.query(ChatMessage.id)
                .filter(
                    ChatMessage.id == payload.reply_to_message_id,
                    ChatMessage.room_id == room.id,
                )
                .first()
            )
            if replied is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Replied message is not in this room",
                )

        message = ChatMessage(
            room_id=room.id,
            sender_id=current_user.id,
            content=payload.content,
            message_type=payload.message_type,
            attachment_url=payload.attachment_url,
            attachment_type=payload.attachment_type,
            attachment_name=payload.attachment_name,
            reply_to_message_id=payload.reply_to_message_id,
        )
        self.db.add(message)
        room.last_activity = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(message)

        out = self._serialize_message(message)
        queue_group_message(
            background_tasks,
            chat_room_group(room.id),
            {
                "type": "chat_message",
                "room_id": room.id,
                "message": out.model_dump(mode="json"),
            },
            exclude_user_id=current_user.id,
        )
        return out

    def list_messages(
        self, *, room_id: int, current_user: User, page: int = 1, page_size: int = 50
    ) -> dict:
        room, _ = self._member_room_or_404(room_id, current_user)
        page, page_size = page_window(page, page_size, max_page_size=100)
        query = self.db.query(ChatMessage).filter(
            ChatMessage.room_id == room.id, ChatMessage.is_deleted.is_(False)
        )
        total = count_rows(query)
        newest_first = apply_page(
            query.options(joinedload(ChatMessage.sender)).order_by(
                ChatMessage.sent_at.desc(), ChatMessage.id.desc()
            ),
            page,
            page_size,
        ).all()
        return {
            "messages": [self._serialize_message(m) for m in reversed(newest_first)],
            **build_page_meta(total, page, page_size),
        }

    def _message_or_404(self, message_id: int) -> ChatMessage:
        message = (
            self.db.query(ChatMessage)
            .filter(ChatMessage.id == message_id, ChatMessage.is_deleted.is_(False))
            .first()
        )
        if message is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Message not found"
            )
        return message

    def edit_message(
        self, *, message_id: int, payload: schemas.ChatMessageUpdate, current_user: User
    ) -> schemas.ChatMessageOut:
        message = self._message_or_404(message_id)
        if message.sender_id != current_user.id:
            raise PermissionDeniedException("You can only edit your own messages")
        message.content = payload.content
        message.edited_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(message)
        return self._serialize_message(message)

    def delete_message(self, *, message_id: int, current_user: User) -> None:
        message = self._message_or_404(message_id)
        if message.sender_id != current_user.id:
            member = self._membership(message.room_id, current_user.id)
            if member is None or not member.can_manage:
                raise PermissionDeniedException("Not authorized to delete this message")
        message.is_deleted = True
        self.db.commit()
        logger.info("Chat message %s deleted by user %s", message.id, current_user.id)

    # --------------------------------------------------------------------- read
    def mark_read(
        self, *, room_id: int, payload: schemas.ChatRoomRead, current_user: User
    ) -> dict:
        room, member = self._member_room_or_404(room_id, current_user)
        query = self.db.query(ChatMessage.id).filter(
            ChatMessage.room_id == room.id,
            ChatMessage.is_deleted.is_(False),
            or_(ChatMessage.sender_id.is_(None), ChatMessage.sender_id != current_user.id),
        )
        if payload.message_ids:
            query = query.filter(ChatMessage.id.in_(payload.message_ids))
        message_ids = {row[0] for row in query.all()}

        already = set()
        if message_ids:
            already = {
                row[0]
                for row in self.db.query(ChatMessageReadStatus.message_id)
                .filter(
                    ChatMessageReadStatus.user_id == current_user.id,
                    ChatMessageReadStatus.message_id.in_(message_ids),
                )
                .all()
            }
        fresh = sorted(message_ids - already)
        self.db.add_all(
            ChatMessageReadStatus(message_id=mid, user_id=current_user.id) for mid in fresh
        )
        member.last_read_at = datetime.now(timezone.utc)
        self.db.commit()
        return {"room_id": room.id, "marked": len(fresh)}

    def unread_count(self, *, room_id: int, current_user: User) -> dict:
        room, member = self._member_room_or_404(room_id, current_user)
        return {"room_id": room.id, "unread_count": self._unread_for(room.id, member)}

    # ------------------------------------------------------------------- search
    def search_users(self, *, current_user: User, q: str) -> List[User]:
        pattern = f"%{q.strip()}%"
        query = self.db.query(User).filter(
            User.id != current_user.id,
            User.is_deleted.is_(False),
            or_(
                User.username.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
            ),
        )
        query = exclude_hidden_users(query, User.id, current_user.id)
        return query.order_by(User.username.asc()).limit(USER_SEARCH_LIMIT).all()
