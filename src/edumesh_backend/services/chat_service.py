'''
Direct messages between users of one school.
'''
from datetime import datetime, timezone
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.config import settings
from ..common.logger import log
from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole, NotificationTypeEnum
from ..models import chat as chat_models
from ..models import user as user_models
from .notification_service import NotificationService, NotificationIntent
from .realtime import ConnectionManager, get_connection_manager

# Which roles each role may talk to.
CHAT_PERMISSIONS: dict[str, list[str]] = {
    UserRole.ADMIN.value: UserRole.get_all_names(),
    UserRole.TEACHER.value: [UserRole.ADMIN.value, UserRole.PARENT.value, UserRole.STUDENT.value],
    UserRole.PARENT.value: [UserRole.ADMIN.value, UserRole.TEACHER.value],
    UserRole.STUDENT.value: [UserRole.ADMIN.value, UserRole.TEACHER.value],
}


class ChatService:
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        notification_service: Annotated[NotificationService, Depends(NotificationService)],
        connection_manager: Annotated[ConnectionManager, Depends(get_connection_manager)]
    ):
        self.db = db
        self.notification_service = notification_service
        self.connection_manager = connection_manager

    def _allowed_roles(self, current_user: db_models.Users) -> list[str]:
        return CHAT_PERMISSIONS.get(current_user.role, [])

    async def get_conversations_for_api(self, current_user: db_models.Users) -> list[chat_models.ConversationRead]:
        """
        One entry per counterpart: the latest message and how many of the
        counterpart's messages the caller has not read. Newest first.
        """
        stmt = select(db_models.Messages).filter(
            db_models.Messages.school_id == current_user.school_id,
            or_(
                db_models.Messages.sender_id == current_user.id,
                db_models.Messages.receiver_id == current_user.id
            )
        ).order_by(db_models.Messages.created_at.desc())
        messages = (await self.db.execute(stmt)).scalars().all()

        latest: dict[UUID, db_models.Messages] = {}
        unread: dict[UUID, int] = {}
        for message in messages:
            other_id = message.receiver_id if message.sender_id == current_user.id else message.sender_id
            latest.setdefault(other_id, message)
            if message.receiver_id == current_user.id and not message.is_read:
                unread[other_id] = unread.get(other_id, 0) + 1

        if not latest:
            return []

        users_stmt = select(db_models.Users).filter(db_models.Users.id.in_(list(latest)))
        users = {u.id: u for u in (await self.db.execute(users_stmt)).scalars().all()}

        return [
            chat_models.ConversationRead(
                user=user_models.UserSummary.model_validate(users[other_id]),
                last_message=chat_models.MessageRead.model_validate(message),
                unread_count=unread.get(other_id, 0),
            )
            for other_id, message in latest.items()
            if other_id in users
        ]

    async def get_messages_for_api(
        self,
        other_user_id: UUID,
        current_user: db_models.Users,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> list[chat_models.MessageRead]:
        """
        A page of the conversation with `other_user_id` in chronological
        order. The counterpart's unread messages are marked read.
        """
        limit = limit or settings.CHAT_PAGE_SIZE
        stmt = select(db_models.Messages).filter(
            db_models.Messages.school_id == current_user.school_id,
            or_(
                and_(db_models.Messages.sender_id == current_user.id, db_models.Messages.receiver_id == other_user_id),
                and_(db_models.Messages.sender_id == other_user_id, db_models.Messages.receiver_id == current_user.id)
            )
        ).order_by(db_models.Messages.created_at.desc()).limit(limit).offset(offset)
        messages = list((await self.db.execute(stmt)).scalars().all())

        await self.db.execute(
            update(db_models.Messages)
            .where(
                db_models.Messages.sender_id == other_user_id,
                db_models.Messages.receiver_id == current_user.id,
                db_models.Messages.is_read.is_(False)
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        return [chat_models.MessageRead.model_validate(m) for m in reversed(messages)]

    async def get_receiver(self, receiver_id: UUID, current_user: db_models.Users) -> db_models.Users:
        """
        Loads an active user of the caller's school that the caller may talk to.
        404 when there is no such user, 403 when the role pair is not allowed.
        """
        stmt = select(db_models.Users).filter(
            db_models.Users.id == receiver_id,
            db_models.Users.school_id == current_user.school_id,
            db_models.Users.is_active.is_(True)
        )
        receiver = (await self.db.execute(stmt)).scalars().first()
        if not receiver:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Receiver not found")
        if receiver.role not in self._allowed_roles(current_user):
            log.warning(f"SECURITY: {current_user.role} {current_user.id} tried to message {receiver.role} {receiver.id}.")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot message this user")
        return receiver

    async def send_message(self, data: chat_models.MessageCreate, current_user: db_models.Users) -> chat_models.MessageRead:
        """
        Persists a message, notifies the receiver, then pushes it over the
        realtime channel (`new_message` to the receiver).
        """
        if data.receiver_id == current_user.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot message yourself")

        receiver = await self.get_receiver(data.receiver_id, current_user)

        message = db_models.Messages(
            school_id=current_user.school_id,
            sender_id=current_user.id,
            receiver_id=receiver.id,
            content=data.content,
            message_type=data.message_type.value,
            attachments=data.attachments,
        )
        self.db.add(message)
        await self.db.commit()
        message_read = chat_models.MessageRead.model_validate(message)
        log.info(f"User {current_user.id} sent message {message_read.id} to {receiver.id}.")

        await self.notification_service.fan_out(message_read.school_id, [NotificationIntent(
            message_read.receiver_id,
            "New Message",
            f"New message from {current_user.name}",
            NotificationTypeEnum.MESSAGE,
            {"message_id": message_read.id, "sender_id": message_read.sender_id},
        )])
        await self.connection_manager.emit_to_user(message_read.receiver_id, "new_message", message_read)
        return message_read

    async def get_chat_users_for_api(
        self,
        current_user: db_models.Users,
        role: Optional[UserRole] = None,
        search: Optional[str] = None
    ) -> list[user_models.UserSummary]:
        allowed = self._allowed_roles(current_user)
        if role:
            allowed = [r for r in allowed if r == role.value]
        if not allowed:
            return []

        stmt = select(db_models.Users).filter(
            db_models.Users.school_id == current_user.school_id,
            db_models.Users.is_active.is_(True),
            db_models.Users.id != current_user.id,
            db_models.Users.role.in_(allowed)
        )
        if search:
            stmt = stmt.filter(db_models.Users.name.ilike(f"%{search}%"))
        stmt = stmt.order_by(db_models.Users.name)
        result = await self.db.execute(stmt)
        return [user_models.UserSummary.model_validate(u) for u in result.scalars().all()]
