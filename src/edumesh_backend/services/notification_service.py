'''
Notification Store and the best-effort fan-out used by every mutation.
'''
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated, Any, Iterable, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.config import settings
from ..common.logger import log
from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import NotificationTypeEnum, UserRole
from ..models import notification as notification_models
from .permissions import authorize_roles
from .realtime import ConnectionManager, get_connection_manager, school_room


@dataclass(frozen=True)
class NotificationIntent:
    """One notification a mutation wants delivered to one user."""
    user_id: UUID
    title: str
    message: str
    type: NotificationTypeEnum
    data: dict[str, Any] = field(default_factory=dict)


def _json_safe(data: dict[str, Any]) -> dict[str, Any]:
    """JSON columns need plain values: UUIDs/dates become strings."""
    return {key: value if isinstance(value, (str, int, float, bool)) or value is None else str(value)
            for key, value in data.items()}


class NotificationService:
    """
    Per-user inbox (list / mark read / count) plus `fan_out`, which
    mutations call after their primary write has been committed.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        connection_manager: Annotated[ConnectionManager, Depends(get_connection_manager)]
    ):
        self.db = db
        self.connection_manager = connection_manager

    # --- Fan-out ---

    async def _persist(self, rows: list[db_models.Notifications]):
        self.db.add_all(rows)
        await self.db.commit()

    async def fan_out(self, school_id: UUID, intents: Iterable[NotificationIntent]) -> int:
        """
        Inserts one notification per distinct (recipient, type).
        Never raises: a failed insert is rolled back and logged, the primary
        mutation has already been committed by the caller.
        Returns the number of notifications stored.
        """
        seen: set[tuple[UUID, str]] = set()
        rows = []
        for intent in intents:
            key = (intent.user_id, intent.type.value)
            if key in seen:
                continue
            seen.add(key)
            rows.append(db_models.Notifications(
                school_id=school_id,
                user_id=intent.user_id,
                title=intent.title,
                message=intent.message,
                type=intent.type.value,
                data=_json_safe(intent.data),
            ))

        if not rows:
            return 0

        try:
            await self._persist(rows)
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.error(f"Notification fan-out of {len(rows)} rows failed and was dropped: {e}", exc_info=True)
            return 0

        log.info(f"Fanned out {len(rows)} notification(s) in school {school_id}.")
        return len(rows)

    # --- Inbox Reads ---

    async def get_notifications_for_api(
        self,
        current_user: db_models.Users,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationTypeEnum] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> list[notification_models.NotificationRead]:
        log.info(f"User {current_user.id} listing notifications (is_read={is_read}, type={notification_type}).")
        stmt = select(db_models.Notifications).filter(
            db_models.Notifications.user_id == current_user.id,
            db_models.Notifications.school_id == current_user.school_id
        )
        if is_read is not None:
            stmt = stmt.filter(db_models.Notifications.is_read.is_(is_read))
        if notification_type is not None:
            stmt = stmt.filter(db_models.Notifications.type == notification_type.value)
        stmt = stmt.order_by(db_models.Notifications.created_at.desc()).limit(
            limit or settings.NOTIFICATIONS_PAGE_SIZE
        ).offset(offset)

        result = await self.db.execute(stmt)
        return [notification_models.NotificationRead.model_validate(n) for n in result.scalars().all()]

    async def get_unread_count_for_api(self, current_user: db_models.Users) -> notification_models.UnreadCount:
        stmt = select(func.count(db_models.Notifications.id)).filter(
            db_models.Notifications.user_id == current_user.id,
            db_models.Notifications.school_id == current_user.school_id,
            db_models.Notifications.is_read.is_(False)
        )
        count = (await self.db.execute(stmt)).scalar_one()
        return notification_models.UnreadCount(unread_count=count)

    # --- Inbox Writes ---

    async def mark_as_read_for_api(self, notification_id: UUID, current_user: db_models.Users) -> notification_models.NotificationRead:
        """
        Marks one of the caller's notifications read. Already-read
        notifications are returned unchanged.
        """
        stmt = select(db_models.Notifications).filter(
            db_models.Notifications.id == notification_id,
            db_models.Notifications.user_id == current_user.id,
            db_models.Notifications.school_id == current_user.school_id
        )
        notification = (await self.db.execute(stmt)).scalars().first()
        if not notification:
            log.warning(f"User {current_user.id} tried to mark missing/foreign notification {notification_id} read.")
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            await self.db.commit()

        return notification_models.NotificationRead.model_validate(notification)

    async def mark_all_as_read_for_api(self, current_user: db_models.Users) -> notification_models.MarkAllReadResult:
        stmt = update(db_models.Notifications).where(
            db_models.Notifications.user_id == current_user.id,
            db_models.Notifications.school_id == current_user.school_id,
            db_models.Notifications.is_read.is_(False)
        ).values(is_read=True, read_at=datetime.now(timezone.utc))
        result = await self.db.execute(stmt)
        await self.db.commit()
        log.info(f"User {current_user.id} marked {result.rowcount} notification(s) read.")
        return notification_models.MarkAllReadResult(updated=result.rowcount)

    # --- Announcements ---

    async def announce_for_api(
        self,
        data: notification_models.AnnouncementCreate,
        current_user: db_models.Users
    ) -> notification_models.AnnouncementResult:
        """Admin broadcast to every active user of the school (optionally by role)."""
        authorize_roles(current_user, [UserRole.ADMIN])

        stmt = select(db_models.Users.id).filter(
            db_models.Users.school_id == current_user.school_id,
            db_models.Users.is_active.is_(True),
            db_models.Users.id != current_user.id
        )
        if data.roles:
            stmt = stmt.filter(db_models.Users.role.in_([role.value for role in data.roles]))
        recipient_ids = (await self.db.execute(stmt)).scalars().all()

        intents = [
            NotificationIntent(
                user_id=user_id,
                title=data.title,
                message=data.message,
                type=NotificationTypeEnum.ANNOUNCEMENT,
                data={"sender_id": current_user.id},
            )
            for user_id in recipient_ids
        ]
        stored = await self.fan_out(current_user.school_id, intents)

        live = {"title": data.title, "message": data.message, "sender_id": current_user.id}
        if data.roles:
            for user_id in recipient_ids:
                await self.connection_manager.emit_to_user(user_id, "announcement", live)
        else:
            await self.connection_manager.emit(school_room(current_user.school_id), "announcement", live)
        log.info(f"Admin {current_user.id} announced '{data.title}' to {stored} user(s).")
        return notification_models.AnnouncementResult(recipients=stored)
