import pytest
from uuid import UUID
from pprint import pprint
from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from src.edumesh_backend.database import models as db_models
from src.edumesh_backend.database.db_enums import NotificationTypeEnum, UserRole
from src.edumesh_backend.services.notification_service import NotificationService, NotificationIntent
from src.edumesh_backend.models import notification as notification_models
from src.edumesh_backend.services.realtime import ConnectionManager

from tests.fakes import FakeWebSocket
from tests.constants import (
    TEST_SCHOOL_ID,
    TEST_PARENT_ID,
    TEST_TEACHER_USER_ID,
    TEST_STUDENT_USER_ID,
    TEST_NOTIFICATION_ID,
    TEST_READ_NOTIFICATION_ID,
    TEST_ADMIN_NOTIFICATION_ID,
)


async def _count_notifications(db_session, user_id) -> int:
    stmt = select(func.count(db_models.Notifications.id)).filter(db_models.Notifications.user_id == user_id)
    return (await db_session.execute(stmt)).scalar_one()


@pytest.mark.anyio
class TestNotificationFanOut:

    async def test_fan_out_dedupes_per_recipient_and_type(
        self,
        db_session,
        notification_service: NotificationService
    ):
        before = await _count_notifications(db_session, TEST_STUDENT_USER_ID)
        intents = [
            NotificationIntent(TEST_STUDENT_USER_ID, "A", "first", NotificationTypeEnum.HOMEWORK),
            NotificationIntent(TEST_STUDENT_USER_ID, "B", "second", NotificationTypeEnum.HOMEWORK),
            NotificationIntent(TEST_STUDENT_USER_ID, "C", "third", NotificationTypeEnum.EXAM),
        ]

        stored = await notification_service.fan_out(TEST_SCHOOL_ID, intents)

        assert stored == 2
        assert await _count_notifications(db_session, TEST_STUDENT_USER_ID) == before + 2

    async def test_fan_out_stores_json_safe_data(
        self,
        db_session,
        notification_service: NotificationService
    ):
        await notification_service.fan_out(TEST_SCHOOL_ID, [NotificationIntent(
            TEST_STUDENT_USER_ID, "Exam", "Soon", NotificationTypeEnum.EXAM, {"exam_id": TEST_NOTIFICATION_ID, "n": 3}
        )])
        stmt = select(db_models.Notifications.data).filter(
            db_models.Notifications.user_id == TEST_STUDENT_USER_ID,
            db_models.Notifications.type == NotificationTypeEnum.EXAM.value
        )
        data = (await db_session.execute(stmt)).scalar_one()

        assert data == {"exam_id": str(TEST_NOTIFICATION_ID), "n": 3}

    async def test_fan_out_with_no_intents(self, notification_service: NotificationService):
        assert await notification_service.fan_out(TEST_SCHOOL_ID, []) == 0

    async def test_fan_out_failure_is_swallowed(
        self,
        db_session,
        notification_service: NotificationService,
        monkeypatch
    ):
        """A failed insert is logged and dropped; the caller never sees it."""
        async def failing_persist(rows):
            raise OperationalError("INSERT INTO notifications", {}, Exception("database is locked"))

        monkeypatch.setattr(notification_service, "_persist", failing_persist)
        before = await _count_notifications(db_session, TEST_STUDENT_USER_ID)

        stored = await notification_service.fan_out(TEST_SCHOOL_ID, [
            NotificationIntent(TEST_STUDENT_USER_ID, "A", "lost", NotificationTypeEnum.HOMEWORK)
        ])

        assert stored == 0
        assert await _count_notifications(db_session, TEST_STUDENT_USER_ID) == before


@pytest.mark.anyio
class TestNotificationInbox:

    async def test_list_newest_first(
        self,
        notification_service: NotificationService,
        test_parent_orm: db_models.Users
    ):
        print("\n--- Testing get_notifications_for_api as PARENT ---")
        notifications = await notification_service.get_notifications_for_api(test_parent_orm)
        pprint([n.model_dump() for n in notifications])

        assert len(notifications) == 3
        assert all(isinstance(n, notification_models.NotificationRead) for n in notifications)
        assert [n.type for n in notifications] == [
            NotificationTypeEnum.FEE, NotificationTypeEnum.HOMEWORK, NotificationTypeEnum.ANNOUNCEMENT
        ]

    async def test_list_filters(
        self,
        notification_service: NotificationService,
        test_parent_orm: db_models.Users
    ):
        unread = await notification_service.get_notifications_for_api(test_parent_orm, is_read=False)
        homework = await notification_service.get_notifications_for_api(
            test_parent_orm, notification_type=NotificationTypeEnum.HOMEWORK
        )
        page = await notification_service.get_notifications_for_api(test_parent_orm, limit=1, offset=1)

        assert {n.is_read for n in unread} == {False}
        assert len(unread) == 2
        assert [n.id for n in homework] == [TEST_NOTIFICATION_ID]
        assert [n.id for n in page] == [TEST_NOTIFICATION_ID]

    async def test_unread_count(
        self,
        notification_service: NotificationService,
        test_parent_orm: db_models.Users,
        test_childless_parent_orm: db_models.Users
    ):
        assert (await notification_service.get_unread_count_for_api(test_parent_orm)).unread_count == 2
        assert (await notification_service.get_unread_count_for_api(test_childless_parent_orm)).unread_count == 0

    async def test_mark_as_read(
        self,
        notification_service: NotificationService,
        test_parent_orm: db_models.Users
    ):
        notification = await notification_service.mark_as_read_for_api(TEST_NOTIFICATION_ID, test_parent_orm)

        assert notification.is_read is True
        assert notification.read_at is not None
        assert (await notification_service.get_unread_count_for_api(test_parent_orm)).unread_count == 1

    async def test_mark_already_read_is_unchanged(
        self,
        notification_service: NotificationService,
        test_parent_orm: db_models.Users
    ):
        notification = await notification_service.mark_as_read_for_api(TEST_READ_NOTIFICATION_ID, test_parent_orm)
        assert notification.is_read is True

    async def test_mark_someone_elses_notification(
        self,
        notification_service: NotificationService,
        test_parent_orm: db_models.Users
    ):
        """Another user's notification is indistinguishable from a missing one."""
        with pytest.raises(HTTPException) as e:
            await notification_service.mark_as_read_for_api(TEST_ADMIN_NOTIFICATION_ID, test_parent_orm)
        assert e.value.status_code == 404

        with pytest.raises(HTTPException) as e:
            await notification_service.mark_as_read_for_api(UUID(int=0), test_parent_orm)
        assert e.value.status_code == 404

    async def test_mark_all_as_read(
        self,
        notification_service: NotificationService,
        test_parent_orm: db_models.Users
    ):
        result = await notification_service.mark_all_as_read_for_api(test_parent_orm)

        assert result.updated == 2
        assert (await notification_service.get_unread_count_for_api(test_parent_orm)).unread_count == 0


@pytest.mark.anyio
class TestAnnouncements:

    async def test_announce_to_everyone(
        self,
        db_session,
        notification_service: NotificationService,
        test_admin_orm: db_models.Users
    ):
        """Every active user of the school except the sender; the inactive teacher is skipped."""
        data = notification_models.AnnouncementCreate(title="Holiday", message="School closed on Friday")
        result = await notification_service.announce_for_api(data, test_admin_orm)

        # 9 active users in school A besides the admin
        assert result.recipients == 9
        stmt = select(func.count(db_models.Notifications.id)).filter(
            db_models.Notifications.type == NotificationTypeEnum.ANNOUNCEMENT.value,
            db_models.Notifications.title == "Holiday"
        )
        assert (await db_session.execute(stmt)).scalar_one() == 9

    async def test_announce_to_parents_only(
        self,
        db_session,
        notification_service: NotificationService,
        test_admin_orm: db_models.Users
    ):
        data = notification_models.AnnouncementCreate(title="PTA", message="Meeting", roles=[UserRole.PARENT])
        result = await notification_service.announce_for_api(data, test_admin_orm)

        assert result.recipients == 3
        stmt = select(db_models.Notifications.user_id).filter(db_models.Notifications.title == "PTA")
        assert TEST_PARENT_ID in (await db_session.execute(stmt)).scalars().all()

    async def test_announce_as_teacher_forbidden(
        self,
        notification_service: NotificationService,
        test_teacher_orm: db_models.Users
    ):
        data = notification_models.AnnouncementCreate(title="Hi", message="There")
        with pytest.raises(HTTPException) as e:
            await notification_service.announce_for_api(data, test_teacher_orm)
        assert e.value.status_code == 403

    async def test_announcement_is_pushed_to_the_school_room(
        self,
        notification_service: NotificationService,
        connection_manager: ConnectionManager,
        test_admin_orm: db_models.Users
    ):
        parent_socket, teacher_socket = FakeWebSocket(), FakeWebSocket()
        await connection_manager.connect(parent_socket, TEST_PARENT_ID, TEST_SCHOOL_ID)
        await connection_manager.connect(teacher_socket, TEST_TEACHER_USER_ID, TEST_SCHOOL_ID)

        data = notification_models.AnnouncementCreate(title="Holiday", message="School closed on Friday")
        await notification_service.announce_for_api(data, test_admin_orm)

        for socket in (parent_socket, teacher_socket):
            assert socket.events() == ["announcement"]
            assert socket.sent[0]["data"]["title"] == "Holiday"
            assert socket.sent[0]["data"]["sender_id"] == str(test_admin_orm.id)

    async def test_role_announcement_is_pushed_to_recipients_only(
        self,
        notification_service: NotificationService,
        connection_manager: ConnectionManager,
        test_admin_orm: db_models.Users
    ):
        parent_socket, teacher_socket = FakeWebSocket(), FakeWebSocket()
        await connection_manager.connect(parent_socket, TEST_PARENT_ID, TEST_SCHOOL_ID)
        await connection_manager.connect(teacher_socket, TEST_TEACHER_USER_ID, TEST_SCHOOL_ID)

        data = notification_models.AnnouncementCreate(title="PTA", message="Meeting", roles=[UserRole.PARENT])
        await notification_service.announce_for_api(data, test_admin_orm)

        assert parent_socket.events() == ["announcement"]
        assert teacher_socket.sent == []
