import pytest
from uuid import UUID
from pprint import pprint
from fastapi import HTTPException
from sqlalchemy import func, select

from src.edumesh_backend.database import models as db_models
from src.edumesh_backend.database.db_enums import NotificationTypeEnum, UserRole
from src.edumesh_backend.services.chat_service import ChatService
from src.edumesh_backend.services.realtime import ConnectionManager, school_room, user_room
from src.edumesh_backend.models import chat as chat_models

from tests.fakes import FakeWebSocket
from tests.constants import (
    TEST_SCHOOL_ID,
    TEST_ADMIN_ID,
    TEST_TEACHER_USER_ID,
    TEST_UNRELATED_TEACHER_USER_ID,
    TEST_INACTIVE_TEACHER_USER_ID,
    TEST_PARENT_ID,
    TEST_UNRELATED_PARENT_ID,
    TEST_STUDENT_USER_ID,
    OTHER_ADMIN_ID,
)


@pytest.mark.anyio
class TestChatConversations:

    async def test_conversations_for_teacher(
        self,
        chat_service: ChatService,
        test_teacher_orm: db_models.Users
    ):
        print("\n--- Testing get_conversations as TEACHER ---")
        conversations = await chat_service.get_conversations_for_api(test_teacher_orm)
        pprint([c.model_dump() for c in conversations])

        # admin wrote last, so that conversation comes first
        assert [c.user.id for c in conversations] == [TEST_ADMIN_ID, TEST_PARENT_ID]
        parent_conversation = conversations[1]
        assert parent_conversation.unread_count == 2
        assert parent_conversation.last_message.content == "Great to hear!"
        assert conversations[0].unread_count == 1

    async def test_no_conversations(
        self,
        chat_service: ChatService,
        test_student_orm: db_models.Users
    ):
        assert await chat_service.get_conversations_for_api(test_student_orm) == []

    async def test_messages_are_chronological_and_marked_read(
        self,
        db_session,
        chat_service: ChatService,
        test_teacher_orm: db_models.Users
    ):
        messages = await chat_service.get_messages_for_api(TEST_PARENT_ID, test_teacher_orm)

        assert [m.content for m in messages] == [
            "Hello, how is Xavier doing?", "Very well, thank you.", "Great to hear!"
        ]
        unread = (await db_session.execute(
            select(func.count(db_models.Messages.id)).filter(
                db_models.Messages.sender_id == TEST_PARENT_ID,
                db_models.Messages.receiver_id == TEST_TEACHER_USER_ID,
                db_models.Messages.is_read.is_(False)
            )
        )).scalar_one()
        assert unread == 0

        # the admin's message to the teacher is untouched
        conversations = await chat_service.get_conversations_for_api(test_teacher_orm)
        assert {c.user.id: c.unread_count for c in conversations} == {TEST_ADMIN_ID: 1, TEST_PARENT_ID: 0}

    async def test_messages_page(
        self,
        chat_service: ChatService,
        test_parent_orm: db_models.Users
    ):
        """limit/offset page from the newest message backwards, returned oldest first."""
        messages = await chat_service.get_messages_for_api(TEST_TEACHER_USER_ID, test_parent_orm, limit=2, offset=0)
        assert [m.content for m in messages] == ["Very well, thank you.", "Great to hear!"]


@pytest.mark.anyio
class TestChatSend:

    async def test_send_persists_notifies_and_pushes(
        self,
        db_session,
        chat_service: ChatService,
        connection_manager: ConnectionManager,
        test_parent_orm: db_models.Users
    ):
        receiver_socket = FakeWebSocket()
        await connection_manager.connect(receiver_socket, TEST_TEACHER_USER_ID, TEST_SCHOOL_ID)

        data = chat_models.MessageCreate(receiver_id=TEST_TEACHER_USER_ID, content="Is there homework today?")
        message = await chat_service.send_message(data, test_parent_orm)

        assert isinstance(message, chat_models.MessageRead)
        assert message.sender_id == TEST_PARENT_ID
        assert message.is_read is False

        assert receiver_socket.accepted is True
        assert len(receiver_socket.sent) == 1
        assert receiver_socket.sent[0]["event"] == "new_message"
        assert receiver_socket.sent[0]["data"]["id"] == str(message.id)

        stmt = select(db_models.Notifications).filter(
            db_models.Notifications.user_id == TEST_TEACHER_USER_ID,
            db_models.Notifications.type == NotificationTypeEnum.MESSAGE.value
        )
        notification = (await db_session.execute(stmt)).scalars().first()
        assert notification is not None
        assert notification.data["message_id"] == str(message.id)

    async def test_send_to_offline_user(
        self,
        chat_service: ChatService,
        test_admin_orm: db_models.Users
    ):
        """Nobody connected: the message is still stored and returned."""
        data = chat_models.MessageCreate(receiver_id=TEST_STUDENT_USER_ID, content="Welcome!")
        message = await chat_service.send_message(data, test_admin_orm)
        assert message.receiver_id == TEST_STUDENT_USER_ID

    async def test_send_to_self(
        self,
        chat_service: ChatService,
        test_parent_orm: db_models.Users
    ):
        with pytest.raises(HTTPException) as e:
            await chat_service.send_message(chat_models.MessageCreate(receiver_id=TEST_PARENT_ID, content="me"), test_parent_orm)
        assert e.value.status_code == 400

    async def test_send_to_other_school(
        self,
        chat_service: ChatService,
        test_admin_orm: db_models.Users
    ):
        with pytest.raises(HTTPException) as e:
            await chat_service.send_message(chat_models.MessageCreate(receiver_id=OTHER_ADMIN_ID, content="hi"), test_admin_orm)
        assert e.value.status_code == 404

    async def test_send_to_inactive_user(
        self,
        chat_service: ChatService,
        test_admin_orm: db_models.Users
    ):
        with pytest.raises(HTTPException) as e:
            await chat_service.send_message(
                chat_models.MessageCreate(receiver_id=TEST_INACTIVE_TEACHER_USER_ID, content="hi"), test_admin_orm
            )
        assert e.value.status_code == 404

    async def test_parent_cannot_message_parent(
        self,
        chat_service: ChatService,
        test_parent_orm: db_models.Users
    ):
        with pytest.raises(HTTPException) as e:
            await chat_service.send_message(
                chat_models.MessageCreate(receiver_id=TEST_UNRELATED_PARENT_ID, content="hi"), test_parent_orm
            )
        assert e.value.status_code == 403

    async def test_send_to_unknown_user(
        self,
        chat_service: ChatService,
        test_teacher_orm: db_models.Users
    ):
        with pytest.raises(HTTPException) as e:
            await chat_service.send_message(chat_models.MessageCreate(receiver_id=UUID(int=0), content="hi"), test_teacher_orm)
        assert e.value.status_code == 404


@pytest.mark.anyio
class TestChatUsers:

    async def test_parent_can_list_staff_only(
        self,
        chat_service: ChatService,
        test_parent_orm: db_models.Users
    ):
        users = await chat_service.get_chat_users_for_api(test_parent_orm)

        assert {u.role for u in users} == {UserRole.ADMIN, UserRole.TEACHER}
        ids = {u.id for u in users}
        assert TEST_INACTIVE_TEACHER_USER_ID not in ids
        assert OTHER_ADMIN_ID not in ids

    async def test_role_and_search_filters(
        self,
        chat_service: ChatService,
        test_teacher_orm: db_models.Users
    ):
        parents = await chat_service.get_chat_users_for_api(test_teacher_orm, role=UserRole.PARENT)
        search = await chat_service.get_chat_users_for_api(test_teacher_orm, search="paula")
        teachers = await chat_service.get_chat_users_for_api(test_teacher_orm, role=UserRole.TEACHER)

        assert len(parents) == 3
        assert [u.id for u in search] == [TEST_PARENT_ID]
        # teachers may not message other teachers
        assert teachers == []

    async def test_admin_sees_everyone_but_self(
        self,
        chat_service: ChatService,
        test_admin_orm: db_models.Users
    ):
        users = await chat_service.get_chat_users_for_api(test_admin_orm)
        ids = {u.id for u in users}

        assert TEST_ADMIN_ID not in ids
        assert TEST_UNRELATED_TEACHER_USER_ID in ids
        assert len(users) == 9


@pytest.mark.anyio
class TestConnectionManager:

    async def test_rooms_and_emit(self, connection_manager: ConnectionManager):
        first, second = FakeWebSocket(), FakeWebSocket()
        await connection_manager.connect(first, TEST_PARENT_ID, TEST_SCHOOL_ID)
        await connection_manager.connect(second, TEST_TEACHER_USER_ID, TEST_SCHOOL_ID)

        delivered = await connection_manager.emit(school_room(TEST_SCHOOL_ID), "announcement", {"id": TEST_ADMIN_ID})

        assert delivered == 2
        assert first.sent == [{"event": "announcement", "data": {"id": str(TEST_ADMIN_ID)}}]
        assert user_room(TEST_PARENT_ID) in connection_manager.rooms

    async def test_disconnect_drops_empty_rooms(self, connection_manager: ConnectionManager):
        socket = FakeWebSocket()
        await connection_manager.connect(socket, TEST_PARENT_ID, TEST_SCHOOL_ID)
        connection_manager.disconnect(socket, TEST_PARENT_ID, TEST_SCHOOL_ID)

        assert user_room(TEST_PARENT_ID) not in connection_manager.rooms
        assert school_room(TEST_SCHOOL_ID) not in connection_manager.rooms

    async def test_broken_socket_is_dropped(self, connection_manager: ConnectionManager):
        healthy, broken = FakeWebSocket(), FakeWebSocket(broken=True)
        await connection_manager.connect(healthy, TEST_PARENT_ID, TEST_SCHOOL_ID)
        await connection_manager.connect(broken, TEST_PARENT_ID, TEST_SCHOOL_ID)

        delivered = await connection_manager.emit_to_user(TEST_PARENT_ID, "typing", {"is_typing": True})

        assert delivered == 1
        assert connection_manager.rooms[user_room(TEST_PARENT_ID)] == {healthy}
