'''
API endpoints for direct messages.
'''
from typing import Annotated, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from ..database import models as db_models
from ..database.db_enums import UserRole
from ..models import chat as chat_models
from ..models import user as user_models
from ..models.common import ApiResponse
from ..services.security import verify_token_and_get_user
from ..services.chat_service import ChatService

class ChatAPI:
    """
    A class to encapsulate chat endpoints.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/chat",
            tags=["Chat"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/conversations",
                self.list_conversations,
                methods=["GET"],
                response_model=ApiResponse[list[chat_models.ConversationRead]])

        self.router.add_api_route(
                "/messages/{user_id}",
                self.list_messages,
                methods=["GET"],
                response_model=ApiResponse[list[chat_models.MessageRead]])

        self.router.add_api_route(
                "/send",
                self.send_message,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=ApiResponse[chat_models.MessageRead])

        self.router.add_api_route(
                "/users",
                self.list_chat_users,
                methods=["GET"],
                response_model=ApiResponse[list[user_models.UserSummary]])

    async def list_conversations(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        chat_service: Annotated[ChatService, Depends(ChatService)]
    ):
        return ApiResponse(data=await chat_service.get_conversations_for_api(current_user))

    async def list_messages(
        self,
        user_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        chat_service: Annotated[ChatService, Depends(ChatService)],
        limit: Annotated[Optional[int], Query(ge=1, le=200)] = None,
        offset: Annotated[int, Query(ge=0)] = 0
    ):
        """
        Retrieves the conversation with another user, oldest first, and
        marks their messages to the caller as read.
        """
        messages = await chat_service.get_messages_for_api(user_id, current_user, limit, offset)
        return ApiResponse(data=messages)

    async def send_message(
        self,
        message_data: chat_models.MessageCreate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        chat_service: Annotated[ChatService, Depends(ChatService)]
    ):
        message = await chat_service.send_message(message_data, current_user)
        return ApiResponse(message="Message sent", data=message)

    async def list_chat_users(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        chat_service: Annotated[ChatService, Depends(ChatService)],
        role: Optional[UserRole] = None,
        search: Optional[str] = None
    ):
        return ApiResponse(data=await chat_service.get_chat_users_for_api(current_user, role, search))

# Instantiate the class and export its router
chat_api = ChatAPI()
router = chat_api.router
