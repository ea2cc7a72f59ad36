'''
API endpoints for the notification inbox and school announcements.
'''
from typing import Annotated, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from ..database import models as db_models
from ..database.db_enums import NotificationTypeEnum
from ..models import notification as notification_models
from ..models.common import ApiResponse
from ..services.security import verify_token_and_get_user
from ..services.notification_service import NotificationService

class NotificationsAPI:
    def __init__(self):
        self.router = APIRouter(
            prefix="/notifications",
            tags=["Notifications"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_notifications,
                methods=["GET"],
                response_model=ApiResponse[list[notification_models.NotificationRead]])

        self.router.add_api_route(
                "/count",
                self.unread_count,
                methods=["GET"],
                response_model=ApiResponse[notification_models.UnreadCount])

        self.router.add_api_route(
                "/mark-all-read",
                self.mark_all_read,
                methods=["PUT"],
                response_model=ApiResponse[notification_models.MarkAllReadResult])

        self.router.add_api_route(
                "/{notification_id}/read",
                self.mark_read,
                methods=["PUT"],
                response_model=ApiResponse[notification_models.NotificationRead])

        self.router.add_api_route(
                "/announce",
                self.announce,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=ApiResponse[notification_models.AnnouncementResult])

    async def list_notifications(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        notification_service: Annotated[NotificationService, Depends(NotificationService)],
        is_read: Optional[bool] = None,
        notification_type: Annotated[Optional[NotificationTypeEnum], Query(alias="type")] = None,
        limit: Annotated[Optional[int], Query(ge=1, le=200)] = None,
        offset: Annotated[int, Query(ge=0)] = 0
    ):
        """
        Retrieves the caller's notifications, newest first.
        """
        notifications = await notification_service.get_notifications_for_api(
            current_user, is_read, notification_type, limit, offset
        )
        return ApiResponse(data=notifications)

    async def unread_count(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        notification_service: Annotated[NotificationService, Depends(NotificationService)]
    ):
        return ApiResponse(data=await notification_service.get_unread_count_for_api(current_user))

    async def mark_all_read(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        notification_service: Annotated[NotificationService, Depends(NotificationService)]
    ):
        result = await notification_service.mark_all_as_read_for_api(current_user)
        return ApiResponse(message="All notifications marked as read", data=result)

    async def mark_read(
        self,
        notification_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        notification_service: Annotated[NotificationService, Depends(NotificationService)]
    ):
        notification = await notification_service.mark_as_read_for_api(notification_id, current_user)
        return ApiResponse(message="Notification marked as read", data=notification)

    async def announce(
        self,
        announcement: notification_models.AnnouncementCreate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        notification_service: Annotated[NotificationService, Depends(NotificationService)]
    ):
        """
        Broadcasts an announcement to the school. Restricted to Admins.
        """
        result = await notification_service.announce_for_api(announcement, current_user)
        return ApiResponse(message=f"Announcement sent to {result.recipients} user(s)", data=result)

# Instantiate the class and export its router
notifications_api = NotificationsAPI()
router = notifications_api.router
