from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..database.db_enums import MessageTypeEnum
from .user import UserSummary


class MessageCreate(BaseModel):
    receiver_id: UUID
    content: str = Field(..., min_length=1, max_length=5000)
    message_type: MessageTypeEnum = MessageTypeEnum.TEXT
    attachments: list[str] = Field(default_factory=list)


class MessageRead(BaseModel):
    id: UUID
    school_id: UUID
    sender_id: UUID
    receiver_id: UUID
    content: str
    message_type: MessageTypeEnum
    attachments: list[str] = Field(default_factory=list)
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationRead(BaseModel):
    user: UserSummary
    last_message: MessageRead
    unread_count: int
