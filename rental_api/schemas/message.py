"""
Schemas for direct messages and conversation lists.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from rental_api.schemas.common import PaginatedResponse


class MessageCreate(BaseModel):
    receiver_id: str = Field(..., description="Recipient user ID")
    content: str = Field(..., min_length=1, max_length=2000, example="Is the flat still available?")
    property_id: Optional[str] = Field(None, description="Property the message is about")

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        if not v.strip():
            raise ValueError("Message content cannot be empty")
        return v.strip()


class MessageResponse(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    property_id: Optional[str] = None
    content: str
    timestamp: datetime
    is_read: bool
    read_at: Optional[datetime] = None


class ConversationMessagesResponse(PaginatedResponse):
    partner_id: str
    messages: List[MessageResponse]


class ConversationSummary(BaseModel):
    partner_id: str
    partner_name: Optional[str] = None
    last_message: MessageResponse
    unread_count: int = 0


class ConversationListResponse(BaseModel):
    conversations: List[ConversationSummary]
    total_unread: int = 0


class UnreadMessagesResponse(BaseModel):
    unread_count: int = Field(..., example=3)
