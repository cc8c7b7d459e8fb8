"""
Direct messaging endpoints.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from uuid import UUID

from rental_api.models.user import User
from rental_api.services.message import MessageService
from rental_api.schemas.common import pagination_meta
from rental_api.schemas.message import (
    MessageCreate,
    MessageResponse,
    ConversationMessagesResponse,
    ConversationListResponse,
    UnreadMessagesResponse
)
from rental_api.schemas.error import get_crud_error_responses, get_error_responses
from rental_api.utils.dependencies import get_current_active_user, get_message_service


router = APIRouter(prefix="/messages", tags=["Messages"])


@router.post(
    "",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send message",
    responses=get_crud_error_responses()
)
async def send_message(
    message_data: MessageCreate,
    current_user: User = Depends(get_current_active_user),
    service: MessageService = Depends(get_message_service)
) -> MessageResponse:
    message = await service.send_message(message_data, current_user)
    return MessageResponse.model_validate(message.to_dict())


@router.get(
    "/conversations",
    response_model=ConversationListResponse,
    status_code=status.HTTP_200_OK,
    summary="List conversations",
    description="Latest message and unread count per partner, most recent first"
)
async def list_conversations(
    current_user: User = Depends(get_current_active_user),
    service: MessageService = Depends(get_message_service)
) -> ConversationListResponse:
    return ConversationListResponse.model_validate(await service.list_conversations(current_user))


@router.get(
    "/unread-count",
    response_model=UnreadMessagesResponse,
    status_code=status.HTTP_200_OK,
    summary="Unread message count"
)
async def get_unread_count(
    current_user: User = Depends(get_current_active_user),
    service: MessageService = Depends(get_message_service)
) -> UnreadMessagesResponse:
    return UnreadMessagesResponse(unread_count=await service.unread_count(current_user))


@router.get(
    "/conversations/{partner_id}",
    response_model=ConversationMessagesResponse,
    status_code=status.HTTP_200_OK,
    summary="Conversation with a user",
    description="Oldest first. Marks the partner's messages as read.",
    responses=get_error_responses(404)
)
async def get_conversation(
    partner_id: UUID = Path(..., description="Conversation partner ID"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_active_user),
    service: MessageService = Depends(get_message_service)
) -> ConversationMessagesResponse:
    messages, total = await service.get_conversation(partner_id, current_user, page=page, page_size=page_size)
    return ConversationMessagesResponse(
        partner_id=str(partner_id),
        messages=[MessageResponse.model_validate(message.to_dict()) for message in messages],
        **pagination_meta(total, page, page_size)
    )
