"""
Notification endpoints: polling, read state, delivery log, preferences and push tokens.
"""

from fastapi import APIRouter, Depends, status, Query, Path
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from rental_api.models.user import User
from rental_api.models.notification import NotificationCategory
from rental_api.services.notification import NotificationService
from rental_api.schemas.common import ActionResponse, pagination_meta
from rental_api.schemas.notification import (
    NotificationResponse,
    NotificationListResponse,
    UnreadCountResponse,
    MarkAllReadResponse,
    DeliveryResponse,
    NotificationPreferencesResponse,
    NotificationPreferencesUpdate,
    CategorySettingUpdate,
    ContactsUpdate,
    DeviceTokenRegister,
    DeviceTokenResponse
)
from rental_api.schemas.error import get_crud_error_responses, get_error_responses
from rental_api.utils.dependencies import get_current_active_user, get_notification_service
from rental_api.utils.exceptions import NotFoundError


router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "",
    response_model=NotificationListResponse,
    status_code=status.HTTP_200_OK,
    summary="List notifications",
    description="Newest first. Clients poll this endpoint, optionally with `since`."
)
async def list_notifications(
    unread_only: bool = Query(False, description="Only unread notifications"),
    since: Optional[datetime] = Query(None, description="Only notifications created after this instant"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    service: NotificationService = Depends(get_notification_service)
) -> NotificationListResponse:
    notifications, total = await service.list_notifications(
        current_user, unread_only=unread_only, since=since, page=page, page_size=page_size
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(item.to_dict()) for item in notifications],
        unread_count=await service.unread_count(current_user),
        **pagination_meta(total, page, page_size)
    )


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    status_code=status.HTTP_200_OK,
    summary="Unread notification count"
)
async def get_unread_count(
    current_user: User = Depends(get_current_active_user),
    service: NotificationService = Depends(get_notification_service)
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=await service.unread_count(current_user))


@router.post(
    "/read-all",
    response_model=MarkAllReadResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark all notifications read"
)
async def mark_all_read(
    current_user: User = Depends(get_current_active_user),
    service: NotificationService = Depends(get_notification_service)
) -> MarkAllReadResponse:
    return MarkAllReadResponse(updated=await service.mark_all_read(current_user))


# Preferences

@router.get(
    "/preferences",
    response_model=NotificationPreferencesResponse,
    status_code=status.HTTP_200_OK,
    summary="Get notification preferences"
)
async def get_preferences(
    current_user: User = Depends(get_current_active_user),
    service: NotificationService = Depends(get_notification_service)
) -> NotificationPreferencesResponse:
    preferences = await service.get_or_create_preferences(current_user.id)
    return NotificationPreferencesResponse.model_validate(preferences.to_dict())


@router.put(
    "/preferences",
    response_model=NotificationPreferencesResponse,
    status_code=status.HTTP_200_OK,
    summary="Update notification preferences",
    description="Global channel switches, quiet hours, time zone and email digest frequency",
    responses=get_error_responses(422)
)
async def update_preferences(
    update_data: NotificationPreferencesUpdate,
    current_user: User = Depends(get_current_active_user),
    service: NotificationService = Depends(get_notification_service)
) -> NotificationPreferencesResponse:
    preferences = await service.update_preferences(current_user, update_data.to_preference_fields())
    return NotificationPreferencesResponse.model_validate(preferences.to_dict())


@router.patch(
    "/preferences/categories/{category}",
    response_model=NotificationPreferencesResponse,
    status_code=status.HTTP_200_OK,
    summary="Update one category setting",
    responses=get_error_responses(422)
)
async def update_category_setting(
    setting: CategorySettingUpdate,
    category: NotificationCategory = Path(..., description="Notification category"),
    current_user: User = Depends(get_current_active_user),
    service: NotificationService = Depends(get_notification_service)
) -> NotificationPreferencesResponse:
    preferences = await service.update_category_setting(current_user, category, setting.key, setting.value)
    return NotificationPreferencesResponse.model_validate(preferences.to_dict())


@router.put(
    "/preferences/contacts",
    response_model=NotificationPreferencesResponse,
    status_code=status.HTTP_200_OK,
    summary="Update contact details",
    description="Email address and phone number used for email and SMS delivery",
    responses=get_error_responses(422)
)
async def update_contacts(
    contacts: ContactsUpdate,
    current_user: User = Depends(get_current_active_user),
    service: NotificationService = Depends(get_notification_service)
) -> NotificationPreferencesResponse:
    preferences = await service.update_contacts(
        current_user,
        email_address=contacts.email_address,
        phone_number=contacts.phone_number or None,
        clear_phone=contacts.phone_number == ""
    )
    return NotificationPreferencesResponse.model_validate(preferences.to_dict())


# Push tokens

@router.post(
    "/device-tokens",
    response_model=DeviceTokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register push token",
    responses=get_error_responses(422)
)
async def register_device_token(
    token_data: DeviceTokenRegister,
    current_user: User = Depends(get_current_active_user),
    service: NotificationService = Depends(get_notification_service)
) -> DeviceTokenResponse:
    device_token = await service.register_device_token(current_user, token_data.token, token_data.platform)
    return DeviceTokenResponse.model_validate(device_token.to_dict())


@router.delete(
    "/device-tokens/{token}",
    response_model=ActionResponse,
    status_code=status.HTTP_200_OK,
    summary="Unregister push token",
    responses=get_error_responses(404)
)
async def unregister_device_token(
    token: str = Path(..., description="Expo push token"),
    current_user: User = Depends(get_current_active_user),
    service: NotificationService = Depends(get_notification_service)
) -> ActionResponse:
    if not await service.unregister_device_token(current_user, token):
        raise NotFoundError("Device token")
    return ActionResponse(message="Push token unregistered")


# Single notification

@router.patch(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark notification read",
    responses=get_crud_error_responses()
)
async def mark_read(
    notification_id: UUID = Path(..., description="Notification ID"),
    current_user: User = Depends(get_current_active_user),
    service: NotificationService = Depends(get_notification_service)
) -> NotificationResponse:
    notification = await service.mark_read(notification_id, current_user)
    return NotificationResponse.model_validate(notification.to_dict())


@router.get(
    "/{notification_id}/deliveries",
    response_model=List[DeliveryResponse],
    status_code=status.HTTP_200_OK,
    summary="Delivery log",
    description="Per-channel routing decision and delivery outcome"
)
async def get_deliveries(
    notification_id: UUID = Path(..., description="Notification ID"),
    current_user: User = Depends(get_current_active_user),
    service: NotificationService = Depends(get_notification_service)
) -> List[DeliveryResponse]:
    deliveries = await service.get_deliveries(notification_id, current_user)
    return [DeliveryResponse.model_validate(delivery.to_dict()) for delivery in deliveries]


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete notification",
    responses=get_crud_error_responses()
)
async def delete_notification(
    notification_id: UUID = Path(..., description="Notification ID"),
    current_user: User = Depends(get_current_active_user),
    service: NotificationService = Depends(get_notification_service)
) -> None:
    await service.delete_notification(notification_id, current_user)
