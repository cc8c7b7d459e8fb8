"""
Pydantic schemas for request/response validation.
"""

# Shared schemas
from .common import PaginatedResponse, ActionResponse

# Authentication schemas
from .auth import (
    LoginRequest,
    RefreshTokenRequest,
    LogoutRequest,
    AccessTokenResponse,
    CurrentUserResponse,
    LoginResponse,
    TokenValidationResponse
)

# User schemas
from .user import (
    UserSettings,
    UserSettingsUpdate,
    UserCreate,
    UserUpdate,
    UserResponse,
    UserListResponse,
    UserStatusUpdate,
    PasswordChangeRequest
)

# Property schemas
from .property import (
    PropertyBase,
    PropertyCreate,
    PropertyUpdate,
    PropertyResponse,
    PropertyListResponse,
    PropertySearchFilters,
    PropertyVerificationRequest,
    LandlordStatsResponse
)

# Rental workflow schemas
from .rent_request import (
    RentRequestCreate,
    RentRequestResponseAction,
    RentRequestResponse,
    RentRequestListResponse,
    ApplicationCreate,
    ApplicationReview,
    ApplicationResponse,
    ApplicationListResponse
)
from .viewing import (
    TimeSlotCreate,
    TimeSlotBatchCreate,
    TimeSlotResponse,
    ViewingRequestCreate,
    ViewingRejectRequest,
    ViewingCancelRequest,
    ViewingRequestResponse,
    ViewingRequestListResponse
)
from .contract import (
    ContractCreate,
    ContractAcceptRequest,
    ContractChangeRequest,
    ContractChangesResponse,
    ContractTerminateRequest,
    ContractExtendRequest,
    ContractResponse,
    ContractListResponse
)
from .transaction import (
    TransactionCreate,
    TransactionResponse,
    FinancialSummary,
    TransactionListResponse
)
from .maintenance import (
    MaintenanceCreate,
    MaintenanceSchedule,
    MaintenanceComplete,
    MaintenanceResponse,
    MaintenanceListResponse
)

# Messaging and notification schemas
from .message import (
    MessageCreate,
    MessageResponse,
    ConversationMessagesResponse,
    ConversationListResponse,
    UnreadMessagesResponse
)
from .notification import (
    NotificationResponse,
    NotificationListResponse,
    UnreadCountResponse,
    MarkAllReadResponse,
    NotificationPreferencesResponse,
    NotificationPreferencesUpdate,
    CategorySettingUpdate,
    ContactsUpdate,
    DeviceTokenRegister,
    DeviceTokenResponse
)

__all__ = [
    # Shared
    "PaginatedResponse",
    "ActionResponse",

    # Authentication
    "LoginRequest",
    "RefreshTokenRequest",
    "LogoutRequest",
    "AccessTokenResponse",
    "CurrentUserResponse",
    "LoginResponse",
    "TokenValidationResponse",

    # User
    "UserSettings",
    "UserSettingsUpdate",
    "UserCreate",
    "UserUpdate",
    "UserResponse",
    "UserListResponse",
    "UserStatusUpdate",
    "PasswordChangeRequest",

    # Property
    "PropertyBase",
    "PropertyCreate",
    "PropertyUpdate",
    "PropertyResponse",
    "PropertyListResponse",
    "PropertySearchFilters",
    "PropertyVerificationRequest",
    "LandlordStatsResponse",

    # Rental workflow
    "RentRequestCreate",
    "RentRequestResponseAction",
    "RentRequestResponse",
    "RentRequestListResponse",
    "ApplicationCreate",
    "ApplicationReview",
    "ApplicationResponse",
    "ApplicationListResponse",
    "TimeSlotCreate",
    "TimeSlotBatchCreate",
    "TimeSlotResponse",
    "ViewingRequestCreate",
    "ViewingRejectRequest",
    "ViewingCancelRequest",
    "ViewingRequestResponse",
    "ViewingRequestListResponse",
    "ContractCreate",
    "ContractAcceptRequest",
    "ContractChangeRequest",
    "ContractChangesResponse",
    "ContractTerminateRequest",
    "ContractExtendRequest",
    "ContractResponse",
    "ContractListResponse",
    "TransactionCreate",
    "TransactionResponse",
    "FinancialSummary",
    "TransactionListResponse",
    "MaintenanceCreate",
    "MaintenanceSchedule",
    "MaintenanceComplete",
    "MaintenanceResponse",
    "MaintenanceListResponse",

    # Messaging and notifications
    "MessageCreate",
    "MessageResponse",
    "ConversationMessagesResponse",
    "ConversationListResponse",
    "UnreadMessagesResponse",
    "NotificationResponse",
    "NotificationListResponse",
    "UnreadCountResponse",
    "MarkAllReadResponse",
    "NotificationPreferencesResponse",
    "NotificationPreferencesUpdate",
    "CategorySettingUpdate",
    "ContactsUpdate",
    "DeviceTokenRegister",
    "DeviceTokenResponse"
]
