"""
Database models for the Rental Marketplace API.
"""

from rental_api.models.user import User, UserRole, ThemePreference
from rental_api.models.property import Property, PropertyStatus, SavedProperty
from rental_api.models.rent_request import RentRequest, RentRequestStatus
from rental_api.models.application import Application, ApplicationStatus
from rental_api.models.viewing import ViewingTimeSlot, ViewingRequest, ViewingStatus
from rental_api.models.contract import RentalContract, ContractStatus
from rental_api.models.transaction import Transaction, TransactionType, TransactionStatus
from rental_api.models.maintenance import MaintenanceRequest, MaintenanceStatus, MaintenancePriority
from rental_api.models.message import Message
from rental_api.models.notification import (
    Notification,
    NotificationPreferences,
    DeviceToken,
    NotificationDelivery,
    NotificationCategory,
    NotificationChannel,
    NotificationPriority,
    NotificationType,
    DigestFrequency,
    DeliveryStatus,
)

# Export all models for easy importing
__all__ = [
    "User",
    "UserRole",
    "ThemePreference",
    "Property",
    "PropertyStatus",
    "SavedProperty",
    "RentRequest",
    "RentRequestStatus",
    "Application",
    "ApplicationStatus",
    "ViewingTimeSlot",
    "ViewingRequest",
    "ViewingStatus",
    "RentalContract",
    "ContractStatus",
    "Transaction",
    "TransactionType",
    "TransactionStatus",
    "MaintenanceRequest",
    "MaintenanceStatus",
    "MaintenancePriority",
    "Message",
    "Notification",
    "NotificationPreferences",
    "DeviceToken",
    "NotificationDelivery",
    "NotificationCategory",
    "NotificationChannel",
    "NotificationPriority",
    "NotificationType",
    "DigestFrequency",
    "DeliveryStatus",
]
