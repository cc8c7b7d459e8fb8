"""
Repository layer for data access operations.
One repository per aggregate, all built on BaseRepository.
"""

from rental_api.repositories.base import BaseRepository
from rental_api.repositories.user import UserRepository
from rental_api.repositories.property import PropertyRepository, PropertySearchFilters, SavedPropertyRepository
from rental_api.repositories.rent_request import RentRequestRepository, ApplicationRepository
from rental_api.repositories.viewing import TimeSlotRepository, ViewingRequestRepository
from rental_api.repositories.contract import ContractRepository
from rental_api.repositories.transaction import TransactionRepository
from rental_api.repositories.maintenance import MaintenanceRepository
from rental_api.repositories.message import MessageRepository
from rental_api.repositories.notification import (
    NotificationRepository,
    NotificationPreferencesRepository,
    DeviceTokenRepository,
    NotificationDeliveryRepository,
)

__all__ = [
    "BaseRepository",
    "UserRepository",
    "PropertyRepository",
    "PropertySearchFilters",
    "SavedPropertyRepository",
    "RentRequestRepository",
    "ApplicationRepository",
    "TimeSlotRepository",
    "ViewingRequestRepository",
    "ContractRepository",
    "TransactionRepository",
    "MaintenanceRepository",
    "MessageRepository",
    "NotificationRepository",
    "NotificationPreferencesRepository",
    "DeviceTokenRepository",
    "NotificationDeliveryRepository",
]
