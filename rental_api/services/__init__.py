"""
Service layer for business logic implementation.
Contains services for accounts, listings, the rental workflow, messaging,
notifications and error handling.
"""

from .auth import AuthService
from .property import PropertyService
from .rent_request import RentRequestService
from .application import ApplicationService
from .viewing import ViewingService
from .contract import ContractService
from .transaction import TransactionService
from .maintenance import MaintenanceService
from .message import MessageService
from .notification import NotificationService
from .error_handler import ErrorHandlerService

__all__ = [
    "AuthService",
    "PropertyService",
    "RentRequestService",
    "ApplicationService",
    "ViewingService",
    "ContractService",
    "TransactionService",
    "MaintenanceService",
    "MessageService",
    "NotificationService",
    "ErrorHandlerService"
]
