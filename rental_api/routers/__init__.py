"""
API route handlers for the Rental Marketplace API.
"""

from .auth import router as auth_router
from .users import router as users_router
from .properties import router as properties_router
from .rent_requests import router as rent_requests_router
from .applications import router as applications_router
from .viewings import router as viewings_router
from .contracts import router as contracts_router
from .transactions import router as transactions_router
from .maintenance import router as maintenance_router
from .messages import router as messages_router
from .notifications import router as notifications_router

__all__ = [
    "auth_router",
    "users_router",
    "properties_router",
    "rent_requests_router",
    "applications_router",
    "viewings_router",
    "contracts_router",
    "transactions_router",
    "maintenance_router",
    "messages_router",
    "notifications_router",
]
