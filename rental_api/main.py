"""
FastAPI application entry point.
Main application setup and configuration.
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError as PydanticValidationError
import logging

from rental_api.config import settings
from rental_api.database import test_database_connection, close_db_connection
from rental_api.jobs import JobScheduler
from rental_api.routers import (
    auth_router,
    users_router,
    properties_router,
    rent_requests_router,
    applications_router,
    viewings_router,
    contracts_router,
    transactions_router,
    maintenance_router,
    messages_router,
    notifications_router,
)
from rental_api.utils.exceptions import APIException
from rental_api.services.error_handler import ErrorHandlerService
from rental_api.middleware import RequestContextMiddleware

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Checks the database and runs the job scheduler while the app is up.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    db_connected = await test_database_connection()
    if not db_connected:
        logger.error("Failed to connect to database on startup")

    scheduler = None
    if settings.scheduler_enabled and not settings.is_testing:
        scheduler = JobScheduler()
        await scheduler.start()
    app.state.scheduler = scheduler

    yield

    logger.info("Shutting down application")
    if scheduler:
        await scheduler.stop()
    await close_db_connection()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Backend for a rental marketplace connecting landlords and renters.

    ## Features

    * **Listings**: Property CRUD, search, favourites and admin verification
    * **Renting workflow**: Rent requests, applications, viewings and rental contracts
    * **Money**: Rent, deposit and utility charges with payment tracking and reminders
    * **Maintenance**: Issue reporting and scheduling for active leases
    * **Messaging**: Direct conversations between users
    * **Notifications**: In-app, push, email and SMS delivery honouring user preferences,
      quiet hours and email digests

    ## Authentication

    Use `/api/v1/auth/login` to obtain a JWT, then send it as `Authorization: Bearer <token>`.
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Authentication", "description": "Registration, login and token management"},
        {"name": "Users", "description": "Profile, settings and account administration"},
        {"name": "Properties", "description": "Listings, search, favourites and verification"},
        {"name": "Rent Requests", "description": "Renter requests to rent a property"},
        {"name": "Applications", "description": "Rental applications"},
        {"name": "Viewings", "description": "Viewing time slots and viewing requests"},
        {"name": "Contracts", "description": "Rental contract lifecycle"},
        {"name": "Transactions", "description": "Charges, payments and financial summaries"},
        {"name": "Maintenance", "description": "Maintenance requests"},
        {"name": "Messages", "description": "Direct messaging"},
        {"name": "Notifications", "description": "Notification inbox, preferences and push tokens"},
        {"name": "Health", "description": "System health endpoints"},
    ],
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.add_middleware(
    RequestContextMiddleware,
    max_request_size=settings.max_request_size,
    enable_rate_limiting=settings.is_production,
    rate_limit_requests=settings.rate_limit_requests,
    rate_limit_window=settings.rate_limit_window,
)

for router in (
    auth_router,
    users_router,
    properties_router,
    rent_requests_router,
    applications_router,
    viewings_router,
    contracts_router,
    transactions_router,
    maintenance_router,
    messages_router,
    notifications_router,
):
    app.include_router(router, prefix=settings.api_v1_prefix)


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    """Handle custom API exceptions with structured error responses."""
    return ErrorHandlerService.handle_api_exception(exc, request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return ErrorHandlerService.handle_validation_error(exc, request)


@app.exception_handler(PydanticValidationError)
async def pydantic_validation_exception_handler(request: Request, exc: PydanticValidationError):
    return ErrorHandlerService.handle_validation_error(exc, request)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    return ErrorHandlerService.handle_database_error(exc, request)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return ErrorHandlerService.handle_http_exception(exc, request)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions without leaking internals."""
    return ErrorHandlerService.handle_unexpected_error(exc, request)


@app.get("/", tags=["Health"])
async def root():
    """Basic API information."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.environment,
        "status": "healthy",
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json"
        },
        "api_prefix": settings.api_v1_prefix
    }


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check with database connectivity and scheduler state.
    Used by Docker health checks and load balancers.
    """
    db_healthy = await test_database_connection()
    if not db_healthy:
        raise HTTPException(status_code=503, detail="Database connection failed")

    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected",
        "scheduler": "running" if scheduler and scheduler.running else "stopped",
        "notifications_dry_run": settings.notifications_dry_run,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "rental_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
