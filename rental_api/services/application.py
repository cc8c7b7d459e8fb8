"""
Rental application service.
"""

from typing import Optional, List, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from rental_api.repositories.rent_request import ApplicationRepository
from rental_api.repositories.property import PropertyRepository
from rental_api.models.application import Application, ApplicationStatus
from rental_api.models.property import PropertyStatus
from rental_api.models.notification import NotificationType
from rental_api.models.user import User
from rental_api.schemas.rent_request import ApplicationCreate
from rental_api.services.channels import ChannelDispatcher
from rental_api.services.notification import NotificationService
from rental_api.services.rent_request import parse_uuid
from rental_api.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    BadRequestError,
    PropertyNotFoundError,
    PropertyUnavailableError,
    DuplicateResourceError,
    InvalidStatusTransitionError,
    InsufficientPermissionsError,
)
from rental_api.utils.timeutils import utcnow
import uuid
import logging

logger = logging.getLogger(__name__)


class ApplicationService:
    """Applications move from pending to approved or rejected."""

    def __init__(self, db_session: AsyncSession, dispatcher: Optional[ChannelDispatcher] = None):
        self.db = db_session
        self.application_repo = ApplicationRepository(db_session)
        self.property_repo = PropertyRepository(db_session)
        self.notifications = NotificationService(db_session, dispatcher)

    async def submit(self, application_data: ApplicationCreate, current_user: User) -> Application:
        """
        Apply to an available listing.

        Raises:
            PropertyUnavailableError: If the listing is not available
            DuplicateResourceError: If the renter already has a pending application for it
        """
        try:
            if not current_user.is_renter:
                raise InsufficientPermissionsError("apply to properties")

            property_id = parse_uuid(application_data.property_id, "property_id")
            property_obj = await self.property_repo.get_by_id(property_id)
            if not property_obj:
                raise PropertyNotFoundError(str(property_id))

            if property_obj.status != PropertyStatus.AVAILABLE:
                raise PropertyUnavailableError("Property is not accepting applications")

            if await self.application_repo.get_pending_for(current_user.id, property_id):
                raise DuplicateResourceError("Application", str(property_id))

            application = await self.application_repo.create({
                "applicant_id": current_user.id,
                "property_id": property_id,
                "landlord_id": property_obj.owner_id,
                "message": application_data.message,
                "status": ApplicationStatus.PENDING,
            })

            await self.notifications.notify(
                property_obj.owner_id,
                NotificationType.APPLICATION_SUBMITTED,
                "New application",
                f"{current_user.full_name} applied for {property_obj.title}.",
                data={"application_id": str(application.id), "property_id": str(property_id)},
            )

            logger.info(f"Application {application.id} submitted by {current_user.id}")
            return application
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to submit application for user {current_user.id}: {e}")
            raise BadRequestError(f"Failed to submit application: {str(e)}")

    async def get_application(self, application_id: uuid.UUID, current_user: User) -> Application:
        application = await self.application_repo.get_by_id(application_id)
        if not application:
            raise NotFoundError("Application", str(application_id))
        if not current_user.is_admin and current_user.id not in (application.applicant_id, application.landlord_id):
            raise ForbiddenError("You can only view your own applications")
        return application

    async def list_applications(
        self,
        current_user: User,
        status: Optional[ApplicationStatus] = None,
        property_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Application], int]:
        skip = (page - 1) * page_size
        return await self.application_repo.list_applications(
            applicant_id=current_user.id if current_user.is_renter else None,
            landlord_id=current_user.id if current_user.is_landlord else None,
            property_id=property_id,
            status=status,
            skip=skip,
            limit=page_size,
        )

    async def review(self, application_id: uuid.UUID, status: ApplicationStatus, current_user: User) -> Application:
        """
        Approve or reject a pending application and notify the applicant.

        Raises:
            ForbiddenError: If the user is not the landlord of the property
            InvalidStatusTransitionError: If the application was already reviewed
        """
        application = await self.application_repo.get_by_id(application_id)
        if not application:
            raise NotFoundError("Application", str(application_id))

        if application.landlord_id != current_user.id:
            raise ForbiddenError("Only the landlord can review this application")

        if application.status != ApplicationStatus.PENDING:
            raise InvalidStatusTransitionError("application", application.status.value, status.value)

        application.status = status
        application.reviewed_at = utcnow()
        application = await self.application_repo.save(application)

        property_obj = await self.property_repo.get_by_id(application.property_id)
        title = property_obj.title if property_obj else "the property"
        await self.notifications.notify(
            application.applicant_id,
            NotificationType.APPLICATION_UPDATE,
            "Application Status Update",
            f"Your application for {title} is {status.value}",
            data={"application_id": str(application.id), "property_id": str(application.property_id)},
        )

        logger.info(f"Application {application_id} {status.value} by landlord {current_user.id}")
        return application
