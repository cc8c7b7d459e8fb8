"""
Rental contract service covering drafting, signing, change negotiation,
termination, extension and the scheduled expiry and reminder jobs.
"""

from typing import Optional, List, Tuple
from datetime import date, datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from rental_api.config import settings
from rental_api.repositories.contract import ContractRepository
from rental_api.repositories.property import PropertyRepository
from rental_api.repositories.rent_request import RentRequestRepository
from rental_api.repositories.user import UserRepository
from rental_api.models.contract import RentalContract, ContractStatus, SIGNABLE_STATUSES
from rental_api.models.property import PropertyStatus
from rental_api.models.rent_request import RentRequestStatus
from rental_api.models.notification import NotificationType, NotificationPriority
from rental_api.models.user import User, UserRole
from rental_api.schemas.contract import ContractCreate
from rental_api.services.channels import ChannelDispatcher
from rental_api.services.notification import NotificationService
from rental_api.services.rent_request import parse_uuid
from rental_api.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    BadRequestError,
    PropertyNotFoundError,
    PropertyOwnershipError,
    PropertyUnavailableError,
    InvalidStatusTransitionError,
    InsufficientPermissionsError,
)
from rental_api.utils.timeutils import utcnow, today_utc
import uuid
import logging

logger = logging.getLogger(__name__)


class ContractService:
    """
    Lease lifecycle:

        pending -> active | rejected | changes_requested
        changes_requested -> changes_accepted | changes_rejected
        changes_accepted, changes_rejected -> active | rejected | changes_requested
        active -> terminated | expired
    """

    def __init__(self, db_session: AsyncSession, dispatcher: Optional[ChannelDispatcher] = None):
        self.db = db_session
        self.contract_repo = ContractRepository(db_session)
        self.property_repo = PropertyRepository(db_session)
        self.request_repo = RentRequestRepository(db_session)
        self.user_repo = UserRepository(db_session)
        self.notifications = NotificationService(db_session, dispatcher)

    async def create_contract(self, contract_data: ContractCreate, current_user: User) -> RentalContract:
        """
        Draft a contract for an owned property and a renter.

        Args:
            contract_data: Parties, dates, rent, deposit and terms
            current_user: Landlord of the property

        Returns:
            Created contract in pending status

        Raises:
            PropertyOwnershipError: If the landlord doesn't own the property
            PropertyUnavailableError: If the property already has an active contract
            ValidationError: If the renter is unknown or not a renter
        """
        try:
            if not current_user.is_landlord:
                raise InsufficientPermissionsError("create contracts")

            property_id = parse_uuid(contract_data.property_id, "property_id")
            renter_id = parse_uuid(contract_data.renter_id, "renter_id")
            rent_request_id = None
            if contract_data.rent_request_id:
                rent_request_id = parse_uuid(contract_data.rent_request_id, "rent_request_id")

            property_obj = await self.property_repo.get_by_id(property_id)
            if not property_obj:
                raise PropertyNotFoundError(str(property_id))

            if property_obj.owner_id != current_user.id:
                raise PropertyOwnershipError("You can only create contracts for your own properties")

            renter = await self.user_repo.get_by_id(renter_id)
            if not renter or renter.role != UserRole.RENTER:
                raise ValidationError(
                    "Renter not found",
                    field_errors=[{"field": "renter_id", "message": "Must reference a renter account"}]
                )

            if await self.contract_repo.get_active_for_property(property_id):
                raise PropertyUnavailableError("Property already has an active contract")

            contract = await self.contract_repo.create({
                "property_id": property_id,
                "renter_id": renter_id,
                "landlord_id": current_user.id,
                "rent_request_id": rent_request_id,
                "start_date": contract_data.start_date,
                "end_date": contract_data.end_date,
                "monthly_rent": contract_data.monthly_rent,
                "security_deposit": contract_data.security_deposit,
                "currency": contract_data.currency,
                "terms": contract_data.terms,
                "document_url": contract_data.document_url,
                "status": ContractStatus.PENDING,
            })

            await self._notify(
                contract, renter_id,
                "New rental contract",
                f"A rental contract for {property_obj.title} is ready for your review.",
            )

            logger.info(f"Contract {contract.id} drafted by landlord {current_user.id} for renter {renter_id}")
            return contract
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create contract for landlord {current_user.id}: {e}")
            raise BadRequestError(f"Failed to create contract: {str(e)}")

    async def get_contract(self, contract_id: uuid.UUID, current_user: User) -> RentalContract:
        contract = await self.contract_repo.get_by_id(contract_id)
        if not contract:
            raise NotFoundError("Contract", str(contract_id))
        if not current_user.is_admin and current_user.id not in (contract.renter_id, contract.landlord_id):
            raise ForbiddenError("You can only view your own contracts")
        return contract

    async def list_contracts(
        self,
        current_user: User,
        status: Optional[ContractStatus] = None,
        property_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[RentalContract], int]:
        skip = (page - 1) * page_size
        return await self.contract_repo.list_contracts(
            renter_id=current_user.id if current_user.is_renter else None,
            landlord_id=current_user.id if current_user.is_landlord else None,
            property_id=property_id,
            status=status,
            skip=skip,
            limit=page_size,
        )

    # Renter actions

    async def accept(self, contract_id: uuid.UUID, current_user: User, signature: Optional[str] = None) -> RentalContract:
        """
        Sign the contract, making it active.

        The property becomes rented and the originating rent request completed.

        Raises:
            InvalidStatusTransitionError: If the contract is not awaiting signature
            PropertyUnavailableError: If another contract became active meanwhile
        """
        contract = await self._renter_contract(contract_id, current_user)
        self._require_status(contract, SIGNABLE_STATUSES, ContractStatus.ACTIVE)

        active = await self.contract_repo.get_active_for_property(contract.property_id)
        if active and active.id != contract.id:
            raise PropertyUnavailableError("Property already has an active contract")

        contract.status = ContractStatus.ACTIVE
        contract.accepted_at = utcnow()
        contract.signature = signature
        contract = await self.contract_repo.save(contract)

        await self.property_repo.update_status(contract.property_id, PropertyStatus.RENTED)
        if contract.rent_request_id:
            await self.request_repo.update(contract.rent_request_id, {"status": RentRequestStatus.COMPLETED})

        await self._notify(
            contract, contract.landlord_id,
            "Contract signed",
            f"{current_user.full_name} signed the rental contract for {await self._title(contract)}.",
        )

        logger.info(f"Contract {contract_id} signed by renter {current_user.id}")
        return contract

    async def reject(self, contract_id: uuid.UUID, current_user: User) -> RentalContract:
        contract = await self._renter_contract(contract_id, current_user)
        self._require_status(contract, SIGNABLE_STATUSES, ContractStatus.REJECTED)

        contract.status = ContractStatus.REJECTED
        contract.rejected_at = utcnow()
        contract = await self.contract_repo.save(contract)

        await self._notify(
            contract, contract.landlord_id,
            "Contract rejected",
            f"{current_user.full_name} rejected the rental contract for {await self._title(contract)}.",
        )

        logger.info(f"Contract {contract_id} rejected by renter {current_user.id}")
        return contract

    async def request_changes(self, contract_id: uuid.UUID, changes: str, current_user: User) -> RentalContract:
        contract = await self._renter_contract(contract_id, current_user)
        self._require_status(contract, SIGNABLE_STATUSES, ContractStatus.CHANGES_REQUESTED)

        if not changes or not changes.strip():
            raise ValidationError("Requested changes cannot be empty")

        contract.status = ContractStatus.CHANGES_REQUESTED
        contract.requested_changes = changes.strip()
        contract.requested_changes_at = utcnow()
        contract.changes_response = None
        contract = await self.contract_repo.save(contract)

        await self._notify(
            contract, contract.landlord_id,
            "Contract changes requested",
            f"{current_user.full_name} requested changes to the contract for {await self._title(contract)}.",
        )

        logger.info(f"Changes requested on contract {contract_id}")
        return contract

    # Landlord actions

    async def respond_to_changes(
        self,
        contract_id: uuid.UUID,
        accept: bool,
        current_user: User,
        response: Optional[str] = None,
        terms: Optional[str] = None
    ) -> RentalContract:
        """
        Accept or reject the renter's requested changes.

        Args:
            contract_id: UUID of the contract
            accept: Whether the changes are accepted
            current_user: Landlord
            response: Optional note for the renter
            terms: Revised terms, applied only when accepting

        Returns:
            Updated contract in changes_accepted or changes_rejected status
        """
        contract = await self._landlord_contract(contract_id, current_user)
        target = ContractStatus.CHANGES_ACCEPTED if accept else ContractStatus.CHANGES_REJECTED
        self._require_status(contract, (ContractStatus.CHANGES_REQUESTED,), target)

        contract.status = target
        contract.changes_response = response
        if accept and terms:
            contract.terms = terms
        contract = await self.contract_repo.save(contract)

        verdict = "accepted" if accept else "rejected"
        await self._notify(
            contract, contract.renter_id,
            f"Contract changes {verdict}",
            f"Your requested changes to the contract for {await self._title(contract)} were {verdict}.",
        )

        logger.info(f"Changes on contract {contract_id} {verdict} by landlord {current_user.id}")
        return contract

    async def extend(self, contract_id: uuid.UUID, new_end_date: date, current_user: User) -> RentalContract:
        contract = await self._landlord_contract(contract_id, current_user)
        if contract.status != ContractStatus.ACTIVE:
            raise InvalidStatusTransitionError("contract", contract.status.value, "extended")

        if new_end_date <= contract.end_date:
            raise ValidationError(
                "New end date must be after the current end date",
                field_errors=[{"field": "new_end_date", "message": f"Must be after {contract.end_date.isoformat()}"}]
            )

        contract.end_date = new_end_date
        contract.expiry_reminder_sent_at = None
        contract = await self.contract_repo.save(contract)

        await self._notify(
            contract, contract.renter_id,
            "Lease extended",
            f"Your lease for {await self._title(contract)} now ends on {new_end_date.isoformat()}.",
        )

        logger.info(f"Contract {contract_id} extended to {new_end_date}")
        return contract

    # Either party

    async def terminate(self, contract_id: uuid.UUID, current_user: User, reason: Optional[str] = None) -> RentalContract:
        """
        End an active contract early. The property becomes available again.
        """
        contract = await self.contract_repo.get_by_id(contract_id)
        if not contract:
            raise NotFoundError("Contract", str(contract_id))
        if current_user.id not in (contract.renter_id, contract.landlord_id):
            raise ForbiddenError("Only the parties to a contract can terminate it")

        self._require_status(contract, (ContractStatus.ACTIVE,), ContractStatus.TERMINATED)

        contract.status = ContractStatus.TERMINATED
        contract.terminated_at = utcnow()
        contract.termination_reason = reason
        contract = await self.contract_repo.save(contract)

        await self.property_repo.update_status(contract.property_id, PropertyStatus.AVAILABLE)

        counterparty = contract.landlord_id if current_user.id == contract.renter_id else contract.renter_id
        message = f"The contract for {await self._title(contract)} was terminated by {current_user.full_name}."
        if reason:
            message += f" Reason: {reason}"
        await self._notify(contract, counterparty, "Contract terminated", message, NotificationPriority.HIGH)

        logger.info(f"Contract {contract_id} terminated by {current_user.id}")
        return contract

    # Scheduled jobs

    async def expire_contracts(self, now: Optional[datetime] = None) -> int:
        """
        Expire active contracts whose end date has passed and free their properties.

        Returns:
            Number of contracts expired
        """
        today = today_utc(now)
        contracts = await self.contract_repo.get_past_end(today)
        expired = 0

        for contract in contracts:
            contract_id = contract.id
            try:
                contract.status = ContractStatus.EXPIRED
                contract = await self.contract_repo.save(contract)
                await self.property_repo.update_status(contract.property_id, PropertyStatus.AVAILABLE)

                title = await self._title(contract)
                for party in (contract.renter_id, contract.landlord_id):
                    await self._notify(contract, party, "Lease expired", f"The lease for {title} has expired.")
                expired += 1
            except Exception as e:
                logger.error(f"Failed to expire contract {contract_id}: {e}")

        if expired:
            logger.info(f"Expired {expired} contracts")
        return expired

    async def send_lease_reminders(self, now: Optional[datetime] = None) -> int:
        """
        Remind both parties once per contract that the lease ends within the reminder window.

        Returns:
            Number of contracts reminded
        """
        today = today_utc(now)
        until = today + timedelta(days=settings.lease_reminder_days)
        contracts = await self.contract_repo.get_expiring(until, only_unreminded=True)
        reminded = 0

        for contract in contracts:
            contract_id = contract.id
            try:
                days_left = (contract.end_date - today).days
                if days_left < 0:
                    continue

                title = await self._title(contract)
                for party in (contract.renter_id, contract.landlord_id):
                    await self.notifications.notify(
                        party,
                        NotificationType.LEASE_REMINDER,
                        "Lease Expiry Reminder",
                        f"Your lease for {title} expires in {days_left} days",
                        data={"contract_id": str(contract_id), "property_id": str(contract.property_id)},
                        now=now,
                    )

                contract.expiry_reminder_sent_at = now or utcnow()
                await self.contract_repo.save(contract)
                reminded += 1
            except Exception as e:
                logger.error(f"Failed to send lease reminder for contract {contract_id}: {e}")

        if reminded:
            logger.info(f"Sent lease reminders for {reminded} contracts")
        return reminded

    # Helpers

    async def _renter_contract(self, contract_id: uuid.UUID, current_user: User) -> RentalContract:
        contract = await self.contract_repo.get_by_id(contract_id)
        if not contract:
            raise NotFoundError("Contract", str(contract_id))
        if contract.renter_id != current_user.id:
            raise ForbiddenError("Only the renter can perform this action")
        return contract

    async def _landlord_contract(self, contract_id: uuid.UUID, current_user: User) -> RentalContract:
        contract = await self.contract_repo.get_by_id(contract_id)
        if not contract:
            raise NotFoundError("Contract", str(contract_id))
        if contract.landlord_id != current_user.id:
            raise ForbiddenError("Only the landlord can perform this action")
        return contract

    @staticmethod
    def _require_status(contract: RentalContract, allowed: tuple, target: ContractStatus) -> None:
        if contract.status not in allowed:
            raise InvalidStatusTransitionError("contract", contract.status.value, target.value)

    async def _title(self, contract: RentalContract) -> str:
        property_obj = await self.property_repo.get_by_id(contract.property_id)
        return property_obj.title if property_obj else "the property"

    async def _notify(
        self,
        contract: RentalContract,
        user_id: uuid.UUID,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.NORMAL
    ) -> None:
        await self.notifications.notify(
            user_id,
            NotificationType.CONTRACT_UPDATE,
            title,
            message,
            data={
                "contract_id": str(contract.id),
                "property_id": str(contract.property_id),
                "status": contract.status.value,
            },
            priority=priority,
        )
