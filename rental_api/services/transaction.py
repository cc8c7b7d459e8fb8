"""
Transaction service: landlord charges, renter payments, financial summaries,
overdue marking and payment reminders.
"""

from typing import Optional, List, Tuple, Dict, Any
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from rental_api.config import settings
from rental_api.repositories.transaction import TransactionRepository
from rental_api.repositories.property import PropertyRepository
from rental_api.repositories.user import UserRepository
from rental_api.models.transaction import Transaction, TransactionStatus, TransactionType
from rental_api.models.notification import NotificationType, NotificationPriority
from rental_api.models.user import User, UserRole
from rental_api.schemas.transaction import TransactionCreate
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
    InvalidStatusTransitionError,
    InsufficientPermissionsError,
)
from rental_api.utils.timeutils import utcnow, today_utc
import uuid
import logging

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = (TransactionStatus.PENDING, TransactionStatus.OVERDUE)


def format_amount(amount: Decimal, currency: str) -> str:
    return f"{amount:.2f} {currency}"


class TransactionService:
    """
    Charges move pending -> paid, or pending -> overdue -> paid.
    """

    def __init__(self, db_session: AsyncSession, dispatcher: Optional[ChannelDispatcher] = None):
        self.db = db_session
        self.transaction_repo = TransactionRepository(db_session)
        self.property_repo = PropertyRepository(db_session)
        self.user_repo = UserRepository(db_session)
        self.notifications = NotificationService(db_session, dispatcher)

    async def create_charge(self, charge_data: TransactionCreate, current_user: User) -> Transaction:
        """
        Record a charge against a renter for an owned property.

        Args:
            charge_data: Property, renter, amount, type and due date
            current_user: Landlord raising the charge

        Returns:
            Created pending transaction

        Raises:
            PropertyOwnershipError: If the landlord doesn't own the property
            ValidationError: If the renter is unknown
        """
        try:
            if not current_user.is_landlord:
                raise InsufficientPermissionsError("create charges")

            property_id = parse_uuid(charge_data.property_id, "property_id")
            renter_id = parse_uuid(charge_data.renter_id, "renter_id")

            property_obj = await self.property_repo.get_by_id(property_id)
            if not property_obj:
                raise PropertyNotFoundError(str(property_id))
            if property_obj.owner_id != current_user.id:
                raise PropertyOwnershipError("You can only raise charges for your own properties")

            renter = await self.user_repo.get_by_id(renter_id)
            if not renter or renter.role != UserRole.RENTER:
                raise ValidationError(
                    "Renter not found",
                    field_errors=[{"field": "renter_id", "message": "Must reference a renter account"}]
                )

            currency = charge_data.currency or property_obj.currency
            transaction = await self.transaction_repo.create({
                "property_id": property_id,
                "renter_id": renter_id,
                "landlord_id": current_user.id,
                "amount": charge_data.amount,
                "currency": currency,
                "type": charge_data.type,
                "status": TransactionStatus.PENDING,
                "due_date": charge_data.due_date,
                "description": charge_data.description,
            })

            await self.notifications.notify(
                renter_id,
                NotificationType.CHARGE_CREATED,
                f"New {charge_data.type.value} charge",
                f"A {charge_data.type.value} charge of {format_amount(charge_data.amount, currency)} "
                f"for {property_obj.title} is due on {charge_data.due_date.isoformat()}.",
                data=self._payload(transaction),
            )

            logger.info(f"Charge {transaction.id} of {charge_data.amount} {currency} created for renter {renter_id}")
            return transaction
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to create charge for landlord {current_user.id}: {e}")
            raise BadRequestError(f"Failed to create charge: {str(e)}")

    async def get_transaction(self, transaction_id: uuid.UUID, current_user: User) -> Transaction:
        transaction = await self.transaction_repo.get_by_id(transaction_id)
        if not transaction:
            raise NotFoundError("Transaction", str(transaction_id))
        if not current_user.is_admin and current_user.id not in (transaction.renter_id, transaction.landlord_id):
            raise ForbiddenError("You can only view your own transactions")
        return transaction

    async def pay(self, transaction_id: uuid.UUID, current_user: User) -> Transaction:
        """
        Settle a pending or overdue charge.

        Raises:
            ForbiddenError: If the user is not the renter who owes the charge
            InvalidStatusTransitionError: If the charge is already paid
        """
        transaction = await self.transaction_repo.get_by_id(transaction_id)
        if not transaction:
            raise NotFoundError("Transaction", str(transaction_id))
        if transaction.renter_id != current_user.id:
            raise ForbiddenError("Only the renter who owes this charge can pay it")
        if transaction.status not in PAYABLE_STATUSES:
            raise InvalidStatusTransitionError("transaction", transaction.status.value, TransactionStatus.PAID.value)

        transaction.status = TransactionStatus.PAID
        transaction.paid_date = utcnow()
        transaction = await self.transaction_repo.save(transaction)

        title = await self._property_title(transaction.property_id)
        await self.notifications.notify(
            transaction.landlord_id,
            NotificationType.PAYMENT_RECEIVED,
            "Payment received",
            f"{transaction.type.value.capitalize()} payment of "
            f"{format_amount(transaction.amount, transaction.currency)} received for {title}.",
            data=self._payload(transaction),
        )

        logger.info(f"Transaction {transaction_id} paid by renter {current_user.id}")
        return transaction

    async def list_transactions(
        self,
        current_user: User,
        status: Optional[TransactionStatus] = None,
        type: Optional[TransactionType] = None,
        property_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Transaction], int]:
        skip = (page - 1) * page_size
        renter_id, landlord_id = self._scope(current_user)
        return await self.transaction_repo.list_transactions(
            renter_id=renter_id,
            landlord_id=landlord_id,
            property_id=property_id,
            status=status,
            type=type,
            skip=skip,
            limit=page_size,
        )

    async def get_summary(self, current_user: User, property_id: Optional[uuid.UUID] = None) -> Dict[str, Any]:
        """
        Paid, pending and overdue totals for the user's charges.

        Returns:
            Dict matching FinancialSummary
        """
        renter_id, landlord_id = self._scope(current_user)
        totals = await self.transaction_repo.totals_by_status(
            renter_id=renter_id,
            landlord_id=landlord_id,
            property_id=property_id,
        )

        summary: Dict[str, Any] = {}
        for status in TransactionStatus:
            amount, count = totals.get(status, (Decimal("0"), 0))
            summary[f"total_{status.value}"] = float(amount)
            summary[f"{status.value}_count"] = count
        return summary

    # Scheduled jobs

    async def mark_overdue(self, now: Optional[datetime] = None) -> int:
        """
        Flag pending charges past their due date as overdue and tell the renter.

        Returns:
            Number of charges marked overdue
        """
        today = today_utc(now)
        transactions = await self.transaction_repo.get_past_due(today)
        marked = 0

        for transaction in transactions:
            transaction_id = transaction.id
            try:
                transaction.status = TransactionStatus.OVERDUE
                transaction = await self.transaction_repo.save(transaction)

                await self.notifications.notify(
                    transaction.renter_id,
                    NotificationType.PAYMENT_OVERDUE,
                    "Payment overdue",
                    f"Your {transaction.type.value} payment of "
                    f"{format_amount(transaction.amount, transaction.currency)} "
                    f"was due on {transaction.due_date.isoformat()}.",
                    data=self._payload(transaction),
                    priority=NotificationPriority.HIGH,
                    now=now,
                )
                marked += 1
            except Exception as e:
                logger.error(f"Failed to mark transaction {transaction_id} overdue: {e}")

        if marked:
            logger.info(f"Marked {marked} transactions overdue")
        return marked

    async def send_payment_reminders(self, now: Optional[datetime] = None) -> int:
        """
        Remind renters of pending charges due within the reminder window, once per charge.

        Returns:
            Number of reminders sent
        """
        today = today_utc(now)
        until = today + timedelta(days=settings.payment_reminder_days)
        transactions = await self.transaction_repo.get_due_for_reminder(today, until)
        sent = 0

        for transaction in transactions:
            transaction_id = transaction.id
            try:
                days_left = (transaction.due_date - today).days
                label = "Rent" if transaction.type == TransactionType.RENT else transaction.type.value.capitalize()
                due_text = "today" if days_left == 0 else f"in {days_left} days"

                await self.notifications.notify(
                    transaction.renter_id,
                    NotificationType.PAYMENT_REMINDER,
                    f"{label} Payment Reminder",
                    f"Your {transaction.type.value} payment of "
                    f"{format_amount(transaction.amount, transaction.currency)} is due {due_text}",
                    data=self._payload(transaction),
                    now=now,
                )

                transaction.reminder_sent_at = now or utcnow()
                await self.transaction_repo.save(transaction)
                sent += 1
            except Exception as e:
                logger.error(f"Failed to send payment reminder for transaction {transaction_id}: {e}")

        if sent:
            logger.info(f"Sent {sent} payment reminders")
        return sent

    @staticmethod
    def _scope(current_user: User) -> Tuple[Optional[uuid.UUID], Optional[uuid.UUID]]:
        if current_user.is_admin:
            return None, None
        if current_user.is_landlord:
            return None, current_user.id
        return current_user.id, None

    @staticmethod
    def _payload(transaction: Transaction) -> Dict[str, Any]:
        return {
            "transaction_id": str(transaction.id),
            "property_id": str(transaction.property_id),
            "amount": float(transaction.amount),
            "currency": transaction.currency,
            "due_date": transaction.due_date.isoformat(),
        }

    async def _property_title(self, property_id: uuid.UUID) -> str:
        property_obj = await self.property_repo.get_by_id(property_id)
        return property_obj.title if property_obj else "your property"
