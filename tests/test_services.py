"""
Tests for the account, listing and renting workflow services.
Covers auth, properties, rent requests, applications, viewings, contracts,
transactions, maintenance and messaging, including the notifications each step sends.
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from typing import List

from rental_api.models.application import ApplicationStatus
from rental_api.models.contract import ContractStatus
from rental_api.models.maintenance import MaintenanceStatus
from rental_api.models.notification import NotificationChannel, NotificationPriority, NotificationType
from rental_api.models.property import Property, PropertyStatus
from rental_api.models.rent_request import RentRequestStatus
from rental_api.models.transaction import TransactionStatus, TransactionType
from rental_api.models.user import ThemePreference, User, UserRole
from rental_api.models.viewing import ViewingStatus
from rental_api.repositories.property import PropertyRepository
from rental_api.schemas.maintenance import MaintenanceCreate
from rental_api.schemas.message import MessageCreate
from rental_api.schemas.rent_request import ApplicationCreate, RentRequestCreate
from rental_api.schemas.transaction import TransactionCreate
from rental_api.schemas.user import UserCreate, UserSettingsUpdate, UserUpdate
from rental_api.schemas.viewing import TimeSlotCreate, ViewingRequestCreate
from rental_api.services.application import ApplicationService
from rental_api.services.auth import AuthService
from rental_api.services.contract import ContractService
from rental_api.services.maintenance import MaintenanceService
from rental_api.services.message import MessageService
from rental_api.services.notification import NotificationService
from rental_api.services.property import PropertyService
from rental_api.services.rent_request import RentRequestService, add_months
from rental_api.services.transaction import TransactionService
from rental_api.services.viewing import ViewingService
from rental_api.utils.exceptions import (
    ConflictError,
    DuplicateResourceError,
    ForbiddenError,
    InactiveUserError,
    InsufficientPermissionsError,
    InvalidCredentialsError,
    InvalidStatusTransitionError,
    NotFoundError,
    PropertyUnavailableError,
    TimeSlotUnavailableError,
    ValidationError,
)
from rental_api.utils.timeutils import today_utc, utcnow
from tests.conftest import ContractFactory, PropertyFactory, RecordingDispatcher, UserFactory


async def inbox(db_session, user: User) -> List:
    notifications, _ = await NotificationService(db_session).list_notifications(user, page_size=100)
    return notifications


async def inbox_titles(db_session, user: User) -> List[str]:
    return [n.title for n in await inbox(db_session, user)]


class TestAuthService:
    """Test registration and sign-in."""

    @pytest.mark.asyncio
    async def test_register_provisions_notification_preferences(self, db_session, dispatcher):
        service = AuthService(db_session, dispatcher)
        user = await service.register(UserCreate(
            email="Nour@Example.com",
            password="strongpassword1",
            full_name="Nour Saleh",
            role=UserRole.RENTER,
            phone="+962 79 555 1234",
        ))

        assert user.email == "nour@example.com"
        preferences = await NotificationService(db_session).preferences_repo.get_by_user(user.id)
        assert preferences is not None
        assert preferences.email_address == "nour@example.com"
        assert preferences.phone_number == user.phone

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, db_session, renter: User):
        service = AuthService(db_session)
        with pytest.raises(DuplicateResourceError):
            await service.register(UserCreate(
                email=renter.email, password="strongpassword1", full_name="Copy Cat", role=UserRole.RENTER
            ))

    @pytest.mark.asyncio
    async def test_login(self, db_session, renter: User):
        service = AuthService(db_session)
        user, access_token, refresh_token = await service.login(renter.email, "testpassword123")

        assert user.id == renter.id
        assert access_token and refresh_token

        with pytest.raises(InvalidCredentialsError):
            await service.login(renter.email, "wrong-password")

    @pytest.mark.asyncio
    async def test_update_profile(self, db_session, renter: User):
        service = AuthService(db_session)
        user = await service.update_profile(renter, UserUpdate(full_name="Lina K. Khalil", phone="+962 78 000 1111"))

        assert user.full_name == "Lina K. Khalil"
        assert user.phone == "+962780001111"

        with pytest.raises(ValidationError):
            await service.update_profile(renter, UserUpdate())

    @pytest.mark.asyncio
    async def test_change_password(self, db_session, renter: User):
        service = AuthService(db_session)

        with pytest.raises(InvalidCredentialsError):
            await service.change_password(renter, "wrong-password", "newpassword456")
        with pytest.raises(ValidationError):
            await service.change_password(renter, "testpassword123", "testpassword123")

        await service.change_password(renter, "testpassword123", "newpassword456")
        user, _, _ = await service.login(renter.email, "newpassword456")
        assert user.id == renter.id
        with pytest.raises(InvalidCredentialsError):
            await service.login(renter.email, "testpassword123")

    @pytest.mark.asyncio
    async def test_update_settings(self, db_session, renter: User):
        assert (renter.locale, renter.theme, renter.text_size) == ("en", ThemePreference.SYSTEM, 1.0)

        user = await AuthService(db_session).update_settings(
            renter, UserSettingsUpdate(locale="ar", theme=ThemePreference.DARK, text_size=1.4)
        )

        assert user.locale == "ar"
        assert user.theme == ThemePreference.DARK
        assert user.text_size == 1.4

    @pytest.mark.asyncio
    async def test_admin_cannot_deactivate_self(self, db_session, admin: User, renter: User):
        service = AuthService(db_session)

        with pytest.raises(ForbiddenError):
            await service.update_user_status(admin.id, False, admin)
        with pytest.raises(InsufficientPermissionsError):
            await service.update_user_status(admin.id, False, renter)

        deactivated = await service.update_user_status(renter.id, False, admin)
        assert deactivated.is_active is False
        with pytest.raises(InactiveUserError):
            await service.login(renter.email, "testpassword123")


class TestRentRequestService:
    """Test the rent request workflow."""

    @pytest.mark.asyncio
    async def test_create_request_notifies_landlord(
        self, db_session, dispatcher: RecordingDispatcher, renter: User, landlord: User, listing: Property
    ):
        service = RentRequestService(db_session, dispatcher)
        request = await service.create_request(
            RentRequestCreate(property_id=str(listing.id), months=12, message="We are a quiet family."),
            renter,
        )

        assert request.status == RentRequestStatus.PENDING
        assert request.landlord_id == landlord.id
        assert "New rent request" in await inbox_titles(db_session, landlord)
        assert dispatcher.sent(NotificationChannel.EMAIL)[0].recipients == [landlord.email]

    @pytest.mark.asyncio
    async def test_duplicate_pending_request_rejected(self, db_session, renter: User, listing: Property):
        service = RentRequestService(db_session)
        data = RentRequestCreate(property_id=str(listing.id), months=6)
        await service.create_request(data, renter)

        with pytest.raises(DuplicateResourceError):
            await service.create_request(data, renter)

    @pytest.mark.asyncio
    async def test_landlord_cannot_send_request(self, db_session, landlord: User, listing: Property):
        with pytest.raises(InsufficientPermissionsError):
            await RentRequestService(db_session).create_request(
                RentRequestCreate(property_id=str(listing.id), months=6), landlord
            )

    @pytest.mark.asyncio
    async def test_unavailable_property(self, db_session, renter: User, listing: Property):
        await PropertyRepository(db_session).update_status(listing.id, PropertyStatus.RENTED)

        with pytest.raises(PropertyUnavailableError):
            await RentRequestService(db_session).create_request(
                RentRequestCreate(property_id=str(listing.id), months=6), renter
            )

    @pytest.mark.asyncio
    async def test_accept_drafts_contract_and_signing_rents_property(
        self, db_session, dispatcher, renter: User, landlord: User, listing: Property
    ):
        requests = RentRequestService(db_session, dispatcher)
        start = today_utc() + timedelta(days=10)
        request = await requests.create_request(
            RentRequestCreate(property_id=str(listing.id), months=6, desired_start_date=start), renter
        )

        accepted = await requests.respond(request.id, RentRequestStatus.ACCEPTED, landlord, "Welcome!")
        assert accepted.status == RentRequestStatus.ACCEPTED
        assert accepted.contract_id is not None
        assert "Rent request accepted" in await inbox_titles(db_session, renter)

        contracts = ContractService(db_session, dispatcher)
        contract = await contracts.get_contract(accepted.contract_id, renter)
        assert contract.status == ContractStatus.PENDING
        assert contract.start_date == start
        assert contract.end_date == add_months(start, 6)
        assert contract.monthly_rent == Decimal("450.00")

        signed = await contracts.accept(contract.id, renter, signature="Lina Khalil")
        assert signed.status == ContractStatus.ACTIVE

        property_obj = await PropertyRepository(db_session).get_by_id(listing.id)
        assert property_obj.status == PropertyStatus.RENTED
        request = await requests.get_request(request.id, renter)
        assert request.status == RentRequestStatus.COMPLETED
        assert "Contract signed" in await inbox_titles(db_session, landlord)

    @pytest.mark.asyncio
    async def test_reject_request(self, db_session, renter: User, landlord: User, listing: Property):
        service = RentRequestService(db_session)
        request = await service.create_request(RentRequestCreate(property_id=str(listing.id), months=3), renter)

        rejected = await service.respond(request.id, RentRequestStatus.REJECTED, landlord)
        assert rejected.status == RentRequestStatus.REJECTED
        assert rejected.contract_id is None

        notifications = await inbox(db_session, renter)
        assert notifications[0].type == NotificationType.RENT_REJECTED
        assert notifications[0].message.endswith("has been declined.")

        with pytest.raises(InvalidStatusTransitionError):
            await service.respond(request.id, RentRequestStatus.ACCEPTED, landlord)

    @pytest.mark.asyncio
    async def test_only_landlord_responds(
        self, db_session, renter: User, other_renter: User, listing: Property
    ):
        service = RentRequestService(db_session)
        request = await service.create_request(RentRequestCreate(property_id=str(listing.id), months=3), renter)

        with pytest.raises(ForbiddenError):
            await service.respond(request.id, RentRequestStatus.ACCEPTED, other_renter)


class TestPropertyService:
    """Test listing rules outside search."""

    @pytest.mark.asyncio
    async def test_view_counted_for_visitors_only(
        self, db_session, renter: User, landlord: User, listing: Property
    ):
        service = PropertyService(db_session)

        await service.get_property(listing.id, renter)
        await service.get_property(listing.id)
        viewed = await service.get_property(listing.id, landlord)

        assert viewed.views == 2

    @pytest.mark.asyncio
    async def test_save_is_idempotent(self, db_session, renter: User, listing: Property):
        service = PropertyService(db_session)

        await service.save_property(listing.id, renter)
        await service.save_property(listing.id, renter)

        saved, total = await service.list_saved_properties(renter)
        assert total == 1
        assert saved[0].id == listing.id

        assert await service.unsave_property(listing.id, renter) is True
        with pytest.raises(NotFoundError):
            await service.unsave_property(listing.id, renter)

    @pytest.mark.asyncio
    async def test_cannot_delete_under_active_contract(
        self, db_session, landlord: User, listing: Property, active_contract
    ):
        service = PropertyService(db_session)

        with pytest.raises(ConflictError):
            await service.delete_property(listing.id, landlord)
        assert await PropertyRepository(db_session).get_by_id(listing.id) is not None

    @pytest.mark.asyncio
    async def test_landlord_stats(
        self, db_session, renter: User, landlord: User, listing: Property, active_contract
    ):
        await PropertyFactory.create_property(db_session, landlord.id, title="Studio in Abdoun")
        transactions = TransactionService(db_session)
        charge = await transactions.create_charge(
            TransactionCreate(
                property_id=str(listing.id),
                renter_id=str(renter.id),
                amount=Decimal("450.00"),
                type=TransactionType.RENT,
                due_date=today_utc() + timedelta(days=3),
            ),
            landlord,
        )
        await transactions.pay(charge.id, renter)

        stats = await PropertyService(db_session).get_landlord_stats(landlord)

        assert stats["total_properties"] == 2
        assert stats["active_leases"] == 1
        assert stats["expiring_leases"] == 0
        assert stats["vacant_units"] == 1
        assert stats["occupancy_rate"] == 50.0
        assert stats["total_income"] == 450.0
        assert stats["properties_by_status"] == {"rented": 1, "available": 1}

        with pytest.raises(InsufficientPermissionsError):
            await PropertyService(db_session).get_landlord_stats(renter)


class TestApplicationService:
    """Test rental applications."""

    @pytest.mark.asyncio
    async def test_submit_notifies_landlord(
        self, db_session, dispatcher, renter: User, landlord: User, listing: Property
    ):
        service = ApplicationService(db_session, dispatcher)
        application = await service.submit(
            ApplicationCreate(property_id=str(listing.id), message="Family of three, non-smokers."), renter
        )

        assert application.status == ApplicationStatus.PENDING
        assert application.landlord_id == landlord.id
        assert "New application" in await inbox_titles(db_session, landlord)

    @pytest.mark.asyncio
    async def test_one_pending_application_per_property(self, db_session, renter: User, listing: Property):
        service = ApplicationService(db_session)
        data = ApplicationCreate(property_id=str(listing.id), message="Still interested.")
        await service.submit(data, renter)

        with pytest.raises(DuplicateResourceError):
            await service.submit(data, renter)

    @pytest.mark.asyncio
    async def test_review_notifies_applicant(
        self, db_session, renter: User, landlord: User, other_renter: User, listing: Property
    ):
        service = ApplicationService(db_session)
        application = await service.submit(
            ApplicationCreate(property_id=str(listing.id), message="Moving for work."), renter
        )

        with pytest.raises(ForbiddenError):
            await service.review(application.id, ApplicationStatus.APPROVED, other_renter)

        approved = await service.review(application.id, ApplicationStatus.APPROVED, landlord)
        assert approved.status == ApplicationStatus.APPROVED
        assert approved.reviewed_at is not None

        notifications = await inbox(db_session, renter)
        assert notifications[0].type == NotificationType.APPLICATION_UPDATE
        assert notifications[0].message == "Your application for Two-bedroom flat in Jabal Amman is approved"

        with pytest.raises(InvalidStatusTransitionError):
            await service.review(application.id, ApplicationStatus.REJECTED, landlord)

        # Reviewed applications no longer block a new one
        await service.submit(ApplicationCreate(property_id=str(listing.id), message="Second try."), renter)

    @pytest.mark.asyncio
    async def test_unavailable_property(self, db_session, renter: User, listing: Property, active_contract):
        with pytest.raises(PropertyUnavailableError):
            await ApplicationService(db_session).submit(
                ApplicationCreate(property_id=str(listing.id), message="Is it free soon?"), renter
            )


class TestViewingService:
    """Test viewing slots and requests."""

    async def _slot(self, db_session, listing: Property, landlord: User, hours_ahead: int = 48):
        start = utcnow().replace(microsecond=0) + timedelta(hours=hours_ahead)
        slots = await ViewingService(db_session).add_time_slots(
            listing.id, [TimeSlotCreate(start_time=start, end_time=start + timedelta(minutes=30))], landlord
        )
        return slots[0]

    @pytest.mark.asyncio
    async def test_book_confirm_and_cancel(
        self, db_session, renter: User, landlord: User, listing: Property
    ):
        slot = await self._slot(db_session, listing, landlord)
        service = ViewingService(db_session)

        viewing = await service.create_request(
            ViewingRequestCreate(property_id=str(listing.id), time_slot_id=str(slot.id)), renter
        )
        assert viewing.status == ViewingStatus.PENDING
        assert "New viewing request" in await inbox_titles(db_session, landlord)

        confirmed = await service.confirm(viewing.id, landlord)
        assert confirmed.status == ViewingStatus.CONFIRMED
        assert await service.available_time_slots(listing.id, slot.start_time.date()) == []

        cancelled = await service.cancel(viewing.id, renter, reason="Found another flat")
        assert cancelled.status == ViewingStatus.CANCELLED

        landlord_inbox = await inbox(db_session, landlord)
        assert landlord_inbox[0].message.startswith(
            f"Viewing request for property {listing.title} has been cancelled by the renter."
        )
        available = await service.available_time_slots(listing.id, slot.start_time.date())
        assert [s.id for s in available] == [slot.id]

    @pytest.mark.asyncio
    async def test_booked_slot_unavailable(
        self, db_session, renter: User, other_renter: User, landlord: User, listing: Property
    ):
        slot = await self._slot(db_session, listing, landlord)
        service = ViewingService(db_session)
        request = ViewingRequestCreate(property_id=str(listing.id), time_slot_id=str(slot.id))

        viewing = await service.create_request(request, renter)
        await service.confirm(viewing.id, landlord)

        with pytest.raises(TimeSlotUnavailableError):
            await service.create_request(request, other_renter)

    @pytest.mark.asyncio
    async def test_past_slots_rejected(self, db_session, landlord: User, listing: Property):
        start = utcnow() - timedelta(hours=1)
        with pytest.raises(ValidationError):
            await ViewingService(db_session).add_time_slots(
                listing.id, [TimeSlotCreate(start_time=start, end_time=start + timedelta(minutes=30))], landlord
            )

    @pytest.mark.asyncio
    async def test_reject_requires_reason(
        self, db_session, renter: User, landlord: User, listing: Property
    ):
        slot = await self._slot(db_session, listing, landlord)
        service = ViewingService(db_session)
        viewing = await service.create_request(
            ViewingRequestCreate(property_id=str(listing.id), time_slot_id=str(slot.id)), renter
        )

        with pytest.raises(ValidationError):
            await service.reject(viewing.id, "  ", landlord)

        rejected = await service.reject(viewing.id, "Property is being repainted", landlord)
        assert rejected.status == ViewingStatus.REJECTED


class TestContractService:
    """Test lease changes, termination, expiry and reminders."""

    @pytest.mark.asyncio
    async def test_change_request_round_trip(
        self, db_session, renter: User, landlord: User, listing: Property
    ):
        contract = await ContractFactory.create_contract(
            db_session, listing, renter, status=ContractStatus.PENDING, start_offset_days=7
        )
        service = ContractService(db_session)

        changed = await service.request_changes(contract.id, "Allow a small pet", renter)
        assert changed.status == ContractStatus.CHANGES_REQUESTED

        with pytest.raises(InvalidStatusTransitionError):
            await service.accept(contract.id, renter)

        answered = await service.respond_to_changes(
            contract.id, True, landlord, response="Fine", terms="Pets up to 10kg allowed"
        )
        assert answered.status == ContractStatus.CHANGES_ACCEPTED
        assert answered.terms == "Pets up to 10kg allowed"

        signed = await service.accept(contract.id, renter)
        assert signed.status == ContractStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_terminate_frees_property(
        self, db_session, renter: User, landlord: User, listing: Property, active_contract
    ):
        terminated = await ContractService(db_session).terminate(active_contract.id, renter, reason="Relocating")

        assert terminated.status == ContractStatus.TERMINATED
        property_obj = await PropertyRepository(db_session).get_by_id(listing.id)
        assert property_obj.status == PropertyStatus.AVAILABLE

        landlord_inbox = await inbox(db_session, landlord)
        assert landlord_inbox[0].title == "Contract terminated"
        assert landlord_inbox[0].priority == NotificationPriority.HIGH

    @pytest.mark.asyncio
    async def test_extend_rejects_earlier_date(self, db_session, landlord: User, active_contract):
        with pytest.raises(ValidationError):
            await ContractService(db_session).extend(
                active_contract.id, active_contract.end_date - timedelta(days=1), landlord
            )

    @pytest.mark.asyncio
    async def test_expire_contracts(self, db_session, renter: User, landlord: User, listing: Property):
        await ContractFactory.create_contract(db_session, listing, renter, start_offset_days=-400, length_days=365)
        await PropertyRepository(db_session).update_status(listing.id, PropertyStatus.RENTED)

        assert await ContractService(db_session).expire_contracts() == 1

        property_obj = await PropertyRepository(db_session).get_by_id(listing.id)
        assert property_obj.status == PropertyStatus.AVAILABLE
        assert "Lease expired" in await inbox_titles(db_session, renter)
        assert "Lease expired" in await inbox_titles(db_session, landlord)

    @pytest.mark.asyncio
    async def test_lease_reminders_sent_once(
        self, db_session, renter: User, landlord: User, listing: Property
    ):
        contract = await ContractFactory.create_contract(
            db_session, listing, renter, start_offset_days=-350, length_days=370
        )
        service = ContractService(db_session)

        assert await service.send_lease_reminders() == 1
        assert await service.send_lease_reminders() == 0

        days_left = (contract.end_date - today_utc()).days
        reminder = (await inbox(db_session, renter))[0]
        assert reminder.title == "Lease Expiry Reminder"
        assert reminder.message == f"Your lease for {listing.title} expires in {days_left} days"
        assert "Lease Expiry Reminder" in await inbox_titles(db_session, landlord)


class TestTransactionService:
    """Test charges, payments and the payment jobs."""

    def _charge(self, listing: Property, renter: User, due_in_days: int = 3, **overrides) -> TransactionCreate:
        data = {
            "property_id": str(listing.id),
            "renter_id": str(renter.id),
            "amount": Decimal("450.00"),
            "type": TransactionType.RENT,
            "due_date": today_utc() + timedelta(days=due_in_days),
        }
        data.update(overrides)
        return TransactionCreate(**data)

    @pytest.mark.asyncio
    async def test_charge_and_pay(self, db_session, renter: User, landlord: User, listing: Property):
        service = TransactionService(db_session)
        charge = await service.create_charge(self._charge(listing, renter), landlord)

        assert charge.status == TransactionStatus.PENDING
        assert charge.currency == "JOD"
        assert "New rent charge" in await inbox_titles(db_session, renter)

        paid = await service.pay(charge.id, renter)
        assert paid.status == TransactionStatus.PAID
        assert paid.paid_date is not None
        assert "Payment received" in await inbox_titles(db_session, landlord)

        with pytest.raises(InvalidStatusTransitionError):
            await service.pay(charge.id, renter)

    @pytest.mark.asyncio
    async def test_only_owing_renter_pays(
        self, db_session, renter: User, other_renter: User, landlord: User, listing: Property
    ):
        service = TransactionService(db_session)
        charge = await service.create_charge(self._charge(listing, renter), landlord)

        with pytest.raises(ForbiddenError):
            await service.pay(charge.id, other_renter)

    @pytest.mark.asyncio
    async def test_charge_requires_renter_account(
        self, db_session, landlord: User, admin: User, listing: Property
    ):
        with pytest.raises(ValidationError):
            await TransactionService(db_session).create_charge(self._charge(listing, admin), landlord)

    @pytest.mark.asyncio
    async def test_mark_overdue(self, db_session, renter: User, landlord: User, listing: Property):
        service = TransactionService(db_session)
        charge = await service.create_charge(self._charge(listing, renter, due_in_days=-2), landlord)

        assert await service.mark_overdue() == 1
        assert await service.mark_overdue() == 0

        overdue = await service.get_transaction(charge.id, renter)
        assert overdue.status == TransactionStatus.OVERDUE
        notification = (await inbox(db_session, renter))[0]
        assert notification.title == "Payment overdue"
        assert notification.priority == NotificationPriority.HIGH

        # Overdue charges can still be paid
        assert (await service.pay(charge.id, renter)).status == TransactionStatus.PAID

    @pytest.mark.asyncio
    async def test_payment_reminders(self, db_session, renter: User, landlord: User, listing: Property):
        service = TransactionService(db_session)
        await service.create_charge(self._charge(listing, renter, due_in_days=3), landlord)
        await service.create_charge(self._charge(listing, renter, due_in_days=0), landlord)
        await service.create_charge(self._charge(listing, renter, due_in_days=20), landlord)

        assert await service.send_payment_reminders() == 2
        assert await service.send_payment_reminders() == 0

        messages = [n.message for n in await inbox(db_session, renter) if n.title == "Rent Payment Reminder"]
        assert sorted(messages) == [
            "Your rent payment of 450.00 JOD is due in 3 days",
            "Your rent payment of 450.00 JOD is due today",
        ]

    @pytest.mark.asyncio
    async def test_summary(self, db_session, renter: User, landlord: User, listing: Property):
        service = TransactionService(db_session)
        paid = await service.create_charge(self._charge(listing, renter), landlord)
        await service.pay(paid.id, renter)
        await service.create_charge(
            self._charge(listing, renter, amount=Decimal("35.50"), type=TransactionType.UTILITY), landlord
        )

        summary = await service.get_summary(landlord)
        assert summary["total_paid"] == 450.0
        assert summary["total_pending"] == 35.5
        assert summary["paid_count"] == 1
        assert summary["overdue_count"] == 0
        assert await service.get_summary(renter) == summary


class TestMaintenanceService:
    """Test maintenance requests for leased properties."""

    def _request(self, listing: Property) -> MaintenanceCreate:
        return MaintenanceCreate(
            property_id=str(listing.id),
            title="Leaking kitchen tap",
            description="Water drips constantly under the sink.",
        )

    @pytest.mark.asyncio
    async def test_requires_active_contract(self, db_session, other_renter: User, listing: Property):
        with pytest.raises(ForbiddenError):
            await MaintenanceService(db_session).create_request(self._request(listing), other_renter)

    @pytest.mark.asyncio
    async def test_lifecycle(self, db_session, renter: User, landlord: User, listing: Property, active_contract):
        service = MaintenanceService(db_session)
        request = await service.create_request(self._request(listing), renter)
        assert request.status == MaintenanceStatus.PENDING
        assert "Maintenance Update" in await inbox_titles(db_session, landlord)

        scheduled = await service.schedule(request.id, utcnow() + timedelta(days=2), landlord, notes="Plumber at 9")
        assert scheduled.status == MaintenanceStatus.SCHEDULED

        renter_inbox = await inbox(db_session, renter)
        assert renter_inbox[0].title == "Maintenance Update"
        assert renter_inbox[0].message.startswith(f"Request #{request.id}")

        completed = await service.complete(request.id, landlord, notes="Replaced the cartridge")
        assert completed.status == MaintenanceStatus.COMPLETED
        assert completed.completed_date is not None

        with pytest.raises(InvalidStatusTransitionError):
            await service.cancel(request.id, renter)

        past, total = await service.list_requests(renter, view="past")
        assert total == 1 and past[0].id == request.id
        active, total = await service.list_requests(renter, view="active")
        assert total == 0

    @pytest.mark.asyncio
    async def test_schedule_in_past(self, db_session, renter: User, landlord: User, listing: Property, active_contract):
        service = MaintenanceService(db_session)
        request = await service.create_request(self._request(listing), renter)

        with pytest.raises(ValidationError):
            await service.schedule(request.id, utcnow() - timedelta(hours=1), landlord)


class TestMessageService:
    """Test direct messaging."""

    @pytest.mark.asyncio
    async def test_send_and_read_conversation(self, db_session, renter: User, landlord: User, listing: Property):
        service = MessageService(db_session)
        await service.send_message(
            MessageCreate(receiver_id=str(landlord.id), content="Is parking included?", property_id=str(listing.id)),
            renter,
        )
        await service.send_message(MessageCreate(receiver_id=str(landlord.id), content="Thanks!"), renter)

        assert await service.unread_count(landlord) == 2
        assert "New message from Lina Khalil" in await inbox_titles(db_session, landlord)

        overview = await service.list_conversations(landlord)
        assert overview["total_unread"] == 2
        assert overview["conversations"][0]["partner_id"] == str(renter.id)
        assert overview["conversations"][0]["partner_name"] == "Lina Khalil"

        messages, total = await service.get_conversation(renter.id, landlord)
        assert total == 2
        assert [m.content for m in messages] == ["Is parking included?", "Thanks!"]
        assert await service.unread_count(landlord) == 0

    @pytest.mark.asyncio
    async def test_cannot_message_self(self, db_session, renter: User):
        with pytest.raises(ValidationError):
            await MessageService(db_session).send_message(
                MessageCreate(receiver_id=str(renter.id), content="Hello me"), renter
            )

    @pytest.mark.asyncio
    async def test_preview_truncated(self, db_session, renter: User, landlord: User):
        await MessageService(db_session).send_message(
            MessageCreate(receiver_id=str(landlord.id), content="x" * 500), renter
        )

        notification = (await inbox(db_session, landlord))[0]
        assert len(notification.message) < 500
        assert notification.message.endswith("...")
