"""
Tests for the periodic jobs and the in-process scheduler.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from rental_api.jobs import JobScheduler, TICK_JOBS, run_all_jobs, run_job
from rental_api.models.notification import DigestFrequency, NotificationChannel, NotificationType
from rental_api.models.property import Property
from rental_api.models.transaction import TransactionStatus, TransactionType
from rental_api.models.user import User
from rental_api.repositories.transaction import TransactionRepository
from rental_api.services.notification import NotificationService
from rental_api.utils.timeutils import today_utc, utcnow
from tests.conftest import RecordingDispatcher


# A Monday, at the digest hour used below
DIGEST_MONDAY = datetime(2026, 3, 9, 8, 15, tzinfo=timezone.utc)


async def create_charge(db_session, listing: Property, renter: User, due_in_days: int):
    return await TransactionRepository(db_session).create({
        "property_id": listing.id,
        "renter_id": renter.id,
        "landlord_id": listing.owner_id,
        "amount": Decimal("450.00"),
        "currency": "JOD",
        "type": TransactionType.RENT,
        "status": TransactionStatus.PENDING,
        "due_date": today_utc() + timedelta(days=due_in_days),
    })


async def queue_digest_item(db_session, dispatcher, user: User, frequency: DigestFrequency):
    service = NotificationService(db_session, dispatcher)
    await service.update_preferences(user, {"email_digest_frequency": frequency})
    await service.notify(user.id, NotificationType.NEW_MESSAGE, "New message from Omar Haddad", "See you at 5")


class TestRunAllJobs:
    """Test running every job once."""

    @pytest.mark.asyncio
    async def test_runs_every_tick_job(
        self, db_session, session_factory, dispatcher: RecordingDispatcher,
        renter: User, listing: Property, active_contract
    ):
        await create_charge(db_session, listing, renter, due_in_days=-1)
        await create_charge(db_session, listing, renter, due_in_days=2)

        results = await run_all_jobs(now=utcnow(), dispatcher=dispatcher, session_factory=session_factory)

        assert list(results) == list(TICK_JOBS)
        assert results["mark_overdue"] == 1
        assert results["payment_reminders"] == 1
        assert results["lease_reminders"] == 0
        assert results["expire_contracts"] == 0
        assert results["release_deferred"] == 0

        titles = [m.title for m in dispatcher.sent(NotificationChannel.EMAIL)]
        assert "Payment overdue" in titles
        assert "Rent Payment Reminder" in titles

    @pytest.mark.asyncio
    async def test_include_digests(
        self, db_session, session_factory, dispatcher: RecordingDispatcher, renter: User
    ):
        await queue_digest_item(db_session, dispatcher, renter, DigestFrequency.DAILY)

        results = await run_all_jobs(dispatcher=dispatcher, include_digests=True, session_factory=session_factory)

        assert results["daily_digest"] == 1
        assert results["weekly_digest"] == 0
        assert len(dispatcher.sent(NotificationChannel.EMAIL)) == 1

    @pytest.mark.asyncio
    async def test_failed_job_reported_as_none(self, session_factory, dispatcher: RecordingDispatcher):
        async def broken(db, job_dispatcher, now):
            raise RuntimeError("database unavailable")

        assert await run_job("broken", broken, dispatcher=dispatcher, session_factory=session_factory) is None


class TestJobScheduler:
    """Test scheduler ticks and digest timing."""

    def _scheduler(self, dispatcher, session_factory) -> JobScheduler:
        return JobScheduler(
            interval_seconds=60,
            digest_hour=8,
            weekly_digest_weekday=0,
            dispatcher=dispatcher,
            session_factory=session_factory,
        )

    @pytest.mark.asyncio
    async def test_tick_outside_digest_hour(self, session_factory, dispatcher: RecordingDispatcher):
        scheduler = self._scheduler(dispatcher, session_factory)

        results = await scheduler.tick(DIGEST_MONDAY.replace(hour=10))

        assert set(results) == set(TICK_JOBS)

    @pytest.mark.asyncio
    async def test_daily_digest_once_per_day(
        self, db_session, session_factory, dispatcher: RecordingDispatcher, renter: User
    ):
        await queue_digest_item(db_session, dispatcher, renter, DigestFrequency.DAILY)
        scheduler = self._scheduler(dispatcher, session_factory)

        results = await scheduler.tick(DIGEST_MONDAY)
        assert results["daily_digest"] == 1
        assert results["weekly_digest"] == 0

        await queue_digest_item(db_session, dispatcher, renter, DigestFrequency.DAILY)
        later = await scheduler.tick(DIGEST_MONDAY + timedelta(minutes=30))
        assert "daily_digest" not in later
        assert len(dispatcher.sent(NotificationChannel.EMAIL)) == 1

        next_day = await scheduler.tick(DIGEST_MONDAY + timedelta(days=1))
        assert next_day["daily_digest"] == 1
        assert "weekly_digest" not in next_day

    @pytest.mark.asyncio
    async def test_weekly_digest_on_configured_weekday(
        self, db_session, session_factory, dispatcher: RecordingDispatcher, renter: User
    ):
        await queue_digest_item(db_session, dispatcher, renter, DigestFrequency.WEEKLY)
        scheduler = self._scheduler(dispatcher, session_factory)

        tuesday = await scheduler.tick(DIGEST_MONDAY + timedelta(days=1))
        assert "weekly_digest" not in tuesday

        monday = await scheduler.tick(DIGEST_MONDAY + timedelta(days=7))
        assert monday["weekly_digest"] == 1
        assert dispatcher.sent(NotificationChannel.EMAIL)[0].data["digest"] == "weekly"

    @pytest.mark.asyncio
    async def test_start_and_stop(self, session_factory, dispatcher: RecordingDispatcher):
        scheduler = self._scheduler(dispatcher, session_factory)

        await scheduler.start()
        assert scheduler.running is True

        await scheduler.stop()
        assert scheduler.running is False
