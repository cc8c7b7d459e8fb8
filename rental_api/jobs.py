"""
Periodic background jobs: deferred notification release, payment and lease
reminders, overdue marking, contract expiry and email digests.
"""

import asyncio
import logging
from datetime import datetime, date
from typing import Awaitable, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from rental_api.config import settings
from rental_api.database import AsyncSessionLocal
from rental_api.models.notification import DigestFrequency
from rental_api.services.channels import ChannelDispatcher, get_dispatcher
from rental_api.services.contract import ContractService
from rental_api.services.notification import NotificationService
from rental_api.services.transaction import TransactionService
from rental_api.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

JobFunc = Callable[[AsyncSession, ChannelDispatcher, datetime], Awaitable[int]]


async def release_deferred_notifications(db: AsyncSession, dispatcher: ChannelDispatcher, now: datetime) -> int:
    return await NotificationService(db, dispatcher).release_deferred(now)


async def mark_overdue_transactions(db: AsyncSession, dispatcher: ChannelDispatcher, now: datetime) -> int:
    return await TransactionService(db, dispatcher).mark_overdue(now)


async def send_payment_reminders(db: AsyncSession, dispatcher: ChannelDispatcher, now: datetime) -> int:
    return await TransactionService(db, dispatcher).send_payment_reminders(now)


async def send_lease_reminders(db: AsyncSession, dispatcher: ChannelDispatcher, now: datetime) -> int:
    return await ContractService(db, dispatcher).send_lease_reminders(now)


async def expire_contracts(db: AsyncSession, dispatcher: ChannelDispatcher, now: datetime) -> int:
    return await ContractService(db, dispatcher).expire_contracts(now)


async def send_daily_digests(db: AsyncSession, dispatcher: ChannelDispatcher, now: datetime) -> int:
    return await NotificationService(db, dispatcher).flush_digests(DigestFrequency.DAILY, now)


async def send_weekly_digests(db: AsyncSession, dispatcher: ChannelDispatcher, now: datetime) -> int:
    return await NotificationService(db, dispatcher).flush_digests(DigestFrequency.WEEKLY, now)


# Run on every tick, in this order
TICK_JOBS: Dict[str, JobFunc] = {
    "release_deferred": release_deferred_notifications,
    "mark_overdue": mark_overdue_transactions,
    "payment_reminders": send_payment_reminders,
    "lease_reminders": send_lease_reminders,
    "expire_contracts": expire_contracts,
}


async def run_job(
    name: str,
    job: JobFunc,
    now: Optional[datetime] = None,
    dispatcher: Optional[ChannelDispatcher] = None,
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal
) -> Optional[int]:
    """
    Run one job in its own session.

    Failures are logged and reported as None so that one broken job
    does not stop the others.
    """
    now = now or utcnow()
    dispatcher = dispatcher or get_dispatcher()
    async with session_factory() as session:
        try:
            result = await job(session, dispatcher, now)
        except Exception as e:
            await session.rollback()
            logger.error(f"Job {name} failed: {e}", exc_info=True)
            return None

    if result:
        logger.info(f"Job {name} processed {result} items")
    return result


async def run_all_jobs(
    now: Optional[datetime] = None,
    dispatcher: Optional[ChannelDispatcher] = None,
    include_digests: bool = False,
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal
) -> Dict[str, Optional[int]]:
    """
    Run every periodic job once.

    Args:
        now: Evaluation instant, defaults to the current time
        dispatcher: Channel dispatcher, defaults to the process-wide one
        include_digests: Also flush daily and weekly digests
        session_factory: Session factory, overridable in tests

    Returns:
        Mapping of job name to processed count, None for failed jobs
    """
    now = now or utcnow()
    jobs = dict(TICK_JOBS)
    if include_digests:
        jobs["daily_digest"] = send_daily_digests
        jobs["weekly_digest"] = send_weekly_digests

    results: Dict[str, Optional[int]] = {}
    for name, job in jobs.items():
        results[name] = await run_job(name, job, now, dispatcher, session_factory)
    return results


class JobScheduler:
    """
    Runs the periodic jobs on an asyncio task inside the API process.

    Digests go out once per day at `digest_hour` UTC; the weekly digest
    additionally requires `weekly_digest_weekday`.
    """

    def __init__(
        self,
        interval_seconds: int = settings.scheduler_interval_seconds,
        digest_hour: int = settings.digest_hour,
        weekly_digest_weekday: int = settings.weekly_digest_weekday,
        dispatcher: Optional[ChannelDispatcher] = None,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal
    ):
        self.interval_seconds = interval_seconds
        self.digest_hour = digest_hour
        self.weekly_digest_weekday = weekly_digest_weekday
        self.dispatcher = dispatcher
        self.session_factory = session_factory
        self._task: Optional[asyncio.Task] = None
        self._last_daily_digest: Optional[date] = None
        self._last_weekly_digest: Optional[date] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the scheduler loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
            logger.info(f"Job scheduler started, interval {self.interval_seconds}s")

    async def stop(self) -> None:
        """Stop the scheduler loop."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Job scheduler stopped")

    async def tick(self, now: Optional[datetime] = None) -> Dict[str, Optional[int]]:
        """
        Run one round of jobs.

        Returns:
            Mapping of job name to processed count
        """
        now = now or utcnow()
        results: Dict[str, Optional[int]] = {}
        for name, job in TICK_JOBS.items():
            results[name] = await run_job(name, job, now, self.dispatcher, self.session_factory)

        today = now.date()
        if now.hour == self.digest_hour:
            if self._last_daily_digest != today:
                self._last_daily_digest = today
                results["daily_digest"] = await run_job(
                    "daily_digest", send_daily_digests, now, self.dispatcher, self.session_factory
                )
            if now.weekday() == self.weekly_digest_weekday and self._last_weekly_digest != today:
                self._last_weekly_digest = today
                results["weekly_digest"] = await run_job(
                    "weekly_digest", send_weekly_digests, now, self.dispatcher, self.session_factory
                )
        return results

    async def _loop(self) -> None:
        while True:
            try:
                await self.tick()
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in job scheduler loop: {e}")
                await asyncio.sleep(self.interval_seconds)
