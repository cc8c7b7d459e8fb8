#!/usr/bin/env python3
"""
Database management script.
Creates and drops tables, seeds demo accounts and runs the periodic jobs on demand.
"""

import asyncio
import sys
import argparse
import logging
from decimal import Decimal
from pathlib import Path

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent))

from sqlalchemy import select

from rental_api.config import settings
from rental_api.database import (
    AsyncSessionLocal,
    create_tables,
    drop_tables,
    test_database_connection,
    close_db_connection,
)
from rental_api.jobs import run_all_jobs
from rental_api.models.user import User, UserRole
from rental_api.models.property import Property, PropertyStatus
from rental_api.services.notification import NotificationService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


SEED_USERS = [
    ("admin@example.com", "System Administrator", UserRole.ADMIN, "admin123456"),
    ("landlord@example.com", "Omar Haddad", UserRole.LANDLORD, "landlord123456"),
    ("renter@example.com", "Lina Khalil", UserRole.RENTER, "renter123456"),
]


async def seed_database() -> None:
    """Seed demo accounts and one available listing. Existing accounts are left alone."""
    async with AsyncSessionLocal() as session:
        notifications = NotificationService(session)
        result = await session.execute(select(User).where(User.email == SEED_USERS[0][0]))
        if result.scalar_one_or_none():
            logger.info("Seed accounts already exist, skipping seed")
            return

        try:
            users = {}
            for email, full_name, role, password in SEED_USERS:
                user = User(email=email, full_name=full_name, role=role, is_active=True)
                user.set_password(password)
                session.add(user)
                users[role] = user
            await session.flush()

            session.add(Property(
                owner_id=users[UserRole.LANDLORD].id,
                title="Sunny two-bedroom apartment in Abdoun",
                description="Bright apartment close to cafes and schools, with a covered parking spot.",
                price=Decimal("450.00"),
                currency=settings.default_currency,
                city="Amman",
                area="Abdoun",
                address="12 Cairo Street",
                bedrooms=2,
                bathrooms=1,
                size_sqm=110,
                furnished=True,
                amenities=["parking", "elevator"],
                status=PropertyStatus.AVAILABLE,
            ))
            await session.commit()

            for user in users.values():
                await notifications.provision_defaults(user)
        except Exception as e:
            await session.rollback()
            logger.error(f"Failed to seed database: {e}")
            raise

    logger.info("Database seeded successfully")
    for email, _, role, password in SEED_USERS:
        logger.info(f"  {role.value}: {email} / {password}")
    logger.warning("Change the seeded passwords outside of local development!")


async def reset_database() -> None:
    logger.warning("Resetting database - all data will be lost!")
    await drop_tables()
    await create_tables()
    await seed_database()
    logger.info("Database reset completed")


async def check_database() -> bool:
    connected = await test_database_connection()
    logger.info(f"Database {'reachable' if connected else 'unreachable'}: {settings.database_url.split('@')[-1]}")
    return connected


async def run_jobs(include_digests: bool) -> None:
    results = await run_all_jobs(include_digests=include_digests)
    for name, count in results.items():
        logger.info(f"  {name}: {'failed' if count is None else count}")


async def _run(coro) -> None:
    try:
        await coro
    finally:
        await close_db_connection()


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Rental Marketplace database management")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("create", help="Create all tables")
    subparsers.add_parser("drop", help="Drop all tables (development and testing only)")
    subparsers.add_parser("seed", help="Seed demo accounts and a listing")
    subparsers.add_parser("check", help="Check database connectivity")

    reset_parser = subparsers.add_parser("reset", help="Drop, recreate and seed (development only)")
    reset_parser.add_argument("--confirm", action="store_true", help="Confirm database reset")

    jobs_parser = subparsers.add_parser("run-jobs", help="Run the periodic jobs once")
    jobs_parser.add_argument("--digests", action="store_true", help="Also send daily and weekly digests")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    try:
        if args.command == "create":
            asyncio.run(_run(create_tables()))

        elif args.command == "drop":
            asyncio.run(_run(drop_tables()))

        elif args.command == "seed":
            asyncio.run(_run(seed_database()))

        elif args.command == "check":
            asyncio.run(_run(check_database()))

        elif args.command == "reset":
            if not args.confirm:
                print("Database reset requires --confirm flag")
                return
            asyncio.run(_run(reset_database()))

        elif args.command == "run-jobs":
            asyncio.run(_run(run_jobs(args.digests)))

    except Exception as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
