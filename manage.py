#!/usr/bin/env python3
"""
Management commands: table creation, seeding and the coordinate sync.
Runs outside the HTTP process against the configured database.
"""

import argparse
import asyncio
import logging
import sys
import uuid

from sqlalchemy import select

from marketplace.config import settings
from marketplace.database import AsyncSessionLocal, close_db_connection, create_tables, drop_tables
from marketplace.flows.definitions import FlowType
from marketplace.models.user import User, UserRole
from marketplace.schemas.property import PropertyCreate
from marketplace.services.coordinates import CoordinateService
from marketplace.services.property import PropertyService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SEED_USERS = [
    ("admin@example.com", "System Administrator", UserRole.SUPER_ADMIN, "admin123456"),
    ("moderator@example.com", "Listing Moderator", UserRole.MODERATOR, "moderator123"),
    ("owner@example.com", "Demo Owner", UserRole.PROPERTY_OWNER, "owner123456"),
    ("seeker@example.com", "Demo Seeker", UserRole.PROPERTY_SEEKER, "seeker123456"),
]

SAMPLE_RENTAL_STEPS = {
    "res_rent_basic_details": {
        "title": "Sunny 2 BHK near the metro",
        "propertyType": "apartment",
        "bhkType": "2bhk",
        "floor": 3,
        "totalFloors": 10,
        "builtUpArea": 1100,
        "bathrooms": 2,
        "facing": "east",
        "propertyAge": "1_3_years",
    },
    "res_rent_location": {
        "address": "12 Residency Road, Ashok Nagar",
        "landmark": "Opposite the city park",
        "city": "Bangalore",
        "state": "Karnataka",
        "pinCode": "560025",
        "coordinates": {"latitude": 12.9716, "longitude": 77.5946},
    },
    "res_rent_rental": {
        "rentAmount": 35000,
        "securityDeposit": 100000,
        "availableFrom": "2026-01-01",
        "furnishingStatus": "semi_furnished",
        "preferredTenants": ["family", "professionals"],
    },
    "res_rent_features": {
        "amenities": ["parking", "elevator", "power_backup"],
        "petFriendly": True,
    },
}


class ManagementCommands:
    """Database maintenance tasks."""

    async def create_tables(self) -> None:
        await create_tables()

    async def seed(self) -> None:
        """Create the demo accounts and one sample draft listing."""
        async with AsyncSessionLocal() as session:
            try:
                users = {}
                for email, full_name, role, password in SEED_USERS:
                    result = await session.execute(select(User).where(User.email == email))
                    user = result.scalar_one_or_none()
                    if user is None:
                        user = User(email=email, full_name=full_name, role=role, is_active=True)
                        user.set_password(password)
                        session.add(user)
                        logger.info(f"Created {role.value} account: {email}")
                    users[role] = user
                await session.commit()

                owner = users[UserRole.PROPERTY_OWNER]
                property_service = PropertyService(session)
                existing, _ = await property_service.get_owner_properties(owner.id, owner, page_size=1)
                if existing:
                    logger.info("Sample listing already exists, skipping")
                    return

                property_obj = await property_service.create_property(
                    PropertyCreate(
                        flow_type=FlowType.RESIDENTIAL_RENT,
                        steps=SAMPLE_RENTAL_STEPS,
                        description="Bright apartment with cross ventilation, five minutes from the metro.",
                        tags=["metro"],
                    ),
                    owner,
                )
                await CoordinateService(session).sync_property(property_obj.id)
                logger.info(f"Sample listing created: {property_obj.code}")
                logger.warning("Change the seeded passwords outside local development!")

            except Exception as e:
                await session.rollback()
                logger.error(f"Failed to seed database: {e}")
                raise

    async def reset(self) -> None:
        """Drop and recreate every table, then seed."""
        logger.warning("Resetting database - all data will be lost!")
        await drop_tables()
        await create_tables()
        await self.seed()

    async def sync_coordinates(self, property_id=None, batch_size=None) -> None:
        async with AsyncSessionLocal() as session:
            service = CoordinateService(session)
            if property_id:
                outcome = await service.sync_property(uuid.UUID(property_id))
                if outcome.synced:
                    logger.info(f"Property {outcome.property_id} synced")
                else:
                    logger.warning(f"Property {outcome.property_id} skipped: {outcome.reason}")
                return

            result = await service.sync_all(batch_size)
            for error in result.errors:
                logger.error(f"  {error['property_id']}: {error['error']}")

    async def coordinate_stats(self) -> None:
        async with AsyncSessionLocal() as session:
            stats = await CoordinateService(session).get_migration_stats()
        logger.info(
            f"Coordinates synced for {stats['migrated']}/{stats['total']} properties "
            f"({stats['percentage']}%), {stats['missing']} missing"
        )


async def run(args: argparse.Namespace) -> None:
    commands = ManagementCommands()
    try:
        if args.command == "create-tables":
            await commands.create_tables()
        elif args.command == "seed":
            await commands.create_tables()
            await commands.seed()
        elif args.command == "reset":
            await commands.reset()
        elif args.command == "sync-coordinates":
            await commands.sync_coordinates(args.property_id, args.batch_size)
        elif args.command == "coordinate-stats":
            await commands.coordinate_stats()
    finally:
        await close_db_connection()


def main():
    parser = argparse.ArgumentParser(description=f"{settings.app_name} management commands")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("create-tables", help="Create missing tables")
    subparsers.add_parser("seed", help="Create demo accounts and a sample listing")

    reset_parser = subparsers.add_parser("reset", help="Drop, recreate and seed (development only)")
    reset_parser.add_argument("--confirm", action="store_true", help="Confirm database reset")

    sync_parser = subparsers.add_parser("sync-coordinates", help="Copy location coordinates into the map table")
    sync_parser.add_argument("--property-id", help="Sync a single property")
    sync_parser.add_argument("--batch-size", type=int, default=None, help="Properties loaded per batch")

    subparsers.add_parser("coordinate-stats", help="Show coordinate sync progress")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    if args.command == "reset" and not args.confirm:
        print("Database reset requires --confirm flag")
        return

    try:
        asyncio.run(run(args))
    except Exception as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
