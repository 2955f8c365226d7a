#!/usr/bin/env python3
"""Setup script for the marketplace payments API."""

import asyncio
import logging
import sys
from decimal import Decimal
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from marketplace.core.config import settings
from marketplace.core.database import build_engine, build_session_factory, close_db
from marketplace.models import PartnerStatus, ReferralPartner, ServiceListing, User

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def setup_database():
    """Bring the database schema up to the latest migration."""
    logger.info("Running database migrations...")

    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)

    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data():
    """Create a small catalog, a customer and a referral partner for local testing."""
    engine = build_engine(settings)
    session_factory = build_session_factory(engine)

    logger.info("Creating sample data...")

    try:
        async with session_factory() as db:
            try:
                existing = await db.execute(select(func.count()).select_from(ServiceListing))
                if existing.scalar_one() > 0:
                    logger.info("Sample data already exists, skipping...")
                    return

                db.add_all([
                    ServiceListing(
                        id="act_snorkel",
                        name="Reef Snorkel Tour",
                        service_type="Activity",
                        vendor_id="vendor_reef",
                    ),
                    ServiceListing(
                        id="stay_villa",
                        name="Hillside Villa",
                        service_type="Stay",
                        host_id="host_villa",
                    ),
                    ServiceListing(
                        id="dine_sunset",
                        name="Sunset Grill",
                        service_type="Dining",
                        vendor_id="vendor_grill",
                    ),
                    ServiceListing(
                        id="ride_airport",
                        name="Airport Shuttle",
                        service_type="Transportation",
                        vendor_id="vendor_shuttle",
                    ),
                    User(id="user_demo", email="demo@example.com"),
                    ReferralPartner(
                        name="Harbour Concierge",
                        email="concierge@example.com",
                        referral_code="HARBOUR5",
                        commission_percentage=Decimal("5"),
                        status=PartnerStatus.APPROVED.value,
                    ),
                ])

                await db.commit()
                logger.info("Sample data created successfully!")

            except Exception as e:
                await db.rollback()
                logger.error(f"Failed to create sample data: {e}")
                raise
    finally:
        await close_db(engine)


def main():
    """Main setup function."""
    logger.info("Starting marketplace payments API setup...")

    setup_database()
    asyncio.run(create_sample_data())

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn marketplace.main:app --reload")


if __name__ == "__main__":
    main()
