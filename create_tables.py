"""
Script to create all database tables.

This script creates the delivery_records and send_jobs tables.
Run this after starting PostgreSQL with Docker.
"""
import asyncio
from app.config import settings
from app.database import create_engine
from app.models.base import Base
# Import all models to register them with Base
from app.models.delivery import DeliveryRecord  # noqa: F401
from app.models.send_job import SendJob  # noqa: F401


async def create_all_tables():
    """Create all tables in the database."""
    engine = create_engine(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("All tables created successfully!")


async def drop_all_tables():
    """Drop all tables in the database (for testing)."""
    engine = create_engine(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
    print("All tables dropped!")


async def main():
    """Main entry point."""
    print("Creating database tables...")
    await create_all_tables()
    print("Done!")


if __name__ == "__main__":
    asyncio.run(main())
