"""
Database setup script
"""
import asyncio

from hostel_complaints.config import get_settings
from hostel_complaints.database import engine, Base, AsyncSessionLocal
from hostel_complaints.main import seed_defaults
from hostel_complaints.models import FeatureToggle
from sqlalchemy import select

settings = get_settings()


async def setup_database():
    """Create tables and seed the admin account and feature toggles"""
    print("Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Tables created")

    async with AsyncSessionLocal() as session:
        await seed_defaults(session)
        toggles = (await session.execute(select(FeatureToggle).order_by(FeatureToggle.key))).scalars().all()
        print("Seed data created")

    await engine.dispose()

    print("\nDatabase setup complete!")
    print("\nFeature toggles:")
    for toggle in toggles:
        print(f"  {toggle.key}: {'on' if toggle.enabled else 'off'}")
    if settings.DEFAULT_ADMIN_EMAIL:
        print("\nDefault login:")
        print(f"  Email: {settings.DEFAULT_ADMIN_EMAIL}")
        print(f"  Password: {settings.DEFAULT_ADMIN_PASSWORD}")


if __name__ == "__main__":
    asyncio.run(setup_database())
