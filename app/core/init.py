"""System initialization and setup utilities"""
import asyncio
import logging
from pathlib import Path
from sqlalchemy import text
from app.core.database import AsyncSessionLocal, engine, Base
import app.models # Register all models
from app.core.config import settings
from app.services.optimized_endpoint_service import OptimizedEndpointService

logger = logging.getLogger(__name__)


def ensure_sqlite_directory():
    """Create the directory holding a file-based SQLite database"""
    prefix = "sqlite+aiosqlite:///"
    if settings.DATABASE_URL.startswith(prefix):
        path = settings.DATABASE_URL[len(prefix):]
        if path and path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)


async def create_tables():
    """Create all database tables"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created successfully")


async def seed_data():
    """Seed the optimized endpoint pool"""
    try:
        async with AsyncSessionLocal() as session:
            added = await OptimizedEndpointService.seed_defaults(session)
            if added:
                logger.info(f"Seeded {added} default optimized endpoints")
    except Exception as e:
        logger.error(f"Error seeding data: {e}")


async def check_database_connection():
    """Check database connection"""
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


async def init_system():
    """Initialize system on startup"""
    logger.info(f"Initializing {settings.APP_NAME}...")
    ensure_sqlite_directory()
    
    # Check database
    db_ok = await check_database_connection()
    if not db_ok:
        logger.error("Cannot start: Database connection failed")
        return False
    
    # Create tables if needed
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Table creation warning (may already exist): {e}")

    # Seed initial data
    await seed_data()
    
    logger.info("System initialized successfully")
    return True


if __name__ == "__main__":
    asyncio.run(init_system())
