import logging

from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

import config

logger = logging.getLogger(__name__)

# Fail fast when the database is not configured.
DATABASE_URL = config.DATABASE_URL

if not DATABASE_URL:
    raise ValueError("DATABASE_URL is not set. Please check your .env file.")

engine = create_async_engine(DATABASE_URL, echo=config.DB_ECHO, future=True, pool_pre_ping=True)

async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    # Import so the bookings table is registered on the metadata
    import models  # noqa: F401

    async with engine.begin() as conn:
        # This creates the tables (and the partial unique index) if they don't exist
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database schema ready")


async def get_session() -> AsyncSession:
    async with async_session() as session:
        yield session
