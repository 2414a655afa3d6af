import os

# database.py refuses to import without a URL; tests build their own engines.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import date, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from models import Booking, BookingStatus
from slots import SlotCatalog
from store import BookingStore

SLOTS = ["2-4 PM", "4-6 PM", "6-8 PM", "8-10 PM"]

MONDAY = date(2024, 6, 10)
SUNDAY = date(2024, 6, 9)
TUESDAY = date(2024, 6, 11)
# Saturday morning before the test week
BEFORE_WEEK = datetime(2024, 6, 8, 9, 0)


def make_booking(booking_date: date, time_slot: str, status: BookingStatus = BookingStatus.BOOKED, **fields) -> Booking:
    fields.setdefault("customer_name", "Test Customer")
    fields.setdefault("address", "1 Test Street")
    return Booking(booking_date=booking_date, time_slot=time_slot, status=status, **fields)


def next_open_day(days_ahead: int = 7) -> date:
    day = date.today() + timedelta(days=days_ahead)
    while day.weekday() == 6:
        day += timedelta(days=1)
    return day


@pytest.fixture
def catalog() -> SlotCatalog:
    return SlotCatalog.from_labels(SLOTS, "sunday")


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def store(session_factory):
    async with session_factory() as session:
        yield BookingStore(session)


@pytest_asyncio.fixture
async def unreachable_store(tmp_path):
    # Points at a directory that does not exist, so every query fails to connect
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'bookings.db'}")
    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield BookingStore(session)
    await engine.dispose()
