"""
Booking store: the persisted booking collection behind one AsyncSession.

Failures to reach the database are translated into StoreUnavailableError here;
other database errors (bad statements, bad data) propagate unchanged.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date
from typing import Iterable, Optional, Union

from sqlmodel import select
from sqlalchemy import distinct, func, or_, update
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from errors import ConflictError, StoreUnavailableError
from models import Booking, BookingStatus

logger = logging.getLogger(__name__)

StatusFilter = Union[BookingStatus, Iterable[BookingStatus], None]


def is_connectivity_error(exc: SQLAlchemyError) -> bool:
    """True for failures reaching the database, as opposed to bad statements or data."""
    if isinstance(exc, (OperationalError, InterfaceError, PoolTimeoutError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


class BookingStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            await self.session.rollback()
            if not is_connectivity_error(exc):
                raise
            logger.error("Booking store failed during %s: %s", action, exc)
            raise StoreUnavailableError(f"booking store unavailable ({action})") from exc
        except (OSError, asyncio.TimeoutError) as exc:
            await self.session.rollback()
            logger.error("Booking store failed during %s: %s", action, exc)
            raise StoreUnavailableError(f"booking store unavailable ({action})") from exc

    async def insert(self, booking: Booking) -> Booking:
        """Persist a new booking and return it with its id assigned.

        Raises ConflictError when the active-slot unique index rejects the row.
        """
        async with self._guard("insert"):
            self.session.add(booking)
            try:
                await self.session.commit()
            except IntegrityError:
                # Another Booked row already holds this (date, slot)
                await self.session.rollback()
                raise ConflictError(booking.booking_date, booking.time_slot)
            await self.session.refresh(booking)
        return booking

    async def get(self, booking_id: uuid.UUID) -> Optional[Booking]:
        async with self._guard("get"):
            return await self.session.get(Booking, booking_id, populate_existing=True)

    async def find(self, booking_date: date, time_slot: str, status: BookingStatus) -> Optional[Booking]:
        statement = (
            select(Booking)
            .where(
                Booking.booking_date == booking_date,
                Booking.time_slot == time_slot,
                Booking.status == status,
            )
            .limit(1)
            .execution_options(populate_existing=True)
        )
        async with self._guard("find"):
            result = await self.session.execute(statement)
            return result.scalars().first()

    async def update_status(
        self,
        booking_id: uuid.UUID,
        status: BookingStatus,
        expected: Optional[BookingStatus] = None,
    ) -> bool:
        """Set the status of one booking.

        With ``expected`` the update only applies while the row still has that
        status. Returns False when nothing was updated.
        """
        statement = update(Booking).where(Booking.id == booking_id)
        if expected is not None:
            statement = statement.where(Booking.status == expected)
        statement = statement.values(status=status)
        async with self._guard("update_status"):
            result = await self.session.execute(statement)
            await self.session.commit()
        return result.rowcount == 1

    async def complete_many(self, booking_ids: list[uuid.UUID]) -> int:
        """Mark the given Booked bookings Completed in a single statement."""
        if not booking_ids:
            return 0
        statement = (
            update(Booking)
            .where(Booking.id.in_(booking_ids), Booking.status == BookingStatus.BOOKED)
            .values(status=BookingStatus.COMPLETED)
            .execution_options(synchronize_session=False)
        )
        async with self._guard("complete_many"):
            result = await self.session.execute(statement)
            await self.session.commit()
        return result.rowcount

    async def list_bookings(
        self,
        status: StatusFilter = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        search: Optional[str] = None,
    ) -> list[Booking]:
        """Bookings matching the filter, ordered by (date, time slot)."""
        statement = select(Booking)
        if status is not None:
            statuses = [status] if isinstance(status, BookingStatus) else list(status)
            statement = statement.where(Booking.status.in_(statuses))
        if start is not None:
            statement = statement.where(Booking.booking_date >= start)
        if end is not None:
            statement = statement.where(Booking.booking_date <= end)
        if search and search.strip():
            term = search.strip().lower()
            statement = statement.where(
                or_(
                    func.lower(Booking.customer_name).contains(term, autoescape=True),
                    func.lower(Booking.address).contains(term, autoescape=True),
                    func.lower(Booking.note).contains(term, autoescape=True),
                )
            )
        statement = statement.order_by(Booking.booking_date, Booking.time_slot).execution_options(
            populate_existing=True
        )
        async with self._guard("list"):
            result = await self.session.execute(statement)
            return list(result.scalars().all())

    async def fully_booked_dates(
        self,
        start: date,
        end: date,
        labels: Iterable[str],
        occupying: Iterable[BookingStatus],
    ) -> set[date]:
        """Dates in [start, end] where every one of ``labels`` is occupied."""
        labels = list(labels)
        statement = (
            select(Booking.booking_date)
            .where(
                Booking.booking_date >= start,
                Booking.booking_date <= end,
                Booking.time_slot.in_(labels),
                Booking.status.in_(list(occupying)),
            )
            .group_by(Booking.booking_date)
            .having(func.count(distinct(Booking.time_slot)) >= len(labels))
        )
        async with self._guard("fully_booked_dates"):
            result = await self.session.execute(statement)
            return set(result.scalars().all())

    async def count_by_status(self) -> dict[BookingStatus, int]:
        statement = select(Booking.status, func.count(Booking.id)).group_by(Booking.status)
        async with self._guard("count_by_status"):
            result = await self.session.execute(statement)
            rows = result.all()
        counts = {status: 0 for status in BookingStatus}
        for status, count in rows:
            counts[BookingStatus(status)] = count
        return counts
