"""
Booking status lifecycle.

Booked -> Completed | Canceled | Deleted
Completed | Canceled -> Deleted
Deleted is terminal. Nothing ever goes back to Booked.

Booked -> Completed also happens automatically once the slot has ended; see
complete_past_bookings().
"""

import logging
import uuid
from datetime import datetime
from typing import Iterable, Optional

from errors import BookingNotFoundError, TransitionError
from models import Booking, BookingStatus
from slots import SlotCatalog
from store import BookingStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.BOOKED: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELED, BookingStatus.DELETED}
    ),
    BookingStatus.COMPLETED: frozenset({BookingStatus.DELETED}),
    BookingStatus.CANCELED: frozenset({BookingStatus.DELETED}),
    BookingStatus.DELETED: frozenset(),
}


def can_transition(current: BookingStatus, new: BookingStatus) -> bool:
    return new in ALLOWED_TRANSITIONS[current]


def check_transition(current: BookingStatus, new: BookingStatus) -> None:
    if current == new:
        raise TransitionError(current, new, f"booking is already {current}")
    if not can_transition(current, new):
        raise TransitionError(current, new)


async def change_status(store: BookingStore, booking_id: uuid.UUID, new_status: BookingStatus) -> Booking:
    """Administrator status change. Takes effect immediately.

    Raises BookingNotFoundError for an unknown id and TransitionError when the
    current status does not allow ``new_status``.
    """
    booking = await store.get(booking_id)
    if booking is None:
        raise BookingNotFoundError(booking_id)

    current = booking.status
    check_transition(current, new_status)

    # Conditional on the status we validated against, in case it moved meanwhile
    if not await store.update_status(booking_id, new_status, expected=current):
        latest = await store.get(booking_id)
        if latest is None:
            raise BookingNotFoundError(booking_id)
        raise TransitionError(
            latest.status, new_status, f"booking changed to {latest.status} while updating"
        )

    logger.info("Booking %s status changed: %s -> %s", booking_id, current, new_status)
    updated = await store.get(booking_id)
    return updated if updated is not None else booking


def due_for_completion(bookings: Iterable[Booking], catalog: SlotCatalog, now: datetime) -> list[Booking]:
    """Booked bookings whose slot end-time is already past ``now``."""
    due = []
    for booking in bookings:
        if booking.status != BookingStatus.BOOKED:
            continue
        try:
            ends_at = catalog.end_of(booking.booking_date, booking.time_slot)
        except ValueError:
            logger.warning(
                "Skipping booking %s: cannot work out when slot %r ends", booking.id, booking.time_slot
            )
            continue
        if ends_at < now:
            due.append(booking)
    return due


async def complete_past_bookings(store: BookingStore, catalog: SlotCatalog, now: Optional[datetime] = None) -> int:
    """Promote every Booked booking whose slot has ended to Completed.

    Runs in one pass and returns how many bookings were promoted. Running it
    again straight away promotes nothing.
    """
    now = now or datetime.now()
    booked = await store.list_bookings(status=BookingStatus.BOOKED, end=now.date())
    due = due_for_completion(booked, catalog, now)
    if not due:
        return 0

    completed = await store.complete_many([booking.id for booking in due])
    if completed:
        logger.info("Auto-completed %d past booking(s)", completed)
    return completed
