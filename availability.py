"""
Availability evaluation.

The pure functions work on an explicit snapshot of bookings. The ``load_*``
coroutines read that snapshot from the store and fail open: if the store
cannot be reached the customer sees slots as available, together with a
warning. The reservation itself re-checks against the store, so this never
results in a double booking.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Generic, Iterable, Iterator, Optional, TypeVar

import config
from errors import StoreUnavailableError
from models import Booking, BookingStatus
from slots import SlotCatalog
from store import BookingStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

AVAILABILITY_WARNING = "Availability could not be checked right now; a slot may still turn out to be taken."


@dataclass
class AvailabilityResult(Generic[T]):
    value: T
    warning: Optional[str] = None


def date_range(start: date, end: date) -> Iterator[date]:
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def occupying_statuses(names: Iterable[str]) -> frozenset[BookingStatus]:
    return frozenset(BookingStatus(name) for name in names)


DATE_PICKER_OCCUPYING = occupying_statuses(config.DATE_PICKER_OCCUPYING_STATUSES)
CALENDAR_OCCUPYING = occupying_statuses(config.CALENDAR_OCCUPYING_STATUSES)


def fully_booked_dates(
    bookings: Iterable[Booking],
    catalog: SlotCatalog,
    occupying: Iterable[BookingStatus] = DATE_PICKER_OCCUPYING,
) -> set[date]:
    """Dates on which every catalog slot is held by an occupying booking."""
    occupying = frozenset(occupying)
    taken: dict[date, set[str]] = {}
    for booking in bookings:
        if booking.status in occupying and catalog.contains(booking.time_slot):
            taken.setdefault(booking.booking_date, set()).add(booking.time_slot)
    return {day for day, labels in taken.items() if len(labels) == len(catalog)}


def is_date_closed(day: date, catalog: SlotCatalog, today: date) -> bool:
    """Past dates and the weekly off-day, regardless of bookings."""
    return day < today or catalog.is_off_day(day)


def disabled_dates(
    candidate_dates: Iterable[date],
    bookings: Iterable[Booking],
    catalog: SlotCatalog,
    today: date,
    occupying: Iterable[BookingStatus] = DATE_PICKER_OCCUPYING,
) -> set[date]:
    full = fully_booked_dates(bookings, catalog, occupying)
    return {day for day in candidate_dates if is_date_closed(day, catalog, today) or day in full}


def slot_availability(day: date, bookings: Iterable[Booking], catalog: SlotCatalog) -> dict[str, bool]:
    """Map every catalog slot to whether it can still be reserved on ``day``.

    Only a current Booked occupant blocks a slot; completed, canceled and
    deleted bookings of the same slot do not.
    """
    held = {
        booking.time_slot
        for booking in bookings
        if booking.booking_date == day and booking.status == BookingStatus.BOOKED
    }
    return {label: label not in held for label in catalog.labels}


async def load_slot_availability(store: BookingStore, catalog: SlotCatalog, day: date) -> AvailabilityResult:
    try:
        bookings = await store.list_bookings(status=BookingStatus.BOOKED, start=day, end=day)
    except StoreUnavailableError as exc:
        logger.warning("Slot availability for %s failed open: %s", day, exc)
        return AvailabilityResult({label: True for label in catalog.labels}, AVAILABILITY_WARNING)
    return AvailabilityResult(slot_availability(day, bookings, catalog))


async def load_disabled_dates(
    store: BookingStore,
    catalog: SlotCatalog,
    start: date,
    end: date,
    today: date,
    occupying: Iterable[BookingStatus] = DATE_PICKER_OCCUPYING,
) -> AvailabilityResult:
    closed = {day for day in date_range(start, end) if is_date_closed(day, catalog, today)}
    try:
        full = await store.fully_booked_dates(start, end, catalog.labels, occupying)
    except StoreUnavailableError as exc:
        logger.warning("Disabled dates for %s..%s failed open: %s", start, end, exc)
        return AvailabilityResult(closed, AVAILABILITY_WARNING)
    return AvailabilityResult(closed | full)


async def load_calendar_fully_booked(store: BookingStore, catalog: SlotCatalog, start: date, end: date) -> set[date]:
    """Fully booked dates for the calendar export, where completed bookings count too.

    Unlike the date picker this does not fail open.
    """
    return await store.fully_booked_dates(start, end, catalog.labels, CALENDAR_OCCUPYING)
