"""
Reservation transaction: validate, re-check the live store, then insert.

Two reservations of the same (date, slot) are serialized in-process by a
per-slot lock, and across processes by the partial unique index on active
bookings, so only one of them can ever commit.
"""

import asyncio
import logging
import weakref
from datetime import date, datetime
from typing import Any, Mapping, Optional, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

import config
from errors import ConflictError, ValidationError
from models import Booking, BookingStatus
from slots import SlotCatalog
from store import BookingStore

logger = logging.getLogger(__name__)


class CustomerDetails(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    customer_name: str = Field(min_length=1, max_length=config.CUSTOMER_NAME_MAX_LENGTH)
    address: str = Field(min_length=1, max_length=config.ADDRESS_MAX_LENGTH)
    note: Optional[str] = Field(default=None, max_length=config.NOTE_MAX_LENGTH)

    @field_validator("note")
    @classmethod
    def blank_note_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


_FIELD_MESSAGES = {
    "customer_name": "Name is required",
    "address": "Address is required",
}


def parse_customer_details(details: Union[CustomerDetails, Mapping[str, Any]]) -> CustomerDetails:
    """Validate customer input, raising ValidationError for the first bad field."""
    if isinstance(details, CustomerDetails):
        details = details.model_dump()
    try:
        return CustomerDetails.model_validate(details)
    except pydantic.ValidationError as exc:
        error = exc.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else "details"
        if error["type"] in ("string_too_short", "missing") and field in _FIELD_MESSAGES:
            reason = _FIELD_MESSAGES[field]
        else:
            reason = error["msg"]
        raise ValidationError(field, reason) from exc


def validate_slot_choice(catalog: SlotCatalog, booking_date: date, time_slot: str, today: date) -> None:
    if booking_date < today:
        raise ValidationError("date", "Date is in the past")
    if catalog.is_off_day(booking_date):
        raise ValidationError("date", f"We are closed on {catalog.off_day_name}s")
    if not catalog.contains(time_slot):
        raise ValidationError("time_slot", f"Unknown time slot {time_slot!r}")


_slot_locks: "weakref.WeakValueDictionary[tuple[date, str], asyncio.Lock]" = weakref.WeakValueDictionary()


def _slot_lock(booking_date: date, time_slot: str) -> asyncio.Lock:
    key = (booking_date, time_slot)
    lock = _slot_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _slot_locks[key] = lock
    return lock


async def reserve(
    store: BookingStore,
    catalog: SlotCatalog,
    booking_date: date,
    time_slot: str,
    details: Union[CustomerDetails, Mapping[str, Any]],
    now: Optional[datetime] = None,
) -> Booking:
    """Claim ``time_slot`` on ``booking_date`` for a customer.

    Raises:
        ValidationError: bad customer details, date or slot.
        ConflictError: the slot already has an active booking.
        StoreUnavailableError: the store could not be reached; nothing was
            reserved, or the outcome is unknown if the failure hit the commit.
    """
    customer = parse_customer_details(details)
    today = (now or datetime.now()).date()
    validate_slot_choice(catalog, booking_date, time_slot, today)

    lock = _slot_lock(booking_date, time_slot)
    async with lock:
        # Check the live store, not whatever availability the customer saw
        existing = await store.find(booking_date, time_slot, BookingStatus.BOOKED)
        if existing is not None:
            logger.info("Reservation conflict for %s %s", booking_date, time_slot)
            raise ConflictError(booking_date, time_slot)

        booking = Booking(
            booking_date=booking_date,
            time_slot=time_slot,
            customer_name=customer.customer_name,
            address=customer.address,
            note=customer.note,
            status=BookingStatus.BOOKED,
        )
        booking = await store.insert(booking)

    logger.info("Booking %s created for %s %s", booking.id, booking_date, time_slot)
    return booking
