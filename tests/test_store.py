import uuid
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy.exc import (
    DataError,
    DBAPIError,
    InterfaceError,
    OperationalError,
    ProgrammingError,
    StatementError,
)

import config
from errors import StoreUnavailableError
from models import Booking, BookingStatus
from store import BookingStore, is_connectivity_error

from conftest import MONDAY, SLOTS, SUNDAY, TUESDAY, make_booking


@pytest.mark.asyncio
async def test_insert_assigns_id_and_created_at(store):
    booking = await store.insert(make_booking(MONDAY, "2-4 PM", note="Short nails"))

    assert isinstance(booking.id, uuid.UUID)
    assert booking.created_at is not None
    found = await store.find(MONDAY, "2-4 PM", BookingStatus.BOOKED)
    assert found.id == booking.id
    assert found.note == "Short nails"


@pytest.mark.asyncio
async def test_find_filters_on_status(store):
    await store.insert(make_booking(MONDAY, "2-4 PM", BookingStatus.CANCELED))

    assert await store.find(MONDAY, "2-4 PM", BookingStatus.BOOKED) is None
    assert await store.find(MONDAY, "2-4 PM", BookingStatus.CANCELED) is not None


@pytest.mark.asyncio
async def test_terminal_bookings_do_not_hold_the_slot(store):
    await store.insert(make_booking(MONDAY, "2-4 PM", BookingStatus.CANCELED))
    await store.insert(make_booking(MONDAY, "2-4 PM", BookingStatus.DELETED))

    booking = await store.insert(make_booking(MONDAY, "2-4 PM"))

    assert booking.status == BookingStatus.BOOKED


@pytest.mark.asyncio
async def test_list_is_ordered_by_date_then_slot(store):
    await store.insert(make_booking(TUESDAY, "2-4 PM"))
    await store.insert(make_booking(MONDAY, "6-8 PM"))
    await store.insert(make_booking(MONDAY, "2-4 PM"))

    listed = await store.list_bookings()

    assert [(b.booking_date, b.time_slot) for b in listed] == [
        (MONDAY, "2-4 PM"),
        (MONDAY, "6-8 PM"),
        (TUESDAY, "2-4 PM"),
    ]


@pytest.mark.asyncio
async def test_list_filters(store):
    await store.insert(make_booking(SUNDAY, "2-4 PM", BookingStatus.COMPLETED, customer_name="Mae"))
    await store.insert(make_booking(MONDAY, "2-4 PM", customer_name="Jo", note="Bring 100% acetone"))
    await store.insert(make_booking(TUESDAY, "4-6 PM", BookingStatus.CANCELED, address="Maple Road"))

    assert len(await store.list_bookings(status=BookingStatus.BOOKED)) == 1
    assert len(await store.list_bookings(status=[BookingStatus.BOOKED, BookingStatus.CANCELED])) == 2
    assert [b.booking_date for b in await store.list_bookings(start=MONDAY)] == [MONDAY, TUESDAY]
    assert [b.booking_date for b in await store.list_bookings(end=MONDAY)] == [SUNDAY, MONDAY]
    assert [b.customer_name for b in await store.list_bookings(search="MAE")] == ["Mae"]
    assert [b.booking_date for b in await store.list_bookings(search="maple")] == [TUESDAY]
    assert [b.customer_name for b in await store.list_bookings(search="100%")] == ["Jo"]
    assert await store.list_bookings(search="nobody") == []


@pytest.mark.asyncio
async def test_update_status_with_expected(store):
    booking = await store.insert(make_booking(MONDAY, "2-4 PM"))

    assert not await store.update_status(booking.id, BookingStatus.DELETED, expected=BookingStatus.CANCELED)
    assert (await store.get(booking.id)).status == BookingStatus.BOOKED

    assert await store.update_status(booking.id, BookingStatus.CANCELED, expected=BookingStatus.BOOKED)
    assert (await store.get(booking.id)).status == BookingStatus.CANCELED

    assert not await store.update_status(uuid.uuid4(), BookingStatus.DELETED)


@pytest.mark.asyncio
async def test_fully_booked_dates(store):
    for label in SLOTS:
        await store.insert(make_booking(MONDAY, label))
    for label in SLOTS[:3]:
        await store.insert(make_booking(TUESDAY, label))
    await store.insert(make_booking(TUESDAY, SLOTS[3], BookingStatus.COMPLETED))

    booked_only = await store.fully_booked_dates(SUNDAY, TUESDAY, SLOTS, [BookingStatus.BOOKED])
    with_completed = await store.fully_booked_dates(
        SUNDAY, TUESDAY, SLOTS, [BookingStatus.BOOKED, BookingStatus.COMPLETED]
    )

    assert booked_only == {MONDAY}
    assert with_completed == {MONDAY, TUESDAY}
    assert await store.fully_booked_dates(date(2024, 7, 1), date(2024, 7, 31), SLOTS, [BookingStatus.BOOKED]) == set()


@pytest.mark.asyncio
async def test_count_by_status(store):
    await store.insert(make_booking(MONDAY, "2-4 PM"))
    await store.insert(make_booking(MONDAY, "4-6 PM"))
    await store.insert(make_booking(SUNDAY, "2-4 PM", BookingStatus.COMPLETED))

    counts = await store.count_by_status()

    assert counts == {
        BookingStatus.BOOKED: 2,
        BookingStatus.COMPLETED: 1,
        BookingStatus.CANCELED: 0,
        BookingStatus.DELETED: 0,
    }


@pytest.mark.asyncio
async def test_created_at_round_trips(store, session_factory):
    before = datetime.now()
    booking = await store.insert(make_booking(MONDAY, "2-4 PM"))

    async with session_factory() as session:
        loaded = await BookingStore(session).get(booking.id)

    assert isinstance(loaded.created_at, datetime)
    assert loaded.created_at.tzinfo is None
    assert before - timedelta(seconds=5) <= loaded.created_at <= datetime.now() + timedelta(seconds=5)
    assert loaded.booking_date == MONDAY


@pytest.mark.asyncio
async def test_bad_data_is_not_reported_as_store_unavailable(store):
    with pytest.raises(StatementError) as excinfo:
        await store.insert(make_booking(MONDAY, "2-4 PM", status=42))
    assert not isinstance(excinfo.value, StoreUnavailableError)

    # The session was rolled back and keeps working
    booking = await store.insert(make_booking(MONDAY, "2-4 PM"))
    assert booking.status == BookingStatus.BOOKED


@pytest.mark.asyncio
async def test_unreachable_database_is_store_unavailable(unreachable_store):
    with pytest.raises(StoreUnavailableError):
        await unreachable_store.insert(make_booking(MONDAY, "2-4 PM"))


@pytest.mark.parametrize(
    "exc, expected",
    [
        (OperationalError("SELECT 1", {}, Exception("connection refused")), True),
        (InterfaceError("SELECT 1", {}, Exception("connection closed")), True),
        (DBAPIError("SELECT 1", {}, Exception("reset"), connection_invalidated=True), True),
        (DBAPIError("SELECT 1", {}, Exception("odd")), False),
        (ProgrammingError("SELECT nope", {}, Exception("syntax error")), False),
        (DataError("INSERT", {}, Exception("value too long")), False),
        (StatementError("bad bind", "INSERT", {}, LookupError("42")), False),
    ],
)
def test_is_connectivity_error(exc, expected):
    assert is_connectivity_error(exc) is expected


def test_column_lengths_follow_config():
    columns = Booking.__table__.c
    assert columns.customer_name.type.length == config.CUSTOMER_NAME_MAX_LENGTH
    assert columns.address.type.length == config.ADDRESS_MAX_LENGTH
    assert columns.note.type.length == config.NOTE_MAX_LENGTH
