import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from fastapi import FastAPI, Depends, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

import config
from availability import load_calendar_fully_booked, load_disabled_dates, load_slot_availability
from database import init_db, get_session
from errors import (
    BookingError,
    BookingNotFoundError,
    ConflictError,
    StoreUnavailableError,
    TransitionError,
    ValidationError,
)
from lifecycle import change_status, complete_past_bookings
from models import BookingStatus
from reservations import reserve
from slots import SlotCatalog, get_catalog
from store import BookingStore

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Appointment Booking System")


# Pydantic Schemas for Request/Response
class BookingCreate(BaseModel):
    booking_date: date
    time_slot: str
    customer_name: Optional[str] = None
    address: Optional[str] = None
    note: Optional[str] = None


class BookingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    booking_date: date
    time_slot: str
    customer_name: str
    address: str
    note: Optional[str]
    status: BookingStatus
    created_at: datetime


class BookingList(BaseModel):
    bookings: List[BookingRead]
    auto_completed: int


class StatusUpdate(BaseModel):
    status: BookingStatus


class SlotCatalogInfo(BaseModel):
    time_slots: List[str]
    off_day: str


class SlotAvailability(BaseModel):
    target_date: date
    slots: Dict[str, bool]
    warning: Optional[str] = None


class DisabledDates(BaseModel):
    start: date
    end: date
    disabled_dates: List[date]
    warning: Optional[str] = None


class FullyBookedDates(BaseModel):
    start: date
    end: date
    fully_booked_dates: List[date]


ERROR_STATUS_CODES = {
    ValidationError: 422,
    ConflictError: 409,
    TransitionError: 409,
    BookingNotFoundError: 404,
    StoreUnavailableError: 503,
}


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    status_code = ERROR_STATUS_CODES.get(type(exc), 400)
    body = {"detail": str(exc), "error": exc.kind}
    if isinstance(exc, ValidationError):
        body["detail"] = exc.reason
        body["field"] = exc.field
    return JSONResponse(status_code=status_code, content=body)


@app.on_event("startup")
async def on_startup():
    await init_db()
    catalog = get_catalog()
    logger.info("Serving slots %s, closed on %ss", ", ".join(catalog.labels), catalog.off_day_name)


def get_store(session: AsyncSession = Depends(get_session)) -> BookingStore:
    return BookingStore(session)


def check_range(start: date, end: date) -> None:
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")
    if (end - start).days + 1 > config.MAX_RANGE_DAYS:
        raise HTTPException(status_code=400, detail=f"Date range is limited to {config.MAX_RANGE_DAYS} days")


# --- Customer side ---
@app.get("/slots", response_model=SlotCatalogInfo)
async def get_slots(catalog: SlotCatalog = Depends(get_catalog)):
    return SlotCatalogInfo(time_slots=list(catalog.labels), off_day=catalog.off_day_name)


@app.get("/availability", response_model=SlotAvailability)
async def get_slot_availability(
    target_date: date,
    store: BookingStore = Depends(get_store),
    catalog: SlotCatalog = Depends(get_catalog),
):
    result = await load_slot_availability(store, catalog, target_date)
    return SlotAvailability(target_date=target_date, slots=result.value, warning=result.warning)


@app.get("/disabled-dates", response_model=DisabledDates)
async def get_disabled_dates(
    start: date,
    end: Optional[date] = None,
    store: BookingStore = Depends(get_store),
    catalog: SlotCatalog = Depends(get_catalog),
):
    # Six weeks ahead by default, the span of a month-view calendar grid
    end = end or start + timedelta(days=41)
    check_range(start, end)
    result = await load_disabled_dates(store, catalog, start, end, today=date.today())
    return DisabledDates(start=start, end=end, disabled_dates=sorted(result.value), warning=result.warning)


@app.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    store: BookingStore = Depends(get_store),
    catalog: SlotCatalog = Depends(get_catalog),
):
    details = booking_data.model_dump(include={"customer_name", "address", "note"}, exclude_none=True)
    booking = await reserve(store, catalog, booking_data.booking_date, booking_data.time_slot, details)
    return BookingRead.model_validate(booking)


# --- Admin side ---
@app.get("/bookings", response_model=BookingList)
async def list_bookings(
    status_filter: Optional[List[BookingStatus]] = Query(default=None, alias="status"),
    start: Optional[date] = None,
    end: Optional[date] = None,
    search: Optional[str] = None,
    store: BookingStore = Depends(get_store),
    catalog: SlotCatalog = Depends(get_catalog),
):
    # Loading the list is what moves finished bookings to Completed
    auto_completed = await complete_past_bookings(store, catalog)
    bookings = await store.list_bookings(status=status_filter, start=start, end=end, search=search)
    bookings.sort(key=lambda b: (b.booking_date, catalog.position(b.time_slot)))
    return BookingList(
        bookings=[BookingRead.model_validate(b) for b in bookings],
        auto_completed=auto_completed,
    )


@app.get("/bookings/summary", response_model=Dict[str, int])
async def get_booking_summary(store: BookingStore = Depends(get_store)):
    counts = await store.count_by_status()
    return {booking_status.value: count for booking_status, count in counts.items()}


@app.patch("/bookings/{booking_id}/status", response_model=BookingRead)
async def update_booking_status(
    booking_id: uuid.UUID,
    update: StatusUpdate,
    store: BookingStore = Depends(get_store),
):
    booking = await change_status(store, booking_id, update.status)
    return BookingRead.model_validate(booking)


@app.get("/calendar/fully-booked", response_model=FullyBookedDates)
async def get_calendar_fully_booked(
    start: date,
    end: date,
    store: BookingStore = Depends(get_store),
    catalog: SlotCatalog = Depends(get_catalog),
):
    check_range(start, end)
    dates = await load_calendar_fully_booked(store, catalog, start, end)
    return FullyBookedDates(start=start, end=end, fully_booked_dates=sorted(dates))


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
