import uuid
from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Date, DateTime, Enum as SAEnum, Index, text

import config


class BookingStatus(str, Enum):
    BOOKED = "Booked"
    COMPLETED = "Completed"
    CANCELED = "Canceled"
    DELETED = "Deleted"

    def __str__(self) -> str:
        return self.value


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        # CRITICAL: Database-level protection against double booking.
        # Only the active booking of a slot is unique; history is kept.
        Index(
            "unique_active_booking_slot",
            "booking_date",
            "time_slot",
            unique=True,
            postgresql_where=text("status = 'Booked'"),
            sqlite_where=text("status = 'Booked'"),
        ),
        Index("ix_bookings_date_slot", "booking_date", "time_slot"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    booking_date: date = Field(index=True, sa_type=Date)
    time_slot: str = Field(max_length=32)  # "2-4 PM", ...
    customer_name: str = Field(max_length=config.CUSTOMER_NAME_MAX_LENGTH)
    address: str = Field(max_length=config.ADDRESS_MAX_LENGTH)
    note: Optional[str] = Field(default=None, max_length=config.NOTE_MAX_LENGTH)
    status: BookingStatus = Field(
        default=BookingStatus.BOOKED,
        sa_column=Column(
            SAEnum(
                BookingStatus,
                name="booking_status",
                values_callable=lambda statuses: [s.value for s in statuses],
            ),
            nullable=False,
            index=True,
        ),
    )
    # Naive local time; the service runs in a single implicit zone
    created_at: datetime = Field(default_factory=datetime.now, sa_type=DateTime(timezone=False))
