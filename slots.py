"""
Slot catalog: the fixed daily time slots and the weekly off-day.

Slots are identified by their label, e.g. "2-4 PM". The label is also what
gets stored on a booking, so the start/end times are parsed from it.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

import config

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_LABEL_RE = re.compile(
    r"^\s*(\d{1,2})(?::(\d{2}))?\s*(AM|PM)?\s*-\s*(\d{1,2})(?::(\d{2}))?\s*(AM|PM)\s*$",
    re.IGNORECASE,
)


def _to_time(hour: int, minute: int, meridiem: str) -> time:
    if not 1 <= hour <= 12 or not 0 <= minute <= 59:
        raise ValueError(f"invalid clock time {hour}:{minute:02d} {meridiem}")
    hour = hour % 12
    if meridiem.upper() == "PM":
        hour += 12
    return time(hour, minute)


@dataclass(frozen=True)
class TimeSlot:
    label: str
    start: time
    end: time

    @classmethod
    def parse(cls, label: str) -> "TimeSlot":
        """Parse a label such as "2-4 PM", "11 AM-1 PM" or "2:30-4 PM".

        A start without AM/PM takes the end's meridiem, unless that would put
        it after the end ("11-1 PM" means 11 AM to 1 PM).
        """
        match = _LABEL_RE.match(label)
        if not match:
            raise ValueError(f"unrecognised time slot label: {label!r}")
        s_hour, s_min, s_mer, e_hour, e_min, e_mer = match.groups()
        end = _to_time(int(e_hour), int(e_min or 0), e_mer)
        if s_mer:
            start = _to_time(int(s_hour), int(s_min or 0), s_mer)
        else:
            start = _to_time(int(s_hour), int(s_min or 0), e_mer)
            if start > end:
                flipped = _to_time(int(s_hour), int(s_min or 0), "AM" if e_mer.upper() == "PM" else "PM")
                if flipped <= end:
                    start = flipped
        if start == end:
            raise ValueError(f"time slot {label!r} has no duration")
        return cls(label=label, start=start, end=end)

    def end_on(self, day: date) -> datetime:
        # An end at or before the start belongs to the following day.
        end = datetime.combine(day, self.end)
        if self.end <= self.start:
            end += timedelta(days=1)
        return end


def parse_weekday(name: str) -> int:
    key = name.strip().lower()
    for index, weekday in enumerate(WEEKDAYS):
        if weekday == key or weekday[:3] == key:
            return index
    raise ValueError(f"unknown weekday: {name!r}")


@dataclass(frozen=True)
class SlotCatalog:
    slots: tuple[TimeSlot, ...]
    off_day: int = 6  # date.weekday(), Sunday

    @classmethod
    def from_labels(cls, labels: Iterable[str], off_day: str = "sunday") -> "SlotCatalog":
        slots = tuple(TimeSlot.parse(label) for label in labels)
        if not slots:
            raise ValueError("the slot catalog needs at least one time slot")
        names = [slot.label for slot in slots]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate time slot labels: {names}")
        return cls(slots=slots, off_day=parse_weekday(off_day))

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(slot.label for slot in self.slots)

    @property
    def off_day_name(self) -> str:
        return WEEKDAYS[self.off_day].capitalize()

    def __len__(self) -> int:
        return len(self.slots)

    def contains(self, label: str) -> bool:
        return label in self.labels

    def position(self, label: str) -> int:
        """Index in the catalog; unknown labels sort after every known one."""
        try:
            return self.labels.index(label)
        except ValueError:
            return len(self.slots)

    def get(self, label: str) -> Optional[TimeSlot]:
        for slot in self.slots:
            if slot.label == label:
                return slot
        return None

    def is_off_day(self, day: date) -> bool:
        return day.weekday() == self.off_day

    def end_of(self, day: date, label: str) -> datetime:
        """End moment of ``label`` on ``day``.

        Labels dropped from the catalog are still parsed so that old bookings
        keep completing. Raises ValueError for labels that cannot be parsed.
        """
        slot = self.get(label) or TimeSlot.parse(label)
        return slot.end_on(day)


_catalog: Optional[SlotCatalog] = None


def get_catalog() -> SlotCatalog:
    global _catalog
    if _catalog is None:
        _catalog = SlotCatalog.from_labels(config.TIME_SLOTS, config.OFF_DAY)
    return _catalog
