import os

from dotenv import load_dotenv

load_dotenv()


def _csv(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


DATABASE_URL = os.environ.get("DATABASE_URL")
DB_ECHO = os.environ.get("DB_ECHO", "false").lower() == "true"

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Fixed daily slot set, in display order.
TIME_SLOTS = _csv("TIME_SLOTS", "2-4 PM,4-6 PM,6-8 PM,8-10 PM")

# Weekly non-operating day (english day name)
OFF_DAY = os.environ.get("OFF_DAY", "sunday")

CUSTOMER_NAME_MAX_LENGTH = int(os.environ.get("CUSTOMER_NAME_MAX_LENGTH", "100"))
ADDRESS_MAX_LENGTH = int(os.environ.get("ADDRESS_MAX_LENGTH", "200"))
NOTE_MAX_LENGTH = int(os.environ.get("NOTE_MAX_LENGTH", "500"))

# Statuses that make a slot count as taken for the "fully booked" checks.
# The date picker and the calendar export are configured separately.
DATE_PICKER_OCCUPYING_STATUSES = _csv("DATE_PICKER_OCCUPYING_STATUSES", "Booked")
CALENDAR_OCCUPYING_STATUSES = _csv("CALENDAR_OCCUPYING_STATUSES", "Booked,Completed")

MAX_RANGE_DAYS = int(os.environ.get("MAX_RANGE_DAYS", "366"))

CORS_ORIGINS = _csv("CORS_ORIGINS", "*")
