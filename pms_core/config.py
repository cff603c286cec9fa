import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

# Hotel-local wall clock used when a caller does not pass `now` explicitly
HOTEL_TIMEZONE = os.getenv("HOTEL_TIMEZONE", "UTC")

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD").upper()

NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL") or None
NOTIFICATION_TIMEOUT_SECONDS = int(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10"))

ROOM_CHARGE_DESCRIPTION = "Room {room_number} - Night {night}"
