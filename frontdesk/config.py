import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"

# Only the storage layer needs a database; the derivation core runs without one.
DATABASE_URL = os.getenv("DATABASE_URL")

SCHEMA = "frontdesk"

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",") if origin.strip()
]

# Roles allowed to override check-in / checkout preconditions
ELEVATED_ROLES: frozenset[str] = frozenset(
    role.strip().upper()
    for role in os.getenv("ELEVATED_ROLES", "ADMIN,MANAGER").split(",")
    if role.strip()
)

# IANA zone used to turn reservation timestamps into calendar nights.
# Empty means the interpreter's local time.
HOTEL_TIMEZONE = os.getenv("HOTEL_TIMEZONE", "").strip()

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD").strip().upper() or "USD"

# A room-charge claim with no order behind it is considered abandoned after this long
ROOM_CHARGE_CLAIM_STALE_SECONDS = int(os.getenv("ROOM_CHARGE_CLAIM_STALE_SECONDS", "900"))
