"""
SQLAlchemy engine singleton for the room-charge claim store.

Only the storage layer imports this module; the derivation core and the
HTTP routes that do not touch the database run without DATABASE_URL.
"""

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from frontdesk.config import DATABASE_URL

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set.")

engine: Engine = create_engine(
    DATABASE_URL,
    future=True,
    pool_size=5,
    max_overflow=10,
    pool_pre_ping=True,
    pool_recycle=3600,
    echo=False,
)


def check_engine_health() -> bool:
    """
    Check if the database is reachable.

    Used by the /ready endpoint.

    Returns:
        bool: True if a trivial query succeeds, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
