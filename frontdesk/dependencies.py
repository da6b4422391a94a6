"""
FastAPI dependency providers.

Database access is resolved lazily so the derivation routes work in
deployments without DATABASE_URL. Override these with
``app.dependency_overrides`` in tests.
"""

from __future__ import annotations

from typing import Generator

from sqlalchemy.engine import Engine

from frontdesk.config import DATABASE_URL


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide the database engine.

    Example:
        >>> @router.post("/claims/{room_id}/{reservation_id}/release")
        >>> def release(room_id: str, reservation_id: str, engine: Engine = Depends(get_db_engine)):
        ...     SqlRoomChargeGuard(engine).release(room_id, reservation_id)
    """
    from frontdesk.db.engine import engine

    yield engine


def get_database_health() -> bool:
    """False when no database is configured or it cannot be reached."""
    if not DATABASE_URL:
        return False

    from frontdesk.db.engine import check_engine_health

    return check_engine_health()
