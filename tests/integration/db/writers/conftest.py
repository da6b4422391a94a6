"""
Shared fixtures for claim-store integration tests.

Tests are skipped when the database in DATABASE_URL is not reachable.
"""

from __future__ import annotations

from typing import Generator

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Engine

from frontdesk.config import SCHEMA
from frontdesk.db.engine import check_engine_health, engine
from frontdesk.models.base import Base

TEST_ROOM_ID = "itest-room-101"


@pytest.fixture
def claims_engine() -> Generator[Engine, None, None]:
    """
    Engine with the claims table in place.

    Deletes every claim for TEST_ROOM_ID after the test completes.
    """
    if not check_engine_health():
        pytest.skip("database not reachable")

    with engine.begin() as conn:
        conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}"))
    Base.metadata.create_all(engine)

    yield engine

    with engine.begin() as conn:
        conn.execute(
            text(f"DELETE FROM {SCHEMA}.room_charge_claims WHERE room_id = :room_id"),
            {"room_id": TEST_ROOM_ID},
        )
