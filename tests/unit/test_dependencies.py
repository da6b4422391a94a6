"""
Unit tests for FastAPI dependency injection.
"""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from frontdesk.dependencies import get_database_health, get_db_engine


@pytest.mark.unit
def test_get_db_engine_dependency() -> None:
    """Test that get_db_engine yields the shared engine instance."""
    engine1 = next(get_db_engine())
    engine2 = next(get_db_engine())

    assert isinstance(engine1, Engine)
    assert engine1 is engine2


@pytest.mark.unit
def test_dependency_injection_can_be_overridden() -> None:
    """Test that the engine dependency can be swapped out in tests."""
    app = FastAPI()

    @app.get("/test")
    def endpoint(engine: Engine = Depends(get_db_engine)) -> dict[str, str]:
        return {"engine_name": engine.name}

    mock_engine = Mock(spec=Engine)
    mock_engine.name = "mock_engine"
    app.dependency_overrides[get_db_engine] = lambda: mock_engine

    response = TestClient(app).get("/test")

    assert response.status_code == 200
    assert response.json() == {"engine_name": "mock_engine"}


@pytest.mark.unit
def test_database_health_false_without_database_url() -> None:
    with patch("frontdesk.dependencies.DATABASE_URL", None):
        assert get_database_health() is False


@pytest.mark.unit
def test_database_health_delegates_to_engine_check() -> None:
    with patch("frontdesk.db.engine.check_engine_health", return_value=True) as mock_check:
        assert get_database_health() is True
    mock_check.assert_called_once()
