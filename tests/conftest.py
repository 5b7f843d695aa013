"""
Pytest fixtures et configuration commune pour les tests
"""

import os
import tempfile

# Unconditionally set DATA_DIR for tests to ensure it's writeable
os.environ["DATA_DIR"] = os.path.join(tempfile.gettempdir(), "crucible_monitor_test")
os.environ.pop("EXTRAHOP_API_URL", None)
os.environ.pop("EXTRAHOP_API_KEY", None)

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from app.services.database import DatabaseService
from crucible.models import MetricSample

BASE_TS = 1_700_000_000_000_000_000  # ns


def make_sample(index: int = 0, **overrides) -> MetricSample:
    """One-second-spaced sample of a calm in-match session."""
    values = dict(
        timestamp=BASE_TS + index * 1_000_000_000,
        latency_ms=30.0,
        jitter_ms=3.0,
        packet_loss_percent=0.1,
        bytes_per_second=120_000.0,
        peer_count=6,
        bungie_traffic_percent=10.0,
        p2p_traffic_percent=80.0,
    )
    values.update(overrides)
    return MetricSample(**values)


@pytest.fixture
def sample_factory():
    return make_sample


@pytest.fixture
async def db_service(tmp_path: Path) -> AsyncGenerator[DatabaseService, None]:
    """DatabaseService on a fresh SQLite database"""
    service = DatabaseService(database_url=f"sqlite:///{tmp_path}/crucible_test.db")
    await service.init_db()
    yield service
    await service.close()


@pytest.fixture
async def api_client(tmp_path: Path, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client on the FastAPI app, with fresh database and monitor
    singletons (polling disabled).
    """
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path}/crucible_api.db")
    monkeypatch.delenv("EXTRAHOP_API_URL", raising=False)
    monkeypatch.delenv("EXTRAHOP_API_KEY", raising=False)

    # Clear singletons
    import app.services.database
    import app.services.monitor

    app.services.database._db_service = None
    app.services.monitor._monitor = None

    from app.main import app as fastapi_app
    from app.services.database import get_db_service

    db = get_db_service()
    await db.init_db()

    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as client:
        yield client

    await db.close()
    app.services.database._db_service = None
    app.services.monitor._monitor = None
