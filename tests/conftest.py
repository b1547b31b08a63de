"""Shared test fixtures."""

from __future__ import annotations

import os
from datetime import time
from pathlib import Path

import httpx
import pytest
from sqlalchemy.orm import sessionmaker

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite://"  # In-memory DB for tests

from turnover.database import init_db, make_engine
from turnover.dates import at_time
from turnover.events import EventBus
from turnover.models.property import CalendarSource, Property
from turnover.modules.cleaning_status.store import CleaningStatusStore

from tests.fixtures.helpers import TODAY, FakeNotifier, FixedClock


FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def engine(tmp_path: Path):
    """A fresh SQLite file database per test; writes come from a worker thread."""
    engine = make_engine(f"sqlite:///{tmp_path / 'turnover.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def event_bus():
    """Create a fresh event bus for each test."""
    return EventBus()


@pytest.fixture
def clock() -> FixedClock:
    """Today at 11:00, after the default checkout deadline."""
    return FixedClock(at_time(TODAY, time(11, 0)))


@pytest.fixture
def store(session_factory, event_bus, clock):
    store = CleaningStatusStore(session_factory, bus=event_bus, clock=clock)
    yield store
    store.close()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def sample_property() -> Property:
    """A property with a VRBO and an Airbnb feed, not bound to any session."""
    return Property(
        id="kawama-c2",
        name="kawama-c2",
        display_name="Kawama C-2",
        short_name="C-2",
        color_hex="FF8C00",
        sources=[
            CalendarSource(platform="VRBO", url="https://vrbo.test/c2.ics", position=0),
            CalendarSource(platform="AirBnB", url="https://airbnb.test/c2.ics", position=1),
        ],
    )


@pytest.fixture
def sample_ics() -> str:
    """Load sample iCal data."""
    return (FIXTURES_DIR / "sample.ics").read_text()


@pytest.fixture
def mock_client():
    """Build an AsyncClient answering from a url -> body map; counts requests per url."""
    def build(routes: dict[str, str | int | Exception]) -> httpx.AsyncClient:
        calls: dict[str, int] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            calls[url] = calls.get(url, 0) + 1
            body = routes.get(url, 404)
            if isinstance(body, Exception):
                raise body
            if isinstance(body, int):
                return httpx.Response(body, request=request)
            return httpx.Response(200, text=body, request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client.calls = calls  # type: ignore[attr-defined]
        return client

    return build
