from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.database import Base
from src.models.visit import Visit  # noqa: F401
from src.services.counter_store import CounterStore
from src.services.ingestion_service import IngestionService
from src.services.stats_service import StatsService

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> CounterStore:
    return CounterStore(tz=timezone.utc)


@pytest.fixture()
def ingestion(store: CounterStore, clock: FakeClock) -> IngestionService:
    return IngestionService(store, clock=clock)


@pytest.fixture()
def stats(store: CounterStore, clock: FakeClock) -> StatsService:
    return StatsService(store, clock=clock)


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()
