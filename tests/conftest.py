"""
Shared test fixtures.

These replace real infrastructure with lightweight in-memory alternatives:
- PostgreSQL → SQLite in memory (StaticPool, so every session sees the same DB)
- Redis → fakeredis (pure Python Redis mock)
- HTTP server → httpx.AsyncClient with ASGI transport (no network)
- Wall clock → FakeClock, advanced by hand

SQLite doesn't keep tzinfo, so the fake clock hands out naive UTC datetimes;
values read back from the database then compare directly with clock.now.
"""

from datetime import datetime, timedelta

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from config.settings import QueueConfig
from jobs.base import JobResult
from jobs.registry import HandlerRegistry
from models.base import build_engine, build_session_factory, create_tables
from models.job import Job
from scheduler.base import AbstractDispatchTrigger
from worker.events import QueueEvents
from worker.service import QueueService

TEST_DB_URL = "sqlite:///:memory:"


class FakeClock:

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingEvents(QueueEvents):
    """Keeps every notification so tests can assert on them."""

    def __init__(self):
        self.completed = []
        self.failed = []
        self.dead = []

    def job_completed(self, job_id, job_type, duration):
        self.completed.append((job_id, job_type, duration))

    def job_failed(self, job_id, job_type, error, attempts):
        self.failed.append((job_id, job_type, error, attempts))

    def job_dead_lettered(self, job_id, job_type, error, attempts):
        self.dead.append((job_id, job_type, error, attempts))


class RecordingTrigger(AbstractDispatchTrigger):

    def __init__(self):
        self.requests = []

    def request_dispatch(self, delay_seconds: float) -> None:
        self.requests.append(delay_seconds)


@pytest.fixture
def engine():
    """A fresh in-memory database for each test."""
    engine = build_engine(TEST_DB_URL)
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 5, 12, 0, 0))


@pytest.fixture
def events():
    return RecordingEvents()


@pytest.fixture
def trigger():
    return RecordingTrigger()


@pytest.fixture
def calls():
    """(job_id, payload) pairs seen by the `record` handler."""
    return []


@pytest.fixture
def registry(calls):
    """Registry with three simple handlers: record (succeeds), fail, boom (raises)."""
    registry = HandlerRegistry()

    def record(payload, job_id):
        calls.append((job_id, payload))
        return JobResult.success()

    def fail(payload, job_id):
        return JobResult.failure(payload.get("message", "temporary outage"))

    def boom(payload, job_id):
        raise RuntimeError("handler exploded")

    registry.register("record", record)
    registry.register("fail", fail)
    registry.register("boom", boom)
    return registry


@pytest.fixture
def config():
    return QueueConfig()


@pytest.fixture
def service(session_factory, registry, config, events, trigger, clock):
    return QueueService(
        session_factory,
        registry,
        config=config,
        events=events,
        trigger=trigger,
        clock=clock,
    )


@pytest.fixture
def load_job(session_factory):
    """Read one job row fresh from the database."""
    def _load(job_id: int) -> Job:
        with session_factory() as session:
            return session.get(Job, job_id)
    return _load


@pytest.fixture
def fake_redis():
    r = fakeredis.FakeRedis()
    yield r
    r.flushall()


@pytest_asyncio.fixture
async def client(service, fake_redis):
    """
    A test HTTP client that talks directly to the FastAPI app.

    dependency_overrides swaps in the test QueueService and fake Redis.
    ASGITransport doesn't run the lifespan, so no real database or Redis
    connection is ever attempted.
    """
    from api.dependencies import get_queue, get_redis
    from api.main import create_app

    app = create_app()
    app.dependency_overrides[get_queue] = lambda: service
    app.dependency_overrides[get_redis] = lambda: fake_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
