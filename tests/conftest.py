import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256-signing")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from insegnami.core.cache import CacheManager
from insegnami.core.database import Database
from insegnami.core.queue import JobQueue
from insegnami.main import create_app
from insegnami.models import Base

from .factories import SchoolFactory


class InMemoryRedis:
    """The subset of redis.asyncio.Redis that CacheManager uses."""

    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value
        return True

    async def setex(self, key, ttl, value):
        self.data[key] = value
        return True

    async def ping(self):
        return True

    async def aclose(self):
        self.data.clear()


class RecordingQueue(JobQueue):
    """Keeps enqueued jobs in memory instead of sending them to a broker."""

    def __init__(self):
        super().__init__(celery_app=None)
        self.jobs = []

    async def enqueue(self, task_name: str, **kwargs) -> bool:
        self.jobs.append((task_name, kwargs))
        return True

    @property
    def emails(self):
        return [kwargs for _, kwargs in self.jobs]

    def close(self):
        self.jobs.clear()


@pytest.fixture
async def database():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    db = Database(engine)
    yield db
    await db.dispose()


@pytest.fixture
async def session(database):
    async with database.session_factory() as s:
        yield s


@pytest.fixture
def cache():
    return CacheManager(InMemoryRedis(), namespace="test")


@pytest.fixture
def queue():
    return RecordingQueue()


@pytest.fixture
def app(database, cache, queue):
    application = create_app()
    application.state.db = database
    application.state.cache = cache
    application.state.queue = queue
    return application


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def factory(session):
    return SchoolFactory(session)
