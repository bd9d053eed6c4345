import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from monkmode.database import get_db
from monkmode.dependencies import get_current_user
from monkmode.main import app
from monkmode.models import Base
from monkmode.models.user import User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakePipeline:
    """Queues sorted-set commands and runs them against a FakeRedis."""

    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._commands: list = []

    def zremrangebyscore(self, key: str, min_score: float, max_score: float):
        self._commands.append(("zremrangebyscore", key, min_score, max_score))

    def zadd(self, key: str, mapping: dict):
        self._commands.append(("zadd", key, mapping))

    def zcard(self, key: str):
        self._commands.append(("zcard", key))

    def expire(self, key: str, seconds: int):
        self._commands.append(("expire", key, seconds))

    async def execute(self) -> list:
        results = []
        for name, key, *args in self._commands:
            zset = self._redis._zsets.setdefault(key, {})
            if name == "zremrangebyscore":
                low, high = args
                stale = [m for m, s in zset.items() if low <= s <= high]
                for member in stale:
                    del zset[member]
                results.append(len(stale))
            elif name == "zadd":
                zset.update(args[0])
                results.append(len(args[0]))
            elif name == "zcard":
                results.append(len(zset))
            elif name == "expire":
                self._redis._ttls[key] = args[0]
                results.append(True)
        self._commands.clear()
        return results


class FakeRedis:
    """In-memory Redis mock for testing."""

    def __init__(self):
        self._store: dict[str, str] = {}
        self._zsets: dict[str, dict[str, float]] = {}
        self._ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self._store[key] = str(value)
        if ex:
            self._ttls[key] = ex

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


class RecordingNotifier:
    """Notification sink that records every event instead of pushing it."""

    def __init__(self):
        self.sent: list[tuple[uuid.UUID, str, dict]] = []

    def send(self, recipient_id: uuid.UUID, event: str, payload: dict) -> None:
        self.sent.append((recipient_id, event, payload))


class FailingNotifier:
    """Notification sink whose every send blows up."""

    def __init__(self):
        self.calls = 0

    def send(self, recipient_id: uuid.UUID, event: str, payload: dict) -> None:
        self.calls += 1
        raise ConnectionError("notification hub unreachable")


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


async def _create_user(db_session: AsyncSession, username: str, display_name: str) -> User:
    user = User(
        id=uuid.uuid4(),
        username=username,
        display_name=display_name,
        email=f"{username}@example.com",
        created_at=datetime.now(timezone.utc),
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "testuser", "Test User")


@pytest.fixture
async def second_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "frienduser", "Friend User")


@pytest.fixture
async def third_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "outsider", "Outside User")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()


def _override_db(db_engine):
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return override_get_db


@pytest.fixture
async def client(
    db_engine, test_user: User, notifier: RecordingNotifier
) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_current_user():
        return test_user

    original_notifier = app.state.notifier
    app.dependency_overrides[get_db] = _override_db(db_engine)
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.state.redis = FakeRedis()
    app.state.notifier = notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.notifier = original_notifier


@pytest.fixture
async def anon_client(db_engine) -> AsyncGenerator[AsyncClient, None]:
    """Client that goes through real bearer-token authentication."""
    app.dependency_overrides[get_db] = _override_db(db_engine)
    app.state.redis = FakeRedis()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
