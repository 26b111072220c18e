from datetime import time

import fakeredis
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from medinexa.core.redis import redis_client
from medinexa.core.security import create_access_token
from medinexa.db.models import Clinic
from medinexa.db.session import get_session, init_db
from medinexa.main import app

# A file-backed SQLite database so concurrent sessions get their own connections
@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}", echo=False)
    await init_db(engine)
    yield engine
    await engine.dispose()

@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session

@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = fakeredis.FakeAsyncRedis(decode_responses=True)
    monkeypatch.setattr(redis_client, "redis", fake)
    return fake

@pytest.fixture
def published(monkeypatch):
    """Capture queue events instead of sending them to the broker."""
    events = []

    async def record(clinic_id, event, payload):
        events.append({"clinic_id": clinic_id, "event": event, **payload})
        return 1

    monkeypatch.setattr(redis_client, "publish_queue_event", record)
    return events

@pytest.fixture
def make_clinic(session_factory):
    async def factory(clinic_id: str = "clinic-1", **overrides) -> Clinic:
        fields = {
            "name": "City Care Clinic",
            "address": "12 MG Road",
            "fees": 300.0,
            "open_time": time(9, 0),
            "close_time": time(17, 0),
            "avg_time_per_patient": 10,
        }
        fields.update(overrides)
        async with session_factory() as session:
            clinic = Clinic(id=clinic_id, **fields)
            session.add(clinic)
            await session.commit()
            await session.refresh(clinic)
            return clinic
    return factory

@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

@pytest.fixture
def auth_headers():
    def build(account_id: str, role: str, name: str = None) -> dict:
        claims = {"sub": account_id, "role": role}
        if name:
            claims["name"] = name
        return {"Authorization": f"Bearer {create_access_token(claims)}"}
    return build
