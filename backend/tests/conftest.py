"""Shared fixtures: in-memory SQLite database, seeded points, API client."""
import os

# Must be set before config.settings is created
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("CONSUMER_ENABLED", "false")
os.environ.setdefault("ALARM_TIMEZONE", "UTC")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from models import Base, DataPoint, get_session
from models.base import make_engine
from services.alarm_levels import classify_alarm_level


@pytest_asyncio.fixture
async def db_engine():
    engine = make_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


def make_point(point_id: int, xid: str, name: str, level: int | None = None) -> DataPoint:
    return DataPoint(
        id=point_id,
        xid=xid,
        name=name,
        data_type="binary",
        point_name=name,
        plc_alarm_level=classify_alarm_level(name) if level is None else level,
    )


@pytest_asyncio.fixture
async def points(session):
    """P101 alarm point, P102 state point, P103 unsupervised point."""
    seeded = {
        "P101": make_point(101, "DP_P101", "Boiler P101 AL overpressure"),
        "P102": make_point(102, "DP_P102", "Pump P102 ST running"),
        "P103": make_point(103, "DP_P103", "Tank P103 level"),
    }
    session.add_all(seeded.values())
    await session.commit()
    return seeded


@pytest_asyncio.fixture
async def client(session_factory):
    from main import app

    async def _override_session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_session, None)
