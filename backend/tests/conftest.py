import os
import sys
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# A sufficiently long JWT secret for tests
TEST_JWT_SECRET = "x" * 32
os.environ.setdefault("JWT_SECRET", TEST_JWT_SECRET)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
# main.py refuses to import without an explicit origin list
os.environ.setdefault("ALLOWED_ORIGINS", "http://localhost:3000")

# Register every model with the declarative Base before create_all runs.
from courtqueue import db, models  # noqa: E402,F401
from courtqueue.models import Court, Player, User  # noqa: E402
from courtqueue.services import ledger, rotations  # noqa: E402
from courtqueue.services.courts import ensure_occupancies  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    """Ensure a strong JWT secret is present for all tests."""
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    yield


@pytest.fixture
async def engine(anyio_backend):
    """Fresh in-memory database per test."""

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(db.Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def club(session):
    """An admin with eight checked-in players and two courts in an open rotation."""

    admin = User(id="admin", username="admin", role="admin")
    players = [
        Player(id=f"p{i}", full_name=f"Player {i}", created_by="admin")
        for i in range(1, 9)
    ]
    courts = [
        Court(id="c1", name="Court 1", active=True, created_by="admin"),
        Court(id="c2", name="Court 2", active=True, created_by="admin"),
    ]
    session.add(admin)
    session.add_all(players)
    session.add_all(courts)
    await session.flush()

    rotation = await rotations.create_rotation(session, "admin", "Tuesday Night")
    await rotations.open_rotation(session, rotation)
    occupancies = await ensure_occupancies(session, rotation.id, courts)
    for player in players:
        await ledger.check_in(session, rotation.id, player.id)
    await session.commit()

    return SimpleNamespace(
        admin=admin,
        rotation=rotation,
        rotation_id=rotation.id,
        courts=courts,
        occupancies=occupancies,
        player_ids=[p.id for p in players],
    )
