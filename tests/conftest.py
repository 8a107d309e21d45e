"""
Pytest configuration and shared fixtures.

- A controllable clock, so TOTP codes are deterministic
- Temporary SQLite databases (async fixtures for store/service tests,
  sync fixtures for TestClient-based API tests)
- A seeded account with a known password
"""
import asyncio
import os

# Cheap bcrypt for tests; must be set before settings are first loaded
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest

from backend.app.db.base import Base
from backend.app.db.session import build_engine, build_sessionmaker
from backend.app.models.user import User
from backend.app.security.crypto import SecretCipher, generate_key
from backend.app.security.hashing import get_password_hash

PASSWORD = "correct horse battery staple"
USERNAME = "alice"

# Mid-step (56666666.67 steps of 30s) so t ± 30s lands in the neighbouring steps
NOW = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cipher():
    return SecretCipher.from_base64(generate_key())


@pytest.fixture(scope="session")
def password_hash():
    return get_password_hash(PASSWORD)


async def _create_schema(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _add_user(session_factory, username, hashed_password):
    async with session_factory() as session:
        user = User(username=username, hashed_password=hashed_password)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user.id


# ============================================
# Async database fixtures (store / service tests)
# ============================================

@pytest.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await _create_schema(engine)
    yield build_sessionmaker(engine)
    await engine.dispose()


@pytest.fixture
async def account_id(session_factory, password_hash):
    return await _add_user(session_factory, USERNAME, password_hash)


# ============================================
# Sync database fixtures (API tests)
# ============================================

@pytest.fixture
def api_session_factory(tmp_path, password_hash):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    asyncio.run(_create_schema(engine))
    factory = build_sessionmaker(engine)
    asyncio.run(_add_user(factory, USERNAME, password_hash))
    yield factory
    asyncio.run(engine.dispose())
