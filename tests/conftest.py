"""
Shared test fixtures: SQLite database, registry, cipher and a sample bot.

Every test gets a fresh file-backed SQLite database (aiosqlite) so the
execution service's separate telemetry sessions see the same data.
"""

import os

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Ensure tests never pick up real secrets or databases
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.pop("CREDENTIAL_ENCRYPTION_KEY", None)

from botstack.core.tools.registry import ToolRegistry  # noqa: E402
from botstack.models import Base, Bot, Conversation  # noqa: E402
from botstack.services.credentials.cipher import CredentialCipher, set_cipher  # noqa: E402
from botstack.settings import clear_settings_cache  # noqa: E402

TEST_ENCRYPTION_KEY = "0123456789abcdef0123456789abcdef"


@pytest.fixture(autouse=True)
def _isolate_singletons():
    """Reset cached settings and the default cipher around each test."""
    clear_settings_cache()
    set_cipher(None)
    yield
    set_cipher(None)
    clear_settings_cache()


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def cipher():
    """Cipher with a valid 32-byte key, installed as the default."""
    cipher = CredentialCipher(TEST_ENCRYPTION_KEY)
    set_cipher(cipher)
    return cipher


@pytest.fixture
def registry():
    return ToolRegistry()


@pytest.fixture
async def bot(session):
    bot = Bot(name="Front desk", user_id="user-1", organization_id="org-1")
    session.add(bot)
    await session.commit()
    return bot


@pytest.fixture
async def conversation(session, bot):
    conversation = Conversation(bot_id=bot.id)
    session.add(conversation)
    await session.commit()
    return conversation
