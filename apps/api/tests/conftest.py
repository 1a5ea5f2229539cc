import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config import settings
from database import Base, get_db
from main import app
from models.user import User
from routers import rate_limit
from services.crypto import hash_password
from services.object_store import LocalObjectStore, get_object_store
from services.session_token import create_access_token

TEST_PASSWORD = "s3cret-pass"


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'videotube.db'}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield maker
    await engine.dispose()


@pytest.fixture
def object_store(tmp_path):
    return LocalObjectStore(tmp_path / "media", "http://test/media")


@pytest_asyncio.fixture
async def api_client(session_maker, object_store, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_TEMP_DIR", str(tmp_path / "uploads"))

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_store] = lambda: object_store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_object_store, None)


@pytest.fixture
def create_user(session_maker):
    """Insert a user directly and return (user_id, auth headers)."""

    async def _create(username: str, email: str = None, full_name: str = None):
        user_id = str(uuid.uuid4())
        async with session_maker() as session:
            session.add(
                User(
                    id=user_id,
                    username=username.lower(),
                    email=(email or f"{username}@example.com").lower(),
                    full_name=full_name or username.title(),
                    avatar=f"http://test/media/{username}.png",
                    password_hash=hash_password(TEST_PASSWORD),
                    watch_history=[],
                )
            )
            await session.commit()
        token = create_access_token(user_id, email=email, username=username)["token"]
        return user_id, {"Authorization": f"Bearer {token}"}

    return _create
