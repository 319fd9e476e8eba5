import os

# Set required env vars before any app module is imported so
# pydantic-settings picks them up during tests.
_test_env = {
    "DATABASE_URL": "sqlite+aiosqlite:///./test_complaints.db",
    "JWT_SECRET": "test-jwt-secret",
    "SCORE_REFRESH_INTERVAL_MINUTES": "0",
    "CORS_ORIGINS": '["http://localhost:5173"]',
}

for key, value in _test_env.items():
    os.environ.setdefault(key, value)

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from app.db import Base, get_db, get_session_factory  # noqa: E402
from app.main import app  # noqa: E402
from app.models.user import User  # noqa: E402
from app.routers.auth import create_token  # noqa: E402
from app.seed import hash_password  # noqa: E402

TEST_PASSWORD = "s3cret-pass"


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'complaints.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(session_factory, username: str, role: str) -> User:
    async with session_factory() as session:
        user = User(
            username=username,
            email=f"{username}@college.edu",
            hashed_password=hash_password(TEST_PASSWORD),
            role=role,
            is_active=True,
        )
        session.add(user)
        await session.commit()
        return user


@pytest_asyncio.fixture
async def admin_user(session_factory) -> User:
    return await _create_user(session_factory, "registrar", "admin")


@pytest_asyncio.fixture
async def student_user(session_factory) -> User:
    return await _create_user(session_factory, "priya", "student")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_token(user.id)}"}


@pytest_asyncio.fixture
async def admin_headers(admin_user) -> dict:
    return auth_headers(admin_user)


@pytest_asyncio.fixture
async def student_headers(student_user) -> dict:
    return auth_headers(student_user)
