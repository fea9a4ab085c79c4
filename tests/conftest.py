"""
Shared test fixtures.

Each test gets its own file-backed SQLite database (via aiosqlite) built
from the production metadata, so tests run without Docker / PostgreSQL /
Redis.  ``SELECT ... FOR UPDATE`` is a no-op on SQLite; the in-process
lock provider still serialises transitions.
"""

import os

# must be set before anything under src/ reads the settings
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT", "1000/minute")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOCK_BACKEND", "memory")

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.domain.enums import Role, TripStatus
from src.infrastructure.database import Base
from src.infrastructure.locks import LocalLockProvider
from src.infrastructure.models import CabModel, TripModel, UserModel
from src.infrastructure.security import hash_password
from src.infrastructure.storage import FileStorage

PASSWORD = "secret123"
_PASSWORD_HASH = hash_password(PASSWORD, rounds=4)


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def locks():
    return LocalLockProvider(wait_seconds=5.0)


@pytest.fixture
def storage(tmp_path):
    return FileStorage(tmp_path / "uploads")


# ── Data factory ──────────────────────────────────────────────────────


class Factory:
    """Inserts users, cabs and trips with sensible defaults."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def customer(self, username: Optional[str] = None) -> UserModel:
        n = self._next()
        username = username or f"customer{n}"
        return await self._save(
            UserModel(
                role=Role.CUSTOMER,
                username=username,
                password_hash=_PASSWORD_HASH,
                email=f"{username}@example.com",
            )
        )

    async def admin(self, username: Optional[str] = None, verified: bool = True) -> UserModel:
        n = self._next()
        username = username or f"admin{n}"
        return await self._save(
            UserModel(
                role=Role.ADMIN,
                username=username,
                password_hash=_PASSWORD_HASH,
                email=f"{username}@example.com",
                name="Admin",
                verified=verified,
            )
        )

    async def driver(
        self,
        username: Optional[str] = None,
        *,
        rating: float = 4.5,
        total_ratings: int = 10,
        verified: bool = True,
        available: bool = True,
        location: Optional[tuple[float, float]] = None,
        car_type: Optional[str] = "Sedan",
        per_km_rate: float = 15.0,
        cab_available: bool = True,
    ) -> tuple[UserModel, Optional[CabModel]]:
        """A driver and, unless *car_type* is None, their cab."""
        n = self._next()
        username = username or f"driver{n}"
        driver = await self._save(
            UserModel(
                role=Role.DRIVER,
                username=username,
                password_hash=_PASSWORD_HASH,
                email=f"{username}@example.com",
                licence_no=f"LIC-{n:04d}",
                rating=rating,
                total_ratings=total_ratings,
                verified=verified,
                is_available=available,
                latitude=location[0] if location else None,
                longitude=location[1] if location else None,
            )
        )
        cab = None
        if car_type is not None:
            cab = await self._save(
                CabModel(
                    driver_id=driver.id,
                    car_type=car_type,
                    per_km_rate=per_km_rate,
                    number_plate=f"PLATE{n:04d}",
                    is_available=cab_available,
                )
            )
        return driver, cab

    async def trip(
        self,
        customer: UserModel,
        *,
        car_type: Optional[str] = "Sedan",
        pickup: Optional[tuple[float, float]] = None,
        status: TripStatus = TripStatus.SCHEDULED,
        **fields,
    ) -> TripModel:
        return await self._save(
            TripModel(
                customer_id=customer.id,
                from_location="Airport",
                to_location="City Centre",
                car_type=car_type,
                from_latitude=pickup[0] if pickup else None,
                from_longitude=pickup[1] if pickup else None,
                status=status,
                **fields,
            )
        )


@pytest_asyncio.fixture
async def factory(db_session) -> Factory:
    return Factory(db_session)


# ── HTTP ──────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def app(session_factory, storage):
    from src.api.app import create_app
    from src.api.dependencies import get_db
    from src.api.middleware import limiter

    application = create_app()
    application.state.file_storage = storage

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = override_get_db
    limiter.reset()
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
def login(client):
    """Log in and return bearer headers for the given username."""

    async def _login(username: str, password: str = PASSWORD) -> dict:
        resp = await client.post(
            "/api/v1/login", json={"username": username, "password": password}
        )
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _login
