"""Pytest configuration and fixtures for AgroHub tests.

Integration tests run against a fresh in-memory SQLite database per test;
unit tests drive the tenancy layer through `MemoryOwnershipStore`.
"""

import os

# Must be set before agrohub.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SKIP_AUTH_DEV"] = "false"

from typing import AsyncGenerator, Iterable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import agrohub.models  # noqa: F401
from agrohub.auth.jwt import create_access_token
from agrohub.auth.password import hash_password
from agrohub.database import Base, get_db
from agrohub.main import app
from agrohub.models.crop import Crop
from agrohub.models.farm import Farm
from agrohub.models.field import Field
from agrohub.models.user import User, UserRole


# ── In-memory ownership store ────────────────────────────────────

class MemoryOwnershipStore:
    """OwnershipStore double backed by plain dicts.

    `calls` records every lookup by name; any lookup named in `fail_on`
    raises instead of answering.
    """

    def __init__(
        self,
        farms: dict[str, str] | None = None,      # farm_id -> owner_id
        fields: dict[str, str] | None = None,     # field_id -> farm_id
        crops: dict[str, str] | None = None,      # crop_id -> field_id
        livestock: dict[str, str] | None = None,  # livestock_id -> field_id
    ):
        self.farms = farms or {}
        self.fields = fields or {}
        self.crops = crops or {}
        self.livestock = livestock or {}
        self.calls: list[str] = []
        self.fail_on: set[str] = set()

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise ConnectionError(f"{name}: connection refused password=hunter2")

    def _owner_of_field(self, field_id: str) -> str | None:
        farm_id = self.fields.get(field_id)
        return self.farms.get(farm_id) if farm_id else None

    async def farm_ids_owned_by(self, user_id: str) -> list[str]:
        self._record("farm_ids_owned_by")
        return [f for f, owner in self.farms.items() if owner == user_id]

    async def field_ids_in_farms(self, farm_ids: Iterable[str]) -> list[str]:
        self._record("field_ids_in_farms")
        farm_ids = set(farm_ids)
        return [f for f, farm in self.fields.items() if farm in farm_ids]

    async def crop_ids_in_fields(self, field_ids: Iterable[str]) -> list[str]:
        self._record("crop_ids_in_fields")
        field_ids = set(field_ids)
        return [c for c, field in self.crops.items() if field in field_ids]

    async def livestock_ids_in_fields(self, field_ids: Iterable[str]) -> list[str]:
        self._record("livestock_ids_in_fields")
        field_ids = set(field_ids)
        return [a for a, field in self.livestock.items() if field in field_ids]

    async def farm_owned_by(self, farm_id: str, user_id: str) -> bool:
        self._record("farm_owned_by")
        return self.farms.get(farm_id) == user_id

    async def field_owned_by(self, field_id: str, user_id: str) -> bool:
        self._record("field_owned_by")
        return self._owner_of_field(field_id) == user_id

    async def crop_owned_by(self, crop_id: str, user_id: str) -> bool:
        self._record("crop_owned_by")
        field_id = self.crops.get(crop_id)
        return field_id is not None and self._owner_of_field(field_id) == user_id

    async def livestock_owned_by(self, livestock_id: str, user_id: str) -> bool:
        self._record("livestock_owned_by")
        field_id = self.livestock.get(livestock_id)
        return field_id is not None and self._owner_of_field(field_id) == user_id


@pytest.fixture
def memory_store() -> MemoryOwnershipStore:
    """Two tenants: u1 owns F1 (fields A, B), u2 owns F2 (field C)."""
    return MemoryOwnershipStore(
        farms={"F1": "u1", "F2": "u2"},
        fields={"A": "F1", "B": "F1", "C": "F2"},
        crops={"crop-a": "A", "crop-c": "C"},
        livestock={"herd-b": "B", "herd-c": "C"},
    )


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the database dependency pointed at `db_session`."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

async def _make_user(db_session: AsyncSession, email: str, name: str) -> User:
    user = User(
        email=email,
        name=name,
        hashed_password=hash_password("testpassword123"),
        role=UserRole.USER,
        is_active=True,
    )
    db_session.add(user)
    await db_session.flush()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def user_a(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "ana@example.com", "Ana")


@pytest_asyncio.fixture
async def user_b(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "bruno@example.com", "Bruno")


@pytest_asyncio.fixture
async def farm_a(db_session: AsyncSession, user_a: User) -> Farm:
    farm = Farm(name="Fazenda Boa Vista", owner_id=user_a.id)
    db_session.add(farm)
    await db_session.flush()
    return farm


@pytest_asyncio.fixture
async def farm_b(db_session: AsyncSession, user_b: User) -> Farm:
    farm = Farm(name="Sítio Esperança", owner_id=user_b.id)
    db_session.add(farm)
    await db_session.flush()
    return farm


@pytest_asyncio.fixture
async def field_a(db_session: AsyncSession, farm_a: Farm) -> Field:
    field = Field(name="Talhão 1", farm_id=farm_a.id)
    db_session.add(field)
    await db_session.flush()
    return field


@pytest_asyncio.fixture
async def field_b(db_session: AsyncSession, farm_b: Farm) -> Field:
    field = Field(name="Talhão Norte", farm_id=farm_b.id)
    db_session.add(field)
    await db_session.flush()
    return field


@pytest_asyncio.fixture
async def crop_a(db_session: AsyncSession, field_a: Field) -> Crop:
    crop = Crop(name="Soja", field_id=field_a.id)
    db_session.add(crop)
    await db_session.flush()
    return crop


@pytest_asyncio.fixture
async def crop_b(db_session: AsyncSession, field_b: Field) -> Crop:
    crop = Crop(name="Milho", field_id=field_b.id)
    db_session.add(crop)
    await db_session.flush()
    return crop


def _headers(user: User) -> dict:
    token = create_access_token(user_id=user.id, role=user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_a(user_a: User) -> dict:
    return _headers(user_a)


@pytest.fixture
def headers_b(user_b: User) -> dict:
    return _headers(user_b)


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "tenancy: Tenant isolation tests")
