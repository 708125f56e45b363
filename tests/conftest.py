"""Shared test fixtures: async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from backend.common.constants import UserRole
from backend.config import settings
from backend.database import Base, get_db, get_session_factory
from backend.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
# (e.g. Employee → LeaveBalance, Notification, etc.)
import backend.common.audit  # noqa: F401
import backend.core_hr.models  # noqa: F401
import backend.leave.models  # noqa: F401
import backend.notifications.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from backend.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def _override_get_session_factory() -> async_sessionmaker[AsyncSession]:
    return TestSessionFactory


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependencies overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_session_factory] = _override_get_session_factory
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


@pytest.fixture
async def file_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Sessions over a file-backed SQLite database, one connection each.

    The in-memory ``engine`` shares a single connection, so it cannot show
    two transactions interleaving; these sessions can.
    """
    file_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with file_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
    await file_engine.dispose()


# ── Model factories ─────────────────────────────────────────────────

def _make_department(*, name: str = "Engineering") -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


def _make_employee(
    *,
    email: Optional[str] = None,
    first_name: str = "Test",
    last_name: str = "User",
    department_id: Optional[uuid.UUID] = None,
    reporting_manager_id: Optional[uuid.UUID] = None,
    is_active: bool = True,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        employee_code=f"EMP-{uuid.uuid4().hex[:6].upper()}",
        first_name=first_name,
        last_name=last_name,
        email=email or f"{first_name.lower()}.{uuid.uuid4().hex[:6]}@example.com",
        department_id=department_id,
        reporting_manager_id=reporting_manager_id,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def create_department(db: AsyncSession, **kwargs) -> dict:
    from backend.core_hr.models import Department

    data = _make_department(**kwargs)
    db.add(Department(**data))
    await db.flush()
    return data


async def create_employee(db: AsyncSession, **kwargs) -> dict:
    from backend.core_hr.models import Employee

    data = _make_employee(**kwargs)
    db.add(Employee(**data))
    await db.flush()
    return data


async def create_leave_type(
    db: AsyncSession,
    *,
    name: str = "Annual Leave",
    accrual_rate: Optional[Decimal] = Decimal("1.50"),
    max_days: Optional[int] = 18,
    is_active: bool = True,
):
    from backend.leave.models import LeaveType

    leave_type = LeaveType(
        id=uuid.uuid4(),
        name=name,
        accrual_rate=accrual_rate,
        max_days=max_days,
        is_active=is_active,
    )
    db.add(leave_type)
    await db.flush()
    return leave_type


async def create_holiday(
    db: AsyncSession,
    holiday_date: date,
    *,
    name: str = "Holiday",
    is_recurring: bool = False,
    country: Optional[str] = None,
):
    from backend.leave.models import Holiday

    holiday = Holiday(
        id=uuid.uuid4(),
        date=holiday_date,
        name=name,
        is_recurring=is_recurring,
        country=country,
    )
    db.add(holiday)
    await db.flush()
    return holiday


@pytest.fixture
async def test_department(db) -> dict:
    """Insert a test department."""
    return await create_department(db)


@pytest.fixture
async def test_manager(db, test_department) -> dict:
    """Insert a manager who also heads the test department."""
    from backend.core_hr.models import Department

    data = await create_employee(
        db, first_name="Maya", last_name="Manager", department_id=test_department["id"],
    )
    department = await db.get(Department, test_department["id"])
    department.head_employee_id = data["id"]
    await db.flush()
    return data


@pytest.fixture
async def test_employee(db, test_department, test_manager) -> dict:
    """Insert an active employee reporting to ``test_manager``."""
    return await create_employee(
        db,
        department_id=test_department["id"],
        reporting_manager_id=test_manager["id"],
    )


@pytest.fixture
async def test_hr_admin(db) -> dict:
    return await create_employee(db, first_name="Hana", last_name="Hr")


@pytest.fixture
async def annual_leave(db):
    """'Annual Leave': 1.5 days/month, capped at 18."""
    leave_type = await create_leave_type(db)
    await db.commit()
    return leave_type


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def bearer(employee_id: uuid.UUID, role: UserRole = UserRole.employee) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_id, role)}"}


@pytest.fixture
async def auth_headers(db, test_employee) -> dict[str, str]:
    """Bearer headers for ``test_employee`` (employee role)."""
    await db.commit()
    return bearer(test_employee["id"])


@pytest.fixture
async def manager_headers(db, test_manager) -> dict[str, str]:
    await db.commit()
    return bearer(test_manager["id"], UserRole.manager)


@pytest.fixture
async def hr_headers(db, test_hr_admin) -> dict[str, str]:
    await db.commit()
    return bearer(test_hr_admin["id"], UserRole.hr_admin)
