"""Pytest configuration and fixtures for LeadDesk tests.

Tests run against an in-memory SQLite database (aiosqlite) with foreign
keys enforced, and with the Redis permission cache disabled unless a test
patches it in explicitly.
"""

import os

os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import datetime, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.context import AuthorizationContext
from app.auth.jwt import create_access_token
from app.auth.permissions import LEADS, ViewType
from app.auth.resolver import resolve_permissions
from app.database import Base, get_db
from app.main import app
from app.models.lead import Lead
from app.models.role import Role, RolePermission
from app.models.user_profile import UserProfile


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests share the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Factories ──────────────────────────────────────────

@pytest.fixture
def make_role(db_session: AsyncSession):
    """Create a role with per-module grants.

    Usage:
        role = await make_role("Sales Rep", {"leads": {"view_type": "assigned", "can_create": True}})
    """

    async def _make(name: str, grants: dict | None = None, is_super_admin: bool = False) -> Role:
        role = Role(name=name, is_super_admin=is_super_admin)
        db_session.add(role)
        await db_session.flush()
        for module, grant in (grants or {}).items():
            db_session.add(
                RolePermission(
                    role_id=role.id,
                    module=module,
                    view_type=ViewType(grant.get("view_type", "none")),
                    can_create=grant.get("can_create", False),
                    can_edit=grant.get("can_edit", False),
                    can_delete=grant.get("can_delete", False),
                )
            )
        await db_session.flush()
        return role

    return _make


@pytest.fixture
def make_profile(db_session: AsyncSession):
    async def _make(user_id: str, role: Role | None = None, **fields) -> UserProfile:
        profile = UserProfile(
            user_id=user_id,
            name=fields.pop("name", user_id),
            role_id=role.id if role else None,
            **fields,
        )
        db_session.add(profile)
        await db_session.flush()
        return profile

    return _make


@pytest.fixture
def make_context(db_session: AsyncSession):
    """Signed-in AuthorizationContext resolving straight from the test database."""

    async def _make(user_id: str) -> AuthorizationContext:
        ctx = AuthorizationContext(resolver=lambda uid: resolve_permissions(db_session, uid))
        await ctx.sign_in(user_id)
        return ctx

    return _make


@pytest.fixture
def make_lead(db_session: AsyncSession):
    """Insert a lead directly; each call is one minute older than the last."""
    base = datetime(2026, 1, 1, 12, 0, 0)
    counter = {"n": 0}

    async def _make(name: str, assigned_to: str | None, **fields) -> Lead:
        counter["n"] += 1
        lead = Lead(
            name=name,
            assigned_to=assigned_to,
            created_by=assigned_to,
            created_at=fields.pop("created_at", base - timedelta(minutes=counter["n"])),
            **fields,
        )
        db_session.add(lead)
        await db_session.flush()
        return lead

    return _make


SALES_REP_GRANTS = {
    LEADS: {
        "view_type": "assigned",
        "can_create": True,
        "can_edit": True,
        "can_delete": False,
    },
}


@pytest_asyncio.fixture
async def sales_rep_world(make_role, make_profile, make_lead):
    """Role "Sales Rep" held by u1 and u2; lead L1 is u1's, L2 is u2's."""
    role = await make_role("Sales Rep", SALES_REP_GRANTS)
    await make_profile("u1", role)
    await make_profile("u2", role)
    l1 = await make_lead("L1", "u1")
    l2 = await make_lead("L2", "u2")
    return {"role": role, "l1": l1, "l2": l2}


@pytest_asyncio.fixture
async def super_admin(make_role, make_profile) -> UserProfile:
    role = await make_role("Super Admin", is_super_admin=True)
    return await make_profile("admin", role)


def auth_headers(user_id: str) -> dict:
    """Bearer headers for `user_id`."""
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "cache: Redis cache tests")
