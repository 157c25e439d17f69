"""
Pytest configuration and fixtures for the access core tests
"""

import os
import sys
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

# Settings are read at import time; cheap hashing and an unused module-level engine for tests
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["STRICT_PERMISSION_IDS"] = "true"

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH120

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from pgdash.config import settings  # noqa: E402
from pgdash.database import Base, build_engine, get_db  # noqa: E402
from pgdash.models import AccessRecord, Notice, Permission, Role, Tenant, User  # noqa: E402
from pgdash.services.credential_service import CredentialStore  # noqa: E402
from pgdash.services.permission_service import permission_catalog, sync_catalog  # noqa: E402
from pgdash.services.role_service import seed_system_roles  # noqa: E402
from pgdash.services.session_service import SessionManager  # noqa: E402
from pgdash.services.tenant_service import create_tenant  # noqa: E402
from pgdash.services.user_service import UserDirectory  # noqa: E402

DEFAULT_PASSWORD = "correct-horse"


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite file per test, foreign keys enforced."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'pgdash_test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(db: AsyncSession) -> dict[str, Role]:
    """Permission catalog plus the ADMIN and CLIENTE system roles."""
    await sync_catalog(db)
    roles = await seed_system_roles(db)
    await permission_catalog.reload(db)
    return {role.name: role for role in roles}


@pytest.fixture
async def perm_ids(db: AsyncSession, seeded) -> dict[str, int]:
    result = await db.execute(select(Permission.code, Permission.id))
    return dict(result.all())


@pytest.fixture
def credentials() -> CredentialStore:
    return CredentialStore(rounds=4, allow_legacy_plaintext=True)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def sessions(db, credentials, clock) -> SessionManager:
    return SessionManager(db, credentials=credentials, clock=clock)


@pytest.fixture
def directory(db, credentials) -> UserDirectory:
    return UserDirectory(db, credentials=credentials)


@pytest.fixture
async def tenant(db, seeded) -> Tenant:
    return await create_tenant("Padaria São João", db, plan="pro")


@pytest.fixture
async def admin_user(directory, seeded) -> User:
    return await directory.create_user(
        name="Ana Admin",
        email="ana@pgdash.test",
        password=DEFAULT_PASSWORD,
        role_id=seeded["ADMIN"].id,
    )


@pytest.fixture
async def client_user(directory, seeded, tenant) -> User:
    return await directory.create_user(
        name="Carlos Cliente",
        email="carlos@padaria.test",
        password=DEFAULT_PASSWORD,
        tenant_id=tenant.id,
    )


async def add_tenant_content(db: AsyncSession, tenant_id: int, notices: int = 2, accesses: int = 3) -> None:
    for i in range(notices):
        db.add(Notice(tenant_id=tenant_id, title=f"Aviso {i}", body="..."))
    for i in range(accesses):
        db.add(AccessRecord(tenant_id=tenant_id, platform=f"platform-{i}", login="user"))
    await db.commit()


@pytest.fixture
async def http_client(session_factory, seeded) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the real app with get_db pointed at the test database."""
    from pgdash.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def login_token(client: AsyncClient, email: str, password: str = DEFAULT_PASSWORD) -> str:
    """Log in and return the raw cookie value; the client jar is cleared so callers pass it explicitly."""
    response = await client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    token = response.cookies.get(settings.session_cookie_name)
    client.cookies.clear()
    return token


def session_cookie(token: str) -> dict[str, str]:
    return {"Cookie": f"{settings.session_cookie_name}={token}"}
