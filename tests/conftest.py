import os
from typing import Callable, Generator, Optional, Tuple

import pytest

os.environ.setdefault("DATABASE_ALLOW_NON_POSTGRES", "1")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("DATABASE_URL", os.getenv("DATABASE_URL", os.environ["TEST_DATABASE_URL"]))
os.environ.setdefault("AUTH_JWT_SECRET", "test-secret-for-notes-api-0123456789")
os.environ.setdefault("AUTH_ARGON2_TIME_COST", "1")
os.environ.setdefault("AUTH_ARGON2_MEMORY_COST", "8192")
os.environ.pop("NOTES_FREE_PLAN_LIMIT", None)

from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.dialects.postgresql import UUID  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.ext.compiler import compiles  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import database as database_module  # noqa: E402
from database import Base, IS_POSTGRES  # noqa: E402

# Provide a lightweight fallback for the PostgreSQL-only UUID column type when using SQLite.
if not IS_POSTGRES:
    @compiles(UUID, "sqlite")  # type: ignore[misc]
    def _compile_uuid_sqlite(_element, _compiler, **_kw):  # pragma: no cover - sqlite compat
        return "TEXT"


import models  # noqa: E402,F401
from core.plan_constants import PlanTier, UserRoleKey  # noqa: E402
from models.tenant import Tenant  # noqa: E402
from models.user import User  # noqa: E402
from services.auth.hashing import hash_password  # noqa: E402
from services.user_service import Actor  # noqa: E402

TEST_PASSWORD = "password"


@pytest.fixture()
def engine(monkeypatch: pytest.MonkeyPatch) -> Generator[Engine, None, None]:
    """Fresh in-memory schema per test so committed rows never leak between tests."""

    test_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    factory = sessionmaker(bind=test_engine, autoflush=False)
    monkeypatch.setattr(database_module, "engine", test_engine)
    monkeypatch.setattr(database_module, "SessionLocal", factory)
    try:
        yield test_engine
    finally:
        test_engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker:
    return database_module.SessionLocal


@pytest.fixture()
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def password_hash() -> str:
    return hash_password(TEST_PASSWORD)


@pytest.fixture()
def make_tenant(db_session: Session) -> Callable[..., Tenant]:
    def _make(slug: str, *, plan: str = PlanTier.FREE.value, name: Optional[str] = None) -> Tenant:
        tenant = Tenant(name=name or slug.title(), slug=slug, plan=plan)
        db_session.add(tenant)
        db_session.commit()
        return tenant

    return _make


@pytest.fixture()
def make_user(db_session: Session, password_hash: str) -> Callable[..., User]:
    def _make(tenant: Tenant, email: str, *, role: str = UserRoleKey.MEMBER.value, is_pro: Optional[bool] = None) -> User:
        user = User(
            tenant_id=tenant.id,
            email=email,
            password_hash=password_hash,
            role=role,
            is_pro=(role == UserRoleKey.ADMIN.value) if is_pro is None else is_pro,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def acme(make_tenant, make_user) -> Tuple[Tenant, User, User]:
    tenant = make_tenant("acme", name="Acme Corporation")
    admin = make_user(tenant, "admin@acme.test", role=UserRoleKey.ADMIN.value)
    member = make_user(tenant, "user@acme.test")
    return tenant, admin, member


@pytest.fixture()
def globex(make_tenant, make_user) -> Tuple[Tenant, User, User]:
    tenant = make_tenant("globex", name="Globex Corporation")
    admin = make_user(tenant, "admin@globex.test", role=UserRoleKey.ADMIN.value)
    member = make_user(tenant, "user@globex.test")
    return tenant, admin, member


@pytest.fixture()
def as_actor() -> Callable[[User], Actor]:
    return Actor.from_user


@pytest.fixture()
def api_client(session_factory: sessionmaker) -> Generator[TestClient, None, None]:
    from database import get_db
    from services.errors import NotesServiceError
    from web.main import _handle_service_error
    from web.routers import auth, health, notes, tenants, upgrade_requests

    app = FastAPI()
    for module in (auth, notes, tenants, upgrade_requests, health):
        app.include_router(module.router, prefix="/api/v1")
    app.add_exception_handler(NotesServiceError, _handle_service_error)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    try:
        yield client
    finally:
        client.close()


@pytest.fixture()
def login(api_client: TestClient) -> Callable[..., dict]:
    def _login(email: str, password: str = TEST_PASSWORD) -> dict:
        response = api_client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['accessToken']}"}

    return _login
