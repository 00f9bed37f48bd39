"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator, Awaitable, Callable, Iterable
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from keystone.core.database import Base, get_db
from keystone.core.permissions.catalog import DEFAULT_CATALOG
from keystone.core.permissions.models import Permission, Role
from keystone.core.permissions.store import PolicyStore
from keystone.main import create_app
from keystone.modules.actors.models import Actor
from tests.factories.actor import ActorFactory


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterable[None]:
    """Undo structlog configuration made by a test (e.g. CLI runs).

    The audit CLI points structlog at the CliRunner's stderr, which is
    closed once the invocation ends; later tests would log into it.
    """
    yield
    structlog.reset_defaults()


def _configure_sqlite(engine: AsyncEngine) -> None:
    """Let pysqlite hand transaction control to SQLAlchemy.

    Without this, SAVEPOINT does not work and concurrent writers are
    not serialized. BEGIN IMMEDIATE takes the write lock up front, so a
    second writer waits instead of failing.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection: Any, _connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine on a fresh SQLite file."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'keystone-test.db'}",
        poolclass=NullPool,
        echo=False,
    )
    _configure_sqlite(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory for tests that commit, such as concurrency tests."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a transactional database session for tests.

    Each test runs in its own transaction that is rolled back
    after the test completes, ensuring test isolation.
    """
    async with engine.connect() as conn:
        await conn.begin()

        session = AsyncSession(
            bind=conn,
            expire_on_commit=False,
            autoflush=False,
            join_transaction_mode="create_savepoint",
        )
        try:
            yield session
        finally:
            await session.close()
            await conn.rollback()


@pytest.fixture
async def app(db: AsyncSession):
    """Create test application instance."""
    application = create_app()

    # Override database dependency
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    application.dependency_overrides[get_db] = override_get_db

    yield application

    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


# ============================================================
# Policy Fixtures
# ============================================================


@pytest.fixture
async def catalog(db: AsyncSession) -> dict[str, Permission]:
    """Install the default catalog.

    Returns:
        Permissions keyed by 'resource:action'
    """
    store = PolicyStore(db)
    await store.ensure_catalog(DEFAULT_CATALOG)
    return {p.key: p for p in await store.list_permissions()}


@pytest.fixture
def make_actor(db: AsyncSession) -> Callable[..., Awaitable[Actor]]:
    """Factory fixture persisting actors."""

    async def _make_actor(**overrides: Any) -> Actor:
        actor = ActorFactory.build(**overrides)
        db.add(actor)
        await db.flush()
        return actor

    return _make_actor


@pytest.fixture
def make_role(
    db: AsyncSession, catalog: dict[str, Permission]
) -> Callable[..., Awaitable[Role]]:
    """Factory fixture persisting roles with grants and assignees."""

    async def _make_role(
        name: str | None = None,
        permissions: Iterable[str] = (),
        actors: Iterable[Actor] = (),
        **fields: Any,
    ) -> Role:
        store = PolicyStore(db)
        role = await store.add_role(Role(name=name or f"role-{uuid4().hex[:8]}", **fields))
        await store.replace_role_permissions(role.id, [catalog[key] for key in permissions])
        for actor in actors:
            await store.add_assignment(role.id, actor.id)
        return await store.get_role(role.id)

    return _make_role

