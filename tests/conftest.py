import os

os.environ.setdefault("TELEMETRY_ENABLED", "false")

import pytest
import httpx

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy import event

# Import Base + all models so metadata is complete
from app.models import Base  # noqa: F401

from app.main import app
from app.core.db import get_db
from app.services.search.cache import ResultCache
from app.services.search.dependencies import get_catalog_source, get_reference_resolver
from app.services.search.orchestrator import SearchOrchestrator
from app.services.search_analytics import InMemorySearchAnalytics

from fixtures_catalog import InMemoryCatalogSource, StaticReferenceResolver


def _test_db_url() -> str | None:
    return os.getenv("DATABASE_URL_TEST")


# --- in-memory search pipeline ---------------------------------------------

@pytest.fixture
def catalog_source() -> InMemoryCatalogSource:
    return InMemoryCatalogSource()


@pytest.fixture
def resolver() -> StaticReferenceResolver:
    return StaticReferenceResolver()


@pytest.fixture
def result_cache() -> ResultCache:
    return ResultCache(max_entries=100, ttl_seconds=300)


@pytest.fixture
def analytics() -> InMemorySearchAnalytics:
    return InMemorySearchAnalytics()


@pytest.fixture
def orchestrator(catalog_source, resolver, result_cache, analytics) -> SearchOrchestrator:
    return SearchOrchestrator(source=catalog_source, resolver=resolver, cache=result_cache, analytics=analytics)


@pytest.fixture
async def api_client(catalog_source, resolver, result_cache, analytics):
    """
    HTTP client wired to the in-memory catalog via dependency overrides.
    ASGITransport does not run the lifespan, so app.state is populated here.
    """
    app.state.search_cache = result_cache
    app.state.search_analytics = analytics
    app.dependency_overrides[get_catalog_source] = lambda: catalog_source
    app.dependency_overrides[get_reference_resolver] = lambda: resolver

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# --- database-backed tests (skipped without DATABASE_URL_TEST) -------------

@pytest.fixture
async def async_engine():
    url = _test_db_url()
    if not url:
        pytest.skip("DATABASE_URL_TEST is not set")

    engine = create_async_engine(url, pool_pre_ping=True)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(async_engine):
    """
    Transactional rollback per test:
    - Start an outer transaction
    - Start a nested transaction (SAVEPOINT)
    - Restart SAVEPOINT after each internal commit (SQLAlchemy pattern)
    """
    async with async_engine.connect() as conn:
        trans = await conn.begin()

        session_factory = async_sessionmaker(bind=conn, expire_on_commit=False, class_=AsyncSession)
        session = session_factory()

        await session.begin_nested()

        @event.listens_for(session.sync_session, "after_transaction_end")
        def _restart_savepoint(sess, transaction):
            parent = getattr(transaction, "_parent", None)
            if transaction.nested and parent is not None and not parent.nested:
                sess.begin_nested()

        try:
            yield session
        finally:
            await session.close()
            await trans.rollback()


@pytest.fixture
async def client(db_session: AsyncSession, result_cache, analytics):
    """
    HTTP client that uses the test DB session via dependency override.
    """
    async def _override_get_db():
        yield db_session

    app.state.search_cache = result_cache
    app.state.search_analytics = analytics
    app.dependency_overrides[get_db] = _override_get_db

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
