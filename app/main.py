import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.v1.router import router as v1_router
from app.core.config import settings
from app.core.db import engine
from app.core.telemetry import setup_telemetry
from app.services.search.cache import ResultCache
from app.services.search_analytics import build_search_analytics

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.search_cache = ResultCache(
        max_entries=settings.search_cache_max_entries,
        ttl_seconds=settings.search_cache_ttl_seconds,
        enabled=settings.search_cache_enabled,
    )
    app.state.search_analytics = build_search_analytics(settings)
    log.info("search: cache enabled=%s analytics=%s", settings.search_cache_enabled, settings.search_analytics_backend)
    try:
        yield
    finally:
        app.state.search_cache.clear()
        await app.state.search_analytics.aclose()
        await engine.dispose()


app = FastAPI(title="Catalog Search API", version="0.1.0", lifespan=lifespan)

setup_telemetry(app)
app.include_router(v1_router)
