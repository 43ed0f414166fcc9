from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.services.references import SqlReferenceResolver
from app.services.search.cache import ResultCache
from app.services.search.catalog_source import SqlCatalogSource
from app.services.search.orchestrator import SearchOrchestrator
from app.services.search_analytics import SearchAnalytics


def get_catalog_source(db: AsyncSession = Depends(get_db)) -> SqlCatalogSource:
    return SqlCatalogSource(db)


def get_reference_resolver(db: AsyncSession = Depends(get_db)) -> SqlReferenceResolver:
    return SqlReferenceResolver(db)


def get_result_cache(request: Request) -> ResultCache:
    # created once in the app lifespan
    return request.app.state.search_cache


def get_search_analytics(request: Request) -> SearchAnalytics:
    return request.app.state.search_analytics


def get_search_orchestrator(
    source=Depends(get_catalog_source),
    resolver=Depends(get_reference_resolver),
    cache: ResultCache = Depends(get_result_cache),
    analytics: SearchAnalytics = Depends(get_search_analytics),
) -> SearchOrchestrator:
    return SearchOrchestrator(source=source, resolver=resolver, cache=cache, analytics=analytics)
