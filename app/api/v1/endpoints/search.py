from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, Query, Request
from starlette.datastructures import QueryParams

from app.core.config import settings
from app.schemas.search import CacheStatsOut, PopularSearchesOut, SearchParams, SearchResponse, SuggestionsOut
from app.services.internal_admin import require_internal_admin
from app.services.search.cache import ResultCache
from app.services.search.dependencies import get_result_cache, get_search_analytics, get_search_orchestrator
from app.services.search.orchestrator import SearchOrchestrator
from app.services.search_analytics import SearchAnalytics

log = logging.getLogger(__name__)

router = APIRouter()

# camelCase query keys that accept repeated keys and/or comma separated values
LIST_PARAMS = ("category", "subCategory", "brand", "tags", "flavors", "originCountry", "region", "type", "subType")

SCALAR_PARAMS = (
    "minPrice",
    "maxPrice",
    "minAbv",
    "maxAbv",
    "minRating",
    "isAlcoholic",
    "isFeatured",
    "onSale",
    "inStock",
    "sortBy",
    "order",
    "page",
    "limit",
    "tenantId",
)


def _split_list(qp: QueryParams, key: str) -> list[str] | None:
    raw = qp.getlist(key)
    if not raw:
        return None
    return [part.strip() for value in raw for part in value.split(",") if part.strip()]


def search_params_from_query(qp: QueryParams, *, allow_pending: bool) -> SearchParams:
    data: dict = {"query": qp.get("query") or qp.get("q")}
    for key in LIST_PARAMS:
        data[key] = _split_list(qp, key)
    for key in SCALAR_PARAMS:
        data[key] = qp.get(key)
    if allow_pending:
        data["includePending"] = qp.get("includePending")
    return SearchParams.model_validate(data)


@router.get("/search/products", response_model=SearchResponse, response_model_by_alias=True)
async def search_products(
    request: Request,
    x_internal_admin_key: str | None = Header(default=None),
    orchestrator: SearchOrchestrator = Depends(get_search_orchestrator),
) -> SearchResponse:
    is_admin = bool(x_internal_admin_key) and x_internal_admin_key == settings.internal_admin_key
    if request.query_params.get("includePending") and not is_admin:
        log.info("search: includePending ignored without internal admin key")

    params = search_params_from_query(request.query_params, allow_pending=is_admin)
    return await orchestrator.search(params)


@router.get("/search/suggestions", response_model=SuggestionsOut)
async def search_suggestions(
    q: str = Query(default=""),
    limit: int = Query(default=5, ge=1, le=20),
    analytics: SearchAnalytics = Depends(get_search_analytics),
) -> SuggestionsOut:
    return SuggestionsOut(query=q, suggestions=await analytics.suggestions(q, limit))


@router.get("/search/popular", response_model=PopularSearchesOut)
async def popular_searches(
    limit: int = Query(default=10, ge=1, le=50),
    analytics: SearchAnalytics = Depends(get_search_analytics),
) -> PopularSearchesOut:
    return PopularSearchesOut(queries=await analytics.popular(limit))


@router.post("/search/cache/clear", dependencies=[Depends(require_internal_admin)])
async def clear_search_cache(cache: ResultCache = Depends(get_result_cache)):
    cleared = cache.clear()
    return {"ok": True, "cleared": cleared}


@router.get("/search/cache/stats", response_model=CacheStatsOut, dependencies=[Depends(require_internal_admin)])
async def search_cache_stats(cache: ResultCache = Depends(get_result_cache)) -> CacheStatsOut:
    return CacheStatsOut(**cache.stats())
