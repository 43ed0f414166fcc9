from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone

from app.core.config import Settings, settings
from app.core.telemetry import get_tracer
from app.schemas.search import SearchMeta, SearchParams, SearchResponse
from app.services.references import ReferenceResolver
from app.services.search.assembly import applied_filters, build_available_filters, build_item, empty_response
from app.services.search.cache import ResultCache
from app.services.search.catalog_join import CatalogJoinEngine
from app.services.search.catalog_source import CatalogSource
from app.services.search.post_filter import apply_post_filters, paginate
from app.services.search.pricing import PricedItem, PriceResolver
from app.services.search.query_builder import SearchQuery, build_item_filter, normalize_search_params
from app.services.search.ranking import RelevanceRanker
from app.services.search.stats import SearchStats, Timer
from app.services.search_analytics import SearchAnalytics

log = logging.getLogger(__name__)
tracer = get_tracer(__name__)


class SearchOrchestrator:
    """
    Runs one search request end to end:

    normalize -> cache lookup -> resolve references -> join -> price -> rank
    -> post filters / price sort -> paginate -> assemble -> cache -> analytics

    Never raises for data problems; failures come back as an empty response
    with searchMeta.error set, and are not cached.
    """

    def __init__(
        self,
        *,
        source: CatalogSource,
        resolver: ReferenceResolver,
        cache: ResultCache,
        analytics: SearchAnalytics,
        price_resolver: PriceResolver | None = None,
        ranker: RelevanceRanker | None = None,
        config: Settings | None = None,
    ):
        self.config = config or settings
        self.source = source
        self.resolver = resolver
        self.cache = cache
        self.analytics = analytics
        self.price_resolver = price_resolver or PriceResolver(
            default_currency=self.config.default_currency,
            default_commission_percentage=self.config.default_commission_percentage,
        )
        self.ranker = ranker or RelevanceRanker()
        self.join_engine = CatalogJoinEngine(
            source,
            timeout_seconds=self.config.search_query_timeout_seconds,
            max_results=self.config.search_max_results,
        )

    async def search(self, params: SearchParams, *, now: datetime | None = None) -> SearchResponse:
        t0 = time.perf_counter()
        query = normalize_search_params(
            params,
            default_limit=self.config.search_default_limit,
            max_limit=self.config.search_max_limit,
        )

        key = self.cache.key_for(query)
        cached = self.cache.get(key)
        if cached is not None:
            elapsed = _elapsed_ms(t0)
            meta = cached.search_meta.model_copy(update={"from_cache": True, "search_time_ms": elapsed})
            await self.analytics.track(query.query, meta.results_found, elapsed)
            return cached.model_copy(update={"search_meta": meta})

        with tracer.start_as_current_span("search") as span:
            span.set_attribute("search.sort_by", query.sort_by)
            span.set_attribute("search.page", query.page)
            span.set_attribute("search.has_text", bool(query.query))
            try:
                response, stats = await self._run(query, now or datetime.now(timezone.utc), t0)
            except Exception as e:
                log.exception("search: failed query=%r", query.query)
                span.record_exception(e)
                return empty_response(query, error=f"search failed: {e.__class__.__name__}", elapsed_ms=_elapsed_ms(t0))

            for k, v in stats.as_attributes().items():
                span.set_attribute(k, v)

        if response.search_meta.error is None:
            self.cache.set(key, response)
            await self.analytics.track(query.query, response.search_meta.results_found, response.search_meta.search_time_ms)

        log.info(
            "search: query=%r results=%d time_ms=%d joined=%d priced=%d",
            query.query,
            response.search_meta.results_found,
            response.search_meta.search_time_ms,
            stats.joined,
            stats.priced,
        )
        return response

    async def _run(self, query: SearchQuery, now: datetime, t0: float) -> tuple[SearchResponse, SearchStats]:
        stats = SearchStats()

        with Timer() as t:
            try:
                item_filter = await asyncio.wait_for(
                    build_item_filter(query, self.resolver),
                    timeout=self.config.search_query_timeout_seconds,
                )
            except asyncio.TimeoutError:
                log.warning("search: reference lookup exceeded %.1fs", self.config.search_query_timeout_seconds)
                return empty_response(query, error="reference lookup timed out", elapsed_ms=_elapsed_ms(t0)), stats
        stats.stage_ms["resolve"] = t.ms

        with Timer() as t:
            joined = await self.join_engine.join(item_filter)
        stats.stage_ms["join"] = t.ms

        if not joined.ok:
            return empty_response(query, error=joined.error, elapsed_ms=_elapsed_ms(t0)), stats
        stats.joined = len(joined.items)

        with Timer() as t:
            priced: list[PricedItem] = []
            for j in joined.items:
                p = self.price_resolver.price_item(j.item, j.listings, now)
                if p is not None:
                    priced.append(p)
        stats.stage_ms["price"] = t.ms
        stats.priced = len(priced)

        facets = build_available_filters(priced)

        with Timer() as t:
            ranked = self.ranker.rank(priced, query)
            filtered = apply_post_filters(ranked, query, self.config.search_price_filter_mode)
        stats.stage_ms["rank"] = t.ms
        stats.filtered = len(filtered)

        page_items, pagination = paginate(filtered, query.page, query.limit)

        response = SearchResponse(
            items=[build_item(p) for p in page_items],
            pagination=pagination,
            available_filters=facets,
            search_meta=SearchMeta(
                query=query.query or None,
                applied_filters=applied_filters(query),
                results_found=pagination.total_results,
                search_time_ms=_elapsed_ms(t0),
                from_cache=False,
            ),
        )
        return response, stats


def _elapsed_ms(t0: float) -> int:
    return int((time.perf_counter() - t0) * 1000)
