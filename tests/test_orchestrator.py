import asyncio
import time
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.core.config import Settings
from app.schemas.search import SearchParams
from app.services.search.cache import ResultCache
from app.services.search.orchestrator import SearchOrchestrator
from app.services.search_analytics import InMemorySearchAnalytics

from fixtures_catalog import (
    NOW,
    D,
    InMemoryCatalogSource,
    StaticReferenceResolver,
    make_item,
    make_listing,
    make_ref,
    make_tenant,
    make_variant,
)


@pytest.fixture
def shop(catalog_source):
    tenant = make_tenant("Lagos Liquors")
    for i in range(25):
        item = make_item(f"Bottle {i:02d}", total_sold=i)
        catalog_source.add(item, make_listing(item, tenant, [make_variant(str(10 + i))]))
    return catalog_source


async def test_whiskey_scenario_end_to_end(orchestrator, catalog_source):
    item = make_item("Premium Whiskey")
    a = make_tenant("Tenant A", revenue_model="markup", markup_percentage=D("25"))
    b = make_tenant("Tenant B", revenue_model="commission", commission_percentage=D("10"))
    catalog_source.add(
        item,
        make_listing(item, a, [make_variant("125", cost_price=D("100"))]),
        make_listing(
            item,
            b,
            [make_variant("120")],
            discount_type="percentage",
            discount_value=D("20"),
            discount_start=NOW - timedelta(days=1),
            discount_end=NOW + timedelta(days=1),
        ),
    )

    res = await orchestrator.search(SearchParams(query="whiskey"), now=NOW)

    assert res.search_meta.error is None
    assert res.search_meta.results_found == 1
    out = res.items[0]
    prices = {o.tenant.name: o.variants[0].price.effective for o in out.available_at}
    assert prices == {"Tenant A": 125.0, "Tenant B": 105.6}
    assert out.price_range.min == 105.6
    assert out.price_range.max == 125.0
    assert out.discount.savings == 26.4
    assert out.availability.tenant_count == 2
    assert out.relevance_score > 0


async def test_pages_do_not_overlap(orchestrator, shop):
    p1 = await orchestrator.search(SearchParams(page=1, limit=10), now=NOW)
    p2 = await orchestrator.search(SearchParams(page=2, limit=10), now=NOW)
    p3 = await orchestrator.search(SearchParams(page=3, limit=10), now=NOW)

    ids1 = {i.id for i in p1.items}
    ids2 = {i.id for i in p2.items}
    assert len(ids1) == 10 and len(ids2) == 10
    assert not ids1 & ids2
    assert len(p3.items) == 5
    assert p1.pagination.total_pages == 3
    assert p1.pagination.total_results == 25
    assert p1.pagination.has_next_page and not p3.pagination.has_next_page


async def test_cache_hit_returns_identical_items(orchestrator, shop):
    first = await orchestrator.search(SearchParams(query="bottle", limit=5), now=NOW)
    shop.items.clear()
    second = await orchestrator.search(SearchParams(limit="5", query=" bottle "), now=NOW)

    assert first.search_meta.from_cache is False
    assert second.search_meta.from_cache is True
    assert [i.model_dump() for i in second.items] == [i.model_dump() for i in first.items]
    assert shop.item_calls == 1


async def test_ranking_is_stable_across_runs(shop, resolver, analytics):
    def fresh():
        cache = ResultCache(max_entries=10, ttl_seconds=300, enabled=False)
        return SearchOrchestrator(source=shop, resolver=resolver, cache=cache, analytics=analytics)

    a = await fresh().search(SearchParams(query="bottle"), now=NOW)
    b = await fresh().search(SearchParams(query="bottle"), now=NOW)
    assert [i.id for i in a.items] == [i.id for i in b.items]


async def test_alcoholic_abv_scenario(orchestrator, catalog_source):
    tenant = make_tenant()
    items = [
        make_item("Summer Wine", abv=D("12")),
        make_item("Strong Wine", abv=D("18")),
        make_item("Zero Wine", abv=D("0"), is_alcoholic=False),
    ]
    for item in items:
        catalog_source.add(item, make_listing(item, tenant, [make_variant()]))

    res = await orchestrator.search(SearchParams(query="wine", is_alcoholic="true", max_abv="15"), now=NOW)
    assert [i.name for i in res.items] == ["Summer Wine"]


async def test_out_of_stock_listing_scenario(orchestrator, catalog_source):
    item = make_item("Sold Out Rum")
    catalog_source.add(item, make_listing(item, make_tenant(), [make_variant(stock=0, availability="out_of_stock")]))

    hidden = await orchestrator.search(SearchParams(), now=NOW)
    shown = await orchestrator.search(SearchParams(in_stock="false"), now=NOW)

    assert hidden.items == []
    assert [i.name for i in shown.items] == ["Sold Out Rum"]
    assert shown.items[0].availability.status == "out_of_stock"
    assert shown.items[0].availability.stock_level == "out"


async def test_price_filter_and_price_sort(orchestrator, shop):
    res = await orchestrator.search(SearchParams(min_price=20, max_price=24, sort_by="price_low"), now=NOW)
    prices = [i.price_range.min for i in res.items]
    assert prices == [20.0, 21.0, 22.0, 23.0, 24.0]


async def test_facets_come_from_the_unpaginated_set(orchestrator, catalog_source):
    tenant = make_tenant()
    spirits = make_ref("cat", "Spirits")
    wine = make_ref("cat", "Wine")
    brand = make_ref("brd", "House")
    for name, cat, country in [("Gin", spirits, "UK"), ("Merlot", wine, "France"), ("Rum", spirits, "Jamaica")]:
        item = make_item(name, category=cat, brand=brand, origin_country=country, tags=("gift",))
        catalog_source.add(item, make_listing(item, tenant, [make_variant()]))

    res = await orchestrator.search(SearchParams(limit=1), now=NOW)
    facets = res.available_filters
    assert len(res.items) == 1
    assert [c.name for c in facets.categories] == ["Spirits", "Wine"]
    assert [b.name for b in facets.brands] == ["House"]
    assert facets.countries == ["France", "Jamaica", "UK"]
    assert facets.tags == ["gift"]


async def test_category_name_filter(catalog_source, result_cache, analytics):
    tenant = make_tenant()
    spirits = make_ref("cat", "Spirits")
    gin = make_item("Gin", category=spirits)
    merlot = make_item("Merlot", category=make_ref("cat", "Wine"))
    catalog_source.add(gin, make_listing(gin, tenant, [make_variant()]))
    catalog_source.add(merlot, make_listing(merlot, tenant, [make_variant()]))

    orch = SearchOrchestrator(
        source=catalog_source,
        resolver=StaticReferenceResolver({"category": [spirits]}),
        cache=result_cache,
        analytics=analytics,
    )
    res = await orch.search(SearchParams(category="spirits"), now=NOW)
    assert [i.name for i in res.items] == ["Gin"]

    # unknown names never fail the search; the facet is dropped
    res = await orch.search(SearchParams(category="Ciders"), now=NOW)
    assert {i.name for i in res.items} == {"Gin", "Merlot"}


async def test_datastore_failure_gives_empty_uncached_response(resolver, analytics):
    source = InMemoryCatalogSource(error=OperationalError("select", {}, Exception("down")))
    cache = ResultCache(max_entries=10, ttl_seconds=300)
    orch = SearchOrchestrator(source=source, resolver=resolver, cache=cache, analytics=analytics)

    res = await orch.search(SearchParams(query="gin"), now=NOW)
    assert res.items == []
    assert res.search_meta.error.startswith("catalog unavailable")
    assert res.pagination.total_results == 0
    assert len(cache) == 0
    assert await analytics.popular() == []


async def test_unexpected_failure_gives_empty_response(catalog_source, resolver, result_cache, analytics):
    class ExplodingRanker:
        def rank(self, items, query):
            raise RuntimeError("boom")

    item = make_item()
    catalog_source.add(item, make_listing(item, make_tenant(), [make_variant()]))
    orch = SearchOrchestrator(
        source=catalog_source,
        resolver=resolver,
        cache=result_cache,
        analytics=analytics,
        ranker=ExplodingRanker(),
    )

    res = await orch.search(SearchParams(), now=NOW)
    assert res.items == []
    assert res.search_meta.error == "search failed: RuntimeError"
    assert len(result_cache) == 0


async def test_analytics_recorded_on_miss_and_hit(orchestrator, shop, analytics):
    await orchestrator.search(SearchParams(query="Bottle"), now=NOW)
    await orchestrator.search(SearchParams(query="bottle"), now=NOW)

    st = analytics._queries["bottle"]
    assert st.count == 2
    assert st.avg_results == 25


async def test_applied_filters_in_meta(orchestrator, shop):
    res = await orchestrator.search(SearchParams(query="bottle", tags=["x"], in_stock="false", page=2), now=NOW)
    assert res.search_meta.query == "bottle"
    assert res.search_meta.applied_filters == {"tags": ["x"], "inStock": False}


async def test_result_ceiling_keeps_newest_items(catalog_source, resolver, result_cache, analytics):
    tenant = make_tenant()
    for n in range(5):
        item = make_item(f"Gin {n}", total_sold=5 - n, created_at=NOW - timedelta(days=5 - n))
        catalog_source.add(item, make_listing(item, tenant, [make_variant()]))
    orch = SearchOrchestrator(
        source=catalog_source,
        resolver=resolver,
        cache=result_cache,
        analytics=analytics,
        config=Settings(search_max_results=3),
    )

    res = await orch.search(SearchParams(sort_by="newest"), now=NOW)
    assert [i.name for i in res.items] == ["Gin 4", "Gin 3", "Gin 2"]


async def test_result_ceiling_keeps_exact_name_match(catalog_source, resolver, result_cache, analytics):
    tenant = make_tenant()
    for n in range(3):
        item = make_item(f"Gin Tonic {n}", total_sold=5)
        catalog_source.add(item, make_listing(item, tenant, [make_variant()]))
    exact = make_item("Gin")
    catalog_source.add(exact, make_listing(exact, tenant, [make_variant()]))
    orch = SearchOrchestrator(
        source=catalog_source,
        resolver=resolver,
        cache=result_cache,
        analytics=analytics,
        config=Settings(search_max_results=3),
    )

    res = await orch.search(SearchParams(query="gin"), now=NOW)
    assert res.search_meta.results_found == 3
    assert res.items[0].name == "Gin"


async def test_slow_reference_lookup_times_out(catalog_source, result_cache, analytics):
    class SlowResolver:
        async def resolve(self, kind, names):
            await asyncio.sleep(2)
            return []

    item = make_item()
    catalog_source.add(item, make_listing(item, make_tenant(), [make_variant()]))
    orch = SearchOrchestrator(
        source=catalog_source,
        resolver=SlowResolver(),
        cache=result_cache,
        analytics=analytics,
        config=Settings(search_query_timeout_seconds=0.1),
    )

    t0 = time.perf_counter()
    res = await orch.search(SearchParams(category="spirits"), now=NOW)
    assert time.perf_counter() - t0 < 1.0
    assert res.items == []
    assert res.search_meta.error == "reference lookup timed out"
    assert len(result_cache) == 0
    assert catalog_source.item_calls == 0
