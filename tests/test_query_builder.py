from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from app.core.ids import gen_id
from app.schemas.search import SearchParams
from app.services.search.query_builder import ItemFilter, build_item_filter, normalize_search_params

from fixtures_catalog import D, StaticReferenceResolver, make_item, make_ref


def test_defaults():
    q = normalize_search_params(SearchParams())
    assert q.page == 1
    assert q.limit == 20
    assert q.sort_by == "relevance"
    assert q.order == "desc"
    assert q.in_stock is True
    assert q.on_sale is False
    assert q.include_pending is False


@pytest.mark.parametrize(
    "page,limit,expected",
    [
        ("0", "10", (1, 10)),
        ("-3", "500", (1, 50)),
        ("abc", "0", (1, 1)),
        (None, "nan", (1, 20)),
        ("2.7", 5, (2, 5)),
    ],
)
def test_page_and_limit_are_clamped(page, limit, expected):
    q = normalize_search_params(SearchParams(page=page, limit=limit))
    assert (q.page, q.limit) == expected


def test_unknown_sort_falls_back_to_relevance():
    q = normalize_search_params(SearchParams(sort_by="cheapest", order="sideways"))
    assert q.sort_by == "relevance"
    assert q.order == "desc"


def test_lists_are_order_independent():
    a = normalize_search_params(SearchParams(tags=["smoky", "peaty", "smoky"], brand="Jameson"))
    b = normalize_search_params(SearchParams(tags=["peaty", " smoky "], brand=["Jameson"]))
    assert a == b
    assert a.tags == ("peaty", "smoky")


def test_boolean_strings():
    q = normalize_search_params(SearchParams(is_alcoholic="false", on_sale="true", in_stock="false"))
    assert q.is_alcoholic is False
    assert q.on_sale is True
    assert q.in_stock is False


def test_blank_strings_dropped():
    q = normalize_search_params(SearchParams(query="   ", tenant_id=" ", region=["", "  "]))
    assert q.query == ""
    assert q.tenant_id is None
    assert q.region == ()


async def test_reference_names_resolve_to_ids():
    spirits = make_ref("cat", "Spirits")
    resolver = StaticReferenceResolver({"category": [spirits]})
    direct_brand = gen_id("brd")

    q = normalize_search_params(SearchParams(category="spirits", brand=direct_brand))
    f = await build_item_filter(q, resolver)

    assert f.category_ids == (spirits.id,)
    assert f.brand_ids == (direct_brand,)
    # ids never go through the resolver
    assert all(kind != "brand" for kind, _ in resolver.calls)


async def test_unresolvable_names_drop_the_facet():
    q = normalize_search_params(SearchParams(category="Nonexistent", brand="Nobody"))
    f = await build_item_filter(q, StaticReferenceResolver())
    assert f.category_ids == ()
    assert f.brand_ids == ()


async def test_resolver_failure_is_treated_as_unresolved():
    class BrokenResolver:
        async def resolve(self, kind, names):
            raise OperationalError("select", {}, Exception("connection refused"))

    q = normalize_search_params(SearchParams(category="Spirits"))
    f = await build_item_filter(q, BrokenResolver())
    assert f.category_ids == ()


async def test_in_stock_false_allows_out_of_stock():
    q = normalize_search_params(SearchParams(in_stock="false"))
    f = await build_item_filter(q, StaticReferenceResolver())
    assert f.allow_out_of_stock is True


def test_matches_alcoholic_and_abv():
    f = ItemFilter(text="wine", is_alcoholic=True, max_abv=15)

    assert f.matches(make_item("Red Wine", abv=D("13.5")))
    assert not f.matches(make_item("Fortified Wine", abv=D("19")))
    assert not f.matches(make_item("Alcohol-free Wine", abv=D("0.5"), is_alcoholic=False))
    assert not f.matches(make_item("Mystery Wine", abv=None))


def test_matches_status_and_pending():
    pending = make_item("New Gin", status="pending")
    assert not ItemFilter().matches(pending)
    assert ItemFilter(include_pending=True).matches(pending)
    assert not ItemFilter(include_pending=True).matches(make_item("Old Gin", status="rejected"))


def test_text_match_covers_flavor_profile_and_is_case_insensitive():
    item = make_item("Islay Malt", flavor_profile=("Smoky", "Peat"))
    assert ItemFilter(text="SMOKY").matches(item)
    assert not ItemFilter(text="citrus").matches(item)


def test_tags_overlap_and_rating():
    item = make_item(tags=("gift", "limited"), average_rating=Decimal("4.2"))
    assert ItemFilter(tags=("limited", "other")).matches(item)
    assert not ItemFilter(tags=("other",)).matches(item)
    assert ItemFilter(min_rating=4).matches(item)
    assert not ItemFilter(min_rating=4.5).matches(item)
