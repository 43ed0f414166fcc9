import random
from datetime import timedelta
from decimal import Decimal

from app.schemas.search import SearchParams
from app.services.search.pricing import PricedItem
from app.services.search.query_builder import normalize_search_params
from app.services.search.ranking import RelevanceRanker, relevance_score

from fixtures_catalog import NOW, make_item, make_ref


def _priced(*items):
    # ranking only reads catalog fields
    return [PricedItem(item=i, offers=()) for i in items]


def _query(**kw):
    return normalize_search_params(SearchParams(**kw))


def test_score_components():
    brand = make_ref("brd", "Glenfiddich")
    category = make_ref("cat", "Whisky")
    item = make_item(
        "Glenfiddich 12",
        brand=brand,
        category=category,
        type="single malt",
        average_rating=Decimal("4"),
        total_sold=3,
        is_featured=True,
    )
    # partial name 50 + brand 40 + rating 60 + sold 30 + featured 25
    assert relevance_score(item, "glenfiddich") == 205
    # exact name adds 100 on top of the partial match
    assert relevance_score(item, "Glenfiddich 12") == 100 + 50 + 60 + 30 + 25


def test_text_relevance_order_and_tiebreak():
    exact = make_item("Vodka", total_sold=0)
    partial = make_item("Vodka Citron", total_sold=0)
    other = make_item("Gin", type="vodka", total_sold=0)

    ranked = RelevanceRanker().rank(_priced(other, partial, exact), _query(query="vodka"))
    assert [p.item.name for p in ranked] == ["Vodka", "Vodka Citron", "Gin"]
    assert ranked[0].relevance_score > ranked[1].relevance_score > ranked[2].relevance_score


def test_no_text_orders_by_popularity_rating_recency():
    a = make_item("A", total_sold=5, average_rating=Decimal("3"))
    b = make_item("B", total_sold=5, average_rating=Decimal("4"))
    c = make_item("C", total_sold=9, average_rating=Decimal("1"))
    d = make_item("D", total_sold=5, average_rating=Decimal("4"), created_at=NOW)

    ranked = RelevanceRanker().rank(_priced(a, b, c, d), _query())
    assert [p.item.name for p in ranked] == ["C", "D", "B", "A"]


def test_ranking_is_deterministic():
    items = [make_item(f"Same {i}", total_sold=1) for i in range(8)]
    query = _query(query="same")

    first = [p.item.id for p in RelevanceRanker().rank(_priced(*items), query)]
    shuffled = items[:]
    random.Random(7).shuffle(shuffled)
    second = [p.item.id for p in RelevanceRanker().rank(_priced(*shuffled), query)]
    assert first == second


def test_sort_keys():
    old = make_item("Beta", created_at=NOW - timedelta(days=30), average_rating=Decimal("4.5"), review_count=1)
    new = make_item("alpha", created_at=NOW, average_rating=Decimal("3"), total_sold=2)
    ranker = RelevanceRanker()

    assert [p.item.name for p in ranker.rank(_priced(old, new), _query(sort_by="newest"))] == ["alpha", "Beta"]
    assert [p.item.name for p in ranker.rank(_priced(old, new), _query(sort_by="rating"))] == ["Beta", "alpha"]
    assert [p.item.name for p in ranker.rank(_priced(old, new), _query(sort_by="rating", order="asc"))] == ["alpha", "Beta"]
    assert [p.item.name for p in ranker.rank(_priced(old, new), _query(sort_by="popular"))] == ["alpha", "Beta"]
    assert [p.item.name for p in ranker.rank(_priced(old, new), _query(sort_by="name", order="asc"))] == ["alpha", "Beta"]
    assert [p.item.name for p in ranker.rank(_priced(old, new), _query(sort_by="name", order="desc"))] == ["Beta", "alpha"]
