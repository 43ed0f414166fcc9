from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from app.services.search.catalog_views import CatalogItemView
from app.services.search.pricing import PricedItem
from app.services.search.query_builder import SearchQuery


@dataclass(frozen=True)
class RelevanceWeights:
    name_exact: float = 100
    name_partial: float = 50
    brand: float = 40
    category: float = 35
    type: float = 30
    rating: float = 15
    popularity: float = 10
    featured: float = 25


DEFAULT_WEIGHTS = RelevanceWeights()


def _contains(haystack: str | None, needle: str) -> bool:
    return bool(haystack) and needle in haystack.casefold()


def relevance_score(item: CatalogItemView, text: str, weights: RelevanceWeights = DEFAULT_WEIGHTS) -> float:
    """
    Deterministic weighted sum. Each field match counts once.
    """
    score = float(item.average_rating) * weights.rating + item.total_sold * weights.popularity
    if item.is_featured:
        score += weights.featured

    needle = text.strip().casefold()
    if not needle:
        return round(score, 4)

    if item.name.strip().casefold() == needle:
        score += weights.name_exact
    if _contains(item.name, needle):
        score += weights.name_partial
    if item.brand is not None and _contains(item.brand.name, needle):
        score += weights.brand
    if item.category is not None and _contains(item.category.name, needle):
        score += weights.category
    if _contains(item.type, needle):
        score += weights.type
    return round(score, 4)


def item_sort_spec(
    sort_by: str,
    order: str,
    text: str,
    weights: RelevanceWeights = DEFAULT_WEIGHTS,
) -> tuple[Callable[[CatalogItemView], tuple], bool]:
    """
    (key, reverse) ordering catalog items for a sort mode.

    Shared by the ranker and the bounded pre-fetch, so the items kept under
    the result ceiling are the ones the ranker would put first.
    """
    def rating(i: CatalogItemView) -> float:
        return float(i.average_rating)

    def created(i: CatalogItemView) -> float:
        return i.created_at.timestamp()

    if sort_by == "relevance":
        if text:
            return (lambda i: (-relevance_score(i, text, weights), -rating(i), -i.total_sold, i.id)), False
        return (lambda i: (-i.total_sold, -rating(i), -created(i), i.id)), False
    if sort_by == "rating":
        sign = 1 if order == "asc" else -1
        return (lambda i: (sign * rating(i), -i.review_count, i.id)), False
    if sort_by == "newest":
        return (lambda i: (-created(i), i.id)), False
    if sort_by == "popular":
        return (lambda i: (-i.total_sold, -rating(i), i.id)), False
    if sort_by == "name":
        return (lambda i: (i.name.casefold(), i.id)), order == "desc"
    # price sorts: base order, re-sorted after pricing
    return (lambda i: (i.name.casefold(), i.id)), False


def prefetch_sort_spec(sort_by: str, order: str, text: str) -> tuple[Callable[[CatalogItemView], tuple], bool]:
    # price is not stored; the best bounded proxy is popularity
    if sort_by in ("price_low", "price_high"):
        sort_by = "popular"
    return item_sort_spec(sort_by, order, text)


class RelevanceRanker:
    def __init__(self, weights: RelevanceWeights = DEFAULT_WEIGHTS):
        self.weights = weights

    def rank(self, items: Sequence[PricedItem], query: SearchQuery) -> list[PricedItem]:
        for p in items:
            p.relevance_score = relevance_score(p.item, query.query, self.weights)

        key, reverse = item_sort_spec(query.sort_by, query.order, query.query, self.weights)
        return sorted(items, key=lambda p: key(p.item), reverse=reverse)
