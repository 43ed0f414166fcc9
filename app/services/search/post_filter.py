from __future__ import annotations

import math
from decimal import Decimal
from typing import Literal, Sequence

from app.schemas.search import Pagination
from app.services.search.pricing import PricedItem
from app.services.search.query_builder import SearchQuery

PriceFilterMode = Literal["overlap", "contained"]


def _in_range(price: Decimal, lo: Decimal | None, hi: Decimal | None) -> bool:
    if lo is not None and price < lo:
        return False
    if hi is not None and price > hi:
        return False
    return True


def apply_price_filter(
    items: Sequence[PricedItem],
    min_price: float | None,
    max_price: float | None,
    mode: PriceFilterMode = "overlap",
) -> list[PricedItem]:
    """
    overlap:   keep when the item's [min, max] effective range intersects the requested range
    contained: keep when at least one variant's effective price lies inside the requested range
    """
    if min_price is None and max_price is None:
        return list(items)

    lo = Decimal(str(min_price)) if min_price is not None else None
    hi = Decimal(str(max_price)) if max_price is not None else None

    out: list[PricedItem] = []
    for p in items:
        if mode == "contained":
            keep = any(_in_range(v.price.effective, lo, hi) for v in p.all_variants)
        else:
            keep = (lo is None or p.max_price >= lo) and (hi is None or p.min_price <= hi)
        if keep:
            out.append(p)
    return out


def apply_on_sale_filter(items: Sequence[PricedItem]) -> list[PricedItem]:
    return [p for p in items if p.on_sale]


def sort_by_price(items: Sequence[PricedItem], order: str) -> list[PricedItem]:
    # stable: equal minimum prices keep the ranked order
    return sorted(items, key=lambda p: p.min_price, reverse=(order == "desc"))


def apply_post_filters(
    items: Sequence[PricedItem],
    query: SearchQuery,
    price_mode: PriceFilterMode = "overlap",
) -> list[PricedItem]:
    out = apply_price_filter(items, query.min_price, query.max_price, price_mode)
    if query.on_sale:
        out = apply_on_sale_filter(out)

    if query.sort_by == "price_low":
        out = sort_by_price(out, "asc")
    elif query.sort_by == "price_high":
        out = sort_by_price(out, "desc")
    return out


def paginate(items: Sequence[PricedItem], page: int, limit: int) -> tuple[list[PricedItem], Pagination]:
    total = len(items)
    total_pages = math.ceil(total / limit) if total else 0
    start = (page - 1) * limit
    page_items = list(items[start : start + limit])

    return page_items, Pagination(
        current_page=page,
        total_pages=total_pages,
        total_results=total,
        results_per_page=limit,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )
