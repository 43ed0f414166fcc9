from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace

from sqlalchemy.exc import SQLAlchemyError

from app.services.search.catalog_source import CatalogSource
from app.services.search.catalog_views import (
    SEARCHABLE_LISTING_STATUS,
    SEARCHABLE_VARIANT_STATUS,
    CatalogItemView,
    ListingView,
    VariantView,
    tenant_in_good_standing,
    variant_is_eligible,
)
from app.services.search.query_builder import ItemFilter

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinedItem:
    item: CatalogItemView
    listings: tuple[ListingView, ...]


@dataclass
class JoinResult:
    items: list[JoinedItem] = field(default_factory=list)
    # recoverable upstream error (timeout, connection failure)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def synthetic_variant(listing: ListingView) -> VariantView:
    """
    Single stand-in variant for a listing sold without packaging variants.
    """
    stock = listing.available_stock if listing.available_stock is not None else listing.total_stock
    return VariantView(
        id=listing.id,
        size="default",
        sku=listing.sku,
        selling_price=listing.base_selling_price,
        cost_price=listing.cost_price,
        currency=listing.currency,
        stock=stock,
        availability=listing.stock_status,
        status=SEARCHABLE_VARIANT_STATUS,
    )


def eligible_listing(listing: ListingView, item_filter: ItemFilter) -> ListingView | None:
    """
    Returns the listing narrowed to its eligible variants, or None if it contributes nothing.
    """
    if not tenant_in_good_standing(listing.tenant):
        return None
    if listing.status != SEARCHABLE_LISTING_STATUS:
        return None
    if item_filter.tenant_id and listing.tenant.id != item_filter.tenant_id:
        return None

    allow = item_filter.allow_out_of_stock
    if listing.sell_without_variants:
        candidates: tuple[VariantView, ...] = (synthetic_variant(listing),)
    else:
        candidates = listing.variants

    variants = tuple(v for v in candidates if variant_is_eligible(v, allow_out_of_stock=allow))
    if not variants:
        return None
    return replace(listing, variants=variants)


class CatalogJoinEngine:
    """
    Expands matching catalog items into their eligible tenant listings and variants.

    Two-phase filter: the source pushes what it can down to the datastore
    (bounded by max_results), eligibility is then enforced here on every row.
    """

    def __init__(self, source: CatalogSource, *, timeout_seconds: float, max_results: int):
        self.source = source
        self.timeout_seconds = timeout_seconds
        self.max_results = max_results

    async def _fetch(self, item_filter: ItemFilter) -> tuple[list[CatalogItemView], list[ListingView]]:
        items = await self.source.fetch_items(item_filter, limit=self.max_results)
        items = [i for i in items[: self.max_results] if item_filter.matches(i)]
        if not items:
            return [], []

        listings = await self.source.fetch_listings(
            [i.id for i in items],
            tenant_id=item_filter.tenant_id,
            allow_out_of_stock=item_filter.allow_out_of_stock,
        )
        return items, listings

    async def join(self, item_filter: ItemFilter) -> JoinResult:
        try:
            items, listings = await asyncio.wait_for(self._fetch(item_filter), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            log.warning("catalog join: datastore timed out after %.1fs", self.timeout_seconds)
            return JoinResult(error="catalog query timed out")
        except (SQLAlchemyError, OSError) as e:
            log.exception("catalog join: datastore unavailable")
            return JoinResult(error=f"catalog unavailable: {e.__class__.__name__}")

        by_item: dict[str, list[ListingView]] = defaultdict(list)
        for listing in listings:
            by_item[listing.catalog_item_id].append(listing)

        joined: list[JoinedItem] = []
        for item in items:
            kept: list[ListingView] = []
            for listing in by_item.get(item.id, []):
                try:
                    narrowed = eligible_listing(listing, item_filter)
                except (AttributeError, TypeError, ValueError):
                    log.exception(
                        "catalog join: skipping listing item_id=%s tenant_id=%s",
                        item.id,
                        getattr(listing.tenant, "id", None),
                    )
                    continue
                if narrowed is not None:
                    kept.append(narrowed)

            if kept:
                kept.sort(key=lambda lst: (lst.tenant.name.casefold(), lst.id))
                joined.append(JoinedItem(item=item, listings=tuple(kept)))

        log.info("catalog join: %d items matched, %d with eligible listings", len(items), len(joined))
        return JoinResult(items=joined)
