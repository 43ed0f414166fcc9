from __future__ import annotations

from decimal import Decimal
from typing import Any, Sequence

from app.schemas.search import (
    AvailabilityOut,
    AvailableFilters,
    DiscountOut,
    ItemOut,
    OfferOut,
    Pagination,
    PriceBounds,
    PriceOut,
    PriceRange,
    RefOut,
    SearchMeta,
    SearchResponse,
    TenantOut,
    VariantOut,
)
from app.services.search.catalog_views import RefView, TenantView
from app.services.search.pricing import AppliedDiscount, PricedItem, PricedOffer, PricedVariant, ResolvedPrice
from app.services.search.query_builder import SearchQuery

# paging / ordering keys are reported in pagination, not as filters
_NON_FILTER_KEYS = {"query", "page", "limit", "sortBy", "order"}


def stock_level(total_stock: int) -> str:
    if total_stock > 50:
        return "high"
    if total_stock > 10:
        return "medium"
    if total_stock > 0:
        return "low"
    return "out"


def _f(value: Decimal) -> float:
    return float(value)


def _ref_out(ref: RefView | None) -> RefOut | None:
    if ref is None:
        return None
    return RefOut(id=ref.id, name=ref.name, slug=ref.slug)


def _tenant_out(t: TenantView) -> TenantOut:
    return TenantOut(id=t.id, name=t.name, slug=t.slug, city=t.city, state=t.state, country=t.country)


def _price_out(p: ResolvedPrice) -> PriceOut:
    return PriceOut(cost=_f(p.cost), selling=_f(p.selling), effective=_f(p.effective), currency=p.currency)


def _discount_out(d: AppliedDiscount | None) -> DiscountOut | None:
    if d is None:
        return None
    return DiscountOut(
        type=d.type,
        value=_f(d.value),
        original_price=_f(d.original_price),
        discounted_price=_f(d.discounted_price),
        savings=_f(d.savings),
    )


def _variant_out(pv: PricedVariant) -> VariantOut:
    v = pv.variant
    return VariantOut(
        id=v.id,
        size=v.size,
        volume_ml=v.volume_ml,
        sku=v.sku,
        stock=v.display_stock,
        availability=v.availability,
        price=_price_out(pv.price),
        discount=_discount_out(pv.price.discount),
    )


def _offer_out(offer: PricedOffer) -> OfferOut:
    return OfferOut(
        listing_id=offer.listing.id,
        sku=offer.listing.sku,
        tenant=_tenant_out(offer.listing.tenant),
        variants=[_variant_out(v) for v in offer.variants],
        price_range=PriceBounds(min=_f(offer.min_price), max=_f(offer.max_price)),
        total_stock=offer.total_stock,
    )


def primary_image(images: Sequence[dict[str, Any]]) -> dict[str, Any] | None:
    for img in images:
        if img.get("isPrimary") or img.get("is_primary"):
            return img
    return images[0] if images else None


def build_item(p: PricedItem) -> ItemOut:
    item = p.item
    total_stock = p.total_stock
    return ItemOut(
        id=item.id,
        name=item.name,
        slug=item.slug,
        short_description=item.short_description,
        description=item.description,
        type=item.type,
        sub_type=item.sub_type,
        is_alcoholic=item.is_alcoholic,
        abv=float(item.abv) if item.abv is not None else None,
        volume_ml=item.volume_ml,
        origin_country=item.origin_country,
        region=item.region,
        brand=_ref_out(item.brand),
        category=_ref_out(item.category),
        sub_category=_ref_out(item.subcategory),
        tags=list(item.tags),
        flavors=list(item.flavors),
        images=list(item.images),
        primary_image=primary_image(item.images),
        status=item.status,
        price_range=PriceRange(min=_f(p.min_price), max=_f(p.max_price), currency=p.currency),
        availability=AvailabilityOut(
            status="in_stock" if total_stock > 0 else "out_of_stock",
            stock_level=stock_level(total_stock),
            total_stock=total_stock,
            tenant_count=len(p.offers),
        ),
        discount=_discount_out(p.best_discount),
        average_rating=float(item.average_rating),
        review_count=item.review_count,
        total_sold=item.total_sold,
        is_featured=item.is_featured,
        available_at=[_offer_out(o) for o in p.offers],
        relevance_score=p.relevance_score,
    )


def build_available_filters(items: Sequence[PricedItem]) -> AvailableFilters:
    categories: dict[str, RefView] = {}
    subcategories: dict[str, RefView] = {}
    brands: dict[str, RefView] = {}
    tags: set[str] = set()
    flavors: set[str] = set()
    countries: set[str] = set()
    types: set[str] = set()

    for p in items:
        item = p.item
        if item.category is not None:
            categories[item.category.id] = item.category
        if item.subcategory is not None:
            subcategories[item.subcategory.id] = item.subcategory
        if item.brand is not None:
            brands[item.brand.id] = item.brand
        tags.update(item.tags)
        flavors.update(item.flavors)
        if item.origin_country:
            countries.add(item.origin_country)
        if item.type:
            types.add(item.type)

    def refs(d: dict[str, RefView]) -> list[RefOut]:
        return [_ref_out(r) for r in sorted(d.values(), key=lambda r: (r.name.casefold(), r.id))]

    return AvailableFilters(
        categories=refs(categories),
        sub_categories=refs(subcategories),
        brands=refs(brands),
        tags=sorted(tags),
        flavors=sorted(flavors),
        countries=sorted(countries),
        types=sorted(types),
    )


def applied_filters(query: SearchQuery) -> dict[str, Any]:
    dumped = query.model_dump(mode="json", by_alias=True, exclude_defaults=True)
    return {k: v for k, v in dumped.items() if k not in _NON_FILTER_KEYS}


def empty_pagination(query: SearchQuery) -> Pagination:
    return Pagination(
        current_page=query.page,
        total_pages=0,
        total_results=0,
        results_per_page=query.limit,
        has_next_page=False,
        has_previous_page=query.page > 1,
    )


def empty_response(query: SearchQuery, *, error: str | None, elapsed_ms: int) -> SearchResponse:
    return SearchResponse(
        items=[],
        pagination=empty_pagination(query),
        available_filters=AvailableFilters(),
        search_meta=SearchMeta(
            query=query.query or None,
            applied_filters=applied_filters(query),
            results_found=0,
            search_time_ms=elapsed_ms,
            from_cache=False,
            error=error,
        ),
    )
