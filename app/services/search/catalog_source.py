from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Protocol, Sequence

from sqlalchemy import Text, case, func, or_, select
from sqlalchemy.dialects.postgresql import array
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.models.catalog_item import CatalogItem
from app.models.listing import Listing
from app.models.reference import Brand, Category, SubCategory
from app.models.tenant import Tenant
from app.models.variant import Variant
from app.services.search.catalog_views import (
    GOOD_STANDING_STATUS,
    GOOD_STANDING_SUBSCRIPTIONS,
    SEARCHABLE_LISTING_STATUS,
    SEARCHABLE_VARIANT_STATUS,
    CatalogItemView,
    ListingView,
    RefView,
    TenantView,
    VariantView,
    allowed_availability,
)
from app.services.search.query_builder import ItemFilter
from app.services.search.ranking import DEFAULT_WEIGHTS, RelevanceWeights


class CatalogSource(Protocol):
    """
    Read side of the catalog used by the join engine.

    Implementations may push any part of the predicate down to the datastore;
    the join engine re-checks eligibility on whatever comes back.
    """

    async def fetch_items(self, item_filter: ItemFilter, *, limit: int) -> list[CatalogItemView]:
        ...

    async def fetch_listings(
        self,
        item_ids: Sequence[str],
        *,
        tenant_id: str | None,
        allow_out_of_stock: bool,
    ) -> list[ListingView]:
        ...


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _flavor_profile_matches(pattern: str):
    # element-wise, so JSON punctuation never matches
    elem = func.jsonb_array_elements_text(CatalogItem.flavor_profile).table_valued("value", name="fp_elem")
    return (
        select(1)
        .select_from(elem)
        .where(elem.c.value.ilike(pattern, escape="\\"))
        .correlate(CatalogItem)
        .exists()
    )


def _ilike_score(column, pattern: str, weight: float):
    return case((column.ilike(pattern, escape="\\"), weight), else_=0)


def relevance_expression(text: str, category, brand, weights: RelevanceWeights = DEFAULT_WEIGHTS):
    """
    SQL rendition of ranking.relevance_score.
    """
    pat = _like_pattern(text.strip())
    return (
        case((func.lower(func.trim(CatalogItem.name)) == text.strip().lower(), weights.name_exact), else_=0)
        + _ilike_score(CatalogItem.name, pat, weights.name_partial)
        + _ilike_score(brand.name, pat, weights.brand)
        + _ilike_score(category.name, pat, weights.category)
        + _ilike_score(CatalogItem.type, pat, weights.type)
        + CatalogItem.average_rating * weights.rating
        + CatalogItem.total_sold * weights.popularity
        + case((CatalogItem.is_featured.is_(True), weights.featured), else_=0)
    )


def prefetch_order(f: ItemFilter, category, brand) -> list:
    """
    ORDER BY for the bounded item fetch; mirrors ranking.prefetch_sort_spec
    so the rows cut by the limit are the ones the ranker would place last.
    """
    sort_by = "popular" if f.sort_by in ("price_low", "price_high") else f.sort_by
    rating = CatalogItem.average_rating
    sold = CatalogItem.total_sold

    if sort_by == "relevance":
        if f.text:
            return [relevance_expression(f.text, category, brand).desc(), rating.desc(), sold.desc(), CatalogItem.id.asc()]
        return [sold.desc(), rating.desc(), CatalogItem.created_at.desc(), CatalogItem.id.asc()]
    if sort_by == "rating":
        by_rating = rating.asc() if f.order == "asc" else rating.desc()
        return [by_rating, CatalogItem.review_count.desc(), CatalogItem.id.asc()]
    if sort_by == "newest":
        return [CatalogItem.created_at.desc(), CatalogItem.id.asc()]
    if sort_by == "popular":
        return [sold.desc(), rating.desc(), CatalogItem.id.asc()]
    name = func.lower(CatalogItem.name)
    if f.order == "desc":
        return [name.desc(), CatalogItem.id.desc()]
    return [name.asc(), CatalogItem.id.asc()]


def item_conditions(f: ItemFilter) -> list:
    """
    SQL rendition of ItemFilter.matches.
    """
    conds = [CatalogItem.status.in_(f.statuses)]

    if f.text:
        pat = _like_pattern(f.text)
        conds.append(
            or_(
                CatalogItem.name.ilike(pat, escape="\\"),
                CatalogItem.short_description.ilike(pat, escape="\\"),
                CatalogItem.description.ilike(pat, escape="\\"),
                CatalogItem.type.ilike(pat, escape="\\"),
                CatalogItem.sub_type.ilike(pat, escape="\\"),
                CatalogItem.origin_country.ilike(pat, escape="\\"),
                CatalogItem.region.ilike(pat, escape="\\"),
                CatalogItem.producer.ilike(pat, escape="\\"),
                _flavor_profile_matches(pat),
            )
        )

    if f.category_ids:
        conds.append(CatalogItem.category_id.in_(f.category_ids))
    if f.subcategory_ids:
        conds.append(CatalogItem.subcategory_id.in_(f.subcategory_ids))
    if f.brand_ids:
        conds.append(CatalogItem.brand_id.in_(f.brand_ids))
    if f.tags:
        conds.append(CatalogItem.tags.has_any(array(list(f.tags), type_=Text)))
    if f.flavors:
        conds.append(CatalogItem.flavors.has_any(array(list(f.flavors), type_=Text)))

    if f.min_abv is not None:
        conds.append(CatalogItem.abv >= f.min_abv)
    if f.max_abv is not None:
        conds.append(CatalogItem.abv <= f.max_abv)
    if f.is_alcoholic is not None:
        conds.append(CatalogItem.is_alcoholic.is_(f.is_alcoholic))
    if f.is_featured is not None:
        conds.append(CatalogItem.is_featured.is_(f.is_featured))
    if f.min_rating is not None:
        conds.append(CatalogItem.average_rating >= f.min_rating)

    if f.origin_countries:
        conds.append(CatalogItem.origin_country.in_(f.origin_countries))
    if f.regions:
        conds.append(CatalogItem.region.in_(f.regions))
    if f.types:
        conds.append(CatalogItem.type.in_(f.types))
    if f.sub_types:
        conds.append(CatalogItem.sub_type.in_(f.sub_types))

    return conds


def _ref(row) -> RefView | None:
    if row is None:
        return None
    return RefView(id=row.id, name=row.name, slug=row.slug)


def _item_view(item: CatalogItem, category: Category | None, subcategory: SubCategory | None, brand: Brand | None) -> CatalogItemView:
    return CatalogItemView(
        id=item.id,
        name=item.name,
        slug=item.slug,
        short_description=item.short_description,
        description=item.description,
        type=item.type,
        sub_type=item.sub_type,
        category=_ref(category),
        subcategory=_ref(subcategory),
        brand=_ref(brand),
        is_alcoholic=item.is_alcoholic,
        abv=item.abv,
        volume_ml=item.volume_ml,
        origin_country=item.origin_country,
        region=item.region,
        producer=item.producer,
        flavor_profile=tuple(item.flavor_profile or ()),
        tags=tuple(item.tags or ()),
        flavors=tuple(item.flavors or ()),
        images=tuple(item.images or ()),
        is_featured=item.is_featured,
        average_rating=Decimal(item.average_rating or 0),
        review_count=item.review_count or 0,
        total_sold=item.total_sold or 0,
        status=item.status,
        created_at=item.created_at,
    )


def _tenant_view(t: Tenant) -> TenantView:
    return TenantView(
        id=t.id,
        name=t.name,
        slug=t.slug,
        city=t.city,
        state=t.state,
        country=t.country,
        status=t.status,
        subscription_status=t.subscription_status,
        revenue_model=t.revenue_model,
        markup_percentage=t.markup_percentage,
        commission_percentage=t.commission_percentage,
        default_currency=t.default_currency,
    )


def _variant_view(v: Variant) -> VariantView:
    return VariantView(
        id=v.id,
        size=v.display_name or v.size,
        display_name=v.display_name,
        volume_ml=v.volume_ml,
        sku=v.sku,
        selling_price=v.selling_price,
        cost_price=v.cost_price,
        currency=v.currency,
        stock=v.stock,
        available_stock=v.available_stock,
        availability=v.availability,
        status=v.status,
        discount_type=v.discount_type,
        discount_value=v.discount_value,
        discount_start=v.discount_start,
        discount_end=v.discount_end,
    )


def _listing_view(lst: Listing, tenant: Tenant, variants: Sequence[Variant]) -> ListingView:
    return ListingView(
        id=lst.id,
        catalog_item_id=lst.catalog_item_id,
        tenant=_tenant_view(tenant),
        sku=lst.sku,
        cost_price=lst.cost_price,
        base_selling_price=lst.base_selling_price,
        currency=lst.currency,
        discount_type=lst.discount_type,
        discount_value=lst.discount_value,
        discount_start=lst.discount_start,
        discount_end=lst.discount_end,
        stock_status=lst.stock_status,
        status=lst.status,
        sell_without_variants=lst.sell_without_variants,
        total_stock=lst.total_stock,
        available_stock=lst.available_stock,
        variants=tuple(_variant_view(v) for v in variants),
    )


class SqlCatalogSource:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def fetch_items(self, item_filter: ItemFilter, *, limit: int) -> list[CatalogItemView]:
        cat = aliased(Category)
        sub = aliased(SubCategory)
        brd = aliased(Brand)

        stmt = (
            select(CatalogItem, cat, sub, brd)
            .outerjoin(cat, cat.id == CatalogItem.category_id)
            .outerjoin(sub, sub.id == CatalogItem.subcategory_id)
            .outerjoin(brd, brd.id == CatalogItem.brand_id)
            .where(*item_conditions(item_filter))
            .order_by(*prefetch_order(item_filter, cat, brd))
            .limit(limit)
        )
        rows = (await self.db.execute(stmt)).all()
        return [_item_view(item, c, s, b) for (item, c, s, b) in rows]

    async def fetch_listings(
        self,
        item_ids: Sequence[str],
        *,
        tenant_id: str | None,
        allow_out_of_stock: bool,
    ) -> list[ListingView]:
        if not item_ids:
            return []

        conds = [
            Listing.catalog_item_id.in_(list(item_ids)),
            Listing.status == SEARCHABLE_LISTING_STATUS,
            Tenant.status == GOOD_STANDING_STATUS,
            Tenant.subscription_status.in_(GOOD_STANDING_SUBSCRIPTIONS),
        ]
        if tenant_id:
            conds.append(Tenant.id == tenant_id)

        stmt = (
            select(Listing, Tenant)
            .join(Tenant, Tenant.id == Listing.tenant_id)
            .where(*conds)
            .order_by(Listing.catalog_item_id, Tenant.name, Listing.id)
        )
        pairs = (await self.db.execute(stmt)).all()
        if not pairs:
            return []

        vstmt = select(Variant).where(
            Variant.listing_id.in_([lst.id for (lst, _t) in pairs]),
            Variant.status == SEARCHABLE_VARIANT_STATUS,
            Variant.availability.in_(allowed_availability(allow_out_of_stock)),
        )
        if not allow_out_of_stock:
            vstmt = vstmt.where(Variant.stock > 0)
        vstmt = vstmt.order_by(Variant.selling_price.asc(), Variant.id.asc())

        by_listing: dict[str, list[Variant]] = defaultdict(list)
        for v in (await self.db.execute(vstmt)).scalars().all():
            by_listing[v.listing_id].append(v)

        return [_listing_view(lst, t, by_listing.get(lst.id, [])) for (lst, t) in pairs]
