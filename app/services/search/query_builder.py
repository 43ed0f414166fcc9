from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal

from pydantic import ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.ids import is_id
from app.schemas.search import CamelModel, SearchParams
from app.services.references import REF_ID_PREFIX, RefKind, ReferenceResolver
from app.services.search.catalog_views import CatalogItemView

log = logging.getLogger(__name__)

SortKey = Literal["relevance", "price_low", "price_high", "rating", "newest", "popular", "name"]
SORT_KEYS: tuple[str, ...] = ("relevance", "price_low", "price_high", "rating", "newest", "popular", "name")
DEFAULT_SORT = "relevance"

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


class SearchQuery(CamelModel):
    """
    Normalized, clamped search descriptor.

    List filters are de-duplicated and sorted so that two requests that differ
    only in parameter order produce the same descriptor (and cache key).
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    query: str = ""
    page: int = 1
    limit: int = 20
    sort_by: SortKey = DEFAULT_SORT
    order: Literal["asc", "desc"] = "desc"

    category: tuple[str, ...] = ()
    sub_category: tuple[str, ...] = ()
    brand: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    flavors: tuple[str, ...] = ()

    min_price: float | None = None
    max_price: float | None = None
    min_abv: float | None = None
    max_abv: float | None = None
    min_rating: float | None = None

    is_alcoholic: bool | None = None
    is_featured: bool | None = None
    on_sale: bool = False
    in_stock: bool = True

    origin_country: tuple[str, ...] = ()
    region: tuple[str, ...] = ()
    type: tuple[str, ...] = ()
    sub_type: tuple[str, ...] = ()

    tenant_id: str | None = None
    include_pending: bool = False


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    values = value if isinstance(value, (list, tuple, set)) else [value]
    out = {str(v).strip() for v in values if v is not None}
    return tuple(sorted(v for v in out if v))


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(str(value).strip())
    except ValueError:
        return None
    return f if math.isfinite(f) else None


def _to_int(value: Any, default: int) -> int:
    f = _to_float(value)
    if f is None:
        return default
    return int(f)


def _to_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    v = str(value).strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    return None


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    v = str(value).strip()
    return v or None


def normalize_search_params(
    params: SearchParams,
    *,
    default_limit: int | None = None,
    max_limit: int | None = None,
) -> SearchQuery:
    default_limit = default_limit or settings.search_default_limit
    max_limit = max_limit or settings.search_max_limit

    page = max(1, _to_int(params.page, 1))
    limit = max(1, min(max_limit, _to_int(params.limit, default_limit)))

    sort_by = (params.sort_by or "").strip().lower()
    if sort_by not in SORT_KEYS:
        sort_by = DEFAULT_SORT

    order = "asc" if (params.order or "").strip().lower() == "asc" else "desc"
    in_stock = _to_bool(params.in_stock)

    return SearchQuery(
        query=(params.query or "").strip(),
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order,
        category=_as_tuple(params.category),
        sub_category=_as_tuple(params.sub_category),
        brand=_as_tuple(params.brand),
        tags=_as_tuple(params.tags),
        flavors=_as_tuple(params.flavors),
        min_price=_to_float(params.min_price),
        max_price=_to_float(params.max_price),
        min_abv=_to_float(params.min_abv),
        max_abv=_to_float(params.max_abv),
        min_rating=_to_float(params.min_rating),
        is_alcoholic=_to_bool(params.is_alcoholic),
        is_featured=_to_bool(params.is_featured),
        on_sale=_to_bool(params.on_sale) is True,
        in_stock=in_stock is not False,
        origin_country=_as_tuple(params.origin_country),
        region=_as_tuple(params.region),
        type=_as_tuple(params.type),
        sub_type=_as_tuple(params.sub_type),
        tenant_id=_clean_str(params.tenant_id),
        include_pending=_to_bool(params.include_pending) is True,
    )


@dataclass(frozen=True)
class ItemFilter:
    """
    CatalogItem-level predicate plus the join options derived from a SearchQuery.

    An empty tuple means "no constraint" for that facet.
    """
    text: str = ""

    category_ids: tuple[str, ...] = ()
    subcategory_ids: tuple[str, ...] = ()
    brand_ids: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    flavors: tuple[str, ...] = ()

    min_abv: float | None = None
    max_abv: float | None = None
    min_rating: float | None = None
    is_alcoholic: bool | None = None
    is_featured: bool | None = None

    origin_countries: tuple[str, ...] = ()
    regions: tuple[str, ...] = ()
    types: tuple[str, ...] = ()
    sub_types: tuple[str, ...] = ()

    include_pending: bool = False

    # join options
    tenant_id: str | None = None
    allow_out_of_stock: bool = False

    # ordering of the bounded pre-fetch
    sort_by: str = DEFAULT_SORT
    order: str = "desc"

    @property
    def statuses(self) -> tuple[str, ...]:
        return ("approved", "pending") if self.include_pending else ("approved",)

    def matches(self, item: CatalogItemView) -> bool:
        if item.status not in self.statuses:
            return False
        if self.text and not text_matches(item, self.text):
            return False

        if self.category_ids and (item.category is None or item.category.id not in self.category_ids):
            return False
        if self.subcategory_ids and (item.subcategory is None or item.subcategory.id not in self.subcategory_ids):
            return False
        if self.brand_ids and (item.brand is None or item.brand.id not in self.brand_ids):
            return False
        if self.tags and not set(self.tags) & set(item.tags):
            return False
        if self.flavors and not set(self.flavors) & set(item.flavors):
            return False

        if self.min_abv is not None or self.max_abv is not None:
            if item.abv is None:
                return False
            if self.min_abv is not None and item.abv < Decimal(str(self.min_abv)):
                return False
            if self.max_abv is not None and item.abv > Decimal(str(self.max_abv)):
                return False

        if self.is_alcoholic is not None and item.is_alcoholic != self.is_alcoholic:
            return False
        if self.is_featured is not None and item.is_featured != self.is_featured:
            return False
        if self.min_rating is not None and item.average_rating < Decimal(str(self.min_rating)):
            return False

        if self.origin_countries and item.origin_country not in self.origin_countries:
            return False
        if self.regions and item.region not in self.regions:
            return False
        if self.types and item.type not in self.types:
            return False
        if self.sub_types and item.sub_type not in self.sub_types:
            return False
        return True


def text_matches(item: CatalogItemView, text: str) -> bool:
    needle = text.casefold()
    fields = [
        item.name,
        item.short_description,
        item.description,
        item.type,
        item.sub_type,
        item.origin_country,
        item.region,
        item.producer,
        *item.flavor_profile,
    ]
    return any(f and needle in f.casefold() for f in fields)


async def _resolve_ref_ids(resolver: ReferenceResolver, kind: RefKind, values: tuple[str, ...]) -> tuple[str, ...]:
    if not values:
        return ()

    prefix = REF_ID_PREFIX[kind]
    ids = [v for v in values if is_id(v, prefix)]
    names = [v for v in values if not is_id(v, prefix)]

    if names:
        try:
            resolved = await resolver.resolve(kind, names)
        except (SQLAlchemyError, OSError):
            log.exception("search: %s resolution failed, facet names dropped: %s", kind, names)
            resolved = []
        if not resolved:
            log.info("search: unresolved %s names dropped: %s", kind, names)
        ids.extend(resolved)

    return tuple(sorted(set(ids)))


async def build_item_filter(query: SearchQuery, resolver: ReferenceResolver) -> ItemFilter:
    """
    Resolve reference names and derive the catalog predicate.

    A facet whose names all fail to resolve is dropped entirely rather than
    failing the request.
    """
    return ItemFilter(
        text=query.query,
        category_ids=await _resolve_ref_ids(resolver, "category", query.category),
        subcategory_ids=await _resolve_ref_ids(resolver, "subcategory", query.sub_category),
        brand_ids=await _resolve_ref_ids(resolver, "brand", query.brand),
        tags=query.tags,
        flavors=query.flavors,
        min_abv=query.min_abv,
        max_abv=query.max_abv,
        min_rating=query.min_rating,
        is_alcoholic=query.is_alcoholic,
        is_featured=query.is_featured,
        origin_countries=query.origin_country,
        regions=query.region,
        types=query.type,
        sub_types=query.sub_type,
        include_pending=query.include_pending,
        tenant_id=query.tenant_id,
        allow_out_of_stock=not query.in_stock,
        sort_by=query.sort_by,
        order=query.order,
    )
