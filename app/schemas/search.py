from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


StrOrList = str | list[str] | None
Number = float | int | str | None
Flag = bool | str | None


class SearchParams(CamelModel):
    """
    Raw search request parameters.

    Deliberately lenient: numbers and flags may arrive as strings and are
    clamped / parsed by normalize_search_params rather than rejected.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    query: str | None = None

    category: StrOrList = None
    sub_category: StrOrList = None
    brand: StrOrList = None
    tags: StrOrList = None
    flavors: StrOrList = None

    min_price: Number = None
    max_price: Number = None
    min_abv: Number = None
    max_abv: Number = None
    min_rating: Number = None

    is_alcoholic: Flag = None
    is_featured: Flag = None
    on_sale: Flag = None
    in_stock: Flag = None

    origin_country: StrOrList = None
    region: StrOrList = None
    type: StrOrList = None
    sub_type: StrOrList = None

    sort_by: str | None = None
    order: str | None = None
    page: Number = None
    limit: Number = None

    tenant_id: str | None = None
    include_pending: Flag = None


class PriceOut(CamelModel):
    cost: float
    selling: float
    effective: float
    currency: str


class DiscountOut(CamelModel):
    type: str
    value: float
    original_price: float
    discounted_price: float
    savings: float


class VariantOut(CamelModel):
    id: str
    size: str
    volume_ml: int | None = None
    sku: str | None = None
    stock: int
    availability: str
    price: PriceOut
    discount: DiscountOut | None = None


class TenantOut(CamelModel):
    id: str
    name: str
    slug: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None


class PriceBounds(CamelModel):
    min: float
    max: float


class OfferOut(CamelModel):
    listing_id: str
    sku: str | None = None
    tenant: TenantOut
    variants: list[VariantOut]
    price_range: PriceBounds
    total_stock: int


class RefOut(CamelModel):
    id: str
    name: str
    slug: str | None = None


class PriceRange(CamelModel):
    min: float
    max: float
    currency: str


class AvailabilityOut(CamelModel):
    status: str  # "in_stock" | "out_of_stock"
    stock_level: str  # "high" | "medium" | "low" | "out"
    total_stock: int
    tenant_count: int


class ItemOut(CamelModel):
    id: str
    name: str
    slug: str
    short_description: str | None = None
    description: str | None = None
    type: str | None = None
    sub_type: str | None = None
    is_alcoholic: bool
    abv: float | None = None
    volume_ml: int | None = None
    origin_country: str | None = None
    region: str | None = None

    brand: RefOut | None = None
    category: RefOut | None = None
    sub_category: RefOut | None = None
    tags: list[str] = Field(default_factory=list)
    flavors: list[str] = Field(default_factory=list)
    images: list[dict[str, Any]] = Field(default_factory=list)
    primary_image: dict[str, Any] | None = None
    status: str

    price_range: PriceRange
    availability: AvailabilityOut
    discount: DiscountOut | None = None
    average_rating: float
    review_count: int
    total_sold: int
    is_featured: bool

    available_at: list[OfferOut]
    relevance_score: float


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_results: int
    results_per_page: int
    has_next_page: bool
    has_previous_page: bool


class AvailableFilters(CamelModel):
    categories: list[RefOut] = Field(default_factory=list)
    sub_categories: list[RefOut] = Field(default_factory=list)
    brands: list[RefOut] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    flavors: list[str] = Field(default_factory=list)
    countries: list[str] = Field(default_factory=list)
    types: list[str] = Field(default_factory=list)


class SearchMeta(CamelModel):
    query: str | None = None
    applied_filters: dict[str, Any] = Field(default_factory=dict)
    results_found: int = 0
    search_time_ms: int = 0
    from_cache: bool = False
    error: str | None = None


class SearchResponse(CamelModel):
    items: list[ItemOut]
    pagination: Pagination
    available_filters: AvailableFilters
    search_meta: SearchMeta


class SuggestionsOut(CamelModel):
    query: str
    suggestions: list[str]


class PopularSearchesOut(CamelModel):
    queries: list[str]


class CacheStatsOut(CamelModel):
    enabled: bool
    size: int
    max_entries: int
    ttl_seconds: int
    hits: int
    misses: int
