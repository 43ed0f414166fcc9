from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

# Tenants allowed to contribute listings to search results
GOOD_STANDING_STATUS = "approved"
GOOD_STANDING_SUBSCRIPTIONS = ("active", "trialing")

SEARCHABLE_LISTING_STATUS = "active"
SEARCHABLE_VARIANT_STATUS = "active"
SEARCHABLE_AVAILABILITY = ("available", "in_stock", "low_stock")
OUT_OF_STOCK_AVAILABILITY = "out_of_stock"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class RefView:
    id: str
    name: str
    slug: str | None = None


@dataclass(frozen=True)
class TenantView:
    id: str
    name: str
    slug: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None

    status: str = "approved"
    subscription_status: str = "active"

    revenue_model: str = "markup"
    markup_percentage: Decimal | None = None
    commission_percentage: Decimal | None = None
    default_currency: str | None = None


@dataclass(frozen=True)
class VariantView:
    id: str
    size: str
    selling_price: Decimal
    stock: int = 0

    display_name: str | None = None
    volume_ml: int | None = None
    sku: str | None = None
    cost_price: Decimal | None = None
    currency: str | None = None
    available_stock: int | None = None
    availability: str = "available"
    status: str = SEARCHABLE_VARIANT_STATUS

    discount_type: str | None = None
    discount_value: Decimal | None = None
    discount_start: datetime | None = None
    discount_end: datetime | None = None

    @property
    def display_stock(self) -> int:
        if self.available_stock is not None:
            return max(0, self.available_stock)
        return max(0, self.stock)


@dataclass(frozen=True)
class ListingView:
    id: str
    catalog_item_id: str
    tenant: TenantView

    sku: str | None = None
    cost_price: Decimal | None = None
    base_selling_price: Decimal = Decimal("0")
    currency: str | None = None

    discount_type: str | None = None
    discount_value: Decimal | None = None
    discount_start: datetime | None = None
    discount_end: datetime | None = None

    stock_status: str = "in_stock"
    status: str = SEARCHABLE_LISTING_STATUS

    sell_without_variants: bool = False
    total_stock: int = 0
    available_stock: int | None = None

    variants: tuple[VariantView, ...] = ()


@dataclass(frozen=True)
class CatalogItemView:
    id: str
    name: str
    slug: str

    short_description: str | None = None
    description: str | None = None
    type: str | None = None
    sub_type: str | None = None

    category: RefView | None = None
    subcategory: RefView | None = None
    brand: RefView | None = None

    is_alcoholic: bool = True
    abv: Decimal | None = None
    volume_ml: int | None = None
    origin_country: str | None = None
    region: str | None = None
    producer: str | None = None

    flavor_profile: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    flavors: tuple[str, ...] = ()
    images: tuple[dict[str, Any], ...] = ()

    is_featured: bool = False
    average_rating: Decimal = Decimal("0")
    review_count: int = 0
    total_sold: int = 0

    status: str = "approved"
    created_at: datetime = field(default=_EPOCH)


def tenant_in_good_standing(tenant: TenantView) -> bool:
    return tenant.status == GOOD_STANDING_STATUS and tenant.subscription_status in GOOD_STANDING_SUBSCRIPTIONS


def allowed_availability(allow_out_of_stock: bool) -> tuple[str, ...]:
    if allow_out_of_stock:
        return SEARCHABLE_AVAILABILITY + (OUT_OF_STOCK_AVAILABILITY,)
    return SEARCHABLE_AVAILABILITY


def variant_is_eligible(variant: VariantView, *, allow_out_of_stock: bool) -> bool:
    if variant.status != SEARCHABLE_VARIANT_STATUS:
        return False
    if variant.availability not in allowed_availability(allow_out_of_stock):
        return False
    return allow_out_of_stock or variant.stock > 0
