from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from app.core.config import settings
from app.services.search.catalog_views import CatalogItemView, ListingView, TenantView, VariantView

log = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENTS = Decimal("0.01")


# --- Revenue model ---------------------------------------------------------

@dataclass(frozen=True)
class Markup:
    """Tenant price already includes its markup; stored selling price is customer-facing."""
    percentage: Decimal = ZERO


@dataclass(frozen=True)
class Commission:
    """Platform commission is added on top of the tenant's stored (net) price."""
    percentage: Decimal


RevenueModel = Markup | Commission


def revenue_model_for(tenant: TenantView, *, default_commission: Decimal | None = None) -> RevenueModel:
    if tenant.revenue_model == "commission":
        pct = tenant.commission_percentage
        if pct is None:
            pct = default_commission if default_commission is not None else Decimal(str(settings.default_commission_percentage))
        return Commission(percentage=Decimal(str(pct)))
    return Markup(percentage=Decimal(str(tenant.markup_percentage or 0)))


def customer_price(stored_price: Decimal, model: RevenueModel) -> Decimal:
    match model:
        case Commission(percentage=pct):
            return stored_price * (1 + pct / HUNDRED)
        case Markup():
            return stored_price


# --- Discount --------------------------------------------------------------

def _aware(dt: datetime) -> datetime:
    # naive timestamps are stored as UTC
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class DiscountWindow:
    start: datetime | None = None
    end: datetime | None = None

    def contains(self, now: datetime) -> bool:
        now = _aware(now)
        if self.start is not None and now < _aware(self.start):
            return False
        if self.end is not None and now > _aware(self.end):
            return False
        return True


@dataclass(frozen=True)
class NoDiscount:
    pass


@dataclass(frozen=True)
class PercentageDiscount:
    value: Decimal
    window: DiscountWindow = field(default_factory=DiscountWindow)


@dataclass(frozen=True)
class FixedDiscount:
    value: Decimal
    window: DiscountWindow = field(default_factory=DiscountWindow)


Discount = NoDiscount | PercentageDiscount | FixedDiscount
NO_DISCOUNT = NoDiscount()


def discount_from_fields(
    discount_type: str | None,
    value: Decimal | float | None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> Discount:
    if value is None:
        return NO_DISCOUNT
    window = DiscountWindow(start=start, end=end)
    match discount_type:
        case "percentage":
            return PercentageDiscount(value=Decimal(str(value)), window=window)
        case "fixed":
            return FixedDiscount(value=Decimal(str(value)), window=window)
        case _:
            return NO_DISCOUNT


def discount_is_active(discount: Discount, now: datetime) -> bool:
    match discount:
        case PercentageDiscount(value=value, window=window) | FixedDiscount(value=value, window=window):
            return value > 0 and window.contains(now)
        case NoDiscount():
            return False


def apply_discount(price: Decimal, discount: Discount) -> Decimal:
    match discount:
        case PercentageDiscount(value=value):
            discounted = price * (1 - value / HUNDRED)
        case FixedDiscount(value=value):
            discounted = price - value
        case NoDiscount():
            discounted = price
    return max(ZERO, discounted)


def _discount_type(discount: Discount) -> str:
    match discount:
        case PercentageDiscount():
            return "percentage"
        case FixedDiscount():
            return "fixed"
        case NoDiscount():
            return "none"


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


# --- Resolution ------------------------------------------------------------

@dataclass(frozen=True)
class AppliedDiscount:
    type: str
    value: Decimal
    original_price: Decimal
    discounted_price: Decimal
    savings: Decimal


@dataclass(frozen=True)
class ResolvedPrice:
    cost: Decimal
    selling: Decimal
    effective: Decimal
    currency: str
    discount: AppliedDiscount | None = None


def resolve_price(
    *,
    selling_price: Decimal,
    cost_price: Decimal | None,
    currency: str,
    revenue_model: RevenueModel,
    discount: Discount,
    now: datetime,
) -> ResolvedPrice:
    """
    Effective price for one variant under one tenant.

    1. stored selling price (markup is never re-derived from cost)
    2. commission tenants: scaled by (1 + commission/100)
    3. active discount applied to the scaled price, floored at 0
    4. rounded half-up to cents
    """
    selling = Decimal(str(selling_price or 0))
    scaled = customer_price(selling, revenue_model)

    applied: AppliedDiscount | None = None
    effective = scaled
    if discount_is_active(discount, now):
        effective = apply_discount(scaled, discount)
        original = round_money(scaled)
        discounted = round_money(effective)
        applied = AppliedDiscount(
            type=_discount_type(discount),
            value=discount.value,
            original_price=original,
            discounted_price=discounted,
            savings=original - discounted,
        )

    return ResolvedPrice(
        cost=round_money(Decimal(str(cost_price or 0))),
        selling=round_money(selling),
        effective=round_money(max(ZERO, effective)),
        currency=currency,
        discount=applied,
    )


class PriceResolver:
    def __init__(
        self,
        *,
        default_currency: str | None = None,
        default_commission_percentage: float | None = None,
    ):
        self.default_currency = default_currency or settings.default_currency
        pct = default_commission_percentage
        if pct is None:
            pct = settings.default_commission_percentage
        self.default_commission = Decimal(str(pct))

    def applicable_discount(self, variant: VariantView, listing: ListingView, now: datetime) -> Discount:
        # variant-level discount wins when active, else listing-level
        variant_discount = discount_from_fields(
            variant.discount_type, variant.discount_value, variant.discount_start, variant.discount_end
        )
        if discount_is_active(variant_discount, now):
            return variant_discount

        listing_discount = discount_from_fields(
            listing.discount_type, listing.discount_value, listing.discount_start, listing.discount_end
        )
        if discount_is_active(listing_discount, now):
            return listing_discount
        return NO_DISCOUNT

    def currency_for(self, variant: VariantView, listing: ListingView) -> str:
        return variant.currency or listing.currency or listing.tenant.default_currency or self.default_currency

    def resolve(self, variant: VariantView, listing: ListingView, now: datetime) -> ResolvedPrice:
        cost = variant.cost_price if variant.cost_price is not None else listing.cost_price
        return resolve_price(
            selling_price=variant.selling_price,
            cost_price=cost,
            currency=self.currency_for(variant, listing),
            revenue_model=revenue_model_for(listing.tenant, default_commission=self.default_commission),
            discount=self.applicable_discount(variant, listing, now),
            now=now,
        )

    def price_item(self, item: CatalogItemView, listings: tuple[ListingView, ...], now: datetime) -> PricedItem | None:
        """
        Price every variant of every listing; a listing that fails to price is skipped.
        """
        offers: list[PricedOffer] = []
        for listing in listings:
            try:
                variants = tuple(
                    PricedVariant(variant=v, price=self.resolve(v, listing, now)) for v in listing.variants
                )
            except (ArithmeticError, TypeError, ValueError):
                log.exception("pricing: skipping listing item_id=%s tenant_id=%s", item.id, listing.tenant.id)
                continue
            if variants:
                offers.append(PricedOffer(listing=listing, variants=variants))

        if not offers:
            return None
        return PricedItem(item=item, offers=tuple(offers))


# --- Priced aggregates -----------------------------------------------------

@dataclass(frozen=True)
class PricedVariant:
    variant: VariantView
    price: ResolvedPrice


@dataclass(frozen=True)
class PricedOffer:
    listing: ListingView
    variants: tuple[PricedVariant, ...]

    @property
    def min_price(self) -> Decimal:
        return min(v.price.effective for v in self.variants)

    @property
    def max_price(self) -> Decimal:
        return max(v.price.effective for v in self.variants)

    @property
    def total_stock(self) -> int:
        return sum(v.variant.display_stock for v in self.variants)


@dataclass
class PricedItem:
    item: CatalogItemView
    offers: tuple[PricedOffer, ...]
    relevance_score: float = 0.0

    @property
    def all_variants(self) -> list[PricedVariant]:
        return [v for o in self.offers for v in o.variants]

    @property
    def min_price(self) -> Decimal:
        return min(o.min_price for o in self.offers)

    @property
    def max_price(self) -> Decimal:
        return max(o.max_price for o in self.offers)

    @property
    def currency(self) -> str:
        return self.offers[0].variants[0].price.currency

    @property
    def total_stock(self) -> int:
        return sum(o.total_stock for o in self.offers)

    @property
    def on_sale(self) -> bool:
        return any(v.price.discount is not None for v in self.all_variants)

    @property
    def best_discount(self) -> AppliedDiscount | None:
        discounts = [v.price.discount for v in self.all_variants if v.price.discount is not None]
        if not discounts:
            return None
        # largest savings; ties broken by the cheaper discounted price
        return sorted(discounts, key=lambda d: (-d.savings, d.discounted_price))[0]
