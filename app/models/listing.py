from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.ids import gen_id

from app.models.base import Base, AuditMixin


class Listing(AuditMixin, Base):
    __tablename__ = "listings"
    __table_args__ = (
        # a tenant offers a catalog item at most once
        UniqueConstraint("catalog_item_id", "tenant_id", name="uq_listing_item_per_tenant"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("lst"))

    catalog_item_id: Mapped[str] = mapped_column(String, ForeignKey("catalog_items.id"), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String, ForeignKey("tenants.id"), nullable=False)

    sku: Mapped[str | None] = mapped_column(String(80), nullable=True)

    cost_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    base_selling_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    # listing-level discount; a variant-level discount wins when active
    discount_type: Mapped[str | None] = mapped_column(String(20), nullable=True)  # "percentage" | "fixed"
    discount_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    discount_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    discount_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # "in_stock" | "low_stock" | "out_of_stock" | "pre_order" | "discontinued"
    stock_status: Mapped[str] = mapped_column(String(30), nullable=False, default="in_stock")

    # "draft" | "pending" | "active" | "discontinued" | "hidden" | "archived"
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")

    # Listing sold as-is: its own stock counters and price stand in for a single variant
    sell_without_variants: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_stock: Mapped[int | None] = mapped_column(Integer, nullable=True)

    is_featured_by_tenant: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
