from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.ids import gen_id

from app.models.base import Base, AuditMixin


class Variant(AuditMixin, Base):
    """
    Packaging size within a listing (e.g. 70cl, 1L, 6-pack).
    """
    __tablename__ = "variants"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("var"))
    listing_id: Mapped[str] = mapped_column(String, ForeignKey("listings.id"), nullable=False)

    size: Mapped[str] = mapped_column(String(60), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    volume_ml: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sku: Mapped[str | None] = mapped_column(String(80), nullable=True)

    selling_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    cost_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # stock - reserved stock; falls back to stock when null
    available_stock: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # "available" | "in_stock" | "low_stock" | "out_of_stock" | "pre_order" | "discontinued"
    availability: Mapped[str] = mapped_column(String(30), nullable=False, default="available")

    # "active" | "inactive" | "discontinued" | "seasonal" | "limited_edition"
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="active")

    discount_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    discount_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    discount_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    discount_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
