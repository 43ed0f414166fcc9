from decimal import Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.ids import gen_id

from app.models.base import Base, AuditMixin


class Tenant(AuditMixin, Base):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("tnt"))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)

    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    state: Mapped[str | None] = mapped_column(String(120), nullable=True)
    country: Mapped[str | None] = mapped_column(String(120), nullable=True)

    # "pending" | "approved" | "rejected" | "suspended" | "archived"
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")

    # "trialing" | "active" | "past_due" | "canceled" | "incomplete" | "incomplete_expired"
    subscription_status: Mapped[str] = mapped_column(String(30), nullable=False, default="trialing")

    # "markup" | "commission"
    revenue_model: Mapped[str] = mapped_column(String(20), nullable=False, default="markup")
    markup_percentage: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    commission_percentage: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)

    default_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")
