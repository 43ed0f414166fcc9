from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.ids import gen_id

from app.models.base import Base, AuditMixin


class CatalogItem(AuditMixin, Base):
    """
    Tenant-independent product definition. Tenants sell it through Listing rows.
    """
    __tablename__ = "catalog_items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("itm"))
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    short_description: Mapped[str | None] = mapped_column(String(280), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # e.g. "whiskey", "red_wine", "beer"
    type: Mapped[str | None] = mapped_column(String(60), nullable=True)
    sub_type: Mapped[str | None] = mapped_column(String(60), nullable=True)

    category_id: Mapped[str | None] = mapped_column(String, ForeignKey("categories.id"), nullable=True)
    subcategory_id: Mapped[str | None] = mapped_column(String, ForeignKey("subcategories.id"), nullable=True)
    brand_id: Mapped[str | None] = mapped_column(String, ForeignKey("brands.id"), nullable=True)

    is_alcoholic: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    abv: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    volume_ml: Mapped[int | None] = mapped_column(Integer, nullable=True)

    origin_country: Mapped[str | None] = mapped_column(String(120), nullable=True)
    region: Mapped[str | None] = mapped_column(String(120), nullable=True)
    producer: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # free-form descriptors, e.g. ["smoky", "vanilla"]
    flavor_profile: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    # tag / flavor slugs
    tags: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    flavors: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    # [{"url": ..., "alt": ..., "is_primary": bool}]
    images: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    average_rating: Mapped[Decimal] = mapped_column(Numeric(3, 2), nullable=False, default=0)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # moderation: "pending" | "approved" | "rejected" | "archived"
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending")
