from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.ids import gen_id

from app.models.base import Base, AuditMixin


class Category(AuditMixin, Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("cat"))
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)

    # "draft" | "published" | "archived"
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="published")


class SubCategory(AuditMixin, Base):
    __tablename__ = "subcategories"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("sub"))
    category_id: Mapped[str | None] = mapped_column(String, ForeignKey("categories.id"), nullable=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)

    status: Mapped[str] = mapped_column(String(30), nullable=False, default="published")


class Brand(AuditMixin, Base):
    __tablename__ = "brands"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("brd"))
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)

    # "active" | "inactive"
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="active")
