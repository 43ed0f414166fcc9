from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_catalog_search_foundations"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
    ]


def _jsonb_list(name: str):
    return sa.Column(
        name,
        postgresql.JSONB(astext_type=sa.Text()),
        nullable=False,
        server_default=sa.text("'[]'::jsonb"),
    )


def _discount_columns():
    return [
        sa.Column("discount_type", sa.String(length=20), nullable=True),
        sa.Column("discount_value", sa.Numeric(12, 2), nullable=True),
        sa.Column("discount_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("discount_end", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    op.create_table(
        "categories",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False, unique=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="published"),
        *_audit_columns(),
    )

    op.create_table(
        "subcategories",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("category_id", sa.String(), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False, unique=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="published"),
        *_audit_columns(),
    )

    op.create_table(
        "brands",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("slug", sa.String(length=120), nullable=False, unique=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="active"),
        *_audit_columns(),
    )

    op.create_table(
        "tenants",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=200), nullable=False, unique=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("state", sa.String(length=120), nullable=True),
        sa.Column("country", sa.String(length=120), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("subscription_status", sa.String(length=30), nullable=False, server_default="trialing"),
        sa.Column("revenue_model", sa.String(length=20), nullable=False, server_default="markup"),
        sa.Column("markup_percentage", sa.Numeric(6, 2), nullable=True),
        sa.Column("commission_percentage", sa.Numeric(6, 2), nullable=True),
        sa.Column("default_currency", sa.String(length=3), nullable=False, server_default="NGN"),
        *_audit_columns(),
    )

    op.create_table(
        "catalog_items",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("slug", sa.String(length=200), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("short_description", sa.String(length=280), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=60), nullable=True),
        sa.Column("sub_type", sa.String(length=60), nullable=True),
        sa.Column("category_id", sa.String(), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("subcategory_id", sa.String(), sa.ForeignKey("subcategories.id"), nullable=True),
        sa.Column("brand_id", sa.String(), sa.ForeignKey("brands.id"), nullable=True),
        sa.Column("is_alcoholic", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("abv", sa.Numeric(5, 2), nullable=True),
        sa.Column("volume_ml", sa.Integer(), nullable=True),
        sa.Column("origin_country", sa.String(length=120), nullable=True),
        sa.Column("region", sa.String(length=120), nullable=True),
        sa.Column("producer", sa.String(length=200), nullable=True),
        _jsonb_list("flavor_profile"),
        _jsonb_list("tags"),
        _jsonb_list("flavors"),
        _jsonb_list("images"),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("average_rating", sa.Numeric(3, 2), nullable=False, server_default="0"),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_sold", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        *_audit_columns(),
    )
    op.create_index("ix_catalog_items_status", "catalog_items", ["status"])
    op.create_index("ix_catalog_items_category_id", "catalog_items", ["category_id"])
    op.create_index("ix_catalog_items_brand_id", "catalog_items", ["brand_id"])
    op.create_index("ix_catalog_items_tags", "catalog_items", ["tags"], postgresql_using="gin")
    op.create_index("ix_catalog_items_flavors", "catalog_items", ["flavors"], postgresql_using="gin")

    op.create_table(
        "listings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("catalog_item_id", sa.String(), sa.ForeignKey("catalog_items.id"), nullable=False),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("sku", sa.String(length=80), nullable=True),
        sa.Column("cost_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("base_selling_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=True),
        *_discount_columns(),
        sa.Column("stock_status", sa.String(length=30), nullable=False, server_default="in_stock"),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("sell_without_variants", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("total_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("available_stock", sa.Integer(), nullable=True),
        sa.Column("is_featured_by_tenant", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("total_sold", sa.Integer(), nullable=False, server_default="0"),
        *_audit_columns(),
        sa.UniqueConstraint("catalog_item_id", "tenant_id", name="uq_listing_item_per_tenant"),
    )
    op.create_index("ix_listings_tenant_id", "listings", ["tenant_id"])

    op.create_table(
        "variants",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("listing_id", sa.String(), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("size", sa.String(length=60), nullable=False),
        sa.Column("display_name", sa.String(length=120), nullable=True),
        sa.Column("volume_ml", sa.Integer(), nullable=True),
        sa.Column("sku", sa.String(length=80), nullable=True),
        sa.Column("selling_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("cost_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=True),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("available_stock", sa.Integer(), nullable=True),
        sa.Column("availability", sa.String(length=30), nullable=False, server_default="available"),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="active"),
        *_discount_columns(),
        *_audit_columns(),
    )
    op.create_index("ix_variants_listing_id", "variants", ["listing_id"])


def downgrade():
    op.drop_index("ix_variants_listing_id", table_name="variants")
    op.drop_table("variants")
    op.drop_index("ix_listings_tenant_id", table_name="listings")
    op.drop_table("listings")
    op.drop_index("ix_catalog_items_flavors", table_name="catalog_items")
    op.drop_index("ix_catalog_items_tags", table_name="catalog_items")
    op.drop_index("ix_catalog_items_brand_id", table_name="catalog_items")
    op.drop_index("ix_catalog_items_category_id", table_name="catalog_items")
    op.drop_index("ix_catalog_items_status", table_name="catalog_items")
    op.drop_table("catalog_items")
    op.drop_table("tenants")
    op.drop_table("brands")
    op.drop_table("subcategories")
    op.drop_table("categories")
