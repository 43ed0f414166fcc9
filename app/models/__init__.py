from app.models.base import Base  # noqa: F401

from app.models.tenant import Tenant  # noqa: F401
from app.models.reference import Brand, Category, SubCategory  # noqa: F401
from app.models.catalog_item import CatalogItem  # noqa: F401
from app.models.listing import Listing  # noqa: F401
from app.models.variant import Variant  # noqa: F401
