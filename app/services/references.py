from __future__ import annotations

from typing import Literal, Protocol, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.reference import Brand, Category, SubCategory

RefKind = Literal["category", "subcategory", "brand"]

# id prefix per reference kind (see app.core.ids.gen_id)
REF_ID_PREFIX: dict[str, str] = {
    "category": "cat",
    "subcategory": "sub",
    "brand": "brd",
}


class ReferenceResolver(Protocol):
    """
    Maps human-readable reference names to stable identifiers.
    Unknown names are simply absent from the result.
    """

    async def resolve(self, kind: RefKind, names: Sequence[str]) -> list[str]:
        ...


# kind -> (model, status that makes the row resolvable)
_REF_TABLES = {
    "category": (Category, "published"),
    "subcategory": (SubCategory, "published"),
    "brand": (Brand, "active"),
}


class SqlReferenceResolver:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, kind: RefKind, names: Sequence[str]) -> list[str]:
        model, resolvable_status = _REF_TABLES[kind]

        lowered = sorted({n.strip().lower() for n in names if n and n.strip()})
        if not lowered:
            return []

        # case-insensitive name match; slugs are already lower-case
        stmt = select(model.id).where(
            or_(func.lower(model.name).in_(lowered), model.slug.in_(lowered)),
            model.status == resolvable_status,
        )
        rows = (await self.db.execute(stmt)).scalars().all()
        return sorted(set(rows))
