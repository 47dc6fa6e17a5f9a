"""Offset pagination for staff listings (batches).

Listings are bounded, staff-initiated queries, so a plain count plus
LIMIT/OFFSET is enough; there is no feed to page through.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class OffsetPage(BaseModel, Generic[T]):
    """Offset-paginated response envelope."""

    items: list[T]
    total: int = Field(description="Total number of matching records.")
    limit: int
    offset: int
    has_more: bool = Field(description="True when records exist past this page.")

    @classmethod
    def build(cls, items: list[T], total: int, limit: int, offset: int) -> OffsetPage[T]:
        return cls(
            items=items, total=total, limit=limit, offset=offset,
            has_more=offset + len(items) < total,
        )


async def fetch_page(
    db: AsyncSession, stmt: Select[Any], *, limit: int, offset: int,
) -> tuple[list[Any], int]:
    """Run ``stmt`` for one page and count every row it would match."""
    total = await db.scalar(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ) or 0
    result = await db.execute(stmt.limit(limit).offset(offset))
    return list(result.scalars().all()), total
