"""Query helpers shared by the tenant-scoped routers."""

from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.middleware.exceptions import ResourceNotFoundError
from agrohub.tenancy.scoping import ScopeFilter


async def paginate(
    db: AsyncSession,
    stmt: Select,
    limit: int,
    offset: int,
) -> tuple[list[Any], int]:
    """Run `stmt` for one page and count the full result set."""
    total = await db.scalar(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ) or 0
    result = await db.execute(stmt.limit(limit).offset(offset))
    return list(result.scalars().all()), total


async def get_scoped_or_404(
    db: AsyncSession,
    model,
    resource_id: str,
    scope: ScopeFilter,
    resource: str,
    message: str | None = None,
):
    """Fetch one row inside the caller's scope.

    Rows outside the scope are reported exactly like missing rows.
    """
    result = await db.execute(
        select(model).where(model.id == resource_id, scope.as_clause(model))
    )
    obj = result.scalar_one_or_none()
    if obj is None:
        raise ResourceNotFoundError(resource, message)
    return obj
