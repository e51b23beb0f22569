"""Management CLI for ownership diagnostics.

Usage:
    python -m agrohub.cli list-farms <user_id>          # Farms and field counts
    python -m agrohub.cli diagnose-harvests <user_id>   # Compare harvest visibility paths
"""

import asyncio
import sys

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.database import async_session, engine
from agrohub.models.farm import Farm
from agrohub.models.field import Field
from agrohub.models.harvest import Harvest
from agrohub.tenancy.resolver import OwnershipResolver
from agrohub.tenancy.scoping import build_scope
from agrohub.tenancy.store import SqlAlchemyOwnershipStore


async def farm_summary(session: AsyncSession, user_id: str) -> list[tuple[str, str, int]]:
    """(farm id, name, field count) for every farm the user owns."""
    stmt = (
        select(Farm.id, Farm.name, func.count(Field.id))
        .outerjoin(Field, Field.farm_id == Farm.id)
        .where(Farm.owner_id == user_id)
        .group_by(Farm.id, Farm.name)
        .order_by(Farm.name)
    )
    result = await session.execute(stmt)
    return [tuple(row) for row in result.all()]


async def harvest_divergence(session: AsyncSession, user_id: str) -> dict[str, set[str]]:
    """Split the user's visible harvests by the path that makes them visible.

    Returns "scoped" (crop chain OR owner), "owner" (owner_id only),
    "chain_only" and "owner_only".
    """
    resolver = OwnershipResolver(SqlAlchemyOwnershipStore(session))
    scope = await build_scope("harvest", user_id, resolver)

    scoped = set(
        (await session.execute(select(Harvest.id).where(scope.as_clause(Harvest)))).scalars()
    )
    owner = set(
        (await session.execute(select(Harvest.id).where(Harvest.owner_id == user_id))).scalars()
    )
    return {
        "scoped": scoped,
        "owner": owner,
        "chain_only": scoped - owner,
        "owner_only": owner - scoped,
    }


async def _list_farms(user_id: str) -> None:
    async with async_session() as session:
        farms = await farm_summary(session, user_id)
    for farm_id, name, fields in farms:
        print(f"  {name} ({farm_id}): {fields} field(s)")
    print(f"\n{len(farms)} farm(s)")


async def _diagnose_harvests(user_id: str) -> None:
    async with async_session() as session:
        report = await harvest_divergence(session, user_id)
    print(f"  Visible (crop chain or owner): {len(report['scoped'])}")
    print(f"  Owner-only query:              {len(report['owner'])}")
    for harvest_id in sorted(report["chain_only"]):
        print(f"  only via crop chain: {harvest_id}")
    for harvest_id in sorted(report["owner_only"]):
        print(f"  only via owner_id:   {harvest_id}")
    if not report["chain_only"] and not report["owner_only"]:
        print("  Both paths agree.")


async def _run(coro) -> None:
    try:
        await coro
    finally:
        await engine.dispose()


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    arg = sys.argv[2] if len(sys.argv) > 2 else ""
    if cmd == "list-farms" and arg:
        asyncio.run(_run(_list_farms(arg)))
    elif cmd == "diagnose-harvests" and arg:
        asyncio.run(_run(_diagnose_harvests(arg)))
    else:
        print("Usage: python -m agrohub.cli [list-farms|diagnose-harvests] <user_id>")
