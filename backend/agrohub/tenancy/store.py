"""Ownership lookups the isolation layer depends on.

`OwnershipStore` is the contract; `SqlAlchemyOwnershipStore` answers it
from the request's AsyncSession. Each lookup is a single round-trip and
never loads full rows.
"""

from collections.abc import Iterable
from typing import Protocol

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.database import get_db
from agrohub.models.crop import Crop
from agrohub.models.farm import Farm
from agrohub.models.field import Field
from agrohub.models.livestock import Livestock


class OwnershipStore(Protocol):
    async def farm_ids_owned_by(self, user_id: str) -> list[str]: ...

    async def field_ids_in_farms(self, farm_ids: Iterable[str]) -> list[str]: ...

    async def crop_ids_in_fields(self, field_ids: Iterable[str]) -> list[str]: ...

    async def livestock_ids_in_fields(self, field_ids: Iterable[str]) -> list[str]: ...

    async def farm_owned_by(self, farm_id: str, user_id: str) -> bool: ...

    async def field_owned_by(self, field_id: str, user_id: str) -> bool: ...

    async def crop_owned_by(self, crop_id: str, user_id: str) -> bool: ...

    async def livestock_owned_by(self, livestock_id: str, user_id: str) -> bool: ...


class SqlAlchemyOwnershipStore:
    """OwnershipStore over a live AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _ids(self, stmt) -> list[str]:
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _exists(self, stmt) -> bool:
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    # ── Set lookups ─────────────────────────────────────────

    async def farm_ids_owned_by(self, user_id: str) -> list[str]:
        return await self._ids(select(Farm.id).where(Farm.owner_id == user_id))

    async def field_ids_in_farms(self, farm_ids: Iterable[str]) -> list[str]:
        farm_ids = list(farm_ids)
        if not farm_ids:
            return []
        return await self._ids(select(Field.id).where(Field.farm_id.in_(farm_ids)))

    async def crop_ids_in_fields(self, field_ids: Iterable[str]) -> list[str]:
        field_ids = list(field_ids)
        if not field_ids:
            return []
        return await self._ids(select(Crop.id).where(Crop.field_id.in_(field_ids)))

    async def livestock_ids_in_fields(self, field_ids: Iterable[str]) -> list[str]:
        field_ids = list(field_ids)
        if not field_ids:
            return []
        return await self._ids(
            select(Livestock.id).where(Livestock.field_id.in_(field_ids))
        )

    # ── Point lookups ───────────────────────────────────────

    async def farm_owned_by(self, farm_id: str, user_id: str) -> bool:
        return await self._exists(
            select(Farm.id).where(Farm.id == farm_id, Farm.owner_id == user_id)
        )

    async def field_owned_by(self, field_id: str, user_id: str) -> bool:
        return await self._exists(
            select(Field.id)
            .join(Farm, Field.farm_id == Farm.id)
            .where(Field.id == field_id, Farm.owner_id == user_id)
        )

    async def crop_owned_by(self, crop_id: str, user_id: str) -> bool:
        return await self._exists(
            select(Crop.id)
            .join(Field, Crop.field_id == Field.id)
            .join(Farm, Field.farm_id == Farm.id)
            .where(Crop.id == crop_id, Farm.owner_id == user_id)
        )

    async def livestock_owned_by(self, livestock_id: str, user_id: str) -> bool:
        return await self._exists(
            select(Livestock.id)
            .join(Field, Livestock.field_id == Field.id)
            .join(Farm, Field.farm_id == Farm.id)
            .where(Livestock.id == livestock_id, Farm.owner_id == user_id)
        )


async def get_ownership_store(
    db: AsyncSession = Depends(get_db),
) -> OwnershipStore:
    return SqlAlchemyOwnershipStore(db)
