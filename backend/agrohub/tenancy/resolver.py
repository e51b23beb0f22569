"""Ownership resolver: compute the set of ids a user owns, per chain level.

    farm  → Farm.owner_id == user
    field → fields of those farms
    crop / livestock → children of those fields

Every level is derived from the level above it, so a user with no farms
costs exactly one query. Store errors surface as `ResolutionError`;
an owned-id set is never silently replaced by an empty one.
"""

import enum
import logging

from fastapi import Depends

from agrohub.middleware.exceptions import ResolutionError
from agrohub.tenancy.store import OwnershipStore, get_ownership_store
from agrohub.utils.safe_logging import describe_error, log_store_failure

logger = logging.getLogger(__name__)


class ChainKey(str, enum.Enum):
    FARM = "farm"
    FIELD = "field"
    CROP = "crop"
    LIVESTOCK = "livestock"


class OwnershipResolver:
    def __init__(self, store: OwnershipStore):
        self.store = store

    async def _call(self, lookup: str, user_id: str, *args):
        try:
            return await getattr(self.store, lookup)(*args)
        except Exception as exc:
            log_store_failure(
                logger,
                f"Ownership resolution failed in {lookup}",
                exc,
                user_id=user_id,
            )
            detail = describe_error(exc)
            raise ResolutionError(
                f"{lookup}: {detail['error_type']}"
            ) from exc

    async def resolve_farm_ids(self, user_id: str) -> frozenset[str]:
        if not user_id:
            return frozenset()
        return frozenset(await self._call("farm_ids_owned_by", user_id, user_id))

    async def resolve_field_ids(self, user_id: str) -> frozenset[str]:
        farm_ids = await self.resolve_farm_ids(user_id)
        if not farm_ids:
            return frozenset()
        return frozenset(
            await self._call("field_ids_in_farms", user_id, sorted(farm_ids))
        )

    async def resolve_crop_ids(self, user_id: str) -> frozenset[str]:
        field_ids = await self.resolve_field_ids(user_id)
        if not field_ids:
            return frozenset()
        return frozenset(
            await self._call("crop_ids_in_fields", user_id, sorted(field_ids))
        )

    async def resolve_livestock_ids(self, user_id: str) -> frozenset[str]:
        field_ids = await self.resolve_field_ids(user_id)
        if not field_ids:
            return frozenset()
        return frozenset(
            await self._call("livestock_ids_in_fields", user_id, sorted(field_ids))
        )

    async def resolve(self, kind: ChainKey | str, user_id: str) -> frozenset[str]:
        """Owned ids for one chain level."""
        kind = ChainKey(kind)
        if kind is ChainKey.FARM:
            return await self.resolve_farm_ids(user_id)
        if kind is ChainKey.FIELD:
            return await self.resolve_field_ids(user_id)
        if kind is ChainKey.CROP:
            return await self.resolve_crop_ids(user_id)
        return await self.resolve_livestock_ids(user_id)


async def get_ownership_resolver(
    store: OwnershipStore = Depends(get_ownership_store),
) -> OwnershipResolver:
    return OwnershipResolver(store)
