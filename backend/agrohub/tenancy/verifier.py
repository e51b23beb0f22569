"""Point checks: does user U own resource R?

Fail closed. A missing entity answers False, and a store error never
answers True: with `strict=False` it is logged and answers False, with
`strict=True` it raises `StoreFailure` so the request ends in a 500
instead of a misleading 403.
"""

import logging

from agrohub.middleware.exceptions import StoreFailure
from agrohub.tenancy.resolver import ChainKey
from agrohub.tenancy.store import OwnershipStore
from agrohub.utils.safe_logging import log_store_failure

logger = logging.getLogger(__name__)

_LOOKUPS = {
    ChainKey.FARM: "farm_owned_by",
    ChainKey.FIELD: "field_owned_by",
    ChainKey.CROP: "crop_owned_by",
    ChainKey.LIVESTOCK: "livestock_owned_by",
}


class OwnershipVerifier:
    def __init__(self, store: OwnershipStore, strict: bool = False):
        self.store = store
        self.strict = strict

    async def verify(self, kind: ChainKey | str, resource_id: str | None, user_id: str | None) -> bool:
        kind = ChainKey(kind)
        if not resource_id or not user_id:
            return False

        lookup = _LOOKUPS[kind]
        try:
            owned = await getattr(self.store, lookup)(resource_id, user_id)
        except Exception as exc:
            log_store_failure(
                logger,
                f"Error verifying {kind.value} ownership",
                exc,
                resource_id=resource_id,
                user_id=user_id,
            )
            if self.strict:
                raise StoreFailure(f"{lookup} failed") from exc
            return False

        return owned is True

    async def verify_farm_ownership(self, farm_id: str | None, user_id: str | None) -> bool:
        return await self.verify(ChainKey.FARM, farm_id, user_id)

    async def verify_field_ownership(self, field_id: str | None, user_id: str | None) -> bool:
        return await self.verify(ChainKey.FIELD, field_id, user_id)

    async def verify_crop_ownership(self, crop_id: str | None, user_id: str | None) -> bool:
        return await self.verify(ChainKey.CROP, crop_id, user_id)

    async def verify_livestock_ownership(self, livestock_id: str | None, user_id: str | None) -> bool:
        return await self.verify(ChainKey.LIVESTOCK, livestock_id, user_id)
