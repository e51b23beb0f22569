"""Harvest routes.

A harvest is visible to a user when its crop is on one of the user's
fields, or when the user recorded it (owner_id). New harvests always
carry the creator as owner, so they stay visible if the crop is later
deleted.
"""

import logging
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.auth.deps import require_user_id
from agrohub.database import get_db
from agrohub.middleware.exceptions import OwnershipDenied
from agrohub.models.harvest import Harvest
from agrohub.schemas.common import PaginatedResponse
from agrohub.tenancy.guards import enforce_tenant_isolation
from agrohub.tenancy.resolver import OwnershipResolver, get_ownership_resolver
from agrohub.tenancy.scoping import build_scope
from agrohub.tenancy.store import OwnershipStore, get_ownership_store
from agrohub.tenancy.verifier import OwnershipVerifier
from agrohub.utils.queries import get_scoped_or_404, paginate

logger = logging.getLogger(__name__)

HarvestQuality = Literal["EXCELLENT", "GOOD", "AVERAGE", "LOW"]

MSG_CREATE_FOREIGN_CROP = "Cannot create harvest for crop that does not belong to your farms"
MSG_MOVE_FOREIGN_CROP = "Cannot move harvest to crop that does not belong to your farms"


# ── Schemas ──────────────────────────────────────────────────

class HarvestCreate(BaseModel):
    crop: str
    date: datetime
    yield_amount: float = Field(gt=0)
    expected_yield: float | None = None
    harvest_area: float | None = None
    quality: HarvestQuality
    notes: str | None = None
    crop_id: str | None = None
    owner_id: str | None = None


class HarvestUpdate(BaseModel):
    crop: str | None = None
    date: datetime | None = None
    yield_amount: float | None = Field(None, gt=0)
    expected_yield: float | None = None
    harvest_area: float | None = None
    quality: HarvestQuality | None = None
    notes: str | None = None
    crop_id: str | None = None


class HarvestOut(BaseModel):
    id: str
    crop: str
    date: datetime
    yield_amount: float
    expected_yield: float | None
    harvest_area: float | None
    quality: str | None
    notes: str | None
    crop_id: str | None
    owner_id: str | None

    model_config = {"from_attributes": True}


# ── Routes ───────────────────────────────────────────────────

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[HarvestOut])
async def list_harvests(
    crop_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    """List harvests in the caller's scope.

    `crop_id` narrows the list only when it names one of the caller's
    crops; any other value is ignored.
    """
    scope = await build_scope("harvest", user_id, resolver)
    stmt = select(Harvest).where(scope.as_clause(Harvest))
    if crop_id and crop_id in scope.chain_ids:
        stmt = stmt.where(Harvest.crop_id == crop_id)
    items, total = await paginate(db, stmt.order_by(Harvest.date.desc()), limit, offset)

    return PaginatedResponse(
        items=[HarvestOut.model_validate(h) for h in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{harvest_id}", response_model=HarvestOut)
async def get_harvest(
    harvest_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("harvest", user_id, resolver)
    harvest = await get_scoped_or_404(db, Harvest, harvest_id, scope, "Harvest")
    return HarvestOut.model_validate(harvest)


@router.post("/", response_model=HarvestOut, status_code=status.HTTP_201_CREATED)
async def create_harvest(
    body: HarvestCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(enforce_tenant_isolation),
    store: OwnershipStore = Depends(get_ownership_store),
):
    if body.crop_id:
        verifier = OwnershipVerifier(store, strict=True)
        if not await verifier.verify_crop_ownership(body.crop_id, user_id):
            raise OwnershipDenied(MSG_CREATE_FOREIGN_CROP)

    harvest = Harvest(**body.model_dump(exclude={"owner_id"}), owner_id=user_id)
    db.add(harvest)
    await db.flush()
    await db.refresh(harvest)

    logger.info(
        "Harvest recorded",
        extra={"harvest_id": harvest.id, "crop_id": harvest.crop_id, "user_id": user_id},
    )
    return HarvestOut.model_validate(harvest)


@router.put("/{harvest_id}", response_model=HarvestOut)
async def update_harvest(
    harvest_id: str,
    body: HarvestUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
    store: OwnershipStore = Depends(get_ownership_store),
):
    scope = await build_scope("harvest", user_id, resolver)
    harvest = await get_scoped_or_404(db, Harvest, harvest_id, scope, "Harvest")

    updates = body.model_dump(exclude_unset=True)
    new_crop_id = updates.get("crop_id")
    if new_crop_id and new_crop_id != harvest.crop_id:
        verifier = OwnershipVerifier(store, strict=True)
        if not await verifier.verify_crop_ownership(new_crop_id, user_id):
            raise OwnershipDenied(MSG_MOVE_FOREIGN_CROP)

    for key, value in updates.items():
        setattr(harvest, key, value)

    # Detaching from a crop must not orphan the record
    if harvest.crop_id is None and harvest.owner_id is None:
        harvest.owner_id = user_id

    await db.flush()
    await db.refresh(harvest)
    return HarvestOut.model_validate(harvest)


@router.delete("/{harvest_id}")
async def delete_harvest(
    harvest_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("harvest", user_id, resolver)
    harvest = await get_scoped_or_404(db, Harvest, harvest_id, scope, "Harvest")
    await db.delete(harvest)
    await db.flush()
    return {"message": "Harvest deleted successfully"}
