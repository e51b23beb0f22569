"""Farm routes. A farm is the tenant boundary: owned directly by one user."""

import logging

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.auth.deps import require_user_id
from agrohub.database import get_db
from agrohub.middleware.exceptions import ResourceNotFoundError
from agrohub.models.farm import Farm
from agrohub.models.field import Field
from agrohub.schemas.common import PaginatedResponse
from agrohub.tenancy.guards import check_farm_ownership, enforce_tenant_isolation
from agrohub.tenancy.resolver import OwnershipResolver, get_ownership_resolver
from agrohub.tenancy.scoping import build_scope
from agrohub.utils.queries import paginate

logger = logging.getLogger(__name__)


# ── Schemas ──────────────────────────────────────────────────

class FarmCreate(BaseModel):
    name: str
    location: str | None = None
    total_area: float | None = None
    description: str | None = None
    # Accepted so a mismatching value can be rejected; the owner is always the caller
    owner_id: str | None = None


class FarmUpdate(BaseModel):
    name: str | None = None
    location: str | None = None
    total_area: float | None = None
    description: str | None = None


class FarmOut(BaseModel):
    id: str
    name: str
    location: str | None
    total_area: float | None
    description: str | None
    owner_id: str
    field_count: int = 0

    model_config = {"from_attributes": True}


async def _field_count(db: AsyncSession, farm_id: str) -> int:
    return await db.scalar(
        select(func.count(Field.id)).where(Field.farm_id == farm_id)
    ) or 0


async def _farm_out(db: AsyncSession, farm: Farm) -> FarmOut:
    out = FarmOut.model_validate(farm)
    out.field_count = await _field_count(db, farm.id)
    return out


async def _get_farm(db: AsyncSession, farm_id: str) -> Farm:
    farm = await db.get(Farm, farm_id)
    if not farm:
        raise ResourceNotFoundError("Farm")
    return farm


# ── Routes ───────────────────────────────────────────────────

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[FarmOut])
async def list_farms(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("farm", user_id, resolver)
    stmt = select(Farm).where(scope.as_clause(Farm)).order_by(Farm.name)
    items, total = await paginate(db, stmt, limit, offset)

    return PaginatedResponse(
        items=[await _farm_out(db, farm) for farm in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{farm_id}", response_model=FarmOut)
async def get_farm(
    farm_id: str,
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(check_farm_ownership),
):
    return await _farm_out(db, await _get_farm(db, farm_id))


@router.post("/", response_model=FarmOut, status_code=status.HTTP_201_CREATED)
async def create_farm(
    body: FarmCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(enforce_tenant_isolation),
):
    farm = Farm(**body.model_dump(exclude={"owner_id"}), owner_id=user_id)
    db.add(farm)
    await db.flush()
    await db.refresh(farm)

    logger.info("Farm created", extra={"farm_id": farm.id, "user_id": user_id})
    return await _farm_out(db, farm)


@router.put("/{farm_id}", response_model=FarmOut)
async def update_farm(
    farm_id: str,
    body: FarmUpdate,
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(check_farm_ownership),
):
    farm = await _get_farm(db, farm_id)

    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(farm, key, value)

    await db.flush()
    await db.refresh(farm)
    return await _farm_out(db, farm)


@router.delete("/{farm_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_farm(
    farm_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(check_farm_ownership),
):
    farm = await _get_farm(db, farm_id)
    await db.delete(farm)
    await db.flush()
    logger.info("Farm deleted", extra={"farm_id": farm_id, "user_id": user_id})
