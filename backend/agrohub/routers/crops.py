"""Crop routes. Crops are owned through field → farm."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.auth.deps import require_user_id
from agrohub.database import get_db
from agrohub.models.crop import Crop
from agrohub.schemas.common import PaginatedResponse
from agrohub.tenancy.guards import (
    check_field_ownership,
    enforce_tenant_isolation,
    query_field_id,
)
from agrohub.tenancy.resolver import OwnershipResolver, get_ownership_resolver
from agrohub.tenancy.scoping import build_scope
from agrohub.utils.queries import get_scoped_or_404, paginate


# ── Schemas ──────────────────────────────────────────────────

class CropCreate(BaseModel):
    name: str
    field_id: str
    variety: str | None = None
    planting_date: date | None = None
    expected_harvest_date: date | None = None
    area: float | None = None
    status: str = "planned"
    notes: str | None = None


class CropUpdate(BaseModel):
    name: str | None = None
    variety: str | None = None
    planting_date: date | None = None
    expected_harvest_date: date | None = None
    area: float | None = None
    status: str | None = None
    notes: str | None = None


class CropOut(BaseModel):
    id: str
    name: str
    field_id: str
    variety: str | None
    planting_date: date | None
    expected_harvest_date: date | None
    area: float | None
    status: str
    notes: str | None

    model_config = {"from_attributes": True}


# ── Routes ───────────────────────────────────────────────────

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[CropOut])
async def list_crops(
    field_id: str | None = Depends(query_field_id),
    status_filter: str | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(check_field_ownership),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("crop", user_id, resolver)
    stmt = select(Crop).where(scope.as_clause(Crop))
    if field_id:
        stmt = stmt.where(Crop.field_id == field_id)
    if status_filter:
        stmt = stmt.where(Crop.status == status_filter)
    items, total = await paginate(db, stmt.order_by(Crop.name), limit, offset)

    return PaginatedResponse(
        items=[CropOut.model_validate(c) for c in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{crop_id}", response_model=CropOut)
async def get_crop(
    crop_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("crop", user_id, resolver)
    return CropOut.model_validate(await get_scoped_or_404(db, Crop, crop_id, scope, "Crop"))


@router.post("/", response_model=CropOut, status_code=status.HTTP_201_CREATED)
async def create_crop(
    body: CropCreate,
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(enforce_tenant_isolation),
):
    crop = Crop(**body.model_dump())
    db.add(crop)
    await db.flush()
    await db.refresh(crop)
    return CropOut.model_validate(crop)


@router.put("/{crop_id}", response_model=CropOut)
async def update_crop(
    crop_id: str,
    body: CropUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("crop", user_id, resolver)
    crop = await get_scoped_or_404(db, Crop, crop_id, scope, "Crop")

    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(crop, key, value)

    await db.flush()
    await db.refresh(crop)
    return CropOut.model_validate(crop)


@router.delete("/{crop_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_crop(
    crop_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("crop", user_id, resolver)
    crop = await get_scoped_or_404(db, Crop, crop_id, scope, "Crop")
    await db.delete(crop)
    await db.flush()
