"""Livestock routes. Animals are owned through field → farm."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.auth.deps import require_user_id
from agrohub.database import get_db
from agrohub.models.livestock import Livestock
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

class LivestockCreate(BaseModel):
    species: str
    field_id: str
    tag: str | None = None
    breed: str | None = None
    quantity: int = 1
    birth_date: date | None = None
    weight: float | None = None
    status: str = "active"
    notes: str | None = None


class LivestockUpdate(BaseModel):
    species: str | None = None
    tag: str | None = None
    breed: str | None = None
    quantity: int | None = None
    birth_date: date | None = None
    weight: float | None = None
    status: str | None = None
    notes: str | None = None


class LivestockOut(BaseModel):
    id: str
    species: str
    field_id: str
    tag: str | None
    breed: str | None
    quantity: int
    birth_date: date | None
    weight: float | None
    status: str
    notes: str | None

    model_config = {"from_attributes": True}


# ── Routes ───────────────────────────────────────────────────

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[LivestockOut])
async def list_livestock(
    field_id: str | None = Depends(query_field_id),
    species: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(check_field_ownership),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("livestock", user_id, resolver)
    stmt = select(Livestock).where(scope.as_clause(Livestock))
    if field_id:
        stmt = stmt.where(Livestock.field_id == field_id)
    if species:
        stmt = stmt.where(Livestock.species == species)
    items, total = await paginate(
        db, stmt.order_by(Livestock.species, Livestock.tag), limit, offset
    )

    return PaginatedResponse(
        items=[LivestockOut.model_validate(a) for a in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{livestock_id}", response_model=LivestockOut)
async def get_livestock(
    livestock_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("livestock", user_id, resolver)
    animal = await get_scoped_or_404(db, Livestock, livestock_id, scope, "Livestock")
    return LivestockOut.model_validate(animal)


@router.post("/", response_model=LivestockOut, status_code=status.HTTP_201_CREATED)
async def create_livestock(
    body: LivestockCreate,
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(enforce_tenant_isolation),
):
    animal = Livestock(**body.model_dump())
    db.add(animal)
    await db.flush()
    await db.refresh(animal)
    return LivestockOut.model_validate(animal)


@router.put("/{livestock_id}", response_model=LivestockOut)
async def update_livestock(
    livestock_id: str,
    body: LivestockUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("livestock", user_id, resolver)
    animal = await get_scoped_or_404(db, Livestock, livestock_id, scope, "Livestock")

    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(animal, key, value)

    await db.flush()
    await db.refresh(animal)
    return LivestockOut.model_validate(animal)


@router.delete("/{livestock_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_livestock(
    livestock_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("livestock", user_id, resolver)
    animal = await get_scoped_or_404(db, Livestock, livestock_id, scope, "Livestock")
    await db.delete(animal)
    await db.flush()
