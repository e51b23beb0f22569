"""Field routes. Fields belong to a farm and are visible through it."""

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.database import get_db
from agrohub.middleware.exceptions import ResourceNotFoundError
from agrohub.models.field import Field
from agrohub.schemas.common import PaginatedResponse
from agrohub.tenancy.guards import (
    check_farm_ownership,
    check_field_ownership,
    enforce_tenant_isolation,
    query_farm_id,
)
from agrohub.tenancy.resolver import OwnershipResolver, get_ownership_resolver
from agrohub.tenancy.scoping import build_scope
from agrohub.utils.queries import paginate


# ── Schemas ──────────────────────────────────────────────────

class FieldCreate(BaseModel):
    name: str
    farm_id: str
    area: float | None = None
    soil_type: str | None = None


class FieldUpdate(BaseModel):
    name: str | None = None
    area: float | None = None
    soil_type: str | None = None


class FieldOut(BaseModel):
    id: str
    name: str
    farm_id: str
    area: float | None
    soil_type: str | None

    model_config = {"from_attributes": True}


async def _get_field(db: AsyncSession, field_id: str) -> Field:
    field = await db.get(Field, field_id)
    if not field:
        raise ResourceNotFoundError("Field")
    return field


# ── Routes ───────────────────────────────────────────────────

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[FieldOut])
async def list_fields(
    farm_id: str | None = Depends(query_farm_id),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(check_farm_ownership),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    """List the caller's fields, optionally for one (owned) farm."""
    scope = await build_scope("field", user_id, resolver)
    stmt = select(Field).where(scope.as_clause(Field))
    if farm_id:
        stmt = stmt.where(Field.farm_id == farm_id)
    items, total = await paginate(db, stmt.order_by(Field.name), limit, offset)

    return PaginatedResponse(
        items=[FieldOut.model_validate(f) for f in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{field_id}", response_model=FieldOut)
async def get_field(
    field_id: str,
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(check_field_ownership),
):
    return FieldOut.model_validate(await _get_field(db, field_id))


@router.post("/", response_model=FieldOut, status_code=status.HTTP_201_CREATED)
async def create_field(
    body: FieldCreate,
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(enforce_tenant_isolation),
):
    field = Field(**body.model_dump())
    db.add(field)
    await db.flush()
    await db.refresh(field)
    return FieldOut.model_validate(field)


@router.put("/{field_id}", response_model=FieldOut)
async def update_field(
    field_id: str,
    body: FieldUpdate,
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(check_field_ownership),
):
    field = await _get_field(db, field_id)

    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(field, key, value)

    await db.flush()
    await db.refresh(field)
    return FieldOut.model_validate(field)


@router.delete("/{field_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_field(
    field_id: str,
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(check_field_ownership),
):
    field = await _get_field(db, field_id)
    await db.delete(field)
    await db.flush()
