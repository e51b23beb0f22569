"""Veterinary supply catalog. Shared by every user; authentication only."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.auth.deps import require_user_id
from agrohub.database import get_db
from agrohub.middleware.exceptions import ResourceNotFoundError
from agrohub.models.veterinary_supply import VeterinarySupply
from agrohub.schemas.common import PaginatedResponse
from agrohub.utils.queries import paginate

NOT_FOUND = "Insumo veterinário não encontrado"


# ── Schemas ──────────────────────────────────────────────────

class SupplyCreate(BaseModel):
    name: str
    type: str
    manufacturer: str | None = None
    quantity: float = 0
    unit: str = "un"
    expiration_date: date | None = None
    notes: str | None = None


class SupplyUpdate(BaseModel):
    name: str | None = None
    type: str | None = None
    manufacturer: str | None = None
    quantity: float | None = None
    unit: str | None = None
    expiration_date: date | None = None
    notes: str | None = None


class SupplyOut(BaseModel):
    id: str
    name: str
    type: str
    manufacturer: str | None
    quantity: float
    unit: str
    expiration_date: date | None
    notes: str | None

    model_config = {"from_attributes": True}


async def _get_supply(db: AsyncSession, supply_id: str) -> VeterinarySupply:
    supply = await db.get(VeterinarySupply, supply_id)
    if not supply:
        raise ResourceNotFoundError("Veterinary supply", NOT_FOUND)
    return supply


# ── Routes ───────────────────────────────────────────────────

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[SupplyOut])
async def list_supplies(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(require_user_id),
):
    stmt = select(VeterinarySupply).order_by(VeterinarySupply.name)
    items, total = await paginate(db, stmt, limit, offset)
    return PaginatedResponse(
        items=[SupplyOut.model_validate(s) for s in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{supply_id}", response_model=SupplyOut)
async def get_supply(
    supply_id: str,
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(require_user_id),
):
    return SupplyOut.model_validate(await _get_supply(db, supply_id))


@router.post("/", response_model=SupplyOut, status_code=status.HTTP_201_CREATED)
async def create_supply(
    body: SupplyCreate,
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(require_user_id),
):
    supply = VeterinarySupply(**body.model_dump())
    db.add(supply)
    await db.flush()
    await db.refresh(supply)
    return SupplyOut.model_validate(supply)


@router.put("/{supply_id}", response_model=SupplyOut)
async def update_supply(
    supply_id: str,
    body: SupplyUpdate,
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(require_user_id),
):
    supply = await _get_supply(db, supply_id)
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(supply, key, value)
    await db.flush()
    await db.refresh(supply)
    return SupplyOut.model_validate(supply)


@router.delete("/{supply_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_supply(
    supply_id: str,
    db: AsyncSession = Depends(get_db),
    _user_id: str = Depends(require_user_id),
):
    supply = await _get_supply(db, supply_id)
    await db.delete(supply)
    await db.flush()
