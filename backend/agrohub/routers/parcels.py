"""Parcel routes.

Parcels are scoped through their farm. Unlike the guarded farm and field
routes, a parcel outside the caller's farms answers 404 here, so parcel
ids are never confirmed to other tenants. A parcel can be moved to
another farm the caller owns.
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.auth.deps import require_user_id
from agrohub.database import get_db
from agrohub.middleware.exceptions import BusinessLogicError, OwnershipDenied
from agrohub.models.farm import Farm
from agrohub.models.parcel import Parcel
from agrohub.schemas.common import PaginatedResponse
from agrohub.tenancy.resolver import OwnershipResolver, get_ownership_resolver
from agrohub.tenancy.scoping import build_scope
from agrohub.tenancy.store import OwnershipStore, get_ownership_store
from agrohub.tenancy.verifier import OwnershipVerifier
from agrohub.utils.queries import get_scoped_or_404, paginate

logger = logging.getLogger(__name__)

PARCEL_NOT_FOUND = "Parcel not found or does not belong to user"
MSG_NO_FARM = "User must have at least one farm to create a parcel"
MSG_CREATE_FOREIGN_FARM = "Cannot create parcel for farm that does not belong to user"
MSG_MOVE_FOREIGN_FARM = "Cannot move parcel to farm that does not belong to user"


# ── Schemas ──────────────────────────────────────────────────

class ParcelCreate(BaseModel):
    name: str
    farm_id: str | None = None  # defaults to the caller's first farm
    area: float | None = None
    soil_type: str | None = None
    irrigation: str | None = None
    status: str = "active"
    coordinates: list[list[float]] | None = None
    notes: str | None = None


class ParcelUpdate(BaseModel):
    name: str | None = None
    farm_id: str | None = None
    area: float | None = None
    soil_type: str | None = None
    irrigation: str | None = None
    status: str | None = None
    coordinates: list[list[float]] | None = None
    notes: str | None = None


class ParcelOut(BaseModel):
    id: str
    name: str
    farm_id: str
    area: float | None
    soil_type: str | None
    irrigation: str | None
    status: str
    coordinates: list[list[float]] | None
    notes: str | None

    model_config = {"from_attributes": True}


# ── Routes ───────────────────────────────────────────────────

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[ParcelOut])
async def list_parcels(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("parcel", user_id, resolver)
    stmt = select(Parcel).where(scope.as_clause(Parcel)).order_by(Parcel.name)
    items, total = await paginate(db, stmt, limit, offset)

    return PaginatedResponse(
        items=[ParcelOut.model_validate(p) for p in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{parcel_id}", response_model=ParcelOut)
async def get_parcel(
    parcel_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("parcel", user_id, resolver)
    parcel = await get_scoped_or_404(db, Parcel, parcel_id, scope, "Parcel", PARCEL_NOT_FOUND)
    return ParcelOut.model_validate(parcel)


@router.post("/", response_model=ParcelOut, status_code=status.HTTP_201_CREATED)
async def create_parcel(
    body: ParcelCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    store: OwnershipStore = Depends(get_ownership_store),
):
    data = body.model_dump()

    if not body.farm_id:
        result = await db.execute(
            select(Farm.id)
            .where(Farm.owner_id == user_id)
            .order_by(Farm.created_at)
            .limit(1)
        )
        default_farm_id = result.scalar_one_or_none()
        if not default_farm_id:
            raise BusinessLogicError(MSG_NO_FARM, error_code="NO_FARM")
        data["farm_id"] = default_farm_id
    else:
        verifier = OwnershipVerifier(store, strict=True)
        if not await verifier.verify_farm_ownership(body.farm_id, user_id):
            raise OwnershipDenied(MSG_CREATE_FOREIGN_FARM)

    parcel = Parcel(**data)
    db.add(parcel)
    await db.flush()
    await db.refresh(parcel)
    return ParcelOut.model_validate(parcel)


@router.put("/{parcel_id}", response_model=ParcelOut)
async def update_parcel(
    parcel_id: str,
    body: ParcelUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
    store: OwnershipStore = Depends(get_ownership_store),
):
    scope = await build_scope("parcel", user_id, resolver)
    parcel = await get_scoped_or_404(db, Parcel, parcel_id, scope, "Parcel", PARCEL_NOT_FOUND)

    updates = body.model_dump(exclude_unset=True)
    new_farm_id = updates.get("farm_id")
    if new_farm_id and new_farm_id != parcel.farm_id:
        verifier = OwnershipVerifier(store, strict=True)
        if not await verifier.verify_farm_ownership(new_farm_id, user_id):
            raise OwnershipDenied(MSG_MOVE_FOREIGN_FARM)
        logger.info(
            "Parcel moved",
            extra={"parcel_id": parcel.id, "from_farm": parcel.farm_id, "to_farm": new_farm_id},
        )
    elif "farm_id" in updates and not new_farm_id:
        # farm_id is NOT NULL; an explicit null keeps the current farm
        updates.pop("farm_id")

    for key, value in updates.items():
        setattr(parcel, key, value)

    await db.flush()
    await db.refresh(parcel)
    return ParcelOut.model_validate(parcel)


@router.delete("/{parcel_id}")
async def delete_parcel(
    parcel_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("parcel", user_id, resolver)
    parcel = await get_scoped_or_404(db, Parcel, parcel_id, scope, "Parcel", PARCEL_NOT_FOUND)
    await db.delete(parcel)
    await db.flush()
    return {"message": "Parcel deleted successfully"}
