"""Inventory routes. Items are stored at one of the user's farms or held
by the user directly (owner_id)."""

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.auth.deps import require_user_id
from agrohub.database import get_db
from agrohub.models.inventory_item import InventoryItem
from agrohub.schemas.common import PaginatedResponse
from agrohub.tenancy.guards import (
    check_farm_ownership,
    enforce_tenant_isolation,
    query_farm_id,
)
from agrohub.tenancy.resolver import OwnershipResolver, get_ownership_resolver
from agrohub.tenancy.scoping import build_scope
from agrohub.utils.queries import get_scoped_or_404, paginate


# ── Schemas ──────────────────────────────────────────────────

class InventoryCreate(BaseModel):
    name: str
    category: str
    quantity: float = Field(0, ge=0)
    unit: str = "un"
    min_quantity: float | None = None
    unit_cost: float | None = None
    location: str | None = None
    notes: str | None = None
    farm_id: str | None = None
    owner_id: str | None = None


class InventoryUpdate(BaseModel):
    name: str | None = None
    category: str | None = None
    quantity: float | None = Field(None, ge=0)
    unit: str | None = None
    min_quantity: float | None = None
    unit_cost: float | None = None
    location: str | None = None
    notes: str | None = None
    farm_id: str | None = None


class InventoryOut(BaseModel):
    id: str
    name: str
    category: str
    quantity: float
    unit: str
    min_quantity: float | None
    unit_cost: float | None
    location: str | None
    notes: str | None
    farm_id: str | None
    owner_id: str | None
    low_stock: bool = False

    model_config = {"from_attributes": True}


def _item_out(item: InventoryItem) -> InventoryOut:
    out = InventoryOut.model_validate(item)
    out.low_stock = item.min_quantity is not None and item.quantity <= item.min_quantity
    return out


# ── Routes ───────────────────────────────────────────────────

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[InventoryOut])
async def list_inventory(
    farm_id: str | None = Depends(query_farm_id),
    category: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(check_farm_ownership),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("inventory_item", user_id, resolver)
    stmt = select(InventoryItem).where(scope.as_clause(InventoryItem))
    if farm_id:
        stmt = stmt.where(InventoryItem.farm_id == farm_id)
    if category:
        stmt = stmt.where(InventoryItem.category == category)
    items, total = await paginate(db, stmt.order_by(InventoryItem.name), limit, offset)

    return PaginatedResponse(
        items=[_item_out(i) for i in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{item_id}", response_model=InventoryOut)
async def get_inventory_item(
    item_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("inventory_item", user_id, resolver)
    return _item_out(await get_scoped_or_404(db, InventoryItem, item_id, scope, "Inventory item"))


@router.post("/", response_model=InventoryOut, status_code=status.HTTP_201_CREATED)
async def create_inventory_item(
    body: InventoryCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(enforce_tenant_isolation),
):
    item = InventoryItem(**body.model_dump(exclude={"owner_id"}), owner_id=user_id)
    db.add(item)
    await db.flush()
    await db.refresh(item)
    return _item_out(item)


@router.put("/{item_id}", response_model=InventoryOut)
async def update_inventory_item(
    item_id: str,
    body: InventoryUpdate,
    db: AsyncSession = Depends(get_db),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
    user_id: str = Depends(enforce_tenant_isolation),
):
    """Update an item; a new farm_id must be one of the caller's farms."""
    scope = await build_scope("inventory_item", user_id, resolver)
    item = await get_scoped_or_404(db, InventoryItem, item_id, scope, "Inventory item")

    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(item, key, value)
    if item.farm_id is None and item.owner_id is None:
        item.owner_id = user_id

    await db.flush()
    await db.refresh(item)
    return _item_out(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_inventory_item(
    item_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("inventory_item", user_id, resolver)
    item = await get_scoped_or_404(db, InventoryItem, item_id, scope, "Inventory item")
    await db.delete(item)
    await db.flush()
