"""Finance routes.

Records are visible through their field (field → farm → owner) or their
owner_id. A record with neither is visible to nobody.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.auth.deps import require_user_id
from agrohub.database import get_db
from agrohub.middleware.exceptions import OwnershipDenied
from agrohub.models.finance_record import FinanceRecord, FinanceType
from agrohub.schemas.common import PaginatedResponse
from agrohub.tenancy.guards import (
    check_field_ownership,
    enforce_tenant_isolation,
    query_field_id,
)
from agrohub.tenancy.resolver import OwnershipResolver, get_ownership_resolver
from agrohub.tenancy.scoping import build_scope
from agrohub.tenancy.store import OwnershipStore, get_ownership_store
from agrohub.tenancy.verifier import OwnershipVerifier
from agrohub.utils.queries import get_scoped_or_404, paginate

MSG_FOREIGN_CROP = "Acesso negado: cultura não pertence ao usuário"


# ── Schemas ──────────────────────────────────────────────────

class FinanceCreate(BaseModel):
    type: FinanceType
    category: str
    amount: float = Field(gt=0)
    description: str | None = None
    date: datetime | None = None
    field_id: str | None = None
    crop_id: str | None = None
    owner_id: str | None = None


class FinanceUpdate(BaseModel):
    type: FinanceType | None = None
    category: str | None = None
    amount: float | None = Field(None, gt=0)
    description: str | None = None
    date: datetime | None = None
    field_id: str | None = None
    crop_id: str | None = None


class FinanceOut(BaseModel):
    id: str
    type: FinanceType
    category: str
    amount: float
    description: str | None
    date: datetime
    field_id: str | None
    crop_id: str | None
    owner_id: str | None

    model_config = {"from_attributes": True}


class FinanceSummary(BaseModel):
    income: float
    expense: float
    balance: float


async def _check_crop(store: OwnershipStore, crop_id: str | None, user_id: str) -> None:
    if not crop_id:
        return
    verifier = OwnershipVerifier(store, strict=True)
    if not await verifier.verify_crop_ownership(crop_id, user_id):
        raise OwnershipDenied(MSG_FOREIGN_CROP)


# ── Routes ───────────────────────────────────────────────────

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[FinanceOut])
async def list_finance_records(
    field_id: str | None = Depends(query_field_id),
    record_type: FinanceType | None = Query(None, alias="type"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(check_field_ownership),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("finance_record", user_id, resolver)
    stmt = select(FinanceRecord).where(scope.as_clause(FinanceRecord))
    if field_id:
        stmt = stmt.where(FinanceRecord.field_id == field_id)
    if record_type:
        stmt = stmt.where(FinanceRecord.type == record_type)
    items, total = await paginate(db, stmt.order_by(FinanceRecord.date.desc()), limit, offset)

    return PaginatedResponse(
        items=[FinanceOut.model_validate(r) for r in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/summary", response_model=FinanceSummary)
async def finance_summary(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    """Income, expense and balance over every record in scope."""
    scope = await build_scope("finance_record", user_id, resolver)
    stmt = select(
        func.coalesce(func.sum(case(
            (FinanceRecord.type == FinanceType.INCOME, FinanceRecord.amount), else_=0
        )), 0),
        func.coalesce(func.sum(case(
            (FinanceRecord.type == FinanceType.EXPENSE, FinanceRecord.amount), else_=0
        )), 0),
    ).where(scope.as_clause(FinanceRecord))
    income, expense = (await db.execute(stmt)).one()
    return FinanceSummary(income=income, expense=expense, balance=income - expense)


@router.get("/{record_id}", response_model=FinanceOut)
async def get_finance_record(
    record_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("finance_record", user_id, resolver)
    record = await get_scoped_or_404(db, FinanceRecord, record_id, scope, "Finance record")
    return FinanceOut.model_validate(record)


@router.post("/", response_model=FinanceOut, status_code=status.HTTP_201_CREATED)
async def create_finance_record(
    body: FinanceCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(enforce_tenant_isolation),
    store: OwnershipStore = Depends(get_ownership_store),
):
    await _check_crop(store, body.crop_id, user_id)

    data = body.model_dump(exclude={"owner_id"}, exclude_none=True)
    record = FinanceRecord(**data, owner_id=user_id)
    db.add(record)
    await db.flush()
    await db.refresh(record)
    return FinanceOut.model_validate(record)


@router.put("/{record_id}", response_model=FinanceOut)
async def update_finance_record(
    record_id: str,
    body: FinanceUpdate,
    db: AsyncSession = Depends(get_db),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
    store: OwnershipStore = Depends(get_ownership_store),
    user_id: str = Depends(enforce_tenant_isolation),
):
    scope = await build_scope("finance_record", user_id, resolver)
    record = await get_scoped_or_404(db, FinanceRecord, record_id, scope, "Finance record")

    updates = body.model_dump(exclude_unset=True)
    if updates.get("crop_id") != record.crop_id:
        await _check_crop(store, updates.get("crop_id"), user_id)

    for key, value in updates.items():
        setattr(record, key, value)
    if record.field_id is None and record.owner_id is None:
        record.owner_id = user_id

    await db.flush()
    await db.refresh(record)
    return FinanceOut.model_validate(record)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_finance_record(
    record_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(require_user_id),
    resolver: OwnershipResolver = Depends(get_ownership_resolver),
):
    scope = await build_scope("finance_record", user_id, resolver)
    record = await get_scoped_or_404(db, FinanceRecord, record_id, scope, "Finance record")
    await db.delete(record)
    await db.flush()
