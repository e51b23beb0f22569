"""Query scoping: one ownership specification per resource type.

A specification says how a resource type is owned:

    ChainOwned("field_id", ChainKey.FIELD)   reachable through the farm chain
    DirectOwned("owner_id")                  carries its own owner column
    Both(chain, direct)                      either path grants visibility
    Shared()                                 visible to every user

`build_scope()` turns a specification plus a user into a `ScopeFilter`,
an immutable predicate that list queries apply with `as_clause()` and
in-memory checks apply with `matches()`.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from sqlalchemy import false, or_, true
from sqlalchemy.sql.elements import ColumnElement

from agrohub.tenancy.resolver import ChainKey, OwnershipResolver


@dataclass(frozen=True)
class ChainOwned:
    column: str
    via: ChainKey


@dataclass(frozen=True)
class DirectOwned:
    column: str = "owner_id"


@dataclass(frozen=True)
class Both:
    chain: ChainOwned
    direct: DirectOwned


@dataclass(frozen=True)
class Shared:
    pass


OwnershipSpec = Union[ChainOwned, DirectOwned, Both, Shared]


OWNERSHIP_SPECS: dict[str, OwnershipSpec] = {
    "farm": DirectOwned("owner_id"),
    "field": ChainOwned("farm_id", ChainKey.FARM),
    "parcel": ChainOwned("farm_id", ChainKey.FARM),
    "crop": ChainOwned("field_id", ChainKey.FIELD),
    "livestock": ChainOwned("field_id", ChainKey.FIELD),
    "harvest": Both(ChainOwned("crop_id", ChainKey.CROP), DirectOwned("owner_id")),
    "inventory_item": Both(ChainOwned("farm_id", ChainKey.FARM), DirectOwned("owner_id")),
    "finance_record": Both(ChainOwned("field_id", ChainKey.FIELD), DirectOwned("owner_id")),
    "veterinary_supply": Shared(),
}


def _read(record: Any, column: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(column)
    return getattr(record, column, None)


@dataclass(frozen=True)
class ScopeFilter:
    """Disjunction of a chain membership test and a direct-owner test."""

    chain_column: str | None = None
    chain_ids: frozenset[str] = field(default_factory=frozenset)
    owner_column: str | None = None
    user_id: str | None = None
    shared: bool = False

    @property
    def is_empty(self) -> bool:
        """True when the filter can match nothing."""
        if self.shared:
            return False
        has_chain = self.chain_column is not None and bool(self.chain_ids)
        has_owner = self.owner_column is not None and bool(self.user_id)
        return not (has_chain or has_owner)

    def matches(self, record: Any) -> bool:
        if self.shared:
            return True
        if self.chain_column is not None:
            value = _read(record, self.chain_column)
            if value is not None and value in self.chain_ids:
                return True
        if self.owner_column is not None and self.user_id:
            if _read(record, self.owner_column) == self.user_id:
                return True
        return False

    def as_clause(self, model) -> ColumnElement[bool]:
        """SQLAlchemy WHERE clause for `model`. Never renders `IN ()`."""
        if self.shared:
            return true()

        clauses = []
        if self.chain_column is not None and self.chain_ids:
            clauses.append(getattr(model, self.chain_column).in_(sorted(self.chain_ids)))
        if self.owner_column is not None and self.user_id:
            clauses.append(getattr(model, self.owner_column) == self.user_id)

        if not clauses:
            return false()
        if len(clauses) == 1:
            return clauses[0]
        return or_(*clauses)


async def build_scope(
    resource: str | OwnershipSpec,
    user_id: str,
    resolver: OwnershipResolver,
) -> ScopeFilter:
    """Resolve the chain ids for `resource` and return its filter.

    `ResolutionError` propagates; an unresolvable chain is never treated
    as an empty one.
    """
    spec = OWNERSHIP_SPECS[resource] if isinstance(resource, str) else resource

    if isinstance(spec, Shared):
        return ScopeFilter(shared=True)

    if isinstance(spec, DirectOwned):
        return ScopeFilter(owner_column=spec.column, user_id=user_id)

    chain = spec.chain if isinstance(spec, Both) else spec
    chain_ids = await resolver.resolve(chain.via, user_id)

    if isinstance(spec, Both):
        return ScopeFilter(
            chain_column=chain.column,
            chain_ids=chain_ids,
            owner_column=spec.direct.column,
            user_id=user_id,
        )
    return ScopeFilter(chain_column=chain.column, chain_ids=chain_ids)
