"""Tests for query scoping specifications and filters."""

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import sqlite

from agrohub.middleware.exceptions import ResolutionError
from agrohub.models.finance_record import FinanceRecord
from agrohub.models.harvest import Harvest
from agrohub.models.parcel import Parcel
from agrohub.tenancy.resolver import ChainKey, OwnershipResolver
from agrohub.tenancy.scoping import (
    OWNERSHIP_SPECS,
    Both,
    ChainOwned,
    DirectOwned,
    ScopeFilter,
    Shared,
    build_scope,
)


def _sql(model, clause) -> str:
    stmt = select(model.id).where(clause)
    return str(stmt.compile(dialect=sqlite.dialect(), compile_kwargs={"literal_binds": True}))


@pytest.mark.unit
@pytest.mark.tenancy
class TestOwnershipSpecs:

    def test_every_resource_has_one_spec(self):
        assert set(OWNERSHIP_SPECS) == {
            "farm", "field", "parcel", "crop", "livestock",
            "harvest", "inventory_item", "finance_record", "veterinary_supply",
        }

    def test_dual_path_resources(self):
        assert OWNERSHIP_SPECS["harvest"] == Both(
            ChainOwned("crop_id", ChainKey.CROP), DirectOwned("owner_id")
        )
        assert isinstance(OWNERSHIP_SPECS["inventory_item"], Both)
        assert isinstance(OWNERSHIP_SPECS["finance_record"], Both)

    def test_veterinary_supplies_are_shared(self):
        assert OWNERSHIP_SPECS["veterinary_supply"] == Shared()


@pytest.mark.unit
@pytest.mark.tenancy
class TestScopeFilter:

    def test_matches_chain_or_owner(self):
        scope = ScopeFilter(
            chain_column="crop_id",
            chain_ids=frozenset({"crop-a"}),
            owner_column="owner_id",
            user_id="u1",
        )
        assert scope.matches({"crop_id": "crop-a", "owner_id": None})
        assert scope.matches({"crop_id": None, "owner_id": "u1"})
        assert not scope.matches({"crop_id": "crop-c", "owner_id": "u2"})
        assert not scope.matches({"crop_id": None, "owner_id": None})

    def test_matches_objects(self):
        scope = ScopeFilter(chain_column="farm_id", chain_ids=frozenset({"F1"}))
        assert scope.matches(Parcel(name="P", farm_id="F1"))
        assert not scope.matches(Parcel(name="P", farm_id="F2"))

    def test_empty_chain_with_no_direct_branch_renders_false(self):
        scope = ScopeFilter(chain_column="farm_id", chain_ids=frozenset())
        sql = _sql(Parcel, scope.as_clause(Parcel))

        assert scope.is_empty
        assert "IN ()" not in sql
        assert "0 = 1" in sql or "false" in sql.lower()

    def test_empty_chain_keeps_owner_branch(self):
        scope = ScopeFilter(
            chain_column="field_id",
            chain_ids=frozenset(),
            owner_column="owner_id",
            user_id="u1",
        )
        sql = _sql(FinanceRecord, scope.as_clause(FinanceRecord))

        assert not scope.is_empty
        assert "owner_id = 'u1'" in sql
        assert " IN " not in sql

    def test_both_branches_render_as_or(self):
        scope = ScopeFilter(
            chain_column="crop_id",
            chain_ids=frozenset({"c2", "c1"}),
            owner_column="owner_id",
            user_id="u1",
        )
        sql = _sql(Harvest, scope.as_clause(Harvest))

        assert "harvests.crop_id IN ('c1', 'c2')" in sql
        assert " OR " in sql

    def test_order_independent(self):
        first = ScopeFilter(chain_column="crop_id", chain_ids=frozenset(["a", "b"]))
        second = ScopeFilter(chain_column="crop_id", chain_ids=frozenset(["b", "a"]))
        assert first == second
        assert _sql(Harvest, first.as_clause(Harvest)) == _sql(Harvest, second.as_clause(Harvest))

    def test_shared_matches_everything(self):
        scope = ScopeFilter(shared=True)
        assert scope.matches({})
        assert not scope.is_empty


@pytest.mark.unit
@pytest.mark.tenancy
@pytest.mark.asyncio
class TestBuildScope:

    async def test_harvest_created_without_crop_is_visible_to_its_owner_only(self, memory_store):
        """Scenario C."""
        resolver = OwnershipResolver(memory_store)
        harvest = {"crop_id": None, "owner_id": "u1"}

        scope_u1 = await build_scope("harvest", "u1", resolver)
        scope_u2 = await build_scope("harvest", "u2", resolver)

        assert scope_u1.matches(harvest)
        assert not scope_u2.matches(harvest)

    async def test_owner_branch_survives_user_without_farms(self, memory_store):
        resolver = OwnershipResolver(memory_store)
        scope = await build_scope("harvest", "farmless", resolver)

        assert scope.chain_ids == frozenset()
        assert scope.matches({"crop_id": None, "owner_id": "farmless"})

    async def test_chain_only_resource(self, memory_store):
        resolver = OwnershipResolver(memory_store)
        scope = await build_scope("livestock", "u1", resolver)

        assert scope.owner_column is None
        assert scope.matches({"field_id": "B"})
        assert not scope.matches({"field_id": "C"})

    async def test_direct_resource_needs_no_resolution(self, memory_store):
        resolver = OwnershipResolver(memory_store)
        scope = await build_scope("farm", "u1", resolver)

        assert scope.matches({"owner_id": "u1"})
        assert memory_store.calls == []

    async def test_shared_resource(self, memory_store):
        resolver = OwnershipResolver(memory_store)
        scope = await build_scope("veterinary_supply", "u1", resolver)
        assert scope.shared

    async def test_resolution_failure_propagates(self, memory_store):
        memory_store.fail_on.add("crop_ids_in_fields")
        resolver = OwnershipResolver(memory_store)

        with pytest.raises(ResolutionError):
            await build_scope("harvest", "u1", resolver)
