"""Tests for the management CLI helpers."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.cli import farm_summary, harvest_divergence
from agrohub.models.field import Field
from agrohub.models.harvest import Harvest


@pytest.mark.integration
@pytest.mark.asyncio
class TestCli:

    async def test_farm_summary_counts_fields(
        self, db_session: AsyncSession, farm_a, field_a, farm_b, user_a
    ):
        db_session.add(Field(name="Talhão 2", farm_id=farm_a.id))
        await db_session.flush()

        rows = await farm_summary(db_session, user_a.id)
        assert rows == [(farm_a.id, farm_a.name, 2)]

    async def test_harvest_divergence_reports_each_path(
        self, db_session: AsyncSession, crop_a, user_a
    ):
        via_chain = Harvest(crop="Soja", yield_amount=1, crop_id=crop_a.id)
        via_owner = Harvest(crop="Soja", yield_amount=2, owner_id=user_a.id)
        via_both = Harvest(crop="Soja", yield_amount=3, crop_id=crop_a.id, owner_id=user_a.id)
        db_session.add_all([via_chain, via_owner, via_both])
        await db_session.flush()

        report = await harvest_divergence(db_session, user_a.id)

        assert report["scoped"] == {via_chain.id, via_owner.id, via_both.id}
        assert report["chain_only"] == {via_chain.id}
        assert report["owner_only"] == set()
