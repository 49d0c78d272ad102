"""Unit tests for SyncEngine (upsert-and-advance workflow).

Uses InMemoryDealGateway from conftest -- no real Pipedrive. Covers:
- create vs update decision by external DealId
- sparse field set sent on create/update
- Performing -> Funded stage guard (re-read live stage, never demote)
- failure propagation without rollback
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.lendsync.deals.crm.field_mapping import DEAL_FIELD_KEYS
from src.lendsync.deals.crm.sync import SyncEngine, should_fund
from src.lendsync.deals.errors import CRMAuthError, CRMRequestError, MissingDealIdError
from src.lendsync.deals.schemas import DealReference, InboundEvent, PipelineStage, UpsertAction

KEYS = DEAL_FIELD_KEYS
FUNDED = PipelineStage.FUNDED.value
NEW_SUBMISSION = PipelineStage.NEW_SUBMISSION.value


def _event(**payload) -> InboundEvent:
    return InboundEvent.model_validate(payload)


# ── Validation ──────────────────────────────────────────────────────────────


class TestValidation:
    @pytest.mark.parametrize("payload", [{}, {"DealId": None}, {"DealId": ""}, {"BorrowerName": "Acme"}])
    async def test_missing_deal_id_raises_without_remote_calls(self, sync_engine, gateway, payload):
        with pytest.raises(MissingDealIdError, match="DealId required"):
            await sync_engine.upsert_and_advance(_event(**payload))

        assert gateway.searches == []
        assert gateway.creates == []
        assert gateway.updates == []


# ── Create / Update ─────────────────────────────────────────────────────────


class TestUpsert:
    async def test_unseen_deal_is_created(self, sync_engine, gateway):
        result = await sync_engine.upsert_and_advance(
            _event(DealId="D100", BorrowerName="Acme", Amount=5000)
        )

        assert result.action == UpsertAction.CREATED
        assert len(gateway.creates) == 1
        assert gateway.updates == []
        created = gateway.creates[0]
        assert created["title"] == "Acme - $5000"
        assert created["value"] == 5000
        assert created["pipeline_id"] == 3
        assert created["stage_id"] == NEW_SUBMISSION
        assert created[KEYS["dealId"]] == "D100"
        assert result.deal_id in gateway.deals

    async def test_seen_deal_is_updated(self, sync_engine, gateway):
        deal_id = gateway.seed("D200", stage_id=NEW_SUBMISSION)

        result = await sync_engine.upsert_and_advance(_event(DealId="D200", Amount="750"))

        assert result.action == UpsertAction.UPDATED
        assert result.deal_id == deal_id
        assert gateway.creates == []
        assert len(gateway.updates) == 1
        updated_id, body = gateway.updates[0]
        assert updated_id == deal_id
        assert body["value"] == 750
        assert "stage_id" not in body

    async def test_second_event_resolves_to_update(self, sync_engine, gateway):
        first = await sync_engine.upsert_and_advance(_event(DealId="D300", Amount=100))
        second = await sync_engine.upsert_and_advance(_event(DealId="D300", Amount=200))

        assert first.action == UpsertAction.CREATED
        assert second.action == UpsertAction.UPDATED
        assert second.deal_id == first.deal_id
        assert len(gateway.creates) == 1

    async def test_search_uses_string_external_id(self, sync_engine, gateway):
        await sync_engine.upsert_and_advance(_event(DealId=4512))

        assert gateway.searches == ["4512"]

    async def test_absent_optionals_not_sent_on_update(self, sync_engine, gateway):
        deal_id = gateway.seed("D400", **{KEYS["factorRate"]: "1.4", KEYS["termDays"]: 90})

        await sync_engine.upsert_and_advance(_event(DealId="D400", Amount=1))

        _, body = gateway.updates[0]
        assert KEYS["factorRate"] not in body
        assert KEYS["termDays"] not in body
        assert None not in body.values()
        assert gateway.deals[deal_id][KEYS["factorRate"]] == "1.4"

    async def test_create_without_id_is_an_error(self, pipedrive_config):
        gateway = AsyncMock()
        gateway.search_by_external_id.return_value = None
        gateway.create.return_value = None
        engine = SyncEngine(gateway=gateway, config=pipedrive_config)

        with pytest.raises(CRMRequestError):
            await engine.upsert_and_advance(_event(DealId="D1"))


# ── Stage Transition ────────────────────────────────────────────────────────


class TestStageTransition:
    @pytest.mark.parametrize("status", ["Performing", "  Performing  ", "Performing\n"])
    def test_should_fund_trims(self, status):
        assert should_fund(_event(DealId="D", PaymentStatus=status))

    @pytest.mark.parametrize("status", [None, "performing", "PERFORMING", "Performing late", "Late", ""])
    def test_should_fund_is_exact_and_case_sensitive(self, status):
        assert not should_fund(_event(DealId="D", PaymentStatus=status))

    async def test_performing_new_deal_moves_to_funded(self, sync_engine, gateway):
        result = await sync_engine.upsert_and_advance(_event(DealId="D500", PaymentStatus="Performing"))

        assert result.action == UpsertAction.CREATED
        assert result.stage_moved is True
        assert gateway.fetches == [result.deal_id]
        assert gateway.stage_updates == [(result.deal_id, {"stage_id": FUNDED})]
        assert gateway.field_updates == []

    async def test_performing_existing_deal_moves_once(self, sync_engine, gateway):
        deal_id = gateway.seed("D501", stage_id=NEW_SUBMISSION)

        await sync_engine.upsert_and_advance(_event(DealId="D501", PaymentStatus="Performing"))

        assert len(gateway.field_updates) == 1
        assert gateway.stage_updates == [(deal_id, {"stage_id": FUNDED})]
        assert gateway.deals[deal_id]["stage_id"] == FUNDED

    async def test_already_funded_is_not_moved(self, sync_engine, gateway):
        deal_id = gateway.seed("D502", stage_id=FUNDED)

        result = await sync_engine.upsert_and_advance(_event(DealId="D502", PaymentStatus="Performing"))

        assert result.stage_moved is False
        assert gateway.fetches == [deal_id]
        assert gateway.stage_updates == []

    @pytest.mark.parametrize("status", ["performing", "Late", None])
    async def test_other_statuses_never_move_stage(self, sync_engine, gateway, status):
        deal_id = gateway.seed("D503", stage_id=NEW_SUBMISSION)

        await sync_engine.upsert_and_advance(_event(DealId="D503", PaymentStatus=status))

        assert gateway.fetches == []
        assert gateway.stage_updates == []
        assert gateway.deals[deal_id]["stage_id"] == NEW_SUBMISSION

    async def test_funded_deal_is_never_demoted(self, sync_engine, gateway):
        deal_id = gateway.seed("D504", stage_id=FUNDED)

        await sync_engine.upsert_and_advance(_event(DealId="D504", PaymentStatus="Late"))

        _, body = gateway.updates[0]
        assert "stage_id" not in body
        assert gateway.deals[deal_id]["stage_id"] == FUNDED

    async def test_stage_read_from_live_record(self, pipedrive_config):
        """Stage guard trusts the fetched record, not the search hit."""
        gateway = AsyncMock()
        gateway.search_by_external_id.return_value = DealReference(id=9, stage_id=NEW_SUBMISSION)
        gateway.fetch.return_value = {"id": 9, "stage_id": FUNDED}
        engine = SyncEngine(gateway=gateway, config=pipedrive_config)

        result = await engine.upsert_and_advance(_event(DealId="D9", PaymentStatus="Performing"))

        gateway.fetch.assert_awaited_once_with(9)
        gateway.move_stage.assert_not_awaited()
        assert result.stage_moved is False


# ── Failure Propagation ─────────────────────────────────────────────────────


class TestFailures:
    async def test_stage_move_failure_propagates_after_create(self, pipedrive_config, gateway):
        gateway.move_stage = AsyncMock(
            side_effect=CRMAuthError("HTTP 403", kind="auth", status_code=403, operation="update")
        )
        engine = SyncEngine(gateway=gateway, config=pipedrive_config)

        with pytest.raises(CRMAuthError):
            await engine.upsert_and_advance(_event(DealId="D600", PaymentStatus="Performing"))

        # No rollback: the deal created before the failure stays.
        assert len(gateway.creates) == 1
        assert len(gateway.deals) == 1

    async def test_search_failure_stops_workflow(self, pipedrive_config):
        gateway = AsyncMock()
        gateway.search_by_external_id.side_effect = CRMRequestError("HTTP 500", kind="http", status_code=500)
        engine = SyncEngine(gateway=gateway, config=pipedrive_config)

        with pytest.raises(CRMRequestError):
            await engine.upsert_and_advance(_event(DealId="D601"))

        gateway.create.assert_not_awaited()
        gateway.update.assert_not_awaited()
