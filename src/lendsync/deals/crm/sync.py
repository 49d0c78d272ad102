"""Upsert-and-advance sync from LendSaaS events into Pipedrive deals.

One event is handled as a single sequential chain of awaited gateway
calls: search -> create or update -> (fetch -> stage move). Nothing is
rolled back if a later call fails; a deal created before a failure stays
created.

Stage rule: only PaymentStatus "Performing" (exact, after trimming) moves a
deal to Funded, and a deal is never moved out of Funded. The live stage is
always re-read from Pipedrive before moving.

Known gap: two concurrent deliveries for the same DealId can both miss on
search and both create. There is no cross-request lock.
"""

from __future__ import annotations

import structlog

from src.lendsync.core.monitoring import deal_stage_transitions_total, deal_sync_events_total
from src.lendsync.deals.crm.adapter import DealGateway
from src.lendsync.deals.crm.field_mapping import build_deal_fields
from src.lendsync.deals.crm.pipedrive import PipedriveConfig
from src.lendsync.deals.crm.transport import ErrorKind
from src.lendsync.deals.errors import CRMRequestError, MissingDealIdError
from src.lendsync.deals.schemas import InboundEvent, UpsertAction, UpsertResult

logger = structlog.get_logger(__name__)

FUNDING_TRIGGER_STATUS = "Performing"


def should_fund(event: InboundEvent) -> bool:
    """True when the event's payment status triggers the move to Funded."""
    if event.payment_status is None:
        return False
    return str(event.payment_status).strip() == FUNDING_TRIGGER_STATUS


class SyncEngine:
    """Creates or updates the Pipedrive deal for a LendSaaS event.

    Args:
        gateway: Remote deal gateway (PipedriveGateway in production).
        config: Pipedrive ids (pipeline, stages, custom field keys).
    """

    def __init__(self, gateway: DealGateway, config: PipedriveConfig) -> None:
        self._gateway = gateway
        self._config = config

    async def upsert_and_advance(self, event: InboundEvent) -> UpsertResult:
        """Sync one inbound event.

        Raises:
            MissingDealIdError: event has no DealId (no remote calls made).
            CRMError: a gateway call failed after retries, or create
                returned no deal id.
        """
        if not event.has_deal_id:
            raise MissingDealIdError()

        external_id = event.external_id
        fields = build_deal_fields(
            event,
            pipeline_id=self._config.pipeline_id,
            field_keys=self._config.field_keys,
        )
        log = logger.bind(external_id=external_id)

        found = await self._gateway.search_by_external_id(external_id)

        if found is None:
            created = await self._gateway.create(
                fields.with_stage(self._config.new_submission_stage_id)
            )
            deal_id = (created or {}).get("id")
            if deal_id is None:
                raise CRMRequestError(
                    "Pipedrive create returned no deal id",
                    kind=ErrorKind.HTTP.value,
                    details=created,
                    operation="create",
                )
            action = UpsertAction.CREATED
            log.info("deal_sync.created", pipedrive_deal_id=deal_id, amount=fields["value"])
        else:
            deal_id = found.id
            await self._gateway.update(deal_id, fields.to_payload())
            action = UpsertAction.UPDATED
            log.info("deal_sync.updated", pipedrive_deal_id=deal_id)

        deal_sync_events_total.labels(action=action.value).inc()

        stage_moved = False
        if should_fund(event):
            stage_moved = await self._advance_to_funded(deal_id, log)

        return UpsertResult(action=action, deal_id=deal_id, stage_moved=stage_moved)

    async def _advance_to_funded(self, deal_id: int | str, log: structlog.BoundLogger) -> bool:
        funded = self._config.funded_stage_id
        current = await self._gateway.fetch(deal_id)
        current_stage = (current or {}).get("stage_id")

        if current_stage == funded:
            log.info("deal_sync.already_funded", pipedrive_deal_id=deal_id)
            return False

        await self._gateway.move_stage(deal_id, funded)
        deal_stage_transitions_total.labels(to_stage=str(funded)).inc()
        log.info(
            "deal_sync.stage_moved",
            pipedrive_deal_id=deal_id,
            from_stage=current_stage,
            to_stage=funded,
        )
        return True
