"""LendSaaS webhook receiver.

POST /webhook/lendsaas takes a LendSaaS deal event, syncs it into Pipedrive
through SyncEngine, and reports what happened:

- 200 {"success": true, "action": "created"|"updated", "dealId": <pipedrive id>}
- 400 {"error": "DealId required"} -- no Pipedrive calls are made
- 500 {"error": ..., "details": ...} -- auth failures get their own message
- 503 when the Pipedrive integration is not configured

NOTE: No signature verification -- LendSaaS posts events directly.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.lendsync.deals.errors import CRMAuthError, CRMError, ValidationError
from src.lendsync.deals.schemas import InboundEvent

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhooks"])

AUTH_FAILED_MESSAGE = "Pipedrive auth failed (check token)"
PROCESSING_FAILED_MESSAGE = "Processing failed"


class WebhookResponse(BaseModel):
    """Successful sync response."""

    success: bool = True
    action: str
    dealId: int | str


def _get_sync_engine(request: Request) -> Any:
    return getattr(request.app.state, "sync_engine", None)


def _parse_int(text: str) -> int | Decimal:
    # json refuses ints past sys.get_int_max_str_digits(); keep them as Decimal
    try:
        return int(text)
    except ValueError:
        return Decimal(text)


async def _read_event(request: Request) -> InboundEvent:
    """Parse the body; anything that is not a JSON object is an empty event."""
    body = await request.body()
    try:
        payload = json.loads(body, parse_int=_parse_int)
    except ValueError as exc:
        logger.warning("webhook.invalid_json", error=str(exc), body_bytes=len(body))
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    return InboundEvent.model_validate(payload)


def _error(status_code: int, error: str, details: Any = None) -> JSONResponse:
    content: dict[str, Any] = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


@router.post("/lendsaas", response_model=WebhookResponse)
async def receive_lendsaas_webhook(request: Request):
    """Upsert the Pipedrive deal for a LendSaaS event and advance it if performing."""
    event = await _read_event(request)

    if not event.has_deal_id:
        logger.warning("webhook.missing_deal_id")
        return _error(status.HTTP_400_BAD_REQUEST, "DealId required")

    engine = _get_sync_engine(request)
    if engine is None:
        logger.error("webhook.sync_engine_unavailable", external_id=event.external_id)
        return _error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Pipedrive integration not configured",
        )

    try:
        result = await engine.upsert_and_advance(event)
    except ValidationError as exc:
        logger.warning("webhook.invalid_event", external_id=event.external_id, error=str(exc))
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except CRMError as exc:
        logger.error(
            "webhook.failed",
            external_id=event.external_id,
            operation=exc.operation,
            kind=exc.kind,
            status_code=exc.status_code,
            details=exc.details,
        )
        message = AUTH_FAILED_MESSAGE if isinstance(exc, CRMAuthError) else PROCESSING_FAILED_MESSAGE
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, message, exc.details)
    except Exception as exc:
        logger.error("webhook.failed", external_id=event.external_id, exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, PROCESSING_FAILED_MESSAGE, str(exc))

    return WebhookResponse(action=result.action.value, dealId=result.deal_id)
