"""Pipedrive deal gateway over the v1 deals API and the v2 search API.

Key implementation details:
- Every call goes through RetryExecutor (429 and network errors only)
- API token sent as the ``api_token`` query parameter on every call
- Responses are not validated beyond pulling out the nested ``data``;
  missing nesting yields None rather than an exception
- A final transport Err is raised as the matching CRMError subclass
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from src.lendsync.config import Settings
from src.lendsync.core.monitoring import crm_request_duration_seconds, crm_requests_total
from src.lendsync.deals.crm.adapter import DealGateway
from src.lendsync.deals.crm.field_mapping import DEAL_FIELD_KEYS, PIPELINE_ID
from src.lendsync.deals.crm.retry import RetryExecutor
from src.lendsync.deals.crm.transport import (
    Err,
    ErrorKind,
    PipedriveTransport,
    TransportResult,
)
from src.lendsync.deals.errors import (
    CRMAuthError,
    CRMError,
    CRMRequestError,
    CRMTransientError,
)
from src.lendsync.deals.schemas import DealReference, PipelineStage

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PipedriveConfig:
    """Everything the gateway and sync engine need to talk to one Pipedrive account.

    Built once at startup and passed in explicitly; nothing reads process
    environment after this point.
    """

    domain: str
    api_token: str
    pipeline_id: int = PIPELINE_ID
    new_submission_stage_id: int = PipelineStage.NEW_SUBMISSION.value
    funded_stage_id: int = PipelineStage.FUNDED.value
    field_keys: Mapping[str, str] = field(default_factory=lambda: dict(DEAL_FIELD_KEYS))
    max_retries: int = 3
    retry_base_seconds: float = 1.0

    @classmethod
    def from_settings(cls, settings: Settings) -> PipedriveConfig:
        return cls(
            domain=settings.PIPEDRIVE_DOMAIN,
            api_token=settings.PIPEDRIVE_TOKEN,
            max_retries=settings.CRM_MAX_RETRIES,
            retry_base_seconds=settings.CRM_RETRY_BASE_SECONDS,
        )

    @property
    def v1_base_url(self) -> str:
        return f"https://{self.domain}.pipedrive.com/v1"

    @property
    def v2_base_url(self) -> str:
        return f"https://{self.domain}.pipedrive.com/api/v2"


_ERROR_CLASSES: dict[ErrorKind, type[CRMError]] = {
    ErrorKind.AUTH: CRMAuthError,
    ErrorKind.RATE_LIMITED: CRMTransientError,
    ErrorKind.NETWORK: CRMTransientError,
}


def to_crm_error(err: Err, operation: str) -> CRMError:
    """Convert a final transport Err into the matching CRMError."""
    error_cls = _ERROR_CLASSES.get(err.kind, CRMRequestError)
    return error_cls(
        err.message,
        kind=err.kind.value,
        status_code=err.status_code,
        details=err.details,
        operation=operation,
    )


def _data(body: Any) -> Any:
    if isinstance(body, dict):
        return body.get("data")
    return None


class PipedriveGateway(DealGateway):
    """Pipedrive implementation of DealGateway.

    Args:
        config: Pipedrive account config (domain, token, ids, retry budget).
        client: Optional shared httpx.AsyncClient; one is created if omitted.
        retry_executor: Optional RetryExecutor; built from config if omitted.
    """

    def __init__(
        self,
        config: PipedriveConfig,
        client: httpx.AsyncClient | None = None,
        retry_executor: RetryExecutor | None = None,
    ) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient()
        self._transport = PipedriveTransport(self._client, config.api_token)
        self._retry = retry_executor or RetryExecutor(
            max_retries=config.max_retries,
            base_delay=config.retry_base_seconds,
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this gateway created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _call(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Mapping[str, Any] | None = None,
    ) -> Any:
        body = dict(json) if json is not None else None
        start_time = time.perf_counter()

        result: TransportResult = await self._retry.run(
            lambda: self._transport.request(method, url, params=params, json=body),
            operation_name=operation,
        )

        crm_request_duration_seconds.labels(operation=operation).observe(
            time.perf_counter() - start_time
        )

        if isinstance(result, Err):
            crm_requests_total.labels(operation=operation, outcome=result.kind.value).inc()
            logger.warning(
                "pipedrive.call_failed",
                operation=operation,
                kind=result.kind.value,
                status_code=result.status_code,
            )
            raise to_crm_error(result, operation)

        crm_requests_total.labels(operation=operation, outcome="ok").inc()
        return result.value

    async def search_by_external_id(self, external_id: str) -> DealReference | None:
        """Exact-match search over deal custom fields (v2 search API)."""
        body = await self._call(
            "search",
            "GET",
            f"{self._config.v2_base_url}/deals/search",
            params={
                "term": external_id,
                "fields": "custom_fields",
                "exact_match": "true",
            },
        )
        data = _data(body)
        items = data.get("items") if isinstance(data, dict) else None
        if not items:
            return None
        # items look like: {"result_score": ..., "item": {"id": ..., ...}}
        first = items[0]
        return DealReference.from_payload(first.get("item") if isinstance(first, dict) else None)

    async def fetch(self, deal_id: int | str) -> dict[str, Any] | None:
        body = await self._call("fetch", "GET", f"{self._config.v1_base_url}/deals/{deal_id}")
        return _data(body)

    async def create(self, fields: Mapping[str, Any]) -> dict[str, Any] | None:
        body = await self._call("create", "POST", f"{self._config.v1_base_url}/deals", json=fields)
        return _data(body)

    async def update(self, deal_id: int | str, fields: Mapping[str, Any]) -> dict[str, Any] | None:
        body = await self._call(
            "update", "PUT", f"{self._config.v1_base_url}/deals/{deal_id}", json=fields
        )
        return _data(body)
