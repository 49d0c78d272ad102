"""Retry executor for Pipedrive calls.

Retries only transient failures (429 and network errors) with exponential
backoff: base * 2^(attempt-1), i.e. 1s, 2s, 4s for the defaults. Each
``run`` call gets its own budget. Permanent errors, and transient errors
that exhaust the budget, are returned as the last ``Err`` unchanged.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from src.lendsync.core.monitoring import crm_retries_total
from src.lendsync.deals.crm.transport import Err, TransportResult

logger = structlog.get_logger(__name__)


def _is_transient(result: TransportResult) -> bool:
    return isinstance(result, Err) and result.transient


def _last_result(retry_state: RetryCallState) -> TransportResult:
    return retry_state.outcome.result()


class RetryExecutor:
    """Runs a transport operation under a per-call retry budget.

    Args:
        max_retries: Retries beyond the first attempt (default 3).
        base_delay: Seconds to wait before the first retry (default 1.0).
        sleep: Awaitable sleep used between attempts (injectable for tests).
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._sleep = sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[TransportResult]],
        *,
        operation_name: str = "pipedrive",
    ) -> TransportResult:
        """Execute ``operation``, retrying while it returns a transient Err."""

        def _before_sleep(retry_state: RetryCallState) -> None:
            result = retry_state.outcome.result()
            wait_seconds = retry_state.next_action.sleep if retry_state.next_action else 0
            crm_retries_total.labels(operation=operation_name, kind=result.kind.value).inc()
            logger.info(
                "crm.retry",
                operation=operation_name,
                attempt=retry_state.attempt_number,
                max_retries=self._max_retries,
                wait_ms=int(wait_seconds * 1000),
                kind=result.kind.value,
                status_code=result.status_code,
            )

        retrying = AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(self._max_retries + 1),
            wait=wait_exponential(multiplier=self._base_delay),
            retry=retry_if_result(_is_transient),
            before_sleep=_before_sleep,
            retry_error_callback=_last_result,
        )
        return await retrying(operation)
