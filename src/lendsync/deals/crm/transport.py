"""HTTP transport for Pipedrive returning tagged results instead of raising.

Every call returns either ``Ok(value)`` or ``Err(kind, ...)``. The retry
executor switches on ``Err.kind`` and never has to inspect an httpx
exception; the gateway turns a final ``Err`` into a CRMError.

Classification:
- 429                                   -> RATE_LIMITED (transient)
- connect/DNS failure, timeout, reset   -> NETWORK (transient)
- 401 / 403                             -> AUTH
- any other non-2xx                     -> HTTP
- any other request failure             -> REQUEST
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

import httpx
import structlog

logger = structlog.get_logger(__name__)


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    AUTH = "auth"
    HTTP = "http"
    REQUEST = "request"


TRANSIENT_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.NETWORK})

# No HTTP response at all: connection reset, timeout, DNS resolution failure.
_NETWORK_ERRORS = (
    httpx.ConnectError,
    httpx.TimeoutException,
    httpx.ReadError,
    httpx.WriteError,
    httpx.RemoteProtocolError,
)


@dataclass(frozen=True)
class Ok:
    value: Any = None


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    status_code: int | None = None
    details: Any = None

    @property
    def transient(self) -> bool:
        return self.kind in TRANSIENT_KINDS


TransportResult = Union[Ok, Err]


def classify_status(status_code: int) -> ErrorKind:
    """Map a non-2xx HTTP status to an ErrorKind."""
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code in (401, 403):
        return ErrorKind.AUTH
    return ErrorKind.HTTP


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


class PipedriveTransport:
    """Issues one HTTP request per call with the API token as a query param.

    Args:
        client: Shared httpx.AsyncClient (pooled across requests).
        api_token: Pipedrive API token.
    """

    def __init__(self, client: httpx.AsyncClient, api_token: str) -> None:
        self._client = client
        self._api_token = api_token

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> TransportResult:
        query = {"api_token": self._api_token, **(params or {})}
        try:
            response = await self._client.request(method, url, params=query, json=json)
        except _NETWORK_ERRORS as exc:
            logger.debug("pipedrive.network_error", method=method, url=url, error=repr(exc))
            return Err(kind=ErrorKind.NETWORK, message=str(exc) or exc.__class__.__name__)
        except httpx.RequestError as exc:
            return Err(kind=ErrorKind.REQUEST, message=str(exc) or exc.__class__.__name__)

        if response.is_success:
            return Ok(_response_body(response))

        return Err(
            kind=classify_status(response.status_code),
            message=f"Pipedrive returned HTTP {response.status_code}",
            status_code=response.status_code,
            details=_response_body(response),
        )
