"""Error taxonomy for LendSaaS -> Pipedrive deal sync.

ValidationError is raised before any remote call is made. CRMError and its
subclasses carry the remote HTTP status (None for network failures) and the
remote response body (or message text) as ``details``; the webhook endpoint
echoes ``details`` back to the caller.
"""

from __future__ import annotations

from typing import Any


class DealSyncError(Exception):
    """Base class for all deal sync failures."""


class ValidationError(DealSyncError):
    """Inbound event is missing data required to process it."""


class MissingDealIdError(ValidationError):
    """Inbound event carries no external DealId."""

    def __init__(self) -> None:
        super().__init__("DealId required")


class CRMError(DealSyncError):
    """A Pipedrive call failed after the retry executor gave up on it.

    Args:
        message: Human-readable summary.
        kind: Transport error kind (see ErrorKind).
        status_code: Remote HTTP status, or None when no response was received.
        details: Remote JSON body when available, else the message text.
        operation: Gateway operation name (search, fetch, create, update).
    """

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        status_code: int | None = None,
        details: Any = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.details = details if details is not None else message
        self.operation = operation


class CRMAuthError(CRMError):
    """Pipedrive rejected the token (401/403)."""


class CRMTransientError(CRMError):
    """Rate limit or network failure that outlived the retry budget."""


class CRMRequestError(CRMError):
    """Any other non-2xx Pipedrive response."""
