"""Deal gateway abstract base class -- the remote CRM operations the sync needs.

PipedriveGateway is the production implementation. SyncEngine depends only
on this interface, so tests drive it with an in-memory double.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from src.lendsync.deals.schemas import DealReference


class DealGateway(ABC):
    """Abstract interface for remote deal operations.

    Methods:
        search_by_external_id: Exact-match lookup on the external DealId field.
        fetch: Full current deal record by remote id.
        create: Create a deal, return the created record.
        update: Partially update a deal, return the updated record.
        move_stage: Set a deal's pipeline stage.
    """

    @abstractmethod
    async def search_by_external_id(self, external_id: str) -> DealReference | None:
        """Return the first deal whose custom fields match external_id exactly."""
        ...

    @abstractmethod
    async def fetch(self, deal_id: int | str) -> dict[str, Any] | None:
        """Fetch the current deal record by remote id."""
        ...

    @abstractmethod
    async def create(self, fields: Mapping[str, Any]) -> dict[str, Any] | None:
        """Create a deal and return the created record."""
        ...

    @abstractmethod
    async def update(self, deal_id: int | str, fields: Mapping[str, Any]) -> dict[str, Any] | None:
        """Partially update a deal and return the updated record."""
        ...

    async def move_stage(self, deal_id: int | str, stage_id: int) -> dict[str, Any] | None:
        """Move a deal to another stage (a stage-only update)."""
        return await self.update(deal_id, {"stage_id": stage_id})
