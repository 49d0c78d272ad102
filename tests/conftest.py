"""Shared test fixtures for the LendSaaS -> Pipedrive sync.

Provides:
- InMemoryDealGateway: DealGateway test double that records every call
- pipedrive_config: PipedriveConfig for a fake "testco" account
- gateway / sync_engine: in-memory gateway and a SyncEngine over it
- webhook_app / client: minimal FastAPI app with the v1 router and an
  async HTTP client bound to it (no lifespan, no real Pipedrive)
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Mapping
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.lendsync.api.v1.router import router as v1_router
from src.lendsync.deals.crm.adapter import DealGateway
from src.lendsync.deals.crm.field_mapping import DEAL_FIELD_KEYS
from src.lendsync.deals.crm.pipedrive import PipedriveConfig
from src.lendsync.deals.crm.sync import SyncEngine
from src.lendsync.deals.schemas import DealReference


# ── In-Memory Test Double ────────────────────────────────────────────────────


class InMemoryDealGateway(DealGateway):
    """In-memory Pipedrive stand-in keyed by the DealId custom field."""

    def __init__(self, dealid_key: str = DEAL_FIELD_KEYS["dealId"]) -> None:
        self._dealid_key = dealid_key
        self._next_id = 1000
        self.deals: dict[int, dict[str, Any]] = {}
        self.searches: list[str] = []
        self.fetches: list[int | str] = []
        self.creates: list[dict[str, Any]] = []
        self.updates: list[tuple[int | str, dict[str, Any]]] = []

    def seed(self, external_id: str, stage_id: int = 11, **fields: Any) -> int:
        """Put an existing deal in the store without recording a create."""
        deal_id = self._next_id
        self._next_id += 1
        self.deals[deal_id] = {
            "id": deal_id,
            "stage_id": stage_id,
            self._dealid_key: external_id,
            **fields,
        }
        return deal_id

    @property
    def stage_updates(self) -> list[tuple[int | str, dict[str, Any]]]:
        return [(deal_id, body) for deal_id, body in self.updates if set(body) == {"stage_id"}]

    @property
    def field_updates(self) -> list[tuple[int | str, dict[str, Any]]]:
        return [(deal_id, body) for deal_id, body in self.updates if set(body) != {"stage_id"}]

    async def search_by_external_id(self, external_id: str) -> DealReference | None:
        self.searches.append(external_id)
        for deal in self.deals.values():
            if deal.get(self._dealid_key) == external_id:
                return DealReference.from_payload(deal)
        return None

    async def fetch(self, deal_id: int | str) -> dict[str, Any] | None:
        self.fetches.append(deal_id)
        deal = self.deals.get(deal_id)
        return dict(deal) if deal else None

    async def create(self, fields: Mapping[str, Any]) -> dict[str, Any] | None:
        body = dict(fields)
        self.creates.append(body)
        deal_id = self._next_id
        self._next_id += 1
        self.deals[deal_id] = {"id": deal_id, **body}
        return dict(self.deals[deal_id])

    async def update(self, deal_id: int | str, fields: Mapping[str, Any]) -> dict[str, Any] | None:
        body = dict(fields)
        self.updates.append((deal_id, body))
        self.deals.setdefault(deal_id, {"id": deal_id}).update(body)
        return dict(self.deals[deal_id])


# ── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def pipedrive_config() -> PipedriveConfig:
    return PipedriveConfig(domain="testco", api_token="test-token")


@pytest.fixture
def gateway() -> InMemoryDealGateway:
    return InMemoryDealGateway()


@pytest.fixture
def sync_engine(gateway, pipedrive_config) -> SyncEngine:
    return SyncEngine(gateway=gateway, config=pipedrive_config)


@pytest.fixture
def webhook_app(sync_engine) -> FastAPI:
    """Minimal FastAPI app with the v1 router and an in-memory sync engine."""
    app = FastAPI()
    app.include_router(v1_router)
    app.state.sync_engine = sync_engine
    return app


@pytest_asyncio.fixture
async def client(webhook_app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing the API."""
    transport = ASGITransport(app=webhook_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
