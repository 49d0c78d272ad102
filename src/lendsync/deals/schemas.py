"""Pydantic schemas for the LendSaaS webhook payload and Pipedrive deal sync.

Defines:
- Enums: PipelineStage, UpsertAction
- InboundEvent: the LendSaaS webhook body (PascalCase keys, loosely typed)
- DealFieldSet: sparse slot -> value mapping sent to Pipedrive
- DealReference: remote deal id + current stage from a search hit or fetch
- UpsertResult: outcome of one upsert-and-advance run
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ───────────────────────────────────────────────────────────────────


class PipelineStage(int, Enum):
    """Pipedrive stage ids this integration knows about (pipeline 3)."""

    NEW_SUBMISSION = 11
    FUNDED = 18


class UpsertAction(str, Enum):
    """What the workflow did with the remote deal."""

    CREATED = "created"
    UPDATED = "updated"


# ── Inbound ─────────────────────────────────────────────────────────────────


class InboundEvent(BaseModel):
    """LendSaaS webhook payload.

    Values are kept exactly as received; LendSaaS sends numbers as strings
    and vice versa, so coercion happens when the field set is built.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    deal_id: Any = Field(default=None, alias="DealId")
    borrower_name: Any = Field(default=None, alias="BorrowerName")
    amount: Any = Field(default=None, alias="Amount")
    factor_rate: Any = Field(default=None, alias="FactorRate")
    term: Any = Field(default=None, alias="Term")
    payment_frequency: Any = Field(default=None, alias="PaymentFrequency")
    origination_fee: Any = Field(default=None, alias="OriginationFee")
    commission_percentage: Any = Field(default=None, alias="CommissionPercentage")
    payment_status: Any = Field(default=None, alias="PaymentStatus")
    offer_id: Any = Field(default=None, alias="OfferId")

    @property
    def has_deal_id(self) -> bool:
        """True when DealId is present and truthy (not null, empty or 0)."""
        return bool(self.deal_id)

    @property
    def external_id(self) -> str:
        return str(self.deal_id)


# ── Outbound ────────────────────────────────────────────────────────────────


class DealFieldSet(Mapping[str, Any]):
    """Sparse mapping of Pipedrive deal field -> value.

    ``put`` silently drops None so that a partial update never overwrites
    an existing remote value with null.
    """

    def __init__(self) -> None:
        self._fields: dict[str, Any] = {}

    def put(self, slot: str, value: Any) -> DealFieldSet:
        if value is not None:
            self._fields[slot] = value
        return self

    def with_stage(self, stage_id: int) -> dict[str, Any]:
        """Payload copy with ``stage_id`` set (used on create only)."""
        return {**self._fields, "stage_id": stage_id}

    def to_payload(self) -> dict[str, Any]:
        return dict(self._fields)

    def __getitem__(self, slot: str) -> Any:
        return self._fields[slot]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"DealFieldSet({self._fields!r})"


class DealReference(BaseModel):
    """Remote Pipedrive deal id plus its stage at read time."""

    id: int | str
    stage_id: int | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> DealReference | None:
        """Build from a Pipedrive deal/search item; None if there is no id."""
        if not payload or payload.get("id") is None:
            return None
        return cls(id=payload["id"], stage_id=payload.get("stage_id"))


class UpsertResult(BaseModel):
    """Outcome of SyncEngine.upsert_and_advance."""

    action: UpsertAction
    deal_id: int | str
    stage_moved: bool = False
