"""Pipedrive schema ids and the LendSaaS -> Pipedrive deal field mapping.

Defines:
- PIPELINE_ID: the Pipedrive pipeline every synced deal lives in.
- DEAL_FIELD_KEYS: named custom-field slots -> Pipedrive custom field hash keys.
- coerce_number / coerce_text: loose value coercion for LendSaaS payload values.
- build_deal_fields(): assembles the sparse DealFieldSet for one InboundEvent.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from src.lendsync.deals.schemas import DealFieldSet, InboundEvent


# ── Pipedrive schema ids ───────────────────────────────────────────────────
# Tied to one Pipedrive account; stage ids live in schemas.PipelineStage.

PIPELINE_ID = 3

DEAL_FIELD_KEYS: dict[str, str] = {
    "dealId": "56cb809cf0009cc189b968c54231dc32529b1ed3",
    "amount": "02d50bd14fd4bbc20a07e72727dc96762a89f7ec",
    "factorRate": "cd0317ac6d05f9d1f370a48c9f741bc0c664e591",
    "termDays": "0585cd0555bdfcd14e9bdeeac660487096fcbbfe",
    "payFreq": "7d9cb77d0d9a2245678c4973d5907b383fa501ea",
    "origFee": "efb0a2350341e08af9e14a3cce1996be6ba933f8",
    "isoCommission": "625d0abbd2dc7125fff559117ee1f019ceadbf8e",
    "payStatus": "234193038359da67c9b84d74996ad5de101e658c",
    "offerId": "84eca0981d035197e686b51932f4265aad2ed6ea",
}

# Optional slots: (slot name, InboundEvent attribute, value type).
OPTIONAL_SLOTS: tuple[tuple[str, str, str], ...] = (
    ("factorRate", "factor_rate", "text"),
    ("termDays", "term", "number"),
    ("payFreq", "payment_frequency", "text"),
    ("origFee", "origination_fee", "number"),
    ("isoCommission", "commission_percentage", "number"),
    ("payStatus", "payment_status", "text"),
    ("offerId", "offer_id", "number"),
)


# ── Coercion ───────────────────────────────────────────────────────────────


def coerce_number(value: Any) -> int | float | None:
    """Coerce a loosely typed value to a number, or None if it is not one.

    Integral values come back as int so that titles read "$5000", not
    "$5000.0". Blank strings count as 0.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float, Decimal)):
        try:
            number = float(value)
        except OverflowError:
            # ints beyond float range
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    if number.is_integer():
        return int(number)
    return number


def coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


_COERCERS = {"number": coerce_number, "text": coerce_text}


# ── Field set assembly ─────────────────────────────────────────────────────


def deal_amount(event: InboundEvent) -> int | float:
    """Deal amount, 0 when absent or not numeric."""
    amount = coerce_number(event.amount)
    return 0 if amount is None else amount


def deal_title(event: InboundEvent, amount: int | float) -> str:
    borrower = event.borrower_name or "New Deal"
    return f"{borrower} - ${amount}"


def build_deal_fields(
    event: InboundEvent,
    pipeline_id: int = PIPELINE_ID,
    field_keys: Mapping[str, str] | None = None,
) -> DealFieldSet:
    """Build the sparse Pipedrive field set for an inbound LendSaaS event.

    Custom fields are top-level keys on the deal body (no ``custom_fields``
    wrapper). Optional slots with no incoming value are left out entirely.
    """
    keys = DEAL_FIELD_KEYS if field_keys is None else field_keys
    amount = deal_amount(event)

    fields = DealFieldSet()
    fields.put("title", deal_title(event, amount))
    fields.put("value", amount)
    fields.put("pipeline_id", pipeline_id)
    fields.put(keys["dealId"], event.external_id)
    fields.put(keys["amount"], amount)

    for slot, attribute, value_type in OPTIONAL_SLOTS:
        fields.put(keys[slot], _COERCERS[value_type](getattr(event, attribute)))

    return fields
