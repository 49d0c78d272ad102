"""CRM integration layer -- Pipedrive gateway and upsert-and-advance sync.

Provides:
- DealGateway: abstract remote deal operations (search, fetch, create, update)
- PipedriveGateway / PipedriveConfig: production gateway over Pipedrive v1/v2
- RetryExecutor: per-call exponential backoff for 429 and network failures
- PipedriveTransport: httpx transport returning Ok/Err tagged results
- SyncEngine: create-or-update a deal and move it to Funded when performing
"""

from src.lendsync.deals.crm.adapter import DealGateway
from src.lendsync.deals.crm.field_mapping import (
    DEAL_FIELD_KEYS,
    PIPELINE_ID,
    build_deal_fields,
)
from src.lendsync.deals.crm.pipedrive import PipedriveConfig, PipedriveGateway
from src.lendsync.deals.crm.retry import RetryExecutor
from src.lendsync.deals.crm.sync import SyncEngine
from src.lendsync.deals.crm.transport import Err, ErrorKind, Ok, PipedriveTransport

__all__ = [
    "DealGateway",
    "PipedriveConfig",
    "PipedriveGateway",
    "PipedriveTransport",
    "RetryExecutor",
    "SyncEngine",
    "Ok",
    "Err",
    "ErrorKind",
    "DEAL_FIELD_KEYS",
    "PIPELINE_ID",
    "build_deal_fields",
]
