"""Deal sync module -- LendSaaS webhook schemas, error taxonomy, and the Pipedrive CRM layer.

Provides Pydantic schemas (InboundEvent, DealReference, UpsertResult), the
sparse DealFieldSet, and the DealSyncError hierarchy used by the webhook API.
"""
