from .record_schema import (
    RECORD_FORMAT, IpAddressField, IpRecordSchema, PayloadField,
    UpsertRequestSchema, validate_payload,
)
from .entry_schema import (
    ENTRY_FORMAT, EntryDataSchema, EntrySchema, SearchQuerySchema,
)

__all__ = [
    'RECORD_FORMAT', 'ENTRY_FORMAT', 'IpAddressField', 'IpRecordSchema',
    'PayloadField', 'UpsertRequestSchema', 'validate_payload',
    'EntryDataSchema', 'EntrySchema', 'SearchQuerySchema',
]
