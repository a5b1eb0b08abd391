"""Record store backends and the profile-scoped storage modules built on them."""

from kids_gate.storage.record_store import (
    JsonRecordStore,
    RecordStore,
    RestRecordStore,
    create_record_store,
)

__all__ = [
    "JsonRecordStore",
    "RecordStore",
    "RestRecordStore",
    "create_record_store",
]
