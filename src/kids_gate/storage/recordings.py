"""Upload of read-aloud recordings."""

import uuid

import structlog

from kids_gate.exceptions import BackendError
from kids_gate.storage.record_store import RecordStore

logger = structlog.get_logger()


async def upload_recording(
    store: RecordStore,
    bucket: str,
    data: bytes,
    content_type: str = "audio/m4a",
) -> str | None:
    """Upload a recording and return its reference, or None if it failed.

    Store errors are logged and yield None.
    """
    if not data:
        return None
    name = f"lecture_{uuid.uuid4()}.m4a"
    try:
        reference = await store.upload(bucket, name, data, content_type)
    except BackendError as e:
        logger.error("recording_upload_failed", name=name, error=str(e))
        return None
    logger.info("recording_uploaded", name=name, size=len(data))
    return reference
