"""Append-only audit trail for privileged writes."""

import json
import logging
from datetime import datetime, timezone

audit_logger = logging.getLogger("school_gateway.audit")


def record_upload(user_id: str, bucket: str, file_name: str, size_bytes: int, content_type: str) -> None:
    """Emit one JSON line describing an upload. Failures are logged and swallowed."""
    try:
        entry = {
            "event": "upload",
            "user_id": user_id,
            "bucket": bucket,
            "file_name": file_name,
            "size_bytes": size_bytes,
            "content_type": content_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        audit_logger.info(f"[AUDIT] {json.dumps(entry, sort_keys=True)}")
    except Exception as e:
        logging.warning(f"Failed to write audit log entry for {bucket}/{file_name}: {str(e)}")
