"""Removes payment receipts older than a day from the receipt bucket."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from shop.services.logging import log_event


RECEIPT_BUCKET = "payment-receipts"


def cleanup_old_receipts(
    storage,
    bucket: str = RECEIPT_BUCKET,
    *,
    max_age: timedelta = timedelta(days=1),
    page_size: int = 1000,
    batch_size: int = 100,
    now: Optional[datetime] = None,
) -> Dict:
    now = now or datetime.now(timezone.utc)
    cutoff = now - max_age

    old_files: List[str] = []
    offset = 0
    while True:
        files = storage.list_files(bucket, limit=page_size, offset=offset)
        if not files:
            break
        old_files.extend(f["name"] for f in files if f.get("created_at") and f["created_at"] < cutoff)
        if len(files) < page_size:
            break
        # listings are oldest first, a fresh last entry means nothing older follows
        last = files[-1].get("created_at")
        if last and last >= cutoff:
            break
        offset += page_size

    if not old_files:
        log_event("info", "receipts.cleanup", bucket=bucket, deleted_count=0)
        return {"success": True, "message": "No old receipts to delete", "deleted_count": 0}

    deleted: List[str] = []
    for start in range(0, len(old_files), batch_size):
        batch = old_files[start : start + batch_size]
        storage.remove(bucket, batch)
        deleted.extend(batch)

    log_event("info", "receipts.cleanup", bucket=bucket, deleted_count=len(deleted))
    return {
        "success": True,
        "message": f"Successfully deleted {len(deleted)} old receipt(s)",
        "deleted_count": len(deleted),
        "deleted_files": deleted,
        "timestamp": now.isoformat(),
    }
