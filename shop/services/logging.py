import json
import os
import sys
from datetime import datetime, timezone


LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}


def _threshold() -> int:
    return LEVELS.get(os.getenv("LOG_LEVEL", "INFO").lower(), 20)


def log_event(level: str, event: str, **fields) -> None:
    """One JSON line per domain event; warnings and errors go to stderr."""
    level = level.lower()
    if LEVELS.get(level, 20) < _threshold():
        return
    payload = {
        "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "level": level,
        "event": event,
    }
    payload.update(fields or {})
    stream = sys.stderr if LEVELS.get(level, 20) >= 30 else sys.stdout
    try:
        stream.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
    except (OSError, ValueError):
        # closed stream at interpreter shutdown
        pass
