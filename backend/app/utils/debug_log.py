"""
NDJSON debug trail.

One JSON object per line: ``event``, a UTC ``timestamp`` and the caller's
fields. Chat turns and synchronization runs write here so a conversation or a
sync run can be reconstructed without raising the log level.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from app.core.config import settings

BACKEND_ROOT = Path(__file__).resolve().parents[2]
DEBUG_LOG_PATH = BACKEND_ROOT / settings.LOG_DIR / settings.DEBUG_LOG_FILE


def debug_log(event: str, **fields: Any) -> None:
    """Append one record for ``event``. Never raises."""
    if not settings.DEBUG_LOG_ENABLED:
        return
    record = {"event": event, "timestamp": datetime.now(timezone.utc).isoformat(), **fields}
    try:
        DEBUG_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
        with DEBUG_LOG_PATH.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
    except (OSError, TypeError, ValueError):
        # The trail is best effort; requests never fail on it
        pass
