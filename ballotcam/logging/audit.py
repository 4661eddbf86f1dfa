from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ballotcam.logging.logger import get_logger


def safe_excerpt(value: str, *, max_len: int = 80) -> str:
    compact = " ".join(value.split())
    if len(compact) <= max_len:
        return compact
    return f"{compact[:max_len]}..."


def audit_event(event: str, **fields: Any) -> None:
    logger = get_logger()
    timestamp = datetime.now(tz=timezone.utc).isoformat()
    payload = {"event": event, "timestamp": timestamp, **fields}
    logger.info("audit %s", payload)
