from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any

DEBUG_LOG_ENV_VAR = "S2E_DEBUG_LOG"

logger = logging.getLogger(__name__)


def debug_log_path() -> Path | None:
    raw = os.getenv(DEBUG_LOG_ENV_VAR, "").strip()
    return Path(raw).expanduser() if raw else None


def debug_log(
    *,
    location: str,
    message: str,
    data: dict[str, Any],
    path: Path | None = None,
) -> None:
    """Append one JSONL trace record when a debug log file is configured."""
    target = path or debug_log_path()
    if target is None:
        return

    payload = {
        "id": f"log_{time.time_ns()}",
        "timestamp": int(time.time() * 1000),
        "location": location,
        "message": message,
        "data": data,
    }
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "a", encoding="utf-8") as debug_file:
            debug_file.write(json.dumps(payload, ensure_ascii=True, default=str) + "\n")
    except OSError as exc:
        logger.warning("Could not write debug log %s: %s", target, exc)
