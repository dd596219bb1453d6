from __future__ import annotations

import sys
from copy import deepcopy
from typing import Any

from uvicorn.config import LOGGING_CONFIG

_DEBUG_LOG = False


def set_debug_logging(enabled: bool) -> None:
    global _DEBUG_LOG
    _DEBUG_LOG = enabled


def debug_log(message: str) -> None:
    if _DEBUG_LOG:
        print(f"[epubtag debug] {message}", file=sys.stderr)


def build_uvicorn_log_config(*, debug: bool = False) -> dict[str, Any]:
    """Return uvicorn's default logging config, raised to DEBUG on request."""
    config = deepcopy(LOGGING_CONFIG)
    if debug:
        for logger in config.get("loggers", {}).values():
            if isinstance(logger, dict) and "level" in logger:
                logger["level"] = "DEBUG"
    return config
