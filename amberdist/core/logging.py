from __future__ import annotations

import logging

from amberdist.core.config import get_settings


_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    # Configure the root logger once so API, worker, and scripts share one format.
    resolved = (level or get_settings().log_level or "INFO").upper()
    root = logging.getLogger()
    root.setLevel(resolved)
    if any(getattr(handler, "_amberdist", False) for handler in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    handler._amberdist = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    # Keep HTTP client request lines out of INFO logs; webhook outcomes are logged explicitly.
    logging.getLogger("httpx").setLevel(max(logging.WARNING, root.level))
