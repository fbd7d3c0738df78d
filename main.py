#!/usr/bin/env python3
"""
Lotto Lens FastAPI Application Entrypoint

All routes live in lotto_lens/api.py; this file only starts uvicorn.
Reads HOST, PORT, LOG_LEVEL from environment (loaded from .env when available).
"""

from dotenv import load_dotenv

load_dotenv()

from lotto_lens.api import app  # noqa: E402
from lotto_lens.config import get_settings  # noqa: E402

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    log_level = settings.log_level.lower()
    # Uvicorn supported levels: critical, error, warning, info, debug, trace
    if log_level not in {"critical", "error", "warning", "info", "debug", "trace"}:
        log_level = "info"

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=log_level)
