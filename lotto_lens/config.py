# Configuration - CENTRALIZED for the ticket reader
"""
All environment driven settings live here so the API, the client and the
scanner read the same values. Values come from the process environment; main.py
loads a .env file into it first with python-dotenv.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from loguru import logger

DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
DEFAULT_SAZKA_API_BASE_URL = "https://www.sazka.cz/api/draw-info/draws/universal/sportka"
DEFAULT_MAX_UPLOAD_MB = 25


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {raw!r}, using {default}")
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number for {name}: {raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    firebase_project_id: Optional[str] = None
    allowed_user_email: Optional[str] = None
    sazka_api_base_url: str = DEFAULT_SAZKA_API_BASE_URL
    lookup_timeout: float = 15.0
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_MB * 1024 * 1024
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    api_base_url: str = "http://localhost:8000"


def load_settings() -> Settings:
    """Read settings from the environment (no caching)."""
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
        gemini_model=os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
        firebase_project_id=os.getenv("FIREBASE_PROJECT_ID") or None,
        allowed_user_email=os.getenv("ALLOWED_USER_EMAIL") or None,
        sazka_api_base_url=os.getenv("SAZKA_API_BASE_URL", DEFAULT_SAZKA_API_BASE_URL).rstrip("/"),
        lookup_timeout=_float_env("LOOKUP_TIMEOUT", 15.0),
        max_upload_bytes=_int_env("MAX_UPLOAD_MB", DEFAULT_MAX_UPLOAD_MB) * 1024 * 1024,
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        host=os.getenv("HOST", "0.0.0.0"),
        port=_int_env("PORT", 8000),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        api_base_url=os.getenv("API_BASE_URL", "http://localhost:8000").rstrip("/"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings for the running process."""
    return load_settings()
