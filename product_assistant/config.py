from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class Settings:
    """Configuration container for the model, catalog, cache tiers, and server."""
    gemini_api_key: str
    gemini_model: str
    data_path: Path
    prompts_dir: Path
    redis_url: str
    log_level: str
    query_cache_ttl: timedelta
    conversation_ttl: timedelta
    local_backfill_ttl: timedelta
    host: str
    port: int


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for default paths.
    Failure Modes: Non-integer TTL or PORT values raise ValueError.
    If Removed: App cannot locate the catalog or configure the cache tiers.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve the catalog directory, then build Settings.
    data_path = os.getenv("DATA_PATH")
    if data_path:
        data_dir = Path(data_path)
    else:
        data_dir = (BASE_DIR / ".." / "data").resolve()

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        data_path=data_dir,
        prompts_dir=(BASE_DIR / "prompts").resolve(),
        redis_url=os.getenv("REDIS_URL", "").strip(),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        query_cache_ttl=timedelta(seconds=int(os.getenv("QUERY_CACHE_TTL_SECONDS", "21600"))),
        conversation_ttl=timedelta(seconds=int(os.getenv("CONVERSATION_TTL_SECONDS", "86400"))),
        local_backfill_ttl=timedelta(seconds=int(os.getenv("LOCAL_BACKFILL_TTL_SECONDS", "300"))),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
