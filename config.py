import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        statement_timeout_ms: int,
        cache_max_items: int,
        cache_max_bytes: int,
        fx_rates_path: Optional[str],
        max_limit: int,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.statement_timeout_ms = statement_timeout_ms
        self.cache_max_items = cache_max_items
        self.cache_max_bytes = cache_max_bytes
        self.fx_rates_path = fx_rates_path
        self.max_limit = max_limit
        self.log_level = log_level


def _data_dir() -> Path:
    return Path(os.getenv("ANALYTICS_DATA_DIR", "./data")).resolve()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("ANALYTICS_DATABASE_URL")
    if not database_url:
        default_db = _data_dir() / "analytics.db"
        database_url = f"sqlite:///{default_db}"
    statement_timeout_ms = int(os.getenv("ANALYTICS_STATEMENT_TIMEOUT_MS", "15000"))
    cache_max_items = int(os.getenv("ANALYTICS_CACHE_MAX_ITEMS", "10000"))
    cache_max_bytes = int(
        os.getenv("ANALYTICS_CACHE_MAX_BYTES", str(100 * 1024 * 1024))
    )
    fx_rates_path = os.getenv("ANALYTICS_FX_RATES_PATH") or None
    max_limit = int(os.getenv("ANALYTICS_MAX_LIMIT", "1000"))
    log_level = os.getenv("ANALYTICS_LOG_LEVEL", "INFO")
    return Settings(
        database_url=database_url,
        statement_timeout_ms=statement_timeout_ms,
        cache_max_items=cache_max_items,
        cache_max_bytes=cache_max_bytes,
        fx_rates_path=fx_rates_path,
        max_limit=max_limit,
        log_level=log_level,
    )


def configure_logging() -> None:
    """Set up root logging for entrypoints. Library modules only log."""
    level = getattr(logging, get_settings().log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger().setLevel(level)
