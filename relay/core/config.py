"""
Configuration helpers for the webhook relay.

Settings are read from environment variables once and cached, so that
routers, services and the store factory never touch os.environ directly.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
import os

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_DATA_FILE = PROJECT_ROOT / "data" / "registry.json"
DEFAULT_LOG_LIMIT = 50
DEFAULT_PAYLOAD_LIMIT = 2 * 1024 * 1024

_SIZE_UNITS = {"b": 1, "kb": 1024, "mb": 1024 * 1024, "gb": 1024 * 1024 * 1024}


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    host: str
    port: int
    public_host: str
    database_url: str
    database_schema: str
    data_file: str
    log_limit: int
    payload_limit: int
    admin_access: str
    log_level: str


def parse_size(value: str | None, default: int) -> int:
    """Parse "2mb", "512kb", "1024" into a byte count."""
    raw = (value or "").strip().lower()
    if not raw:
        return default
    for unit in ("gb", "mb", "kb", "b"):
        if raw.endswith(unit):
            number = raw[: -len(unit)].strip()
            try:
                return int(float(number) * _SIZE_UNITS[unit])
            except ValueError:
                return default
    try:
        return int(raw)
    except ValueError:
        return default


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str | None, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    host = os.getenv("HOST", "0.0.0.0")
    log_limit = _int(os.getenv("WEBHOOK_LOG_LIMIT"), DEFAULT_LOG_LIMIT)
    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        host=host,
        port=_int(os.getenv("PORT"), 4000),
        public_host=os.getenv("PUBLIC_HOST") or ("localhost" if host == "0.0.0.0" else host),
        database_url=(os.getenv("DATABASE_URL") or "").strip(),
        database_schema=(os.getenv("DATABASE_SCHEMA") or "").strip(),
        data_file=os.getenv("WEBHOOK_DATA_FILE") or str(DEFAULT_DATA_FILE),
        log_limit=log_limit if log_limit > 0 else DEFAULT_LOG_LIMIT,
        payload_limit=parse_size(os.getenv("WEBHOOK_PAYLOAD_LIMIT"), DEFAULT_PAYLOAD_LIMIT),
        admin_access=(os.getenv("ADMIN_ACCESS") or "").strip(),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
