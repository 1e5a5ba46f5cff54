"""Single choice point for the hook store backend."""
from __future__ import annotations

from typing import Any, Mapping

import structlog

from relay.core.config import DEFAULT_LOG_LIMIT, Settings
from relay.repositories.base import HookStore, StoreConfigurationError
from relay.repositories.json_storage import FileHookStore
from relay.repositories.sql_repository import SQLHookStore

logger = structlog.get_logger(__name__)


def create_hook_store(
    *,
    database_url: str | None = None,
    data_file: str | None = None,
    log_limit: int = DEFAULT_LOG_LIMIT,
    database_schema: str | None = None,
    engine_options: Mapping[str, Any] | None = None,
) -> HookStore:
    """A database URL selects the SQL store; otherwise the JSON file is used."""
    if (database_url or "").strip():
        logger.info("Using SQL hook store", schema=database_schema or None)
        return SQLHookStore(
            database_url,
            log_limit=log_limit,
            schema=database_schema,
            engine_options=engine_options,
        )
    if not data_file:
        raise StoreConfigurationError("A data file must be provided when no database URL is set.")
    logger.info("Using JSON file hook store", path=str(data_file))
    return FileHookStore(data_file, log_limit=log_limit)


def store_from_settings(settings: Settings) -> HookStore:
    return create_hook_store(
        database_url=settings.database_url,
        data_file=settings.data_file,
        log_limit=settings.log_limit,
        database_schema=settings.database_schema or None,
    )
