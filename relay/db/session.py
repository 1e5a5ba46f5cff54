"""Async engine/session helpers for the SQL backend."""
from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()

_ASYNC_DRIVERS = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


def async_database_url(url: str) -> str:
    """Upgrade plain postgres/sqlite URLs to their asyncio drivers."""
    value = (url or "").strip()
    for prefix, replacement in _ASYNC_DRIVERS.items():
        if value.startswith(prefix):
            return replacement + value[len(prefix):]
    return value


def build_engine(url: str, *, schema: str | None = None, **options: Any) -> AsyncEngine:
    if not (url or "").strip():
        raise RuntimeError("DATABASE_URL must be configured to use the SQL backend.")
    engine = create_async_engine(async_database_url(url), future=True, pool_pre_ping=True, **options)
    if schema:
        engine = engine.execution_options(schema_translate_map={None: schema})
    return engine


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)
