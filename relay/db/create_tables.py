"""Utility script to create the initial database schema."""
from __future__ import annotations

import asyncio

from sqlalchemy.exc import SQLAlchemyError

from relay.core.config import get_settings
from .session import Base, build_engine
from . import models  # noqa: F401  # ensure models are imported for metadata


async def create_all(url: str | None = None, schema: str | None = None) -> None:
    settings = get_settings()
    engine = build_engine(url or settings.database_url, schema=schema or settings.database_schema or None)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    try:
        asyncio.run(create_all())
        print("Database tables created successfully.")
    except (SQLAlchemyError, RuntimeError) as exc:
        raise SystemExit(f"Failed to create tables: {exc}") from exc
