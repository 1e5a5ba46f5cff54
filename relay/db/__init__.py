"""Database helpers (engine/session export)."""

from .session import Base, async_database_url, build_engine, build_sessionmaker

__all__ = ["Base", "async_database_url", "build_engine", "build_sessionmaker"]
