"""
SQL persistence adapter (SQLAlchemy asyncio).

Every mutation is a single transaction whose first statement is a write, so
the database serialises concurrent deliveries to the same slug on the hook
row: ``hits = hits + 1`` never loses an update and the bounded log trim runs
under the same lock.
"""
from __future__ import annotations

from typing import Any, Mapping

import structlog
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from relay.db.models import Hook, HookLog
from relay.db.session import Base, build_engine, build_sessionmaker
from relay.domain.hooks import (
    DEFAULT_RECENT_LIMIT,
    RECENT_WINDOW,
    HookEntry,
    HookRecord,
    HookStats,
    clamp_limit,
    format_timestamp,
    generate_id,
    parse_timestamp,
    recent_entry,
    utc_now,
)
from relay.repositories.base import (
    HookConflictError,
    HookNotFoundError,
    HookStore,
    StoreConfigurationError,
)

logger = structlog.get_logger(__name__)

_SUMMARY_COLUMNS = (
    Hook.slug,
    Hook.description,
    Hook.meta,
    Hook.created_at,
    Hook.last_hit,
    Hook.hits,
)


def _ts(value) -> str | None:
    return format_timestamp(value) if value is not None else None


def _entity_to_entry(log: HookLog) -> HookEntry:
    entry: HookEntry = {
        "id": log.entry_id,
        "timestamp": format_timestamp(log.timestamp),
        "ip": log.ip,
        "body": log.body or "",
        "bodyPreview": log.body_preview or "",
        "isJson": bool(log.is_json),
        "byteSize": int(log.byte_size or 0),
    }
    for key, value in (("method", log.method), ("headers", log.headers), ("query", log.query)):
        if value is not None:
            entry[key] = value
    if log.formatted is not None:
        entry["formatted"] = log.formatted
    return entry


def _entity_to_hook(hook: Hook, logs: list[HookLog] | None = None) -> HookRecord:
    """Sanitize a row: no surrogate keys, metadata/logs never missing."""
    return {
        "id": hook.public_id,
        "slug": hook.slug,
        "description": hook.description or "",
        "metadata": dict(hook.meta or {}),
        "createdAt": format_timestamp(hook.created_at),
        "lastHit": _ts(hook.last_hit),
        "hits": int(hook.hits or 0),
        "logs": [_entity_to_entry(log) for log in logs or []],
    }


def _row_to_summary(row) -> dict:
    return {
        "slug": row.slug,
        "description": row.description or "",
        "metadata": dict(row.meta or {}),
        "createdAt": _ts(row.created_at),
        "lastHit": _ts(row.last_hit),
        "hits": int(row.hits or 0),
    }


def _entry_values(hook_pk: int, entry: Mapping[str, Any]) -> dict:
    return {
        "hook_pk": hook_pk,
        "entry_id": entry.get("id") or generate_id(12),
        "timestamp": parse_timestamp(entry.get("timestamp")),
        "method": entry.get("method"),
        "headers": entry.get("headers"),
        "query": entry.get("query"),
        "ip": entry.get("ip"),
        "body": entry.get("body") or "",
        "body_preview": entry.get("bodyPreview") or "",
        "is_json": bool(entry.get("isJson")),
        "formatted": entry.get("formatted"),
        "byte_size": int(entry.get("byteSize") or 0),
    }


class SQLHookStore(HookStore):
    """Hook registry stored in a SQL database."""

    def __init__(
        self,
        database_url: str | None,
        *,
        log_limit: int = 50,
        schema: str | None = None,
        engine_options: Mapping[str, Any] | None = None,
    ) -> None:
        if not (database_url or "").strip():
            raise StoreConfigurationError("A database URL is required for the SQL store.")
        if log_limit < 1:
            raise StoreConfigurationError("log_limit must be at least 1.")
        self.database_url = database_url
        self.schema = schema or None
        self.log_limit = log_limit
        self.engine_options = dict(engine_options or {})
        self.engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        if self._sessionmaker is not None:
            return
        engine = build_engine(self.database_url, schema=self.schema, **self.engine_options)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception:
            await engine.dispose()
            raise
        self.engine = engine
        self._sessionmaker = build_sessionmaker(engine)
        logger.info("SQL store ready", dialect=engine.dialect.name, schema=self.schema)

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
        self.engine = None
        self._sessionmaker = None

    def _session(self) -> AsyncSession:
        if self._sessionmaker is None:
            raise RuntimeError("Store not initialized")
        return self._sessionmaker()

    # -------------------------- reads --------------------------
    async def list_hooks(self) -> list[dict]:
        async with self._session() as session:
            rows = await session.execute(select(*_SUMMARY_COLUMNS).order_by(Hook.slug))
            return [_row_to_summary(row) for row in rows]

    async def list_recent_entries(self, limit: Any = DEFAULT_RECENT_LIMIT) -> list[dict]:
        stmt = (
            select(HookLog, Hook.slug)
            .join(Hook, Hook.pk == HookLog.hook_pk)
            .order_by(HookLog.timestamp.desc(), HookLog.seq.desc())
            .limit(clamp_limit(limit))
        )
        async with self._session() as session:
            rows = await session.execute(stmt)
            return [recent_entry(slug, _entity_to_entry(log)) for log, slug in rows]

    async def get_hook(self, slug: str) -> HookRecord | None:
        # one statement, so counters and logs come from the same snapshot
        stmt = (
            select(Hook, HookLog)
            .outerjoin(HookLog, HookLog.hook_pk == Hook.pk)
            .where(Hook.slug == slug)
            .order_by(HookLog.seq.desc())
            .limit(self.log_limit)
        )
        async with self._session() as session:
            rows = (await session.execute(stmt)).all()
        if not rows:
            return None
        hook = rows[0][0]
        return _entity_to_hook(hook, [log for _, log in rows if log is not None])

    async def get_stats(self) -> HookStats:
        cutoff = utc_now() - RECENT_WINDOW
        async with self._session() as session:
            hook_row = (
                await session.execute(
                    select(
                        func.count(Hook.pk),
                        func.coalesce(func.sum(Hook.hits), 0),
                        func.max(Hook.created_at),
                    )
                )
            ).one()
            last_payload = (await session.execute(select(func.max(HookLog.timestamp)))).scalar()
            recent_hits = (
                await session.execute(select(func.count(HookLog.seq)).where(HookLog.timestamp >= cutoff))
            ).scalar()
        return {
            "totalWebhooks": int(hook_row[0] or 0),
            "totalHits": int(hook_row[1] or 0),
            "lastPayloadAt": _ts(_as_datetime(last_payload)),
            "lastWebhookCreatedAt": _ts(_as_datetime(hook_row[2])),
            "hitsLast24h": int(recent_hits or 0),
        }

    # -------------------------- writes --------------------------
    async def create_hook(
        self,
        slug: str,
        description: str = "",
        metadata: Mapping[str, Any] | None = None,
    ) -> HookRecord:
        entity = Hook(
            public_id=generate_id(10),
            slug=slug,
            description=description or "",
            meta=dict(metadata or {}),
            created_at=utc_now(),
            last_hit=None,
            hits=0,
        )
        async with self._session() as session:
            session.add(entity)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise HookConflictError(slug) from exc
            return _entity_to_hook(entity, [])

    async def delete_hook(self, slug: str) -> bool:
        owner = select(Hook.pk).where(Hook.slug == slug).scalar_subquery()
        async with self._session() as session, session.begin():
            await session.execute(delete(HookLog).where(HookLog.hook_pk == owner))
            result = await session.execute(delete(Hook).where(Hook.slug == slug))
            return bool(result.rowcount)

    async def record_hit(self, slug: str, entry: HookEntry) -> HookEntry:
        values = dict(entry)
        async with self._session() as session, session.begin():
            result = await session.execute(
                update(Hook)
                .where(Hook.slug == slug)
                .values(hits=Hook.hits + 1, last_hit=parse_timestamp(values.get("timestamp")))
            )
            if not result.rowcount:
                raise HookNotFoundError(slug)
            hook_pk = (await session.execute(select(Hook.pk).where(Hook.slug == slug))).scalar_one()
            await session.execute(insert(HookLog).values(**_entry_values(hook_pk, values)))
            await self._trim_logs(session, hook_pk)
        return entry

    async def clear_logs(self, slug: str) -> HookRecord:
        async with self._session() as session:
            async with session.begin():
                result = await session.execute(
                    update(Hook).where(Hook.slug == slug).values(hits=0, last_hit=None)
                )
                if not result.rowcount:
                    raise HookNotFoundError(slug)
                owner = select(Hook.pk).where(Hook.slug == slug).scalar_subquery()
                await session.execute(delete(HookLog).where(HookLog.hook_pk == owner))
            hook = (await session.execute(select(Hook).where(Hook.slug == slug))).scalar_one()
            return _entity_to_hook(hook, [])

    async def import_hook(self, record: Mapping[str, Any]) -> bool:
        """Copy a full record (identity, counters, logs) in; False if the slug exists."""
        logs = list(record.get("logs") or [])[: self.log_limit]
        entity = Hook(
            public_id=record.get("id") or generate_id(10),
            slug=record["slug"],
            description=record.get("description") or "",
            meta=dict(record.get("metadata") or {}),
            created_at=parse_timestamp(record.get("createdAt")),
            last_hit=parse_timestamp(record["lastHit"]) if record.get("lastHit") else None,
            hits=int(record.get("hits") or 0),
        )
        async with self._session() as session:
            session.add(entity)
            try:
                await session.flush()
                # oldest first so insert order matches log order
                for entry in reversed(logs):
                    await session.execute(insert(HookLog).values(**_entry_values(entity.pk, entry)))
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return False
        return True

    async def _trim_logs(self, session: AsyncSession, hook_pk: int) -> None:
        """Delete every log row older than the newest ``log_limit`` rows."""
        boundary = (
            await session.execute(
                select(HookLog.seq)
                .where(HookLog.hook_pk == hook_pk)
                .order_by(HookLog.seq.desc())
                .offset(self.log_limit - 1)
                .limit(1)
            )
        ).scalar()
        if boundary is not None:
            await session.execute(
                delete(HookLog).where(HookLog.hook_pk == hook_pk, HookLog.seq < boundary)
            )


def _as_datetime(value):
    # some drivers return aggregate DateTime results as text
    if value is None or not isinstance(value, str):
        return value
    return parse_timestamp(value)
