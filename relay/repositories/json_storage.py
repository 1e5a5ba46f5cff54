"""
JSON file persistence adapter.

The whole registry lives in memory and is mirrored to a single document
(``{"hooks": {<slug>: <record>}}``) after each mutation. Flushes are
coalesced: while one write is running, further mutations only raise a
pending flag and the running flush loops once more to pick them up.
"""

from __future__ import annotations

import asyncio
import copy
import json
import os
from pathlib import Path
from typing import Any, Mapping

import structlog

from relay.domain.hooks import (
    DEFAULT_RECENT_LIMIT,
    HookEntry,
    HookRecord,
    HookStats,
    compute_stats,
    hook_summary,
    new_hook,
    recent_entry,
    sort_recent,
)
from relay.repositories.base import (
    HookConflictError,
    HookNotFoundError,
    HookStore,
    StoreConfigurationError,
)

logger = structlog.get_logger(__name__)


def load(path: Path) -> Any:
    """Read the raw document; an empty file counts as an empty registry."""
    raw = path.read_text(encoding="utf-8")
    return json.loads(raw or '{"hooks": {}}')


def save(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_text(payload, encoding="utf-8")
    os.replace(tmp, path)


def db_defaults(db: Any, log_limit: int) -> dict:
    """Normalise a parsed document into the expected shape."""
    if not isinstance(db, dict):
        db = {}
    hooks = db.get("hooks")
    if not isinstance(hooks, dict):
        hooks = {}
    for slug, hook in list(hooks.items()):
        if not isinstance(hook, dict):
            del hooks[slug]
            continue
        hook.setdefault("slug", slug)
        hook.setdefault("description", "")
        hook.setdefault("lastHit", None)
        hook["hits"] = int(hook.get("hits") or 0)
        if not isinstance(hook.get("metadata"), dict):
            hook["metadata"] = {}
        logs = hook.get("logs")
        hook["logs"] = logs[:log_limit] if isinstance(logs, list) else []
    db["hooks"] = hooks
    return db


class FileHookStore(HookStore):
    """In-process registry mirrored to a JSON file (single process only)."""

    def __init__(self, file_path: str | os.PathLike, *, log_limit: int = 50) -> None:
        if log_limit < 1:
            raise StoreConfigurationError("log_limit must be at least 1.")
        self.file_path = Path(file_path)
        self.log_limit = log_limit
        self._state: dict = {"hooks": {}}
        self._write_task: asyncio.Task | None = None
        self._pending_flush = False
        self._loaded = False

    @property
    def _hooks(self) -> dict[str, HookRecord]:
        return self._state["hooks"]

    async def init(self) -> None:
        if self._loaded:
            return
        try:
            raw = await asyncio.to_thread(load, self.file_path)
        except FileNotFoundError:
            self._state = db_defaults(self._state, self.log_limit)
            try:
                await asyncio.to_thread(save, self.file_path, self._serialize())
            except OSError as exc:
                logger.warning(
                    "Could not create registry file, keeping registry in memory only",
                    path=str(self.file_path),
                    error=str(exc),
                )
            self._loaded = True
            return
        self._state = db_defaults(raw, self.log_limit)
        self._loaded = True
        logger.info("Registry loaded", path=str(self.file_path), hooks=len(self._hooks))

    async def close(self) -> None:
        task = self._write_task
        if task is not None:
            await task

    async def list_hooks(self) -> list[dict]:
        return [hook_summary(self._hooks[slug]) for slug in sorted(self._hooks)]

    async def list_recent_entries(self, limit: Any = DEFAULT_RECENT_LIMIT) -> list[dict]:
        entries = [
            recent_entry(hook["slug"], log)
            for hook in self._hooks.values()
            for log in hook["logs"]
        ]
        return copy.deepcopy(sort_recent(entries, limit))

    async def get_hook(self, slug: str) -> HookRecord | None:
        hook = self._hooks.get(slug)
        if hook is None:
            return None
        return copy.deepcopy(hook)

    async def create_hook(
        self,
        slug: str,
        description: str = "",
        metadata: Mapping[str, Any] | None = None,
    ) -> HookRecord:
        if slug in self._hooks:
            raise HookConflictError(slug)
        hook = new_hook(slug, description, copy.deepcopy(dict(metadata or {})))
        self._hooks[slug] = hook
        await asyncio.shield(self._schedule_persist())
        return copy.deepcopy(hook)

    async def delete_hook(self, slug: str) -> bool:
        if slug not in self._hooks:
            return False
        del self._hooks[slug]
        await asyncio.shield(self._schedule_persist())
        return True

    async def record_hit(self, slug: str, entry: HookEntry) -> HookEntry:
        hook = self._hooks.get(slug)
        if hook is None:
            raise HookNotFoundError(slug)
        stored = copy.deepcopy(dict(entry))
        hook["hits"] += 1
        hook["lastHit"] = stored.get("timestamp")
        hook["logs"].insert(0, stored)
        del hook["logs"][self.log_limit:]
        # durability follows shortly; the caller does not wait for the disk
        self._schedule_persist()
        return entry

    async def clear_logs(self, slug: str) -> HookRecord:
        hook = self._hooks.get(slug)
        if hook is None:
            raise HookNotFoundError(slug)
        hook["logs"] = []
        hook["hits"] = 0
        hook["lastHit"] = None
        await asyncio.shield(self._schedule_persist())
        return copy.deepcopy(hook)

    async def get_stats(self) -> HookStats:
        return compute_stats(self._hooks.values())

    # -------------------------- flushing --------------------------
    def _serialize(self) -> str:
        return json.dumps(self._state, ensure_ascii=False, indent=2)

    def _schedule_persist(self) -> asyncio.Task:
        """Start a flush, or mark one pending if a flush is already running.

        The returned task finishes only after a flush that includes every
        mutation made before this call. Awaiting callers shield it, so a
        cancelled caller never cancels the shared write.
        """
        if self._write_task is not None:
            self._pending_flush = True
            return self._write_task
        self._write_task = asyncio.create_task(self._flush_loop())
        return self._write_task

    async def _flush_loop(self) -> None:
        try:
            while True:
                self._pending_flush = False
                await self._persist()
                if not self._pending_flush:
                    break
        finally:
            self._write_task = None

    async def _persist(self) -> None:
        try:
            payload = self._serialize()
            await asyncio.to_thread(save, self.file_path, payload)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Failed to persist webhook store", path=str(self.file_path), error=str(exc))
