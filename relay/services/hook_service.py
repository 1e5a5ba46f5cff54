"""Hook use cases (registration, implicit creation, capture, reset)."""

from __future__ import annotations

from typing import Any, Mapping

import structlog

from relay.domain.hooks import DEFAULT_RECENT_LIMIT, HookEntry, HookRecord, HookStats
from relay.domain.payloads import build_entry
from relay.domain.slugs import validate_slug
from relay.repositories.base import HookConflictError, HookStore

logger = structlog.get_logger(__name__)


class MetadataValidationError(ValueError):
    """Raised when hook metadata is not a key-value mapping."""

    status_code = 400


def ensure_metadata(metadata: Any) -> dict:
    if metadata is None:
        return {}
    if not isinstance(metadata, Mapping):
        raise MetadataValidationError("Metadata must be an object.")
    return dict(metadata)


class HookService:
    """Validates input and orchestrates the active HookStore."""

    def __init__(self, store: HookStore) -> None:
        self.store = store

    async def register(
        self,
        slug: str,
        description: str | None = "",
        metadata: Any = None,
    ) -> tuple[HookRecord, bool]:
        """Create the hook, or return the existing one with ``already_existed``."""
        candidate = validate_slug(slug)
        meta = ensure_metadata(metadata)
        existing = await self.store.get_hook(candidate)
        if existing is not None:
            return existing, True
        hook = await self.store.create_hook(candidate, (description or "").strip(), meta)
        logger.info("Webhook registered", slug=candidate)
        return hook, False

    async def ensure_hook(self, slug: str) -> HookRecord:
        """Implicit creation on first delivery; idempotent under races."""
        hook = await self.store.get_hook(slug)
        if hook is not None:
            return hook
        try:
            hook = await self.store.create_hook(slug)
        except HookConflictError:
            hook = await self.store.get_hook(slug)
            if hook is None:
                raise
            return hook
        logger.info("Webhook auto-created", slug=slug)
        return hook

    async def capture(
        self,
        slug: str,
        raw: bytes | str | None,
        *,
        method: str = "POST",
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, str] | None = None,
        ip: str | None = None,
    ) -> HookEntry:
        await self.ensure_hook(slug)
        entry = build_entry(raw, method=method, headers=headers, query=query, ip=ip)
        await self.store.record_hit(slug, entry)
        logger.debug("Payload captured", slug=slug, reference=entry["id"], size=entry["byteSize"])
        return entry

    async def list_hooks(self) -> list[dict]:
        return await self.store.list_hooks()

    async def recent(self, limit: Any = DEFAULT_RECENT_LIMIT) -> list[dict]:
        return await self.store.list_recent_entries(limit)

    async def stats(self) -> HookStats:
        return await self.store.get_stats()

    async def get(self, slug: str) -> HookRecord | None:
        return await self.store.get_hook(slug)

    async def delete(self, slug: str) -> bool:
        deleted = await self.store.delete_hook(slug)
        if deleted:
            logger.info("Webhook deleted", slug=slug)
        return deleted

    async def reset(self, slug: str) -> HookRecord:
        hook = await self.store.clear_logs(slug)
        logger.info("Webhook reset", slug=slug)
        return hook
