"""Store interface shared by the file and SQL engines, plus its error types."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from relay.domain.hooks import DEFAULT_RECENT_LIMIT, HookEntry, HookRecord, HookStats


class StoreError(Exception):
    """Base exception for store operations that callers map to a response."""

    status_code = 500


class HookConflictError(StoreError):
    """Raised when creating a slug that is already registered."""

    status_code = 409

    def __init__(self, slug: str) -> None:
        super().__init__(f'A webhook with slug "{slug}" already exists.')
        self.slug = slug


class HookNotFoundError(StoreError):
    """Raised when mutating a slug that is not registered."""

    status_code = 404

    def __init__(self, slug: str) -> None:
        super().__init__(f'Unknown webhook slug "{slug}".')
        self.slug = slug


class StoreConfigurationError(StoreError):
    """Raised when a store cannot be built from the supplied configuration."""


class HookStore(ABC):
    """Registry of hooks keyed by slug.

    Every record handed out is a disconnected copy in the external shape
    (see relay.domain.hooks), whichever engine produced it.
    """

    log_limit: int

    @abstractmethod
    async def init(self) -> None:
        """Prepare the backend (load the file or create the tables)."""

    async def close(self) -> None:
        """Release resources; pending writes are completed first."""

    @abstractmethod
    async def list_hooks(self) -> list[dict]:
        """Summaries (no logs), ordered by slug."""

    @abstractmethod
    async def list_recent_entries(self, limit: Any = DEFAULT_RECENT_LIMIT) -> list[dict]:
        """Log entries across all hooks, newest first."""

    @abstractmethod
    async def get_hook(self, slug: str) -> HookRecord | None:
        ...

    @abstractmethod
    async def create_hook(
        self,
        slug: str,
        description: str = "",
        metadata: Mapping[str, Any] | None = None,
    ) -> HookRecord:
        ...

    @abstractmethod
    async def delete_hook(self, slug: str) -> bool:
        ...

    @abstractmethod
    async def record_hit(self, slug: str, entry: HookEntry) -> HookEntry:
        ...

    @abstractmethod
    async def clear_logs(self, slug: str) -> HookRecord:
        ...

    @abstractmethod
    async def get_stats(self) -> HookStats:
        ...
