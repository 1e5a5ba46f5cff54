"""
Hook record model shared by every store.

Records travel as plain dicts with the external (camelCase) keys so that the
file store can persist them verbatim and the SQL store can render rows into
exactly the same shape.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, TypedDict

DEFAULT_RECENT_LIMIT = 20
MAX_RECENT_LIMIT = 100
RECENT_WINDOW = timedelta(hours=24)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class HookEntry(TypedDict, total=False):
    id: str
    timestamp: str
    method: str
    headers: dict[str, str]
    query: dict[str, str]
    ip: str | None
    body: str
    bodyPreview: str
    isJson: bool
    formatted: str
    byteSize: int


class HookRecord(TypedDict):
    id: str
    slug: str
    description: str
    metadata: dict[str, Any]
    createdAt: str
    lastHit: str | None
    hits: int
    logs: list[HookEntry]


class HookStats(TypedDict):
    totalWebhooks: int
    totalHits: int
    lastPayloadAt: str | None
    lastWebhookCreatedAt: str | None
    hitsLast24h: int


def generate_id(length: int = 10) -> str:
    """Opaque URL-safe identifier."""
    token = secrets.token_urlsafe(length)
    while len(token) < length:
        token += secrets.token_urlsafe(length)
    return token[:length]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render as 2024-01-31T12:00:00.000Z (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str | datetime | None) -> datetime:
    """Parse a stored timestamp; unparseable values sort as the epoch."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not value:
        return _EPOCH
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return _EPOCH
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def new_hook(slug: str, description: str = "", metadata: Mapping[str, Any] | None = None) -> HookRecord:
    return {
        "id": generate_id(10),
        "slug": slug,
        "description": description or "",
        "metadata": dict(metadata or {}),
        "createdAt": format_timestamp(utc_now()),
        "lastHit": None,
        "hits": 0,
        "logs": [],
    }


def hook_summary(hook: Mapping[str, Any]) -> dict:
    return {
        "slug": hook["slug"],
        "description": hook.get("description") or "",
        "metadata": dict(hook.get("metadata") or {}),
        "createdAt": hook.get("createdAt"),
        "lastHit": hook.get("lastHit"),
        "hits": int(hook.get("hits") or 0),
    }


def recent_entry(slug: str, entry: Mapping[str, Any]) -> dict:
    item = {
        "slug": slug,
        "timestamp": entry.get("timestamp"),
        "body": entry.get("body"),
        "bodyPreview": entry.get("bodyPreview"),
        "isJson": bool(entry.get("isJson")),
        "byteSize": entry.get("byteSize"),
        "reference": entry.get("id"),
    }
    if entry.get("formatted") is not None:
        item["formatted"] = entry["formatted"]
    return item


def clamp_limit(limit: Any, default: int = DEFAULT_RECENT_LIMIT) -> int:
    """Coerce a caller-supplied limit into [1, MAX_RECENT_LIMIT]."""
    try:
        value = int(limit)
    except (TypeError, ValueError):
        value = 0
    if value == 0:
        value = default
    return max(1, min(value, MAX_RECENT_LIMIT))


def sort_recent(entries: Iterable[dict], limit: Any = DEFAULT_RECENT_LIMIT) -> list[dict]:
    ordered = sorted(entries, key=lambda item: parse_timestamp(item.get("timestamp")), reverse=True)
    return ordered[: clamp_limit(limit)]


def compute_stats(hooks: Iterable[Mapping[str, Any]], now: datetime | None = None) -> HookStats:
    """Aggregate counters across hooks; the 24h window only sees retained logs."""
    cutoff = (now or utc_now()) - RECENT_WINDOW
    total_webhooks = 0
    total_hits = 0
    last_payload: datetime | None = None
    last_created: datetime | None = None
    recent_hits = 0

    for hook in hooks:
        total_webhooks += 1
        total_hits += int(hook.get("hits") or 0)
        created = parse_timestamp(hook.get("createdAt"))
        if last_created is None or created > last_created:
            last_created = created
        for log in hook.get("logs") or []:
            ts = parse_timestamp(log.get("timestamp"))
            if last_payload is None or ts > last_payload:
                last_payload = ts
            if ts >= cutoff:
                recent_hits += 1

    return {
        "totalWebhooks": total_webhooks,
        "totalHits": total_hits,
        "lastPayloadAt": format_timestamp(last_payload) if last_payload else None,
        "lastWebhookCreatedAt": format_timestamp(last_created) if last_created else None,
        "hitsLast24h": recent_hits,
    }
