"""Turn a raw request body into a delivery log entry."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Mapping

from relay.domain.hooks import HookEntry, format_timestamp, generate_id, utc_now

PREVIEW_LENGTH = 600


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _decode(raw: bytes | str | None) -> str:
    if raw is None:
        return ""
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw


def summarize_payload(raw: bytes | str | None) -> dict:
    body = _decode(raw)
    formatted = None
    if body:
        try:
            parsed = json.loads(body, parse_constant=_reject_constant)
        except ValueError:
            pass
        else:
            formatted = json.dumps(parsed, indent=2, ensure_ascii=False)

    summary = {
        "body": body,
        "bodyPreview": (formatted or body)[:PREVIEW_LENGTH],
        "isJson": formatted is not None,
        "byteSize": len(body.encode("utf-8")),
    }
    if formatted is not None:
        summary["formatted"] = formatted
    return summary


def build_entry(
    raw: bytes | str | None,
    *,
    method: str = "POST",
    headers: Mapping[str, str] | None = None,
    query: Mapping[str, str] | None = None,
    ip: str | None = None,
    now: datetime | None = None,
) -> HookEntry:
    entry: HookEntry = {
        "id": generate_id(12),
        "timestamp": format_timestamp(now or utc_now()),
        "method": (method or "POST").upper(),
        "headers": dict(headers or {}),
        "query": dict(query or {}),
        "ip": ip,
    }
    entry.update(summarize_payload(raw))
    return entry


class PayloadTooLargeError(ValueError):
    """Raised when a delivery body exceeds the configured payload limit."""

    status_code = 413

    def __init__(self, limit: int) -> None:
        super().__init__(f"Payload exceeds the {limit} byte limit.")
        self.limit = limit
