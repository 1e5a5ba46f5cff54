from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Make the relay package importable during local test runs
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from relay.domain.hooks import (  # noqa: E402
    clamp_limit,
    compute_stats,
    format_timestamp,
    generate_id,
    hook_summary,
    new_hook,
    parse_timestamp,
    sort_recent,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _iso(delta: timedelta) -> str:
    return format_timestamp(NOW - delta)


def test_timestamps_round_trip_with_millisecond_precision():
    value = datetime(2024, 1, 31, 8, 5, 3, 123456, tzinfo=timezone.utc)
    text = format_timestamp(value)
    assert text == "2024-01-31T08:05:03.123Z"
    assert parse_timestamp(text) == value.replace(microsecond=123000)
    assert format_timestamp(datetime(2024, 1, 1)) == "2024-01-01T00:00:00.000Z"


def test_parse_timestamp_tolerates_garbage():
    assert parse_timestamp("not a date").year == 1970
    assert parse_timestamp(None).year == 1970


def test_new_hook_starts_empty():
    hook = new_hook("email1", "Backups", {"team": "ops"})
    assert hook["slug"] == "email1"
    assert hook["hits"] == 0
    assert hook["lastHit"] is None
    assert hook["logs"] == []
    assert hook["metadata"] == {"team": "ops"}
    assert len(hook["id"]) == 10
    assert "logs" not in hook_summary(hook)


def test_generate_id_length_and_uniqueness():
    ids = {generate_id(10) for _ in range(200)}
    assert len(ids) == 200
    assert all(len(value) == 10 for value in ids)


def test_clamp_limit():
    assert clamp_limit(None) == 20
    assert clamp_limit("abc") == 20
    assert clamp_limit(0) == 20
    assert clamp_limit(-5) == 1
    assert clamp_limit(500) == 100
    assert clamp_limit("7") == 7


def test_sort_recent_orders_newest_first():
    items = [
        {"timestamp": _iso(timedelta(minutes=3)), "reference": "old"},
        {"timestamp": _iso(timedelta(minutes=1)), "reference": "new"},
        {"timestamp": _iso(timedelta(minutes=2)), "reference": "mid"},
    ]
    assert [i["reference"] for i in sort_recent(items, 2)] == ["new", "mid"]


def test_compute_stats_counts_only_retained_recent_logs():
    hooks = [
        {
            "hits": 3,
            "createdAt": _iso(timedelta(days=3)),
            "logs": [
                {"timestamp": _iso(timedelta(hours=1))},
                {"timestamp": _iso(timedelta(hours=30))},
            ],
        },
        {
            "hits": 5,
            "createdAt": _iso(timedelta(days=1)),
            "logs": [{"timestamp": _iso(timedelta(minutes=5))}],
        },
    ]
    stats = compute_stats(hooks, now=NOW)
    assert stats == {
        "totalWebhooks": 2,
        "totalHits": 8,
        "lastPayloadAt": _iso(timedelta(minutes=5)),
        "lastWebhookCreatedAt": _iso(timedelta(days=1)),
        "hitsLast24h": 2,
    }


def test_compute_stats_empty_registry():
    assert compute_stats([], now=NOW) == {
        "totalWebhooks": 0,
        "totalHits": 0,
        "lastPayloadAt": None,
        "lastWebhookCreatedAt": None,
        "hitsLast24h": 0,
    }
