from __future__ import annotations

import asyncio
import json
import sys
import time
from pathlib import Path

import pytest

# Make the relay package importable during local test runs
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from relay.domain.payloads import build_entry  # noqa: E402
from relay.repositories import json_storage  # noqa: E402
from relay.repositories.base import StoreConfigurationError  # noqa: E402
from relay.repositories.json_storage import FileHookStore  # noqa: E402


def _read(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.mark.asyncio
async def test_init_creates_missing_file_and_directories(tmp_path):
    path = tmp_path / "nested" / "dir" / "registry.json"
    store = FileHookStore(path)
    await store.init()

    assert path.exists()
    assert _read(path) == {"hooks": {}}
    assert await store.list_hooks() == []


@pytest.mark.asyncio
async def test_restart_reproduces_last_flushed_state(tmp_path):
    path = tmp_path / "registry.json"
    store = FileHookStore(path, log_limit=3)
    await store.init()
    await store.create_hook("email1", "Backups", {"team": "ops"})
    for i in range(4):
        await store.record_hit("email1", build_entry(f'{{"n": {i}}}'))
    await store.create_hook("other")
    await store.delete_hook("other")
    await store.close()
    before = await store.get_hook("email1")

    reopened = FileHookStore(path, log_limit=3)
    await reopened.init()

    assert await reopened.get_hook("email1") == before
    assert await reopened.get_hook("other") is None
    assert await reopened.get_stats() == await store.get_stats()


@pytest.mark.asyncio
async def test_document_is_pretty_printed_registry(tmp_path):
    path = tmp_path / "registry.json"
    store = FileHookStore(path)
    await store.init()
    await store.create_hook("email1")

    text = path.read_text(encoding="utf-8")
    assert text.startswith('{\n  "hooks": {')
    assert set(_read(path)["hooks"]) == {"email1"}


@pytest.mark.asyncio
async def test_partial_document_is_normalised(tmp_path):
    path = tmp_path / "registry.json"
    path.write_text(json.dumps({"version": 1}), encoding="utf-8")
    store = FileHookStore(path)
    await store.init()
    assert await store.list_hooks() == []

    path.write_text(
        json.dumps({"hooks": {"legacy": {"id": "abc", "slug": "legacy", "createdAt": "2024-01-01T00:00:00.000Z"}}}),
        encoding="utf-8",
    )
    store = FileHookStore(path)
    await store.init()
    hook = await store.get_hook("legacy")
    assert hook["metadata"] == {}
    assert hook["logs"] == []
    assert hook["hits"] == 0
    assert hook["lastHit"] is None


@pytest.mark.asyncio
async def test_empty_file_counts_as_empty_registry(tmp_path):
    path = tmp_path / "registry.json"
    path.write_text("", encoding="utf-8")
    store = FileHookStore(path)
    await store.init()
    assert await store.list_hooks() == []


@pytest.mark.asyncio
async def test_invalid_json_is_not_overwritten(tmp_path):
    path = tmp_path / "registry.json"
    path.write_text("{not json", encoding="utf-8")
    store = FileHookStore(path)
    with pytest.raises(ValueError):
        await store.init()
    assert path.read_text(encoding="utf-8") == "{not json"


@pytest.mark.asyncio
async def test_lower_log_limit_trims_on_load(tmp_path):
    path = tmp_path / "registry.json"
    store = FileHookStore(path, log_limit=10)
    await store.init()
    await store.create_hook("email1")
    for i in range(6):
        await store.record_hit("email1", build_entry(str(i)))
    await store.close()

    reopened = FileHookStore(path, log_limit=2)
    await reopened.init()
    hook = await reopened.get_hook("email1")
    assert [log["body"] for log in hook["logs"]] == ["5", "4"]
    assert hook["hits"] == 6


@pytest.mark.asyncio
async def test_write_failures_are_logged_not_raised(tmp_path, monkeypatch):
    path = tmp_path / "registry.json"
    store = FileHookStore(path)
    await store.init()

    def broken_save(_path, _payload):
        raise OSError("disk full")

    monkeypatch.setattr(json_storage, "save", broken_save)
    created = await store.create_hook("email1")
    await store.record_hit("email1", build_entry("x"))
    await store.close()

    assert (await store.get_hook("email1"))["hits"] == 1
    assert _read(path) == {"hooks": {}}

    monkeypatch.undo()
    await store.clear_logs("email1")
    assert _read(path)["hooks"]["email1"]["id"] == created["id"]


@pytest.mark.asyncio
async def test_missing_directory_permissions_keep_store_in_memory(tmp_path, monkeypatch):
    def broken_save(_path, _payload):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(json_storage, "save", broken_save)
    store = FileHookStore(tmp_path / "ro" / "registry.json")
    await store.init()
    await store.create_hook("email1")
    assert (await store.get_hook("email1"))["slug"] == "email1"
    await store.close()


@pytest.mark.asyncio
async def test_bursts_of_hits_coalesce_into_few_writes(tmp_path, monkeypatch):
    path = tmp_path / "registry.json"
    store = FileHookStore(path)
    await store.init()
    await store.create_hook("burst")

    calls = []
    real_save = json_storage.save

    def slow_save(target, payload):
        calls.append(payload)
        time.sleep(0.05)
        real_save(target, payload)

    monkeypatch.setattr(json_storage, "save", slow_save)
    for i in range(10):
        await store.record_hit("burst", build_entry(str(i)))
    await asyncio.sleep(0.01)
    for i in range(10, 15):
        await store.record_hit("burst", build_entry(str(i)))
    await store.close()

    assert 1 <= len(calls) <= 3
    assert _read(path)["hooks"]["burst"]["hits"] == 15


@pytest.mark.asyncio
async def test_awaited_mutation_is_on_disk_even_during_a_running_flush(tmp_path, monkeypatch):
    path = tmp_path / "registry.json"
    store = FileHookStore(path)
    await store.init()
    await store.create_hook("email1")

    real_save = json_storage.save

    def slow_save(target, payload):
        time.sleep(0.05)
        real_save(target, payload)

    monkeypatch.setattr(json_storage, "save", slow_save)
    await store.record_hit("email1", build_entry("x"))
    await asyncio.sleep(0.01)
    await store.clear_logs("email1")

    on_disk = _read(path)["hooks"]["email1"]
    assert on_disk["hits"] == 0
    assert on_disk["logs"] == []
    await store.close()


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_the_shared_flush(tmp_path, monkeypatch):
    path = tmp_path / "registry.json"
    store = FileHookStore(path)
    await store.init()
    await store.create_hook("email1")

    real_save = json_storage.save

    def slow_save(target, payload):
        time.sleep(0.1)
        real_save(target, payload)

    monkeypatch.setattr(json_storage, "save", slow_save)
    await store.record_hit("email1", build_entry("x"))
    await asyncio.sleep(0.01)

    abandoned = asyncio.create_task(store.create_hook("abandoned"))
    waiting = asyncio.create_task(store.clear_logs("email1"))
    await asyncio.sleep(0.01)
    abandoned.cancel()
    with pytest.raises(asyncio.CancelledError):
        await abandoned

    hook = await waiting
    assert hook["hits"] == 0
    await store.close()

    on_disk = _read(path)["hooks"]
    assert set(on_disk) == {"abandoned", "email1"}
    assert on_disk["email1"]["hits"] == 0
    assert on_disk["email1"]["logs"] == []
    assert await store.get_hook("abandoned") is not None


def test_log_limit_below_one_is_rejected(tmp_path):
    with pytest.raises(StoreConfigurationError):
        FileHookStore(tmp_path / "registry.json", log_limit=0)
