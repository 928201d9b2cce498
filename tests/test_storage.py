"""Tests for magi/storage.py."""

import asyncio
import json

from magi.storage import JsonFileStore, MemoryStore, get_user_context, set_user_context


async def _collect(store, prefix):
    return {key: value async for key, value in store.list(prefix)}


async def test_memory_store_roundtrip_and_prefix_listing():
    store = MemoryStore()
    await store.set(("ratelimit", "a", "rpm"), [1, 2])
    await store.set(("ratelimit", "b", "tpd"), {"tokens": 5, "window_start": 0})
    await store.set(("user", "1", "context"), {"summary": "s"})

    assert await store.get(("ratelimit", "a", "rpm")) == [1, 2]
    assert await store.get(("missing",)) is None
    listed = await _collect(store, ("ratelimit",))
    assert set(listed) == {("ratelimit", "a", "rpm"), ("ratelimit", "b", "tpd")}


async def test_json_store_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "magi.json"
    store = JsonFileStore(path)
    await store.set(("ratelimit", "qwen/qwen3-32b", "info"), {"rpd_limit": 1000})

    assert path.exists()
    assert not path.with_suffix(".json.tmp").exists()

    reopened = JsonFileStore(path)
    assert await reopened.get(("ratelimit", "qwen/qwen3-32b", "info")) == {"rpd_limit": 1000}
    listed = await _collect(reopened, ("ratelimit", "qwen/qwen3-32b"))
    assert list(listed) == [("ratelimit", "qwen/qwen3-32b", "info")]


async def test_json_store_writes_off_the_event_loop(tmp_path, monkeypatch):
    offloaded = []
    real_to_thread = asyncio.to_thread

    async def recording_to_thread(func, *args):
        offloaded.append(func.__name__)
        return await real_to_thread(func, *args)

    monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)
    await JsonFileStore(tmp_path / "magi.json").set(("ratelimit", "a", "rpm"), [1])

    assert offloaded == ["_write"]


async def test_json_store_concurrent_sets_all_persist(tmp_path):
    path = tmp_path / "magi.json"
    store = JsonFileStore(path)

    await asyncio.gather(*(store.set(("ratelimit", f"m{i}", "rpm"), [i]) for i in range(20)))

    reopened = JsonFileStore(path)
    listed = await _collect(reopened, ("ratelimit",))
    assert len(listed) == 20
    assert listed[("ratelimit", "m7", "rpm")] == [7]


async def test_json_store_keeps_non_ascii(tmp_path):
    path = tmp_path / "magi.json"
    await JsonFileStore(path).set(("user", "7", "context"), {"summary": "週休3日制"})
    assert "週休3日制" in path.read_text(encoding="utf-8")


async def test_json_store_corrupt_file_starts_empty(tmp_path):
    path = tmp_path / "magi.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonFileStore(path)
    assert await store.get(("user", "1", "context")) is None
    await store.set(("user", "1", "context"), {"summary": "fresh"})
    assert json.loads(path.read_text(encoding="utf-8"))


async def test_user_context_roundtrip():
    store = MemoryStore()
    assert await get_user_context(store, "42") is None

    saved = await set_user_context(store, "42", "Prefers short answers.")
    loaded = await get_user_context(store, "42")

    assert loaded.summary == "Prefers short answers."
    assert loaded.updated_at == saved.updated_at > 0
