"""Key/value persistence for rate-limit state and user memory.

Keys are tuples of strings, e.g. ``("ratelimit", "qwen/qwen3-32b", "rpm")``.
Two implementations: an in-process dict and a JSON document on disk.
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from magi.models import UserContext

logger = logging.getLogger(__name__)

Key = tuple[str, ...]

_KEY_SEP = "\x1f"


class Store(ABC):
    """Minimal async KV interface."""

    @abstractmethod
    async def get(self, key: Key) -> Any | None:
        ...

    @abstractmethod
    async def set(self, key: Key, value: Any) -> None:
        ...

    @abstractmethod
    def list(self, prefix: Key) -> AsyncIterator[tuple[Key, Any]]:
        """Yield (key, value) for every key starting with ``prefix``."""
        ...


class MemoryStore(Store):
    def __init__(self, data: dict[Key, Any] | None = None) -> None:
        self._data: dict[Key, Any] = dict(data or {})

    async def get(self, key: Key) -> Any | None:
        return self._data.get(tuple(key))

    async def set(self, key: Key, value: Any) -> None:
        self._data[tuple(key)] = value

    async def list(self, prefix: Key) -> AsyncIterator[tuple[Key, Any]]:
        n = len(prefix)
        for key, value in list(self._data.items()):
            if key[:n] == tuple(prefix):
                yield key, value


class JsonFileStore(Store):
    """Whole-document JSON store. Writes go through a temp file + rename."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._data: dict[str, Any] | None = None
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, Any]:
        if self._data is None:
            if self.path.exists():
                try:
                    self._data = json.loads(self.path.read_text(encoding="utf-8"))
                except (OSError, json.JSONDecodeError):
                    logger.warning("Store file unreadable, starting empty: %s", self.path, exc_info=True)
                    self._data = {}
            else:
                self._data = {}
        return self._data

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(self.path)

    async def get(self, key: Key) -> Any | None:
        return self._load().get(_KEY_SEP.join(key))

    async def set(self, key: Key, value: Any) -> None:
        async with self._lock:
            data = self._load()
            data[_KEY_SEP.join(key)] = value
            # snapshot on the loop; the file write happens off it
            payload = json.dumps(data, ensure_ascii=False)
            await asyncio.to_thread(self._write, payload)

    async def list(self, prefix: Key) -> AsyncIterator[tuple[Key, Any]]:
        n = len(prefix)
        for raw_key, value in list(self._load().items()):
            key = tuple(raw_key.split(_KEY_SEP))
            if key[:n] == tuple(prefix):
                yield key, value


# ── User Context ────────────────────────────────────────────────

async def get_user_context(store: Store, user_id: str) -> UserContext | None:
    raw = await store.get(("user", str(user_id), "context"))
    if not raw:
        return None
    return UserContext(summary=raw["summary"], updated_at=raw.get("updated_at", 0))


async def set_user_context(store: Store, user_id: str, summary: str) -> UserContext:
    ctx = UserContext(summary=summary, updated_at=time.time() * 1000)
    await store.set(
        ("user", str(user_id), "context"),
        {"summary": ctx.summary, "updated_at": ctx.updated_at},
    )
    return ctx
