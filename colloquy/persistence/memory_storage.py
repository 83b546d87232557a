"""In-process storage with per-key optimistic concurrency."""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from colloquy.errors import StorageConflict
from colloquy.models.storage import ANY_ETAG, StoreItem

logger = logging.getLogger(__name__)


class MemoryStorage:
    """Dict-backed ``Storage``. Values are deep-copied in both directions."""

    def __init__(self) -> None:
        self._items: dict[str, tuple[dict[str, Any], str]] = {}
        self._lock = asyncio.Lock()
        self._counter = itertools.count(1)

    async def read(self, keys: Iterable[str]) -> dict[str, StoreItem]:
        async with self._lock:
            found: dict[str, StoreItem] = {}
            for key in keys:
                entry = self._items.get(key)
                if entry is None:
                    continue
                value, etag = entry
                found[key] = StoreItem(value=copy.deepcopy(value), etag=etag)
            return found

    async def write(self, changes: Mapping[str, StoreItem]) -> dict[str, str]:
        written: dict[str, str] = {}
        conflicts: list[str] = []
        async with self._lock:
            for key, item in changes.items():
                current = self._items.get(key)
                if not _etag_matches(item.etag, current[1] if current else None):
                    conflicts.append(key)
                    continue
                etag = str(next(self._counter))
                self._items[key] = (copy.deepcopy(item.value), etag)
                written[key] = etag
        if conflicts:
            logger.warning("Storage conflict on %s", conflicts)
            raise StorageConflict(conflicts)
        return written

    async def delete(self, keys: Iterable[str]) -> None:
        async with self._lock:
            for key in keys:
                self._items.pop(key, None)


def _etag_matches(expected: str | None, stored: str | None) -> bool:
    if expected == ANY_ETAG:
        return True
    return expected == stored


__all__ = ["MemoryStorage"]
