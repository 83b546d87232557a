from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol, runtime_checkable

from colloquy.models.storage import StoreItem


@runtime_checkable
class Storage(Protocol):
    async def read(self, keys: Iterable[str]) -> dict[str, StoreItem]: ...

    async def write(self, changes: Mapping[str, StoreItem]) -> dict[str, str]: ...

    async def delete(self, keys: Iterable[str]) -> None: ...


__all__ = ["Storage"]
