"""SQLite ``Storage`` with compare-and-swap on etags.

Each key is updated with a conditional statement whose row count tells us
whether the expected etag still held. Keys are committed one by one, so a
conflict on one key never rolls back the others.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from uuid import uuid4

import aiosqlite

from colloquy.errors import StorageConflict
from colloquy.models.storage import ANY_ETAG, StoreItem

logger = logging.getLogger(__name__)


class SQLiteStorage:
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    async def read(self, keys: Iterable[str]) -> dict[str, StoreItem]:
        wanted = list(dict.fromkeys(keys))
        if not wanted:
            return {}
        placeholders = ", ".join("?" for _ in wanted)
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT key, value, etag FROM storage_items WHERE key IN ({placeholders})",  # noqa: S608
                wanted,
            )
            rows = await cursor.fetchall()
        return {
            row["key"]: StoreItem(value=json.loads(row["value"]), etag=row["etag"]) for row in rows
        }

    async def write(self, changes: Mapping[str, StoreItem]) -> dict[str, str]:
        written: dict[str, str] = {}
        conflicts: list[str] = []
        async with aiosqlite.connect(self.db_path) as db:
            for key, item in changes.items():
                etag = uuid4().hex
                payload = json.dumps(item.value, sort_keys=True)
                now = datetime.now(UTC).isoformat()
                if item.etag == ANY_ETAG:
                    await db.execute(
                        "INSERT OR REPLACE INTO storage_items (key, value, etag, updated_at) "
                        "VALUES (?, ?, ?, ?)",
                        (key, payload, etag, now),
                    )
                    ok = True
                elif item.etag is None:
                    cursor = await db.execute(
                        "INSERT OR IGNORE INTO storage_items (key, value, etag, updated_at) "
                        "VALUES (?, ?, ?, ?)",
                        (key, payload, etag, now),
                    )
                    ok = cursor.rowcount == 1
                else:
                    cursor = await db.execute(
                        "UPDATE storage_items SET value = ?, etag = ?, updated_at = ? "
                        "WHERE key = ? AND etag = ?",
                        (payload, etag, now, key, item.etag),
                    )
                    ok = cursor.rowcount == 1
                await db.commit()
                if ok:
                    written[key] = etag
                else:
                    conflicts.append(key)
        if conflicts:
            logger.warning("Storage conflict on %s", conflicts)
            raise StorageConflict(conflicts)
        return written

    async def delete(self, keys: Iterable[str]) -> None:
        doomed = [(key,) for key in dict.fromkeys(keys)]
        if not doomed:
            return
        async with aiosqlite.connect(self.db_path) as db:
            await db.executemany("DELETE FROM storage_items WHERE key = ?", doomed)
            await db.commit()


__all__ = ["SQLiteStorage"]
