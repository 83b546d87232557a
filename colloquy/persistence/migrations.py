"""Apply the bundled ``*.sql`` migrations to a SQLite database."""

from __future__ import annotations

import hashlib
import logging
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

_LEDGER = """
CREATE TABLE IF NOT EXISTS _migrations (
    name TEXT PRIMARY KEY,
    checksum TEXT NOT NULL,
    applied_at TEXT NOT NULL
)
"""


async def run_migrations(db_path: str | Path, migrations_dir: Path | None = None) -> list[str]:
    """Apply pending migrations in file-name order and return their names.

    A migration already recorded with a different checksum raises
    ``RuntimeError``; applied files are never re-run.
    """
    source = migrations_dir or MIGRATIONS_DIR
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    applied_now: list[str] = []
    async with aiosqlite.connect(db_path) as db:
        await db.execute(_LEDGER)
        async with db.execute("SELECT name, checksum FROM _migrations") as cursor:
            recorded = {name: checksum async for name, checksum in cursor}

        for script in sorted(source.glob("*.sql")):
            body = script.read_bytes()
            checksum = hashlib.sha256(body).hexdigest()
            known = recorded.get(script.name)
            if known == checksum:
                continue
            if known is not None:
                raise RuntimeError(f"migration {script.name} checksum mismatch: it changed after being applied")

            await db.executescript(body.decode("utf-8"))
            await db.execute(
                "INSERT INTO _migrations (name, checksum, applied_at) VALUES (?, ?, ?)",
                (script.name, checksum, datetime.now(UTC).isoformat()),
            )
            await db.commit()
            applied_now.append(script.name)

    if applied_now:
        logger.info("Applied migrations to %s: %s", db_path, ", ".join(applied_now))
    return applied_now


__all__ = ["MIGRATIONS_DIR", "run_migrations"]
