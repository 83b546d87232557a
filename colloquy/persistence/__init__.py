"""Persistence: storage backends implementing the CAS ``Storage`` contract."""

from colloquy.persistence.memory_storage import MemoryStorage
from colloquy.persistence.migrations import run_migrations
from colloquy.persistence.sqlite_storage import SQLiteStorage

__all__ = [
    "MemoryStorage",
    "SQLiteStorage",
    "run_migrations",
]
