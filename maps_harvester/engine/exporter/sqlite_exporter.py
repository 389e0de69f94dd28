"""Export accepted places to a SQLite table."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

from ..models import PlaceRecord
from .base import BaseExporter


class SQLiteExporter(BaseExporter):
    """Persist places as rows keyed by their dedup key."""

    def __init__(self, path: Path, table: str = "places") -> None:
        self.path = path
        self.table = table
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                dedup_key TEXT NOT NULL,
                search_term TEXT,
                payload TEXT NOT NULL
            )
            """
        )
        self.conn.commit()

    def emit(self, record: PlaceRecord) -> None:
        self.conn.execute(
            f"INSERT INTO {self.table}(dedup_key, search_term, payload) VALUES (?, ?, ?)",
            (record.dedup_key, record.search_term, json.dumps(record.to_dict(), ensure_ascii=False)),
        )

    def flush(self) -> None:
        self.conn.commit()

    def close(self) -> None:
        self.conn.commit()
        self.conn.close()


__all__ = ["SQLiteExporter"]
