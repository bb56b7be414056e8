"""
SQLite store: a playlists table (url unique) and a songs table keyed to it.
"""
from __future__ import annotations

import logging
import os
import sqlite3
from typing import List, Optional, Sequence

from lib.extraction.models import TrackRecord
from lib.extraction.registry import TRACK_EXPORT_FIELDS
from lib.storage.rows import record_to_row, row_to_record

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_SONG_COLUMN_TYPES = {
    "track_number": "INTEGER",
    "playlist_position": "INTEGER",
    "explicit": "BOOLEAN",
    "validated": "BOOLEAN",
    "confidence": "REAL",
}


def _songs_ddl() -> str:
    cols = ",\n    ".join(f"{name} {_SONG_COLUMN_TYPES.get(name, 'TEXT')}" for name in TRACK_EXPORT_FIELDS)
    return f"""
CREATE TABLE IF NOT EXISTS songs (
    id INTEGER PRIMARY KEY,
    playlist_id INTEGER NOT NULL,
    {cols},
    FOREIGN KEY(playlist_id) REFERENCES playlists(id)
);
CREATE INDEX IF NOT EXISTS idx_songs_playlist_id ON songs(playlist_id);
"""


class SqliteSink:
    def __init__(self, path: str):
        self.path = path
        self._db: Optional[sqlite3.Connection] = None

    @property
    def db(self) -> sqlite3.Connection:
        if self._db is None:
            parent = os.path.dirname(self.path)
            if parent and self.path != ":memory:":
                os.makedirs(parent, exist_ok=True)
            self._db = sqlite3.connect(self.path, check_same_thread=False)
            self._db.row_factory = sqlite3.Row
        return self._db

    def create_schema(self) -> None:
        db = self.db
        existing_version = db.execute("PRAGMA user_version").fetchone()[0]
        db.executescript("""
            CREATE TABLE IF NOT EXISTS playlists (
                id INTEGER PRIMARY KEY,
                name TEXT,
                url TEXT UNIQUE
            );
        """)
        db.executescript(_songs_ddl())
        if existing_version < SCHEMA_VERSION:
            db.execute(f"PRAGMA user_version={SCHEMA_VERSION}")
        db.commit()
        logger.info(f"[SQLite] schema ready at {self.path}")

    def upsert_playlist(self, name: str, url: str) -> int:
        db = self.db
        db.execute(
            "INSERT INTO playlists (name, url) VALUES (?, ?) "
            "ON CONFLICT(url) DO UPDATE SET name = excluded.name",
            (name, url),
        )
        db.commit()
        return db.execute("SELECT id FROM playlists WHERE url = ?", (url,)).fetchone()[0]

    def insert_records(self, playlist_id: int, records: Sequence[TrackRecord]) -> int:
        rows = [record_to_row(r) for r in records if r.title]
        if not rows:
            logger.warning(f"[SQLite] nothing to insert for playlist {playlist_id}")
            return 0
        columns = ", ".join(("playlist_id",) + TRACK_EXPORT_FIELDS)
        placeholders = ", ".join("?" for _ in range(len(TRACK_EXPORT_FIELDS) + 1))
        db = self.db
        db.executemany(
            f"INSERT INTO songs ({columns}) VALUES ({placeholders})",
            [(playlist_id,) + tuple(row[name] for name in TRACK_EXPORT_FIELDS) for row in rows],
        )
        db.commit()
        logger.info(f"[SQLite] inserted {len(rows)} songs for playlist {playlist_id}")
        return len(rows)

    def fetch_records(self, playlist_id: int) -> List[TrackRecord]:
        cur = self.db.execute(
            "SELECT * FROM songs WHERE playlist_id = ? ORDER BY playlist_position, id", (playlist_id,)
        )
        return [row_to_record(dict(row)) for row in cur.fetchall()]

    def close(self) -> None:
        if self._db is not None:
            self._db.close()
            self._db = None
