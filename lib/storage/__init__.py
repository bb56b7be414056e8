"""
Persistence sinks for scraped playlists.

Public API:
  - SqliteSink(path): relational store (playlists + songs tables)
  - CsvSink(directory): one CSV file per playlist
  - record_to_row / row_to_record: shared row shape
"""
from __future__ import annotations

from typing import Protocol, Sequence

from lib.extraction.models import TrackRecord
from lib.storage.csv_sink import CsvSink, sanitize_filename
from lib.storage.rows import JSON_FIELDS, record_to_row, row_to_record
from lib.storage.sqlite_sink import SqliteSink


class PersistenceSink(Protocol):
    def create_schema(self) -> None: ...

    def upsert_playlist(self, name: str, url: str) -> int: ...

    def insert_records(self, playlist_id: int, records: Sequence[TrackRecord]) -> int: ...


__all__ = [
    "CsvSink",
    "JSON_FIELDS",
    "PersistenceSink",
    "SqliteSink",
    "record_to_row",
    "row_to_record",
    "sanitize_filename",
]
