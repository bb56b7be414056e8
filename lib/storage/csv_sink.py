"""CSV export: one file per playlist, TRACK_EXPORT_FIELDS as the header row."""
from __future__ import annotations

import csv
import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Sequence, Union

from lib.extraction import settings
from lib.extraction.models import TrackRecord
from lib.extraction.registry import TRACK_EXPORT_FIELDS
from lib.storage.rows import record_to_row, row_to_record

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r'[*?"<>|/\\:\s]')


def sanitize_filename(name: str) -> str:
    """Each unsafe character or whitespace becomes one underscore."""
    return _UNSAFE_FILENAME_RE.sub("_", name or "")


class CsvSink:
    def __init__(self, directory: Union[str, Path] = settings.DATA_DIR):
        self.directory = Path(directory)
        self._names: Dict[int, str] = {}
        self._ids: Dict[str, int] = {}

    def create_schema(self) -> None:
        os.makedirs(self.directory, exist_ok=True)

    def upsert_playlist(self, name: str, url: str) -> int:
        if url in self._ids:
            playlist_id = self._ids[url]
        else:
            playlist_id = len(self._ids) + 1
            self._ids[url] = playlist_id
        self._names[playlist_id] = name
        return playlist_id

    def path_for(self, name: str) -> Path:
        return self.directory / f"{sanitize_filename(name) or 'playlist'}.csv"

    def insert_records(self, playlist_id: int, records: Sequence[TrackRecord]) -> int:
        name = self._names.get(playlist_id)
        if name is None:
            raise KeyError(f"unknown playlist id {playlist_id}")
        return len(self.write_playlist(name, records))

    def write_playlist(self, name: str, records: Sequence[TrackRecord]) -> List[TrackRecord]:
        """Write (overwrite) the playlist file; records with an empty title are dropped."""
        kept = [r for r in records if r.title]
        self.create_schema()
        path = self.path_for(name)
        with path.open("w", newline="", encoding="utf-8") as fh:
            writer = csv.DictWriter(fh, fieldnames=list(TRACK_EXPORT_FIELDS))
            writer.writeheader()
            for record in kept:
                row = record_to_row(record)
                writer.writerow({k: ("" if v is None else v) for k, v in row.items()})
        logger.info(f"[CSV] wrote {len(kept)} rows to {path}")
        return kept

    def read_playlist(self, name: str) -> List[TrackRecord]:
        with self.path_for(name).open(newline="", encoding="utf-8") as fh:
            return [row_to_record(row) for row in csv.DictReader(fh)]
