"""
Known-title index built from previously exported CSV files.

Used as a last-resort title source for rows whose markup yields no title but
whose URL carries a track id we have seen before. Loaded once, lazily, under a
lock; reads after loading take no lock.
"""
from __future__ import annotations

import csv
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from lib.extraction.identifiers import track_id_from_url
from lib.extraction.normalizer import normalize_key

logger = logging.getLogger(__name__)

# Positional layout of headerless exports: title, artist, album, url, ...
_TITLE_COL, _ARTIST_COL, _URL_COL = 0, 1, 3


class KnownTitleIndex:
    def __init__(self, directory: Union[str, Path, None]):
        self.directory = Path(directory) if directory else None
        self._lock = threading.Lock()
        self._loaded = False
        self._titles: Dict[str, str] = {}
        self._artists: Dict[str, str] = {}
        self._by_id: Dict[str, Tuple[str, str]] = {}

    @property
    def loaded(self) -> bool:
        return self._loaded

    def ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            self._load()
            self._loaded = True

    def _load(self) -> None:
        if self.directory is None or not self.directory.is_dir():
            logger.info(f"[KnownTitles] no CSV directory at {self.directory}; index stays empty")
            return
        files = sorted(self.directory.glob("*.csv"))
        for path in files:
            try:
                self._load_file(path)
            except (OSError, csv.Error, UnicodeDecodeError) as e:
                logger.warning(f"[KnownTitles] skipping unreadable {path.name}: {e}")
        logger.info(
            f"[KnownTitles] loaded {len(self._titles)} titles, {len(self._by_id)} track ids from {len(files)} file(s)"
        )

    def _load_file(self, path: Path) -> None:
        with path.open(newline="", encoding="utf-8") as fh:
            reader = csv.reader(fh)
            title_col, artist_col, url_col, id_col = _TITLE_COL, _ARTIST_COL, _URL_COL, None
            first = True
            for row in reader:
                if not row or not any(c.strip() for c in row):
                    continue
                if first:
                    first = False
                    header = [c.strip().lower() for c in row]
                    if "title" in header and "artist" in header:
                        title_col = header.index("title")
                        artist_col = header.index("artist")
                        url_col = header.index("url") if "url" in header else None
                        id_col = header.index("external_id") if "external_id" in header else None
                        continue
                self._add_row(row, title_col, artist_col, url_col, id_col)

    def _add_row(self, row, title_col, artist_col, url_col, id_col) -> None:
        def col(i):
            return row[i].strip() if i is not None and i < len(row) else ""

        title = col(title_col)
        if not title:
            return
        artist = col(artist_col)
        key = normalize_key(title)
        self._titles.setdefault(key, title)
        if artist:
            self._artists.setdefault(key, artist)

        track_id = col(id_col) or track_id_from_url(col(url_col))
        if track_id and track_id not in self._by_id:
            self._by_id[track_id] = (title, artist)

    def title_for_id(self, track_id: str) -> Optional[Tuple[str, str]]:
        """(title, artist) previously recorded for track_id, or None."""
        if not track_id:
            return None
        self.ensure_loaded()
        return self._by_id.get(track_id)

    def artist_for_title(self, title: str) -> str:
        if not title:
            return ""
        self.ensure_loaded()
        return self._artists.get(normalize_key(title), "")

    def find_title_in_text(self, text: str) -> str:
        """Longest known title contained in text (normalized comparison)."""
        if not text:
            return ""
        self.ensure_loaded()
        norm = normalize_key(text)
        best = ""
        for key in self._titles:
            if key and key in norm and len(key) > len(best):
                best = key
        return self._titles[best] if best else ""

    def __len__(self) -> int:
        self.ensure_loaded()
        return len(self._titles)
