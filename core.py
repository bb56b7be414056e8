#!/usr/bin/env python3
"""
Amazon Music playlist scraping: composition root.

Wires the extraction core (lib.extraction) to a browser session, the
enrichment sources and the persistence sinks, and exposes

- scrape_playlist(driver, url, enrich)   one playlist -> PlaylistRecord
- scrape_library(driver, sinks, ...)     every library playlist, persisted
- replay_snapshot(html, url)             offline extraction from saved HTML
- playlist_to_dict(record)               API / report shape
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from dataclasses import asdict, replace
from time import perf_counter
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from dotenv import load_dotenv

# Load .env, then .env.local overrides, before settings are read
_HERE = os.path.dirname(os.path.abspath(__file__))
load_dotenv(os.path.join(_HERE, ".env"))
load_dotenv(os.path.join(_HERE, ".env.local"), override=True)

from lib.extraction import settings  # noqa: E402
from lib.extraction.debug_capture import DebugCapture  # noqa: E402
from lib.extraction.driver import BrowserDriver  # noqa: E402
from lib.extraction.enrichment import EnrichmentMerger, MusicBrainzSource, SoundCloudSource  # noqa: E402
from lib.extraction.errors import SiteUnreachableError  # noqa: E402
from lib.extraction.known_titles import KnownTitleIndex  # noqa: E402
from lib.extraction.models import PlaylistRecord, TrackRecord  # noqa: E402
from lib.extraction.pipeline import PlaylistExtractor  # noqa: E402
from lib.extraction.readiness import ContentReadinessWaiter  # noqa: E402
from lib.extraction.snapshot_driver import SnapshotDriver  # noqa: E402
from lib.storage import PersistenceSink  # noqa: E402

logger = logging.getLogger(__name__)

_TRACKING_PARAMS = ("ref", "ref_", "fbclid", "gclid", "si")

_known_titles: KnownTitleIndex | None = None
_known_titles_lock = threading.Lock()


def normalize_playlist_url(url: str) -> str:
    """Normalize playlist URL for canonical cache key.
    - Strip tracking query params: ref, utm_*, fbclid, gclid, si
    - Lowercase host, force https, drop fragment and trailing slash
    """
    try:
        s = (url or "").strip()
        if not s:
            return ""
        parsed = urlparse(s)
        q = {k: v for k, v in parse_qsl(parsed.query) if not (k in _TRACKING_PARAMS or k.startswith("utm_"))}
        path = parsed.path or ""
        if path.endswith("/"):
            path = path[:-1]
        return urlunparse(("https", (parsed.netloc or "").lower(), path, "", urlencode(q), ""))
    except ValueError:
        return url


def get_known_titles() -> KnownTitleIndex:
    """Process-wide index over previously exported CSVs; loads on first lookup."""
    global _known_titles
    if _known_titles is None:
        with _known_titles_lock:
            if _known_titles is None:
                _known_titles = KnownTitleIndex(settings.KNOWN_TITLES_DIR)
    return _known_titles


def build_extractor(driver: BrowserDriver, **overrides: Any) -> PlaylistExtractor:
    kwargs: Dict[str, Any] = {"known_titles": get_known_titles(), "debug": DebugCapture()}
    kwargs.update(overrides)
    return PlaylistExtractor(driver, **kwargs)


def build_enrichers(validate: bool) -> List[EnrichmentMerger]:
    """MusicBrainz validation when asked for; SoundCloud gap-fill whenever a client id is set."""
    enrichers: List[EnrichmentMerger] = []
    if validate:
        enrichers.append(EnrichmentMerger(MusicBrainzSource()))
    if settings.SOUNDCLOUD_CLIENT_ID:
        gap_fill = SoundCloudSource(settings.SOUNDCLOUD_CLIENT_ID)
        enrichers.append(EnrichmentMerger(gap_fill, boost=0.0, validates=False))
    return enrichers


def apply_enrichers(record: PlaylistRecord, enrichers: Sequence[EnrichmentMerger]) -> PlaylistRecord:
    for enricher in enrichers:
        if not record.tracks:
            break
        record = enricher.enrich_playlist(record)
    return record


def scrape_playlist(
    driver: BrowserDriver,
    url: str,
    enrich: bool = settings.ENRICH,
    enrichers: Optional[Sequence[EnrichmentMerger]] = None,
) -> PlaylistRecord:
    t0 = perf_counter()
    record = build_extractor(driver).scrape_playlist(url)
    t1 = perf_counter()
    record = apply_enrichers(record, build_enrichers(enrich) if enrichers is None else enrichers)
    t2 = perf_counter()
    logger.info(
        f"[PERF] playlist={record.name!r} tracks={len(record.tracks)} "
        f"extract_ms={(t1 - t0) * 1000:.1f} enrich_ms={(t2 - t1) * 1000:.1f}"
    )
    return record


def persist_playlist(record: PlaylistRecord, sinks: Sequence[PersistenceSink]) -> int:
    """Write one playlist to every sink; a failing sink is logged and skipped. Returns sinks written."""
    if not record.tracks:
        logger.warning(f"[Persist] Playlist {record.name!r} has no tracks, skipping export")
        return 0
    written = 0
    for sink in sinks:
        try:
            playlist_id = sink.upsert_playlist(record.name, record.url)
            sink.insert_records(playlist_id, record.tracks)
            written += 1
        except Exception as e:
            logger.error(f"[Persist] {type(sink).__name__} failed for {record.name!r}: {e}")
    return written


def scrape_library(
    driver: BrowserDriver,
    sinks: Sequence[PersistenceSink] = (),
    enrichers: Sequence[EnrichmentMerger] = (),
    limit: Optional[int] = None,
) -> List[PlaylistRecord]:
    """
    Scrape every playlist in the signed-in library and persist each one.
    A playlist that fails is logged and the run moves on to the next.
    Raises SiteUnreachableError when the home page cannot be loaded at all.
    """
    extractor = build_extractor(driver)
    if not extractor.open_home():
        raise SiteUnreachableError(
            f"Could not load {extractor.base_url}",
            meta={"base_url": extractor.base_url, "attempts": extractor.retry_attempts},
        )

    for sink in sinks:
        sink.create_schema()

    if not extractor.go_to_library_playlists():
        logger.warning("[Library] Playlists tab unavailable; scanning current page for playlist links")
    links = extractor.scrape_playlist_links()
    if limit is not None:
        links = links[:limit]

    results: List[PlaylistRecord] = []
    for index, link in enumerate(links, start=1):
        logger.info(f"[Library] ({index}/{len(links)}) {link.name} -> {link.url}")
        try:
            record = extractor.scrape_playlist(link.url)
            if record.name == link.url and link.name:
                # page had no usable title
                record = replace(record, name=link.name)
            record = apply_enrichers(record, enrichers)
            persist_playlist(record, sinks)
            results.append(record)
        except Exception as e:
            logger.error(f"[Library] Playlist {link.name!r} failed: {e}")
    total = sum(len(r.tracks) for r in results)
    logger.info(f"[Library] Done: {len(results)}/{len(links)} playlists, {total} tracks")
    return results


def replay_snapshot(html: str, url: str = "") -> PlaylistRecord:
    """Run the extraction pipeline over saved HTML; no browser, no waits."""
    driver = SnapshotDriver(html, url=url)
    extractor = build_extractor(
        driver,
        waiter=ContentReadinessWaiter(timeout_ms=0),
        debug=DebugCapture(enabled=False),
    )
    return extractor.scrape_playlist(url or "snapshot")


def track_to_dict(track: TrackRecord) -> Dict[str, Any]:
    return asdict(track)


def playlist_to_dict(record: PlaylistRecord) -> Dict[str, Any]:
    """
    PlaylistRecord -> dict for the API / HTML report.

    {
      "playlist_name": str,
      "playlist_url": str,
      "expected_count": int | None,
      "confidence": float,        # mean track confidence
      "tracks": [ {TrackRecord fields}, ... ]
    }
    """
    tracks = [track_to_dict(t) for t in record.tracks]
    confidence = round(sum(t.confidence for t in record.tracks) / len(record.tracks), 4) if record.tracks else 0.0
    return {
        "playlist_name": record.name,
        "playlist_url": record.url,
        "expected_count": record.expected_count,
        "confidence": confidence,
        "tracks": tracks,
    }


def main(argv: Optional[List[str]] = None) -> int:
    """Scrape the whole library into SQLite + CSV (python core.py [limit])."""
    from lib.storage import CsvSink, SqliteSink
    from playwright_pool import browser_session

    logging.basicConfig(level=logging.INFO)
    args = list(sys.argv[1:] if argv is None else argv)
    limit = int(args[0]) if args else None
    sinks = [SqliteSink(os.path.join(settings.DATA_DIR, "playlists.sqlite3")), CsvSink(settings.DATA_DIR)]
    enrichers = build_enrichers(settings.ENRICH)
    with browser_session() as driver:
        results = scrape_library(driver, sinks, enrichers=enrichers, limit=limit)
    return 0 if results else 1


if __name__ == "__main__":
    sys.exit(main())
