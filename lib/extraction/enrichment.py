"""
Enrichment merge step.

An external source is asked about (title, artist). For a validating source
(MusicBrainz) a match fills empty genre / release_date, marks the record
validated and raises its confidence by a bounded increment; anything else (no
match, HTTP failure, exception) only records a "not validated" provenance entry.
A gap-fill source (SoundCloud) fills empty album / duration / image_url / url
and leaves the record untouched when it has nothing. Populated fields are never
overwritten.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Protocol

import requests
from cachetools import TTLCache

from lib.cache_manager import build_enrichment_cache_key, get_enrichment_cache
from lib.extraction import settings
from lib.extraction.models import PlaylistRecord, TrackRecord
from lib.extraction.normalizer import duration_from_ms

logger = logging.getLogger(__name__)

MUSICBRAINZ_SOURCE = "MusicBrainz"
MUSICBRAINZ_RECORDING_URL = "https://musicbrainz.org/ws/2/recording"
MUSICBRAINZ_USER_AGENT = "amazon-music-scraper/1.0 (metadata enrichment)"
# MusicBrainz search scores run 0-100; below this the hit is a different song.
MUSICBRAINZ_MIN_SCORE = 80

SOUNDCLOUD_SOURCE = "SoundCloud"
SOUNDCLOUD_TRACKS_URL = "https://api.soundcloud.com/tracks"

# merge order; every name is a TrackRecord string field
_FILLABLE = ("album", "duration", "image_url", "url", "genre", "release_date")


@dataclass(frozen=True)
class EnrichmentResult:
    matched: bool
    source: str
    genre: str = ""
    release_date: str = ""
    album: str = ""
    duration: str = ""
    image_url: str = ""
    url: str = ""
    reference: str = ""
    reason: str = ""


class EnrichmentSource(Protocol):
    name: str

    def lookup(self, title: str, artist: str) -> EnrichmentResult: ...


def _lucene_phrase(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _top_tag(recording: Dict[str, Any]) -> str:
    tags = recording.get("tags") or []
    tags = [t for t in tags if t.get("name")]
    if not tags:
        return ""
    best = max(tags, key=lambda t: t.get("count") or 0)
    return best["name"]


class MusicBrainzSource:
    """Recording search against the MusicBrainz web service (throttled, cached)."""

    name = MUSICBRAINZ_SOURCE
    fills = ("genre", "release_date")

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout_s: float = settings.MUSICBRAINZ_TIMEOUT_S,
        min_interval_s: float = settings.MUSICBRAINZ_MIN_INTERVAL_S,
        cache: Optional[TTLCache] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session or requests.Session()
        self.timeout_s = timeout_s
        self.min_interval_s = min_interval_s
        self.cache = cache if cache is not None else get_enrichment_cache()
        self._clock = clock
        self._sleep = sleep
        self._last_request: Optional[float] = None
        self._throttle_lock = threading.Lock()

    def _throttle(self) -> None:
        with self._throttle_lock:
            now = self._clock()
            if self._last_request is not None:
                wait = self.min_interval_s - (now - self._last_request)
                if wait > 0:
                    self._sleep(wait)
                    now = self._clock()
            self._last_request = now

    def lookup(self, title: str, artist: str) -> EnrichmentResult:
        key = build_enrichment_cache_key(self.name, title, artist)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        query_parts = [f'recording:"{_lucene_phrase(title)}"']
        if artist:
            query_parts.append(f'artist:"{_lucene_phrase(artist)}"')
        self._throttle()
        res = self.session.get(
            MUSICBRAINZ_RECORDING_URL,
            params={"query": " AND ".join(query_parts), "fmt": "json", "limit": 3},
            headers={"User-Agent": MUSICBRAINZ_USER_AGENT},
            timeout=self.timeout_s,
        )
        if res.status_code != 200:
            # transient; not cached
            return EnrichmentResult(matched=False, source=self.name, reason=f"HTTP {res.status_code}")

        recordings = res.json().get("recordings") or []
        result = EnrichmentResult(matched=False, source=self.name, reason="no match")
        for rec in recordings:
            if int(rec.get("score") or 0) < MUSICBRAINZ_MIN_SCORE:
                continue
            result = EnrichmentResult(
                matched=True,
                source=self.name,
                genre=_top_tag(rec),
                release_date=rec.get("first-release-date") or "",
                reference=rec.get("id") or "",
            )
            break
        self.cache[key] = result
        return result


class SoundCloudSource:
    """
    Track search against the SoundCloud public API. Only used to fill gaps the
    page left (album, duration, artwork, link); it never validates a record.
    Without a client id every lookup is a no-match and nothing is requested.
    """

    name = SOUNDCLOUD_SOURCE
    fills = ("album", "duration", "image_url", "url")

    def __init__(
        self,
        client_id: str = settings.SOUNDCLOUD_CLIENT_ID,
        session: Optional[requests.Session] = None,
        timeout_s: float = settings.SOUNDCLOUD_TIMEOUT_S,
        cache: Optional[TTLCache] = None,
    ):
        self.client_id = client_id
        self.session = session or requests.Session()
        self.timeout_s = timeout_s
        self.cache = cache if cache is not None else get_enrichment_cache()

    def lookup(self, title: str, artist: str) -> EnrichmentResult:
        if not self.client_id:
            return EnrichmentResult(matched=False, source=self.name, reason="no client id")
        key = build_enrichment_cache_key(self.name, title, artist)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        res = self.session.get(
            SOUNDCLOUD_TRACKS_URL,
            params={"client_id": self.client_id, "q": f"{title} {artist}".strip(), "limit": 1},
            timeout=self.timeout_s,
        )
        if res.status_code != 200:
            return EnrichmentResult(matched=False, source=self.name, reason=f"HTTP {res.status_code}")

        payload = res.json()
        tracks = payload.get("collection") if isinstance(payload, dict) else payload
        if not tracks:
            result = EnrichmentResult(matched=False, source=self.name, reason="no match")
        else:
            track = tracks[0]
            publisher = track.get("publisher_metadata") or {}
            permalink = track.get("permalink_url") or ""
            result = EnrichmentResult(
                matched=True,
                source=self.name,
                album=publisher.get("album_title") or "",
                duration=duration_from_ms(track["duration"]) if track.get("duration") else "",
                image_url=track.get("artwork_url") or "",
                url=permalink,
                reference=permalink,
            )
        self.cache[key] = result
        return result


class EnrichmentMerger:
    """
    Applies one source to records. validates=True is the MusicBrainz mode
    (validated flag, confidence boost, "not validated" entries); validates=False
    is gap-fill only.
    """

    def __init__(
        self,
        source: EnrichmentSource,
        boost: float = settings.ENRICH_CONFIDENCE_BOOST,
        validates: bool = True,
    ):
        self.source = source
        self.boost = boost
        self.validates = validates

    @property
    def source_name(self) -> str:
        return getattr(self.source, "name", None) or type(self.source).__name__

    def _has_gaps(self, record: TrackRecord) -> bool:
        fills = getattr(self.source, "fills", None)
        if not fills:
            return True
        return any(not getattr(record, name) for name in fills)

    def enrich(self, record: TrackRecord) -> TrackRecord:
        if not self.validates and not self._has_gaps(record):
            return record
        try:
            result = self.source.lookup(record.title, record.artist)
        except Exception as e:
            logger.warning(f"[Enrich] {self.source_name} lookup failed for {record.title!r}: {e}")
            if not self.validates:
                return record
            return self._not_validated(record, self.source_name, str(e) or type(e).__name__)

        source = result.source or self.source_name
        if not result.matched:
            logger.info(f"[Enrich] {source}: no match for {record.title!r} / {record.artist!r}")
            if not self.validates:
                return record
            return self._not_validated(record, source, result.reason or "no match")

        updates: Dict[str, Any] = {}
        filled: List[str] = []
        for name in _FILLABLE:
            value = getattr(result, name)
            if value and not getattr(record, name):
                updates[name] = value
                filled.append(name)

        details = dict(record.source_details)
        entry: Dict[str, Any] = {"status": "validated" if self.validates else "matched", "filled": filled}
        if result.reference:
            entry["reference"] = result.reference
        details[source] = entry

        status = dict(record.field_validation_status)
        status[source] = True
        for name in filled:
            status[name] = True

        if self.validates:
            updates["validated"] = True
            updates["confidence"] = round(min(1.0, record.confidence + self.boost), 4)
            logger.info(f"[Enrich] {source}: validated {record.title!r} (filled {filled or 'nothing'})")
        else:
            logger.info(f"[Enrich] {source}: {record.title!r} filled {filled or 'nothing'}")
        return replace(record, source_details=details, field_validation_status=status, **updates)

    @staticmethod
    def _not_validated(record: TrackRecord, source: str, reason: str) -> TrackRecord:
        details = dict(record.source_details)
        details[source] = {"status": "not validated", "reason": reason}
        status = dict(record.field_validation_status)
        status[source] = False
        return replace(record, source_details=details, field_validation_status=status)

    def enrich_playlist(self, playlist: PlaylistRecord) -> PlaylistRecord:
        tracks = tuple(self.enrich(t) for t in playlist.tracks)
        if self.validates:
            validated = sum(1 for t in tracks if t.validated)
            logger.info(f"[Enrich] {playlist.name}: {validated}/{len(tracks)} tracks validated by {self.source_name}")
        else:
            changed = sum(1 for before, after in zip(playlist.tracks, tracks) if before is not after)
            logger.info(f"[Enrich] {playlist.name}: {changed}/{len(tracks)} tracks filled by {self.source_name}")
        return replace(playlist, tracks=tracks)
