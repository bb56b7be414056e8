"""
Row/tile extraction pipeline.

scrape_playlist walks one playlist page through

    Navigate -> AwaitReady -> Scroll-To-Load -> NetworkIdle -> Enumerate
             -> Per-Element Extract -> Filter -> Done

Every browser interaction is fallible: navigation, scrolling and idle waits go
through with_retry, a failing row is logged and skipped, and an empty result
triggers a debug snapshot instead of an exception.
"""
from __future__ import annotations

import logging
import re
import time
from typing import Callable, Dict, List, Optional, Sequence

from lib.extraction import settings
from lib.extraction.cross_checker import FieldCrossChecker
from lib.extraction.debug_capture import DebugCapture
from lib.extraction.driver import SCROLL_BOTTOM_JS, SCROLL_PAGE_JS, BrowserDriver, ElementHandle
from lib.extraction.identifiers import (
    artist_from_href,
    extract_track_id,
    looks_like_playlist_url,
    parse_aria_label,
    parse_expected_count,
    resolve_url,
)
from lib.extraction.known_titles import KnownTitleIndex
from lib.extraction.models import (
    CrossCheckResult,
    PlaylistLink,
    PlaylistRecord,
    ReadinessOutcome,
    TrackRecord,
)
from lib.extraction.normalizer import collapse_whitespace, normalize_artist, normalize_title
from lib.extraction.readiness import ContentReadinessWaiter, content_ready_predicate
from lib.extraction.registry import (
    CLICKABLE_SELECTORS,
    EMPTY_STATE_SELECTORS,
    LIBRARY_ENTRY_SELECTORS,
    PLAYLIST_TILE_SELECTORS,
    PLAYLISTS_TAB_SELECTORS,
    SCORED_TRACK_FIELDS,
    SONG_ROW_SELECTORS,
    TILE_REGISTRY,
    TRACK_REGISTRY,
    SelectorRegistry,
    join_selectors,
)
from lib.extraction.retry import ABSENT, with_retry

logger = logging.getLogger(__name__)

# Confidence given to a value recovered by a fallback (aria-label, known titles,
# artist link) rather than by the registered queries.
FALLBACK_CONFIDENCE = 0.5

UNKNOWN_PLAYLIST_NAME = "(unknown)"

_DIGITS_RE = re.compile(r"\d+")


class PlaylistExtractor:
    def __init__(
        self,
        driver: BrowserDriver,
        registry: SelectorRegistry = TRACK_REGISTRY,
        tile_registry: SelectorRegistry = TILE_REGISTRY,
        cross_checker: Optional[FieldCrossChecker] = None,
        waiter: Optional[ContentReadinessWaiter] = None,
        known_titles: Optional[KnownTitleIndex] = None,
        debug: Optional[DebugCapture] = None,
        base_url: str = settings.BASE_URL,
        row_selectors: Sequence[str] = SONG_ROW_SELECTORS,
        retry_attempts: int = settings.RETRY_ATTEMPTS,
        scroll_max_attempts: int = settings.SCROLL_MAX_ATTEMPTS,
        scroll_pause_ms: int = settings.SCROLL_PAUSE_MS,
        element_wait_ms: int = settings.ELEMENT_WAIT_MS,
        navigation_pause_ms: int = settings.NAVIGATION_PAUSE_MS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.driver = driver
        self.registry = registry
        self.tile_registry = tile_registry
        self.cross_checker = cross_checker or FieldCrossChecker()
        self.waiter = waiter or ContentReadinessWaiter()
        self.known_titles = known_titles
        self.debug = debug or DebugCapture()
        self.base_url = base_url.rstrip("/")
        self.row_selectors = tuple(row_selectors)
        self.retry_attempts = retry_attempts
        self.scroll_max_attempts = scroll_max_attempts
        self.scroll_pause_ms = scroll_pause_ms
        self.element_wait_ms = element_wait_ms
        self.navigation_pause_ms = navigation_pause_ms
        self.sleep = sleep

    # ------------------------------------------------------------------
    # Browser steps
    # ------------------------------------------------------------------
    def _retry(self, action, description: str, attempts: Optional[int] = None):
        return with_retry(action, attempts or self.retry_attempts, description, sleep=self.sleep)

    def navigate(self, url: str) -> bool:
        def _go():
            self.driver.navigate(url)
            return True

        ok = self._retry(_go, f"navigate to {url}") is not ABSENT
        if not ok:
            logger.error(f"[Extract] navigation failed: {url}")
        return ok

    def open_home(self) -> bool:
        return self.navigate(self.base_url)

    def await_content(self, target: str, selectors: Sequence[str]) -> ReadinessOutcome:
        predicate = content_ready_predicate(self.driver, selectors, EMPTY_STATE_SELECTORS)
        outcome = self._retry(lambda: self.waiter.wait_for(target, predicate), f"wait for content on {target}")
        if outcome is ABSENT:
            return ReadinessOutcome.TIMED_OUT
        return outcome

    def wait_for_network_idle(self) -> bool:
        def _idle():
            self.driver.wait_for_network_idle(self.element_wait_ms)
            return True

        return self._retry(_idle, "wait for network idle") is not ABSENT

    def _count_rows(self) -> int:
        try:
            return len(self.driver.query_all(join_selectors(self.row_selectors)))
        except Exception as e:
            logger.debug(f"[Extract] row count failed: {e}")
            return 0

    def scroll_to_load(self) -> int:
        """Scroll a page at a time until the row count stops growing or the attempt ceiling is hit."""
        prev = -1
        for _ in range(self.scroll_max_attempts):
            self.driver.evaluate(SCROLL_PAGE_JS)
            self.driver.pause(self.scroll_pause_ms)
            cur = self._count_rows()
            if cur == prev:
                break
            prev = cur
        return max(prev, 0)

    def _initial_scroll(self) -> bool:
        self.driver.evaluate(SCROLL_BOTTOM_JS)
        self.driver.pause(self.navigation_pause_ms)
        return True

    def read_expected_count(self) -> Optional[int]:
        try:
            return parse_expected_count(self.driver.page_text())
        except Exception as e:
            logger.debug(f"[Extract] expected count unavailable: {e}")
            return None

    def read_page_title(self) -> str:
        try:
            return (self.driver.title() or "").strip()
        except Exception as e:
            logger.debug(f"[Extract] page title unavailable: {e}")
            return ""

    def enumerate_elements(self, selectors: Sequence[str]) -> List[ElementHandle]:
        """Matches of the first selector that matches anything, most specific first."""
        for sel in selectors:
            try:
                found = self.driver.query_all(sel)
            except Exception as e:
                logger.debug(f"[Extract] selector {sel!r} failed: {e}")
                continue
            if found:
                logger.info(f"[Extract] {len(found)} element(s) via {sel!r}")
                return list(found)
        return []

    # ------------------------------------------------------------------
    # Playlist
    # ------------------------------------------------------------------
    def scrape_playlist(self, url: str) -> PlaylistRecord:
        logger.info(f"[Extract] Scraping playlist: {url}")
        self.navigate(url)
        self.await_content(url, self.row_selectors)
        self._retry(self._initial_scroll, "initial scroll", attempts=2)

        expected = self.read_expected_count()
        name = self.read_page_title() or url

        self._retry(self.scroll_to_load, "scroll to load songs")
        self.wait_for_network_idle()

        rows = self.enumerate_elements(self.row_selectors)
        if not rows:
            logger.warning(f"[Extract] No song rows found in playlist: {name}")
            self.debug.capture(self.driver, "debug-scrape-fail", join_selectors(self.row_selectors))
            return PlaylistRecord(name=name, url=url, tracks=(), expected_count=expected)

        tracks = self.extract_tracks(rows)
        if not tracks:
            logger.warning(f"[Extract] {len(rows)} row(s) but no usable tracks in playlist: {name}")
            self.debug.capture(self.driver, "debug-scrape-fail", join_selectors(self.row_selectors))

        if expected and len(tracks) < expected * settings.EXPECTED_COUNT_RATIO:
            logger.warning(f"[Extract] Scraped {len(tracks)} tracks, page reports {expected}: {name}")
        else:
            logger.info(f"[Extract] Scraped {len(tracks)} tracks from {name}")

        return PlaylistRecord(name=name, url=url, tracks=tuple(tracks), expected_count=expected)

    def extract_tracks(self, rows: Sequence[ElementHandle]) -> List[TrackRecord]:
        """Positions follow enumeration order and are not renumbered when rows are skipped."""
        out: List[TrackRecord] = []
        for position, element in enumerate(rows, start=1):
            try:
                record = self.extract_track(element, position)
            except Exception as e:
                logger.warning(f"[Extract] row {position} failed: {e}")
                continue
            if record is None:
                logger.warning(f"[Extract] Skipping row {position}: empty title")
                continue
            out.append(record)
        return out

    def extract_track(self, element: ElementHandle, position: int) -> Optional[TrackRecord]:
        results: Dict[str, CrossCheckResult] = {
            f.name: self.cross_checker.cross_check(element, f) for f in self.registry.fields()
        }
        values = {name: r.value for name, r in results.items()}
        confidences = {name: r.confidence for name, r in results.items()}
        details: Dict[str, object] = {name: dict(r.provenance) for name, r in results.items() if r.provenance}

        def fallback(field_name: str, value: str, source: str) -> None:
            if value and not values.get(field_name):
                values[field_name] = value
                confidences[field_name] = FALLBACK_CONFIDENCE
                details[field_name] = {source: value}

        if not values.get("title"):
            parts = parse_aria_label(self._aria_label(element))
            if parts:
                fallback("title", normalize_title(parts[0]), "aria-label")
                if len(parts) >= 2:
                    fallback("artist", normalize_artist(parts[1]), "aria-label")
                if len(parts) >= 3:
                    fallback("album", collapse_whitespace(parts[2]), "aria-label")

        url = resolve_url(self.base_url, values.get("url", ""))
        external_id = extract_track_id(url, element)

        if not values.get("title") and self.known_titles is not None and external_id:
            known = self.known_titles.title_for_id(external_id)
            if known:
                fallback("title", known[0], "known-titles")
                fallback("artist", known[1], "known-titles")

        if not values.get("artist"):
            fallback("artist", self._artist_from_links(element), "artist-link")

        title = values.get("title", "")
        if not title:
            return None

        scored = [confidences.get(name, 0.0) for name in SCORED_TRACK_FIELDS]
        return TrackRecord(
            title=title,
            artist=values.get("artist", ""),
            album=values.get("album", ""),
            url=url,
            duration=values.get("duration", ""),
            track_number=_parse_int(values.get("track_number", "")),
            playlist_position=position,
            explicit=True if values.get("explicit") else None,
            image_url=resolve_url(self.base_url, values.get("image_url", "")),
            external_id=external_id,
            confidence=round(sum(scored) / len(scored), 4),
            source_details=details,
            field_validation_status={name: conf == 1.0 for name, conf in confidences.items() if values.get(name)},
        )

    def _aria_label(self, element: ElementHandle) -> str:
        try:
            own = element.attribute("aria-label")
            if own:
                return own
            labelled = element.query_all("[aria-label]")
            return (labelled[0].attribute("aria-label") or "") if labelled else ""
        except Exception as e:
            logger.debug(f"[Extract] aria-label unavailable: {e}")
            return ""

    def _artist_from_links(self, element: ElementHandle) -> str:
        try:
            for a in element.query_all("a[href*='/artists/']"):
                name = artist_from_href(a.attribute("href") or "")
                if name:
                    return normalize_artist(name)
        except Exception as e:
            logger.debug(f"[Extract] artist links unavailable: {e}")
        return ""

    # ------------------------------------------------------------------
    # Library
    # ------------------------------------------------------------------
    def _click_first(self, selectors: Sequence[str], description: str) -> bool:
        for sel in selectors:
            try:
                found = self.driver.query_all(sel)
                if found:
                    found[0].click()
                    logger.debug(f"[Extract] clicked {description} via {sel!r}")
                    return True
            except Exception as e:
                logger.debug(f"[Extract] click {description} via {sel!r} failed: {e}")
        return False

    def _click_fuzzy(self, needle: str) -> bool:
        try:
            candidates = self.driver.query_all(CLICKABLE_SELECTORS)
        except Exception as e:
            logger.debug(f"[Extract] clickable scan failed: {e}")
            return False
        for el in candidates:
            try:
                combined = f"{el.attribute('aria-label') or ''} {el.text() or ''}".lower()
                if needle in combined:
                    el.click()
                    return True
            except Exception:
                continue
        return False

    def go_to_library_playlists(self) -> bool:
        logger.info("[Extract] Navigating to Library > Playlists")
        try:
            if self._click_first(LIBRARY_ENTRY_SELECTORS, "Library entry"):
                self.driver.pause(self.navigation_pause_ms)
            if self._click_first(PLAYLISTS_TAB_SELECTORS, "Playlists tab") or self._click_fuzzy("playlist"):
                self.await_content("library playlists", PLAYLIST_TILE_SELECTORS)
                return True
        except Exception as e:
            logger.error(f"[Extract] Failed navigating library/playlists: {e}")
            return False
        logger.error("[Extract] Playlists tab not found by any selector")
        self.debug.capture(self.driver, "debug-playlists-tab", "music-pill-item")
        return False

    def scrape_playlist_links(self) -> List[PlaylistLink]:
        logger.info("[Extract] Scraping playlist links")
        self.wait_for_network_idle()

        tiles = []
        try:
            tiles = self.driver.query_all(join_selectors(PLAYLIST_TILE_SELECTORS))
        except Exception as e:
            logger.warning(f"[Extract] playlist tile query failed: {e}")

        links: List[PlaylistLink] = []
        seen = set()
        for index, tile in enumerate(tiles, start=1):
            try:
                link = self._extract_link(tile)
            except Exception as e:
                logger.debug(f"[Extract] tile {index} failed: {e}")
                continue
            if link is None or link.url in seen:
                continue
            seen.add(link.url)
            links.append(link)

        if links:
            logger.info(f"[Extract] Found {len(links)} playlists")
        else:
            logger.error("[Extract] No playlist links found")
            self.debug.capture(self.driver, "debug-playlist-links", join_selectors(PLAYLIST_TILE_SELECTORS))
        return links

    def _extract_link(self, tile: ElementHandle) -> Optional[PlaylistLink]:
        name_field = self.tile_registry.get_field("playlist_name")
        url_field = self.tile_registry.get_field("playlist_url")
        url = resolve_url(self.base_url, self.cross_checker.cross_check(tile, url_field).value)
        if not url or not looks_like_playlist_url(url):
            return None
        name = self.cross_checker.cross_check(tile, name_field).value
        if not name:
            text = (tile.text() or "").strip()
            name = text.splitlines()[0].strip() if text else ""
        return PlaylistLink(name=name or UNKNOWN_PLAYLIST_NAME, url=url)


def _parse_int(text: str) -> Optional[int]:
    m = _DIGITS_RE.search(text or "")
    return int(m.group(0)) if m else None
