"""
Selector registry: logical field name -> ordered candidate queries.

Single source of truth for extraction and for the export schema
(TRACK_EXPORT_FIELDS is what the CSV / SQLite sinks write, in this order).
Candidate query syntax is documented on FieldDescriptor.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from lib.extraction.models import FieldDescriptor, FieldRole

# Song rows, most specific first. Amazon renders rows as <music-image-row> /
# <music-text-row> web components; the rest are fallbacks seen across redesigns.
SONG_ROW_SELECTORS: Tuple[str, ...] = (
    "music-image-row",
    "music-text-row",
    "[data-testid='song-row']",
    "[data-testid='track-row']",
    "music-track-list-row",
    ".music-track-list-row",
    ".music-image-row",
    ".track-list__item",
    ".song-item",
    ".track-item",
    "[class*='track-row']",
    "[class*='song-row']",
    "tr[role='row']",
    "div[role='row']",
    ".song-row",
    ".track-row",
    "div.tracklist-row",
)

PLAYLIST_TILE_SELECTORS: Tuple[str, ...] = (
    "[data-test='playlist']",
    "[data-testid='playlist']",
    "music-vertical-item",
    "music-horizontal-item",
    "a[href*='/playlist']",
)

EMPTY_STATE_SELECTORS: Tuple[str, ...] = (
    "[data-testid='empty-playlist']",
    ".empty-state",
)

TRACKLIST_CONTAINER_SELECTORS: Tuple[str, ...] = (
    "[data-testid='track-list']",
    "div[role='grid']",
    "main [role='grid']",
)

LIBRARY_ENTRY_SELECTORS: Tuple[str, ...] = (
    "[aria-label='Library']",
    "a[href*='/my/library']",
    "music-link:has-text('Library')",
    "a:has-text('Library')",
)

PLAYLISTS_TAB_SELECTORS: Tuple[str, ...] = (
    "music-pill-item:has-text('Playlists')",
    "[aria-label='Playlists']",
    "[data-icon='playlists']",
    "a[href*='/playlists']",
    "[data-testid*='playlists']",
)

CLICKABLE_SELECTORS = "a, button, music-link, music-pill-item, [role='button'], [role='link']"


TRACK_FIELDS: Tuple[FieldDescriptor, ...] = (
    FieldDescriptor("title", (
        "@primary-text",
        "div.col1 a[tabindex]",
        "a[data-test='track-title']",
        ".track-title",
        "[data-testid*='title']",
        ".title",
    ), FieldRole.TITLE),
    FieldDescriptor("artist", (
        "@secondary-text-1",
        "div.col2 a[tabindex]",
        "a[data-test='track-artist']",
        ".track-artist",
        "[data-testid*='artist']",
        ".artist",
    ), FieldRole.ARTIST),
    FieldDescriptor("album", (
        "@secondary-text-2",
        "div.col3 a[tabindex]",
        "a[data-test='track-album']",
        ".track-album",
        "[data-testid*='album']",
        ".album",
    ), FieldRole.ALBUM),
    FieldDescriptor("url", (
        "@primary-href",
        "div.col1 a[href]@href",
        "a[data-test='track-title']@href",
        "a[href]@href",
    ), FieldRole.URL),
    FieldDescriptor("duration", (
        "div.col4 span[tabindex]",
        "span[data-testid='duration']",
        ".duration",
        ".track-duration",
    ), FieldRole.DURATION),
    FieldDescriptor("track_number", (
        "span[data-testid='track-number']",
        "span.index",
        ".track-number",
        ".position",
        ".num",
    ), FieldRole.TRACK_NUMBER),
    FieldDescriptor("explicit", (
        "music-tag[aria-label*='explicit' i]@aria-label",
        "[aria-label*='explicit' i]@aria-label",
        "[data-testid*='explicit']",
        ".explicit",
    ), FieldRole.EXPLICIT),
    FieldDescriptor("image_url", (
        "@image-src",
        "music-image img@src",
        "img@src",
        "img@data-src",
    ), FieldRole.IMAGE_URL),
)

TILE_FIELDS: Tuple[FieldDescriptor, ...] = (
    FieldDescriptor("playlist_name", (
        "@primary-text",
        "[data-testid*='title']",
        ".title",
        "@aria-label",
    ), FieldRole.PLAYLIST_NAME),
    FieldDescriptor("playlist_url", (
        "@primary-href",
        "a[href]@href",
        "music-link@href",
        "@href",
    ), FieldRole.PLAYLIST_URL),
)

# Fields that score a record's aggregate confidence.
SCORED_TRACK_FIELDS: Tuple[str, ...] = ("title", "artist", "album", "duration")

# Export schema, in column order. Must stay in sync with TrackRecord and TRACK_FIELDS.
TRACK_EXPORT_FIELDS: Tuple[str, ...] = (
    "title",
    "artist",
    "album",
    "url",
    "duration",
    "track_number",
    "playlist_position",
    "explicit",
    "image_url",
    "release_date",
    "genre",
    "external_id",
    "validated",
    "confidence",
    "source_details",
    "field_validation_status",
)


class SelectorRegistry:
    """Read-only lookup over a set of field descriptors."""

    def __init__(self, fields: Iterable[FieldDescriptor]):
        self._fields: Dict[str, FieldDescriptor] = {}
        for f in fields:
            self._fields[f.name] = f

    def get_candidates(self, field_name: str) -> Tuple[str, ...]:
        f = self._fields.get(field_name)
        return f.candidates if f else ()

    def get_field(self, field_name: str) -> Optional[FieldDescriptor]:
        return self._fields.get(field_name)

    def all_field_names(self) -> FrozenSet[str]:
        return frozenset(self._fields)

    def fields(self) -> Tuple[FieldDescriptor, ...]:
        return tuple(self._fields.values())


TRACK_REGISTRY = SelectorRegistry(TRACK_FIELDS)
TILE_REGISTRY = SelectorRegistry(TILE_FIELDS)


def join_selectors(selectors: Iterable[str]) -> str:
    return ", ".join(selectors)
