"""
Data model for extracted playlists and tracks.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple


class FieldRole(str, Enum):
    """
    Role of a logical field. Drives normalization and canonical-value selection.
    title / artist / duration are the high-stakes roles (disagreement penalized harder).
    """
    TITLE = "title"
    ARTIST = "artist"
    ALBUM = "album"
    URL = "url"
    DURATION = "duration"
    TRACK_NUMBER = "track_number"
    EXPLICIT = "explicit"
    IMAGE_URL = "image_url"
    PLAYLIST_NAME = "playlist_name"
    PLAYLIST_URL = "playlist_url"
    OTHER = "other"


@dataclass(frozen=True)
class FieldDescriptor:
    """
    A logical field and its candidate queries, most reliable first.

    Query syntax:
        "css"        inner text of the first match of css inside the element
        "css@attr"   attribute attr of the first match
        "@attr"      attribute attr of the element itself
    """
    name: str
    candidates: Tuple[str, ...]
    role: FieldRole = FieldRole.OTHER


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one candidate query against one element."""
    query: str
    value: str = ""
    ok: bool = True
    error: Optional[str] = None


@dataclass(frozen=True)
class CrossCheckResult:
    value: str
    confidence: float
    provenance: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "CrossCheckResult":
        return cls(value="", confidence=0.0, provenance={})


@dataclass(frozen=True)
class TrackRecord:
    """One song row of a playlist."""
    title: str
    artist: str = ""
    album: str = ""
    url: str = ""
    duration: str = ""
    track_number: Optional[int] = None
    playlist_position: Optional[int] = None
    explicit: Optional[bool] = None
    image_url: str = ""
    release_date: str = ""
    genre: str = ""
    external_id: str = ""
    validated: bool = False
    confidence: float = 0.0
    # field -> provenance (query -> value) or an enrichment outcome entry
    source_details: Dict[str, Any] = field(default_factory=dict)
    field_validation_status: Dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class PlaylistRecord:
    name: str
    url: str
    tracks: Tuple[TrackRecord, ...] = ()
    expected_count: Optional[int] = None


@dataclass(frozen=True)
class PlaylistLink:
    """A playlist tile found on the library page."""
    name: str
    url: str


class ReadinessOutcome(str, Enum):
    READY = "ready"
    TIMED_OUT = "timed_out"


@dataclass
class NavigationState:
    """Ephemeral state of one navigation + wait cycle."""
    target_url: str
    predicate: Callable[[], bool]
    deadline: float
    poll_interval: float
