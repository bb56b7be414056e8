"""
Amazon Music playlist extraction and cross-validation.

Public API:
  - PlaylistExtractor(driver, ...).scrape_playlist(url) -> PlaylistRecord
  - FieldCrossChecker().cross_check(element, descriptor) -> CrossCheckResult
  - ContentReadinessWaiter().wait(state) -> ReadinessOutcome
  - with_retry(action, max_attempts, description) -> result | ABSENT
  - EnrichmentMerger(source).enrich(record) -> TrackRecord
  - SoundCloudSource(client_id) gap-fill source for EnrichmentMerger(..., validates=False)
"""
from lib.extraction.cross_checker import FieldCrossChecker
from lib.extraction.debug_capture import DebugCapture, FileDebugSink
from lib.extraction.enrichment import EnrichmentMerger, EnrichmentResult, MusicBrainzSource, SoundCloudSource
from lib.extraction.errors import BrowserLaunchError, ScrapeError, SiteUnreachableError
from lib.extraction.known_titles import KnownTitleIndex
from lib.extraction.models import (
    CrossCheckResult,
    FieldDescriptor,
    FieldRole,
    PlaylistLink,
    PlaylistRecord,
    ReadinessOutcome,
    TrackRecord,
)
from lib.extraction.pipeline import PlaylistExtractor
from lib.extraction.readiness import ContentReadinessWaiter
from lib.extraction.registry import TRACK_REGISTRY, TILE_REGISTRY, SelectorRegistry
from lib.extraction.retry import ABSENT, with_retry

__all__ = [
    "ABSENT",
    "BrowserLaunchError",
    "ContentReadinessWaiter",
    "CrossCheckResult",
    "DebugCapture",
    "EnrichmentMerger",
    "EnrichmentResult",
    "FieldCrossChecker",
    "FieldDescriptor",
    "FieldRole",
    "FileDebugSink",
    "KnownTitleIndex",
    "MusicBrainzSource",
    "PlaylistExtractor",
    "PlaylistLink",
    "PlaylistRecord",
    "ReadinessOutcome",
    "ScrapeError",
    "SelectorRegistry",
    "SiteUnreachableError",
    "SoundCloudSource",
    "TILE_REGISTRY",
    "TRACK_REGISTRY",
    "TrackRecord",
    "with_retry",
]
