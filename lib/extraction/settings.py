"""Environment-driven settings for the scraper (read once at import)."""
from __future__ import annotations

import os

BASE_URL = os.getenv("SCRAPER_BASE_URL", "https://music.amazon.com.au").rstrip("/")

# Browser
HEADLESS = os.getenv("SCRAPER_HEADLESS", "1") != "0"
USER_DATA_DIR = os.getenv("SCRAPER_USER_DATA_DIR")
NAV_TIMEOUT_MS = int(os.getenv("SCRAPER_NAV_TIMEOUT_MS", "30000"))

# Waits (ms)
PLAYLIST_WAIT_MS = int(os.getenv("SCRAPER_PLAYLIST_WAIT_MS", "5000"))
POLL_INTERVAL_MS = int(os.getenv("SCRAPER_POLL_INTERVAL_MS", "250"))
POLL_CEILING_MS = int(os.getenv("SCRAPER_POLL_CEILING_MS", "2000"))
ELEMENT_WAIT_MS = int(os.getenv("SCRAPER_ELEMENT_WAIT_MS", "3000"))
NAVIGATION_PAUSE_MS = int(os.getenv("SCRAPER_NAVIGATION_PAUSE_MS", "1000"))

# Scroll-to-load
SCROLL_MAX_ATTEMPTS = int(os.getenv("SCRAPER_SCROLL_MAX_ATTEMPTS", "10"))
SCROLL_PAUSE_MS = int(os.getenv("SCRAPER_SCROLL_PAUSE_MS", "800"))

RETRY_ATTEMPTS = int(os.getenv("SCRAPER_RETRY_ATTEMPTS", "3"))

# Debug artifacts
SAVE_DEBUG = os.getenv("SCRAPER_SAVE_DEBUG", "0").lower() in ("1", "true", "yes")
DEBUG_DIR = os.getenv("SCRAPER_DEBUG_DIR", "scraped-debug")
DEBUG_HTML_MAX_BYTES = int(os.getenv("SCRAPER_DEBUG_HTML_MAX_BYTES", "200000"))
DEBUG_MAX_ELEMENTS = int(os.getenv("SCRAPER_DEBUG_MAX_ELEMENTS", "8"))

# Output
DATA_DIR = os.getenv("SCRAPER_DATA_DIR", "scraped-data")
KNOWN_TITLES_DIR = os.getenv("SCRAPER_KNOWN_TITLES_DIR", DATA_DIR)

# Enrichment
ENRICH = os.getenv("SCRAPER_ENRICH", "0").lower() in ("1", "true", "yes")
MUSICBRAINZ_TIMEOUT_S = float(os.getenv("MUSICBRAINZ_TIMEOUT_S", "10"))
MUSICBRAINZ_MIN_INTERVAL_S = float(os.getenv("MUSICBRAINZ_MIN_INTERVAL_S", "1.0"))
ENRICH_CONFIDENCE_BOOST = float(os.getenv("ENRICH_CONFIDENCE_BOOST", "0.2"))
# SoundCloud gap-fill runs only when a client id is configured
SOUNDCLOUD_CLIENT_ID = os.getenv("SOUNDCLOUD_CLIENT_ID", "")
SOUNDCLOUD_TIMEOUT_S = float(os.getenv("SOUNDCLOUD_TIMEOUT_S", "5"))

# Expected-count sanity threshold
EXPECTED_COUNT_RATIO = 0.9
