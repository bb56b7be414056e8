#!/usr/bin/env python3
"""
Amazon Music Playlist Probe.

Dev-only: opens one playlist in a real browser, runs the extraction pipeline
and prints a summary (count, confidence spread, low-confidence samples).

Usage:
    PYTHONPATH=. python scripts/scrape_probe.py "https://music.amazon.com.au/playlists/B0..." [--enrich]

Set SCRAPER_SAVE_DEBUG=1 to keep HTML / screenshot snapshots when nothing is extracted,
and SCRAPER_HEADLESS=0 to watch the browser.
"""

import json
import logging
import sys

from core import playlist_to_dict, scrape_playlist
from lib.extraction.errors import ScrapeError
from playwright_pool import browser_session

logging.basicConfig(
    level=logging.INFO,
    format="[%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

LOW_CONFIDENCE = 0.5


def main() -> int:
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    if not args:
        print("Usage: python scripts/scrape_probe.py <playlist_url> [--enrich]")
        return 1
    url = args[0].strip().strip('"\'')
    enrich = "--enrich" in sys.argv

    try:
        with browser_session() as driver:
            record = scrape_playlist(driver, url, enrich=enrich)
    except ScrapeError as e:
        print(f"Scrape failed: {e}")
        print(json.dumps(e.meta, indent=2, ensure_ascii=False))
        return 1

    data = playlist_to_dict(record)
    tracks = data["tracks"]
    low = [t for t in tracks if t["confidence"] < LOW_CONFIDENCE]

    print("\n" + "=" * 70)
    print("AMAZON MUSIC PROBE RESULT")
    print("=" * 70)
    print("playlist:", data["playlist_name"])
    print("count:", len(tracks), "expected:", data["expected_count"])
    print("mean confidence:", data["confidence"])
    print("low confidence:", len(low))
    for t in low[:5]:
        print(json.dumps({k: t[k] for k in ("playlist_position", "title", "artist", "source_details")},
                         ensure_ascii=False, indent=2))
    if tracks:
        print("sample0:", json.dumps(tracks[0], ensure_ascii=False, indent=2)[:1000])
    print("=" * 70)
    return 0 if tracks else 1


if __name__ == "__main__":
    sys.exit(main())
