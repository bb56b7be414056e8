#!/usr/bin/env python3
"""
Dev-only: run the extraction pipeline over saved HTML (a debug snapshot or a
page saved from the browser) and print the records as JSON.

Usage:
    PYTHONPATH=. python scripts/replay_snapshot.py scraped-debug/debug-scrape-fail-....html [playlist_url]
"""

import json
import logging
import sys
from pathlib import Path

from core import playlist_to_dict, replay_snapshot

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: python scripts/replay_snapshot.py <snapshot.html> [playlist_url]")
        return 1
    html = Path(sys.argv[1]).read_text(encoding="utf-8", errors="replace")
    url = sys.argv[2] if len(sys.argv) > 2 else ""
    data = playlist_to_dict(replay_snapshot(html, url=url))
    print(json.dumps(data, ensure_ascii=False, indent=2))
    return 0 if data["tracks"] else 1


if __name__ == "__main__":
    sys.exit(main())
