"""
Identifier and URL heuristics for rows and tiles.

Track ids are Amazon ASINs. They show up in several places depending on the
page revision, so extract_track_id tries, in order:
  1. the trackAsin= query parameter of the row URL
  2. an ASIN-shaped path segment (/tracks/<ASIN>, /albums/<ASIN>, ...)
  3. id attributes on the row element
  4. hrefs of anchors nested in the row, through 1. and 2.
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional
from urllib.parse import parse_qs, unquote, urljoin, urlparse

from lib.extraction.driver import ElementHandle

logger = logging.getLogger(__name__)

ID_ATTRIBUTES = ("data-track-asin", "data-asin", "track-asin", "data-id")

_ASIN_PATH_RE = re.compile(r"/(?:tracks?|albums?|songs?)/([A-Za-z0-9]{10})(?=[/?#]|$)")
_EXPECTED_COUNT_RE = re.compile(r"(\d[\d,]*)\s+songs?\b", re.IGNORECASE)
_SLUG_JUNK_RE = re.compile(r"[^a-zA-Z0-9\- '&]")


def track_id_from_query(url: str) -> str:
    if not url or "?" not in url:
        return ""
    params = parse_qs(urlparse(url).query)
    for key, values in params.items():
        if key.lower() == "trackasin" and values and values[0].strip():
            return values[0].strip()
    return ""


def track_id_from_path(url: str) -> str:
    if not url:
        return ""
    m = _ASIN_PATH_RE.search(urlparse(url).path or url)
    return m.group(1) if m else ""


def track_id_from_url(url: str) -> str:
    return track_id_from_query(url) or track_id_from_path(url)


def extract_track_id(url: str, element: Optional[ElementHandle] = None) -> str:
    found = track_id_from_url(url)
    if found or element is None:
        return found

    for name in ID_ATTRIBUTES:
        try:
            value = (element.attribute(name) or "").strip()
        except Exception as e:
            logger.debug(f"[Identifiers] attribute {name} unreadable: {e}")
            continue
        if value:
            return value

    try:
        anchors = element.query_all("a[href]")
    except Exception as e:
        logger.debug(f"[Identifiers] nested anchors unreadable: {e}")
        return ""
    for a in anchors:
        try:
            found = track_id_from_url(a.attribute("href") or "")
        except Exception:
            continue
        if found:
            return found
    return ""


def parse_expected_count(text: str) -> Optional[int]:
    """'42 songs • 2 hr 31 min' -> 42. None when the page shows no count."""
    if not text:
        return None
    m = _EXPECTED_COUNT_RE.search(text)
    if not m:
        return None
    return int(m.group(1).replace(",", ""))


def resolve_url(base_url: str, href: str) -> str:
    href = (href or "").strip()
    if not href:
        return ""
    if href.startswith(("http://", "https://")):
        return href
    if href.startswith("//"):
        return "https:" + href
    return urljoin(base_url.rstrip("/") + "/", href.lstrip("/"))


def looks_like_playlist_url(url: str) -> bool:
    lower = (url or "").lower()
    if "/albums" in lower or "/stations" in lower:
        return False
    return "/playlist" in lower


def parse_aria_label(aria: str) -> List[str]:
    """'Title, Artist, Album' -> ['Title', 'Artist', 'Album']."""
    if not aria:
        return []
    return [p.strip() for p in aria.split(",")]


def artist_from_href(href: str) -> str:
    """/artists/B000QJO1XG/daft-punk -> 'Daft Punk'."""
    if not href or "/artists/" not in href:
        return ""
    path = href.split("/artists/", 1)[1].split("?", 1)[0].strip("/")
    slug = unquote(path.split("/")[-1])
    if slug.endswith(".html"):
        slug = slug[: -len(".html")]
    # bare ASIN, no readable slug
    if re.fullmatch(r"[A-Z0-9]{10}", slug):
        return ""
    words = _SLUG_JUNK_RE.sub(" ", slug).replace("-", " ").split()
    return " ".join(w[:1].upper() + w[1:] for w in words)
