"""Centralized cache utilities (TTLCache settings & key builders)."""
from __future__ import annotations

import os
from cachetools import TTLCache

# Enrichment lookup cache settings
ENRICH_CACHE_VERSION = int(os.getenv("ENRICH_CACHE_VERSION", "1"))
ENRICH_CACHE_MAXSIZE = int(os.getenv("ENRICH_CACHE_MAXSIZE", "2048"))
ENRICH_CACHE_TTL_S = int(os.getenv("ENRICH_CACHE_TTL_S", "86400"))

# Scraped playlist cache settings (API layer)
PLAYLIST_CACHE_VERSION = int(os.getenv("PLAYLIST_CACHE_VERSION", "1"))
PLAYLIST_CACHE_MAXSIZE = int(os.getenv("PLAYLIST_CACHE_MAXSIZE", "32"))
PLAYLIST_CACHE_TTL_S = int(os.getenv("PLAYLIST_CACHE_TTL_S", "600"))

# Lazy-initialized caches
_enrichment_cache: TTLCache | None = None
_playlist_cache: TTLCache | None = None


def get_enrichment_cache() -> TTLCache:
    global _enrichment_cache
    if _enrichment_cache is None:
        _enrichment_cache = TTLCache(maxsize=ENRICH_CACHE_MAXSIZE, ttl=ENRICH_CACHE_TTL_S)
    return _enrichment_cache


def get_playlist_cache() -> TTLCache:
    global _playlist_cache
    if _playlist_cache is None:
        _playlist_cache = TTLCache(maxsize=PLAYLIST_CACHE_MAXSIZE, ttl=PLAYLIST_CACHE_TTL_S)
    return _playlist_cache


def build_enrichment_cache_key(source: str, title: str, artist: str) -> str:
    return f"enrich:{ENRICH_CACHE_VERSION}:{source}:{_fold(title)}|{_fold(artist)}"


def build_playlist_cache_key(url: str, enrich: bool) -> str:
    return f"pl:{PLAYLIST_CACHE_VERSION}:{url}:{int(bool(enrich))}"


def _fold(s: str) -> str:
    return " ".join((s or "").lower().split())
