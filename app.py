from __future__ import annotations

import os
import threading
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from fastapi import (
    FastAPI,
    HTTPException,
    Query,
    UploadFile,
    File,
    Form,
    Request,
)
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.gzip import GZipMiddleware
from pydantic import BaseModel

from core import (
    build_enrichers,
    normalize_playlist_url,
    playlist_to_dict,
    replay_snapshot,
    scrape_library,
    scrape_playlist,
)
from html_renderer import render_html
from lib.cache_manager import PLAYLIST_CACHE_TTL_S, build_playlist_cache_key, get_playlist_cache
from lib.extraction import settings
from lib.extraction.errors import ScrapeError
from lib.extraction.models import PlaylistRecord
from lib.storage import CsvSink, SqliteSink
from playwright_pool import browser_session
import logging

# Basic logging configuration to ensure logger outputs appear in the terminal
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn.error")
logger.setLevel(logging.INFO)

ALLOWED_HOSTS = frozenset({
    "music.amazon.com",
    "music.amazon.com.au",
    "music.amazon.co.uk",
    "music.amazon.ca",
    "music.amazon.de",
    "music.amazon.fr",
    "music.amazon.it",
    "music.amazon.es",
    "music.amazon.co.jp",
    "music.amazon.in",
    "music.amazon.com.br",
    "music.amazon.com.mx",
})

# One browser session at a time
_SCRAPE_LOCK = threading.Lock()
SCRAPE_LOCK_TIMEOUT_S = float(os.getenv("SCRAPE_LOCK_TIMEOUT_S", "300"))

MAX_UPLOAD_SIZE = int(os.getenv("MAX_UPLOAD_SIZE", 20 * 1024 * 1024))


# =========================
# Pydantic models
# =========================

class TrackModel(BaseModel):
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
    source_details: Dict[str, Any] = {}
    field_validation_status: Dict[str, bool] = {}


class PlaylistMetaModel(BaseModel):
    model_config = {"extra": "allow"}

    cache_hit: Optional[bool] = None
    cache_ttl_s: Optional[int] = None
    refresh: Optional[int] = None
    enriched: Optional[bool] = None
    total_api_ms: Optional[float] = None
    source: Optional[str] = None


class PlaylistResponse(BaseModel):
    playlist_name: str
    playlist_url: Optional[str] = None
    expected_count: Optional[int] = None
    confidence: float = 0.0
    tracks: List[TrackModel]
    meta: Optional[PlaylistMetaModel] = None


class LibraryBody(BaseModel):
    limit: Optional[int] = None
    enrich: bool = False


class LibraryPlaylistModel(BaseModel):
    name: str
    url: str
    tracks: int
    expected_count: Optional[int] = None


class LibraryResponse(BaseModel):
    playlists: List[LibraryPlaylistModel]
    total_tracks: int


# =========================
# FastAPI app & CORS
# =========================

app = FastAPI(
    title="Amazon Music Playlist Scraper",
    version="1.0.0",
)

# Add GZip middleware for response compression (reduces payload size for large JSON)
app.add_middleware(GZipMiddleware, minimum_size=1000)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.method in ("POST", "PUT", "PATCH"):
            content_length = request.headers.get("content-length")
            if content_length and int(content_length) > 25 * 1024 * 1024:  # 25MB ceiling
                logger.warning(f"[RequestSizeLimit] Rejected oversized request: {content_length} bytes from {request.client}")
                return JSONResponse(
                    status_code=413,
                    content={"detail": "Request body too large (max 25MB)"}
                )
        return await call_next(request)


app.add_middleware(RequestSizeLimitMiddleware)


@app.on_event("startup")
def _log_startup():
    logger.info(f"amazon-music-scraper: startup (base_url={settings.BASE_URL}, headless={settings.HEADLESS})")


default_origins = [
    "http://localhost:3000",
]

# ALLOWED_ORIGINS overrides the defaults (comma separated)
env_origins = os.getenv("ALLOWED_ORIGINS")
if env_origins:
    origins = [o.strip() for o in env_origins.split(",") if o.strip()]
else:
    origins = default_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================
# Health check
# =========================

@app.get("/health", tags=["system"])
def health() -> Dict[str, Any]:
    return {
        "ok": True,
        "status": "ok",
        "build_commit": os.getenv("RENDER_GIT_COMMIT", "local")[:7],
        "scrape_busy": _SCRAPE_LOCK.locked(),
    }


# =========================
# Core helpers
# =========================

def _sanitize_url(raw: str) -> str:
    """
    Basic server-side URL sanitization: trim whitespace, strip surrounding
    angle brackets and surrounding single/double quotes.
    """
    if not raw:
        return raw
    s = raw.strip()
    if s.startswith('<') and s.endswith('>'):
        s = s[1:-1].strip()
    s = s.strip('\'"')
    return s


def _validate_playlist_url(raw: str) -> str:
    """Sanitized playlist URL, or 422 unless it is https on an Amazon Music host."""
    url = _sanitize_url(raw or "")
    if not url:
        raise HTTPException(status_code=422, detail="url is required")
    parsed = urlparse(url)
    if parsed.scheme != "https":
        raise HTTPException(status_code=422, detail="Only https URLs are accepted")
    host = (parsed.hostname or "").lower()
    if host not in ALLOWED_HOSTS:
        raise HTTPException(status_code=422, detail=f"Unsupported URL host: {host or '(none)'}")
    return url


class _ScrapeSlot:
    """Holds the process-wide scrape lock for one request; 503 when busy too long."""

    def __enter__(self):
        if not _SCRAPE_LOCK.acquire(timeout=SCRAPE_LOCK_TIMEOUT_S):
            raise HTTPException(status_code=503, detail="Scraper busy, try again later")
        return self

    def __exit__(self, *exc):
        _SCRAPE_LOCK.release()
        return False


def _scrape_error(e: ScrapeError, endpoint: str) -> HTTPException:
    logger.error(f"[{endpoint}] scrape failed: {e} meta={e.meta}")
    return HTTPException(status_code=502, detail={"error": str(e), "meta": e.meta})


def _fetch_playlist(url: str, enrich: bool, refresh: Optional[int]) -> Dict[str, Any]:
    t0 = time.time()
    clean_url = _validate_playlist_url(url)
    normalized_url = normalize_playlist_url(clean_url)
    cache = get_playlist_cache()
    cache_key = build_playlist_cache_key(normalized_url, enrich)
    bypass = (refresh == 1)
    cached = None if bypass else cache.get(cache_key)
    cache_hit = cached is not None

    logger.info(f"[api/playlist] raw_url={url} normalized_url={normalized_url} enrich={enrich} cache_hit={cache_hit}")

    if cached is not None:
        record: PlaylistRecord = cached
    else:
        try:
            with _ScrapeSlot():
                with browser_session() as driver:
                    record = scrape_playlist(driver, clean_url, enrich=enrich)
        except ScrapeError as e:
            raise _scrape_error(e, "api/playlist")
        if record.tracks:
            cache[cache_key] = record

    data = playlist_to_dict(record)
    total_ms = (time.time() - t0) * 1000
    data["meta"] = {
        "cache_hit": cache_hit,
        "cache_ttl_s": PLAYLIST_CACHE_TTL_S,
        "refresh": 1 if bypass else 0,
        "enriched": enrich,
        "total_api_ms": float(total_ms),
        "source": "cache" if cache_hit else "browser",
    }
    logger.info(f"[PERF] url={normalized_url} tracks={len(record.tracks)} cache_hit={cache_hit} total_api_ms={total_ms:.1f}")
    return data


# =========================
# Endpoints
# =========================

@app.get("/api/playlist", response_model=PlaylistResponse)
def get_playlist(
    url: str = Query(..., description="Amazon Music playlist URL"),
    enrich: bool = Query(False, description="Validate tracks against MusicBrainz"),
    refresh: Optional[int] = Query(None, description="Bypass cache when set to 1"),
):
    return _fetch_playlist(url, enrich, refresh)


@app.get("/api/playlist.html", response_class=HTMLResponse)
def get_playlist_html(
    url: str = Query(..., description="Amazon Music playlist URL"),
    enrich: bool = Query(False),
    refresh: Optional[int] = Query(None),
):
    return HTMLResponse(render_html(_fetch_playlist(url, enrich, refresh)))


@app.post("/api/library", response_model=LibraryResponse)
def post_library(body: LibraryBody):
    """Scrape every playlist in the signed-in library into SQLite + CSV."""
    sinks = [
        SqliteSink(os.path.join(settings.DATA_DIR, "playlists.sqlite3")),
        CsvSink(settings.DATA_DIR),
    ]
    enrichers = build_enrichers(body.enrich)
    try:
        with _ScrapeSlot():
            with browser_session() as driver:
                records = scrape_library(driver, sinks, enrichers=enrichers, limit=body.limit)
    except ScrapeError as e:
        raise _scrape_error(e, "api/library")
    finally:
        sinks[0].close()

    playlists = [
        {"name": r.name, "url": r.url, "tracks": len(r.tracks), "expected_count": r.expected_count}
        for r in records
    ]
    return {"playlists": playlists, "total_tracks": sum(p["tracks"] for p in playlists)}


@app.post("/api/replay", response_model=PlaylistResponse)
def post_replay(
    file: UploadFile = File(..., description="Saved playlist page HTML"),
    url: Optional[str] = Form(None, description="Original playlist URL"),
):
    """Run extraction over an uploaded HTML snapshot (no browser)."""
    raw = file.file.read(MAX_UPLOAD_SIZE + 1)
    if len(raw) > MAX_UPLOAD_SIZE:
        raise HTTPException(status_code=413, detail=f"Snapshot too large (max {MAX_UPLOAD_SIZE} bytes)")
    if not raw:
        raise HTTPException(status_code=400, detail="Empty snapshot")
    record = replay_snapshot(raw.decode("utf-8", errors="replace"), url=url or "")
    data = playlist_to_dict(record)
    data["meta"] = {"source": "snapshot", "cache_hit": False}
    logger.info(f"[api/replay] filename={file.filename} tracks={len(record.tracks)}")
    return data


# =========================
# Local dev entrypoint
# =========================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
