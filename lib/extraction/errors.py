from __future__ import annotations


class ScrapeError(Exception):
    """Fatal scrape failure carrying diagnostic meta for the caller."""

    def __init__(self, message: str, meta: dict | None = None):
        super().__init__(message)
        self.meta = meta or {}


class BrowserLaunchError(ScrapeError):
    """Chromium / Playwright could not be started."""


class SiteUnreachableError(ScrapeError):
    """The target site could not be loaded even after retries."""
