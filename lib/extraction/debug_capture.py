"""
Failure-to-extract snapshots: a truncated HTML fragment plus a screenshot.

Off unless SCRAPER_SAVE_DEBUG is set. Capturing is best-effort and never
raises into the scrape.
"""
from __future__ import annotations

import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol, Union

from lib.extraction import settings
from lib.extraction.driver import BrowserDriver

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n<!-- TRUNCATED -->"
ELEMENT_SEPARATOR = "\n\n<!-- ELEMENT -->\n\n"

OUTER_HTML_JS = (
    "([sel, max]) => Array.from(document.querySelectorAll(sel)).slice(0, max)"
    ".map(e => e.outerHTML).join('\\n\\n<!-- ELEMENT -->\\n\\n')"
)


class DebugSink(Protocol):
    def save_snapshot(self, label: str, html_fragment: str, screenshot: Optional[bytes]) -> None: ...


def safe_label(label: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_.-]", "-", label or "snapshot")


def truncate_html(html: str, max_bytes: int) -> str:
    if len(html) <= max_bytes:
        return html
    return html[:max_bytes] + TRUNCATION_MARKER


class FileDebugSink:
    """Writes <label>-<timestamp>.html / .png into a directory."""

    def __init__(self, directory: Union[str, Path] = settings.DEBUG_DIR):
        self.directory = Path(directory)

    def save_snapshot(self, label: str, html_fragment: str, screenshot: Optional[bytes]) -> None:
        os.makedirs(self.directory, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        base = f"{safe_label(label)}-{ts}"
        if html_fragment and html_fragment.strip():
            (self.directory / f"{base}.html").write_text(html_fragment, encoding="utf-8")
        if screenshot:
            (self.directory / f"{base}.png").write_bytes(screenshot)
        logger.info(f"[Debug] Saved snapshot {base} to {self.directory}")


class DebugCapture:
    def __init__(
        self,
        enabled: bool = settings.SAVE_DEBUG,
        sink: Optional[DebugSink] = None,
        max_bytes: int = settings.DEBUG_HTML_MAX_BYTES,
        max_elements: int = settings.DEBUG_MAX_ELEMENTS,
    ):
        self.enabled = enabled
        self.sink = sink if sink is not None else FileDebugSink()
        self.max_bytes = max_bytes
        self.max_elements = max_elements

    def capture(self, driver: BrowserDriver, label: str, selector: str = "") -> bool:
        """Snapshot the elements matching selector (or the whole page). True if something was saved."""
        if not self.enabled:
            return False

        html = ""
        if selector and selector.strip():
            try:
                html = driver.evaluate(OUTER_HTML_JS, [selector, self.max_elements]) or ""
            except Exception as e:
                logger.debug(f"[Debug] element HTML unavailable for {label}: {e}")
        if not str(html).strip():
            try:
                html = driver.content() or ""
            except Exception as e:
                logger.debug(f"[Debug] page HTML unavailable for {label}: {e}")
                html = ""
        html = truncate_html(str(html), self.max_bytes)

        shot = None
        try:
            shot = driver.screenshot()
        except Exception as e:
            logger.debug(f"[Debug] screenshot unavailable for {label}: {e}")

        try:
            self.sink.save_snapshot(label, html, shot)
        except Exception as e:
            logger.warning(f"[Debug] failed to save snapshot {label}: {e}")
            return False
        return True
