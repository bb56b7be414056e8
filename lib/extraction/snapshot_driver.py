"""
Offline driver over a saved HTML snapshot (BeautifulSoup).

Lets debug snapshots and fixtures run through the same extraction pipeline
as a live browser. The page is static: navigation, waits and scripts are
no-ops and clicks are unsupported.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

logger = logging.getLogger(__name__)


class SoupElement:
    def __init__(self, tag: Tag):
        self._tag = tag

    def text(self) -> str:
        return self._tag.get_text(" ", strip=True)

    def attribute(self, name: str) -> Optional[str]:
        value = self._tag.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    def click(self) -> None:
        raise NotImplementedError("static snapshot elements cannot be clicked")

    def query_all(self, selector: str) -> List["SoupElement"]:
        return _select(self._tag, selector)

    def outer_html(self) -> str:
        return str(self._tag)


def _select(root: Tag, selector: str) -> List[SoupElement]:
    try:
        return [SoupElement(t) for t in root.select(selector)]
    except Exception as e:
        # browser-only selector extensions (e.g. :has-text) match nothing offline
        logger.debug(f"[Snapshot] unsupported selector {selector!r}: {e}")
        return []


class SnapshotDriver:
    def __init__(self, html: str, url: str = ""):
        self.html = html or ""
        self.url = url
        self.soup = BeautifulSoup(self.html, "html.parser")

    def navigate(self, url: str) -> None:
        self.url = url

    def query_all(self, selector: str) -> List[SoupElement]:
        return _select(self.soup, selector)

    def evaluate(self, script: str, arg: Any = None) -> Any:
        return None

    def wait_for_network_idle(self, timeout_ms: int) -> None:
        return None

    def pause(self, ms: int) -> None:
        return None

    def title(self) -> str:
        if self.soup.title and self.soup.title.string:
            return self.soup.title.string.strip()
        return ""

    def page_text(self) -> str:
        return self.soup.get_text(" ", strip=True)

    def content(self) -> str:
        return self.html

    def screenshot(self) -> bytes:
        return b""
