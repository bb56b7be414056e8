"""
Browser-side interfaces the extraction core talks to.

Any call may raise (timeouts, detached elements); callers in the core treat
every call site as fallible.
"""
from __future__ import annotations

from typing import Any, List, Optional, Protocol


class ElementHandle(Protocol):
    def text(self) -> str: ...

    def attribute(self, name: str) -> Optional[str]: ...

    def click(self) -> None: ...

    def query_all(self, selector: str) -> List["ElementHandle"]: ...

    def outer_html(self) -> str: ...


class BrowserDriver(Protocol):
    def navigate(self, url: str) -> None: ...

    def query_all(self, selector: str) -> List[ElementHandle]: ...

    def evaluate(self, script: str, arg: Any = None) -> Any: ...

    def wait_for_network_idle(self, timeout_ms: int) -> None: ...

    def pause(self, ms: int) -> None: ...

    def title(self) -> str: ...

    def page_text(self) -> str: ...

    def content(self) -> str: ...

    def screenshot(self) -> bytes: ...


SCROLL_PAGE_JS = "() => window.scrollBy(0, window.innerHeight)"
SCROLL_BOTTOM_JS = "() => window.scrollTo(0, document.body.scrollHeight)"
