import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

from playwright.sync_api import BrowserContext, ElementHandle, Page, Playwright, sync_playwright

from lib.extraction import settings
from lib.extraction.errors import BrowserLaunchError

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1920, "height": 1080}


def _launch_args() -> list[str]:
    args: list[str] = []
    # containers: no sandbox, no /dev/shm
    if sys.platform.startswith("linux"):
        args += ["--no-sandbox", "--disable-dev-shm-usage"]
    return args


class PlaywrightElement:
    def __init__(self, handle: ElementHandle):
        self._handle = handle

    def text(self) -> str:
        return self._handle.inner_text() or ""

    def attribute(self, name: str) -> Optional[str]:
        return self._handle.get_attribute(name)

    def click(self) -> None:
        self._handle.scroll_into_view_if_needed()
        self._handle.click()

    def query_all(self, selector: str) -> List["PlaywrightElement"]:
        return [PlaywrightElement(h) for h in self._handle.query_selector_all(selector)]

    def outer_html(self) -> str:
        return self._handle.evaluate("e => e.outerHTML") or ""


class PlaywrightDriver:
    """BrowserDriver over one sync Playwright page."""

    def __init__(self, page: Page, nav_timeout_ms: int = settings.NAV_TIMEOUT_MS):
        self.page = page
        self.nav_timeout_ms = nav_timeout_ms

    def navigate(self, url: str) -> None:
        self.page.goto(url, wait_until="domcontentloaded", timeout=self.nav_timeout_ms)

    def query_all(self, selector: str) -> List[PlaywrightElement]:
        return [PlaywrightElement(h) for h in self.page.query_selector_all(selector)]

    def evaluate(self, script: str, arg: Any = None) -> Any:
        if arg is None:
            return self.page.evaluate(script)
        return self.page.evaluate(script, arg)

    def wait_for_network_idle(self, timeout_ms: int) -> None:
        self.page.wait_for_load_state("networkidle", timeout=timeout_ms)

    def pause(self, ms: int) -> None:
        self.page.wait_for_timeout(ms)

    def title(self) -> str:
        return self.page.title()

    def page_text(self) -> str:
        return self.page.inner_text("body")

    def content(self) -> str:
        return self.page.content()

    def screenshot(self) -> bytes:
        return self.page.screenshot(full_page=True)


def _open_context(pw: Playwright, headless: bool, user_data_dir: Optional[str]) -> BrowserContext:
    if user_data_dir:
        # persistent profile carries the signed-in session
        ctx = pw.chromium.launch_persistent_context(
            user_data_dir=user_data_dir,
            headless=headless,
            args=_launch_args(),
            user_agent=USER_AGENT,
            viewport=VIEWPORT,
        )
        logger.info(f"[PW_POOL] launch persistent context ({user_data_dir})")
        return ctx
    browser = pw.chromium.launch(headless=headless, args=_launch_args())
    ctx = browser.new_context(user_agent=USER_AGENT, viewport=VIEWPORT)
    logger.info("[PW_POOL] ephemeral context created")
    return ctx


def _close_quietly(ctx: Optional[BrowserContext], pw: Optional[Playwright]) -> None:
    if ctx is not None:
        browser = ctx.browser
        try:
            ctx.close()
        except Exception as e:
            logger.debug(f"[PW_POOL] context close failed: {e}")
        if browser is not None:
            try:
                browser.close()
            except Exception as e:
                logger.debug(f"[PW_POOL] browser close failed: {e}")
    if pw is not None:
        try:
            pw.stop()
        except Exception as e:
            logger.debug(f"[PW_POOL] playwright stop failed: {e}")


def _launch(headless: bool, user_data_dir: Optional[str]):
    pw = sync_playwright().start()
    try:
        return pw, _open_context(pw, headless, user_data_dir)
    except Exception:
        _close_quietly(None, pw)
        raise


def _launch_error(e: Exception, headless: bool, user_data_dir: Optional[str]) -> BrowserLaunchError:
    msg = str(e)
    meta = {"headless": headless, "user_data_dir": user_data_dir, "error": msg}
    if "Executable doesn't exist" in msg or "chrome-linux" in msg:
        return BrowserLaunchError(
            "Playwright browser executable not found. "
            "Install it with: python -m playwright install --with-deps chromium",
            meta=meta,
        )
    return BrowserLaunchError(f"Playwright initialization failed: {msg}", meta=meta)


@contextmanager
def browser_session(
    headless: bool = settings.HEADLESS,
    user_data_dir: Optional[str] = settings.USER_DATA_DIR,
) -> Iterator[PlaywrightDriver]:
    """One Chromium session, one page. Launch is tried twice before giving up."""
    pw = ctx = None
    try:
        pw, ctx = _launch(headless, user_data_dir)
    except Exception as e:
        logger.warning(f"[PW_POOL] launch failed: {e}; retrying once")
        try:
            pw, ctx = _launch(headless, user_data_dir)
        except Exception as e2:
            logger.error(f"[PW_POOL] launch failed again: {e2}")
            raise _launch_error(e2, headless, user_data_dir) from e2

    try:
        page = ctx.pages[0] if ctx.pages else ctx.new_page()
        yield PlaywrightDriver(page)
    finally:
        _close_quietly(ctx, pw)
        logger.info("[PW_POOL] session closed")
