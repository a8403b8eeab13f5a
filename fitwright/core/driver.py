from __future__ import annotations

"""Browser driver
------------------
Thin wrapper over a Playwright browser context that exposes the handful of
primitives the fixture needs: window handles, frame switching, dialogs,
element handle cache and base64 screenshots. Browsers are created through an
explicit registry (name -> factory).
"""

import base64
import itertools
from typing import Callable, Dict, List, Optional

from playwright.sync_api import (
    Browser,
    BrowserContext,
    Dialog,
    ElementHandle,
    Frame,
    Page,
    Playwright,
    sync_playwright,
)

from fitwright.core.errors import FatalStop, UnhandledDialog
from fitwright.utils import markup
from fitwright.utils.config import BrowserType, Settings, get_settings
from fitwright.utils.logger import get_logger

log = get_logger(__name__)

REMOTE_PREFIXES = ("ws://", "wss://", "http://", "https://")

_LAUNCH_KEYS = {"headless", "slow_mo", "channel"}
_CONTEXT_KEYS = {"viewport", "locale", "user_agent", "timezone_id", "ignore_https_errors", "color_scheme"}
_BOOL_KEYS = {"headless", "ignore_https_errors"}
_INT_KEYS = {"slow_mo"}


def parse_capabilities(capabilities: Optional[str]) -> Dict[str, object]:
    """Parse `key=value` pairs separated by ';' or new lines.

    `viewport=1280x720` becomes a Playwright viewport dict; booleans accept
    true/false/on/off. Unknown keys are dropped with a warning.
    """
    parsed: Dict[str, object] = {}
    text = markup.clean(capabilities)
    for chunk in text.replace("\n", ";").split(";"):
        if not chunk.strip():
            continue
        key, value = markup.parse_key_value(chunk)
        key = key.strip().lower()
        value = value.strip()
        if key not in _LAUNCH_KEYS | _CONTEXT_KEYS:
            log.warning(f"Ignoring unsupported capability '{key}'")
            continue
        if key == "viewport":
            width, height = markup.parse_width_and_height(value)
            parsed[key] = {"width": width, "height": height}
        elif key in _BOOL_KEYS:
            parsed[key] = markup.on_or_off_to_bool(value)
        elif key in _INT_KEYS:
            parsed[key] = int(value)
        else:
            parsed[key] = value
    return parsed


class BrowserDriver:
    """One browser context plus the bookkeeping the commands rely on."""

    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        *,
        name: str,
        attempt_timeout_ms: int = 1000,
        full_page_screenshots: bool = False,
    ) -> None:
        self.name = name
        self.playwright = playwright
        self.browser = browser
        self.context = context
        self.attempt_timeout_ms = attempt_timeout_ms
        self.full_page_screenshots = full_page_screenshots
        self.pending_dialog: Optional[Dialog] = None

        self._handle_ids = itertools.count(1)
        self._pages: Dict[str, Page] = {}
        self._current: Optional[str] = None
        self._frame: Optional[Frame] = None
        self._element_ids = itertools.count(1)
        self._element_cache: Dict[str, ElementHandle] = {}

        context.on("page", self._register_page)
        for page in context.pages:
            self._register_page(page)
        if not self._pages:
            self._register_page(context.new_page())
        self._current = next(iter(self._pages))

    # ---------- Pages / windows ----------

    def _register_page(self, page: Page) -> str:
        for handle, known in self._pages.items():
            if known is page:
                return handle
        handle = f"window-{next(self._handle_ids)}"
        self._pages[handle] = page
        page.on("dialog", self._on_dialog)
        page.set_default_timeout(self.attempt_timeout_ms)
        log.debug(f"Registered {handle} ({self.name})")
        return handle

    def _on_dialog(self, dialog: Dialog) -> None:
        log.debug(f"Browser dialog opened: {dialog.type} {dialog.message!r}")
        self.pending_dialog = dialog

    @property
    def page(self) -> Page:
        return self._pages[self._current]

    @property
    def frame(self) -> Frame:
        """Search context for element lookups (main frame unless a frame was selected)."""
        if self._frame is None or self._frame.is_detached():
            self._frame = self.page.main_frame
        return self._frame

    def window_handles(self) -> List[str]:
        for handle in [h for h, p in self._pages.items() if p.is_closed()]:
            del self._pages[handle]
        return list(self._pages)

    @property
    def current_window_handle(self) -> str:
        return self._current

    def switch_to_window(self, handle: str) -> Page:
        if handle not in self.window_handles():
            raise KeyError(f"No window with handle {handle}")
        if handle != self._current:
            self._current = handle
            self._frame = None
            self.page.bring_to_front()
        return self.page

    def open_window(self, url: str) -> str:
        page = self.context.new_page()
        handle = self._register_page(page)
        if url:
            page.goto(url)
        return handle

    def close_current_window(self) -> None:
        self.page.close()
        remaining = self.window_handles()
        if remaining:
            self.switch_to_window(remaining[0])

    # ---------- Frames ----------

    def switch_to_frame(self, frame: Frame) -> None:
        self._frame = frame

    def switch_to_default_content(self) -> None:
        self._frame = self.page.main_frame

    def switch_to_parent_frame(self) -> None:
        self._frame = self.frame.parent_frame or self.page.main_frame

    # ---------- Dialogs ----------

    def take_dialog(self) -> Optional[Dialog]:
        dialog, self.pending_dialog = self.pending_dialog, None
        return dialog

    def ensure_no_dialog(self) -> None:
        """Dismiss and notify, like WebDriver does for unexpected alerts."""
        dialog = self.take_dialog()
        if dialog is None:
            return
        message = dialog.message
        dialog.dismiss()
        raise UnhandledDialog(f"Unexpected {dialog.type} dialog dismissed: {message}")

    # ---------- Element cache ----------

    def cache_element(self, element: ElementHandle) -> str:
        element_id = str(next(self._element_ids))
        self._element_cache[element_id] = element
        return element_id

    def cached_element(self, element_id: str) -> Optional[ElementHandle]:
        return self._element_cache.get(element_id)

    def clear_element_cache(self) -> None:
        self._element_cache.clear()

    # ---------- Misc ----------

    def screenshot_base64(self) -> str:
        return base64.b64encode(self.page.screenshot(type="png", full_page=self.full_page_screenshots)).decode("ascii")

    def is_available(self) -> bool:
        try:
            return self.browser.is_connected() and bool(self.window_handles())
        except Exception:
            return False

    def quit(self) -> None:
        self.clear_element_cache()
        try:
            self.context.close()
            self.browser.close()
        finally:
            self.playwright.stop()


# ---------- Registry ----------

DriverFactory = Callable[[str, Dict[str, object], Settings], BrowserDriver]


def _launch(browser_type: BrowserType) -> DriverFactory:
    def factory(name: str, capabilities: Dict[str, object], settings: Settings) -> BrowserDriver:
        launch_kwargs = settings.playwright_launch_kwargs()
        launch_kwargs.update({k: v for k, v in capabilities.items() if k in _LAUNCH_KEYS})
        context_kwargs = settings.playwright_context_kwargs()
        context_kwargs.update({k: v for k, v in capabilities.items() if k in _CONTEXT_KEYS})
        pw = sync_playwright().start()
        try:
            browser = getattr(pw, browser_type.value).launch(**launch_kwargs)
            context = browser.new_context(**context_kwargs)
        except Exception:
            pw.stop()
            raise
        return BrowserDriver(
            pw, browser, context,
            name=name,
            attempt_timeout_ms=settings.ATTEMPT_TIMEOUT_MS,
            full_page_screenshots=settings.FULL_PAGE_SCREENSHOT,
        )
    return factory


def _connect_remote(endpoint: str, capabilities: Dict[str, object], settings: Settings) -> BrowserDriver:
    context_kwargs = settings.playwright_context_kwargs()
    context_kwargs.update({k: v for k, v in capabilities.items() if k in _CONTEXT_KEYS})
    pw = sync_playwright().start()
    try:
        if endpoint.startswith(("ws://", "wss://")):
            browser = pw.chromium.connect(endpoint)
        else:
            browser = pw.chromium.connect_over_cdp(endpoint)
        context = browser.new_context(**context_kwargs)
    except Exception:
        pw.stop()
        raise
    return BrowserDriver(
        pw, browser, context,
        name=endpoint,
        attempt_timeout_ms=settings.ATTEMPT_TIMEOUT_MS,
        full_page_screenshots=settings.FULL_PAGE_SCREENSHOT,
    )


class DriverRegistry:
    """Maps browser names to driver factories; remote endpoints are matched by scheme."""

    def __init__(self) -> None:
        self._factories: Dict[str, DriverFactory] = {}

    def register(self, name: str, factory: DriverFactory) -> None:
        self._factories[name.lower()] = factory

    def names(self) -> List[str]:
        return sorted(self._factories)

    def create(self, browser: str, capabilities: Optional[str] = None, settings: Optional[Settings] = None) -> BrowserDriver:
        settings = settings or get_settings()
        cleaned = "".join(markup.clean(browser).split())
        caps = parse_capabilities(capabilities)
        if cleaned.lower().startswith(REMOTE_PREFIXES):
            return _connect_remote(cleaned, caps, settings)
        # Same prefix matching as "firefox" -> "firefoxdriver", but over registered names
        for name, factory in self._factories.items():
            if cleaned and name.startswith(cleaned.lower()):
                log.info(f"Starting browser '{name}'")
                return factory(name, caps, settings)
        raise FatalStop(
            f"No suitable implementation found for [{browser}] with capabilities: [{capabilities or ''}]. "
            f"Available: {', '.join(self.names())}"
        )


def default_registry() -> DriverRegistry:
    registry = DriverRegistry()
    for browser_type in BrowserType:
        registry.register(browser_type.value, _launch(browser_type))
    return registry
