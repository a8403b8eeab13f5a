import base64
import io
from typing import Dict, Iterable, List, Optional

import pytest
from PIL import Image

from fitwright.core.driver import DriverRegistry
from fitwright.core.errors import UnhandledDialog
from fitwright.core.session import SessionState
from fitwright.core.wait import WaitEngine
from fitwright.utils.config import get_settings


class FakeClock:
    """Millisecond clock that only moves when the engine sleeps."""

    def __init__(self, start: int = 0):
        self.t = start
        self.sleeps: List[int] = []

    def now(self) -> int:
        return self.t

    def sleep(self, ms: int) -> None:
        self.sleeps.append(ms)
        self.t += ms


class FakeLocator:
    def __init__(self, selector: str, count: int = 0, frame: Optional["FakeFrame"] = None):
        self.selector = selector
        self._count = count
        self._frame = frame

    def count(self) -> int:
        return self._count

    @property
    def first(self) -> "FakeLocator":
        return self

    def filter(self, has_text=None) -> "FakeLocator":
        pattern = getattr(has_text, "pattern", has_text)
        return self._frame.locator(f"{self.selector} >> has_text={pattern}")


class FakeFrame:
    """Records queries; selectors listed in `present` resolve to one element."""

    def __init__(self, present: Iterable[str] = ()):
        self.present = set(present)
        self.queries: List[str] = []

    def locator(self, selector: str) -> FakeLocator:
        self.queries.append(selector)
        return FakeLocator(selector, 1 if selector in self.present else 0, frame=self)


class FakePage:
    def __init__(self, url: str = "about:blank", title: str = ""):
        self.url = url
        self._title = title

    def title(self) -> str:
        return self._title

    def goto(self, url: str, timeout: Optional[int] = None) -> None:
        self.url = url


class FakeDialog:
    def __init__(self, message: str, type: str = "alert"):
        self.message = message
        self.type = type
        self.accepted = False
        self.dismissed = False

    def accept(self) -> None:
        self.accepted = True

    def dismiss(self) -> None:
        self.dismissed = True


class FakeDriver:
    def __init__(self, windows: Iterable[str] = ("window-1",), screenshot="U0hPVA=="):
        self.pages: Dict[str, FakePage] = {h: FakePage() for h in windows}
        self._current = next(iter(self.pages))
        self.frame = FakeFrame()
        self.available = True
        self.pending_dialog: Optional[FakeDialog] = None
        self.screenshot = screenshot
        self.quit_calls = 0
        self._elements: Dict[str, object] = {}

    @property
    def page(self) -> FakePage:
        return self.pages[self._current]

    def is_available(self) -> bool:
        return self.available

    def window_handles(self) -> List[str]:
        return list(self.pages)

    @property
    def current_window_handle(self) -> str:
        return self._current

    def switch_to_window(self, handle: str) -> FakePage:
        if handle not in self.pages:
            raise KeyError(f"No window with handle {handle}")
        self._current = handle
        return self.page

    def open_window(self, url: str) -> str:
        handle = f"window-{len(self.pages) + 1}"
        self.pages[handle] = FakePage(url)
        return handle

    def close_current_window(self) -> None:
        del self.pages[self._current]
        if self.pages:
            self._current = next(iter(self.pages))

    def take_dialog(self):
        dialog, self.pending_dialog = self.pending_dialog, None
        return dialog

    def ensure_no_dialog(self) -> None:
        dialog = self.take_dialog()
        if dialog is not None:
            dialog.dismiss()
            raise UnhandledDialog(f"Unexpected {dialog.type} dialog dismissed: {dialog.message}")

    def cache_element(self, element) -> str:
        element_id = str(len(self._elements) + 1)
        self._elements[element_id] = element
        return element_id

    def cached_element(self, element_id: str):
        return self._elements.get(element_id)

    def screenshot_base64(self) -> str:
        if isinstance(self.screenshot, Exception):
            raise self.screenshot
        return self.screenshot

    def quit(self) -> None:
        self.quit_calls += 1
        self.available = False


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch, tmp_path):
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "runs"))
    monkeypatch.setenv("SCRIPTS_DIR", str(tmp_path))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def session(driver: FakeDriver) -> SessionState:
    s = SessionState(timeout_seconds=2, poll_interval_ms=500, registry=DriverRegistry())
    s.attach("fake|", driver)
    return s


@pytest.fixture
def engine(session: SessionState, clock: FakeClock) -> WaitEngine:
    return WaitEngine(session, clock=clock.now, sleep=clock.sleep)


@pytest.fixture
def make_driver():
    """Factory for extra fake drivers (e.g. from a test driver registry)."""
    return FakeDriver


@pytest.fixture
def png_base64() -> str:
    """A real 4x3 PNG, base64 encoded the way the browser returns it."""
    buf = io.BytesIO()
    Image.new("RGB", (4, 3), color=(200, 30, 30)).save(buf, "PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


@pytest.fixture
def make_dialog():
    return FakeDialog
