from __future__ import annotations

"""Session state
----------------
Process-wide configuration shared by every command of a test run: the active
browser driver(s), the wait timeout and the failure policy.

Not thread-safe. One SessionState drives one browser at a time; running
commands concurrently against it is a programming error.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Optional

from fitwright.core.driver import DriverRegistry, default_registry
from fitwright.utils.config import Settings, get_settings
from fitwright.utils.logger import get_logger

log = get_logger(__name__)


@dataclass
class SessionState:
    timeout_seconds: int = 20
    stop_on_first_failure: bool = False
    take_screenshot_on_failure: bool = True
    dry_run_window_handle: Optional[str] = None
    last_action_duration_seconds: float = 0.0
    poll_interval_ms: int = 500
    registry: DriverRegistry = field(default_factory=default_registry)
    settings: Optional[Settings] = None

    _drivers: "OrderedDict[str, Any]" = field(default_factory=OrderedDict, init=False, repr=False)
    _current_key: Optional[str] = field(default=None, init=False, repr=False)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, registry: Optional[DriverRegistry] = None) -> "SessionState":
        s = settings or get_settings()
        return cls(
            timeout_seconds=s.TIMEOUT_SECONDS,
            stop_on_first_failure=s.STOP_ON_FIRST_FAILURE,
            take_screenshot_on_failure=s.TAKE_SCREENSHOT_ON_FAILURE,
            poll_interval_ms=s.POLL_INTERVAL_MS,
            registry=registry or default_registry(),
            settings=s,
        )

    # ---------- Driver handles ----------

    @property
    def driver(self) -> Optional[Any]:
        if self._current_key is None:
            return None
        return self._drivers.get(self._current_key)

    def is_browser_available(self) -> bool:
        driver = self.driver
        return driver is not None and bool(driver.is_available())

    def attach(self, key: str, driver: Any) -> None:
        """Register an already created driver and make it current."""
        self._drivers[key] = driver
        self._current_key = key

    def connect(self, browser: str, capabilities: Optional[str] = None) -> Any:
        """Start (or reuse) a browser session identified by browser + capabilities."""
        key = f"{browser}|{capabilities or ''}"
        existing = self._drivers.get(key)
        if existing is not None and existing.is_available():
            self._current_key = key
            return existing
        self._quit_quietly(key)
        driver = self.registry.create(browser, capabilities, self.settings)
        self.attach(key, driver)
        return driver

    def quit(self) -> bool:
        """Quietly quit the current browser; fall back to any other open one."""
        if self._current_key is None:
            return False
        quitted = self._quit_quietly(self._current_key)
        self._current_key = next(iter(self._drivers), None)
        self.dry_run_window_handle = None
        return quitted

    def quit_all(self) -> None:
        for key in list(self._drivers):
            self._quit_quietly(key)
        self._current_key = None
        self.dry_run_window_handle = None

    def _quit_quietly(self, key: str) -> bool:
        driver = self._drivers.pop(key, None)
        if driver is None:
            return False
        try:
            driver.quit()
            return True
        except Exception as e:
            log.debug(f"Ignoring failure while quitting browser {key!r}: {e!r}")
            return False

    # ---------- Configuration commands ----------

    def set_timeout_seconds(self, seconds: int) -> int:
        previous, self.timeout_seconds = self.timeout_seconds, max(0, int(seconds))
        return previous

    def set_stop_on_first_failure(self, stop: bool) -> bool:
        previous, self.stop_on_first_failure = self.stop_on_first_failure, bool(stop)
        return previous

    def set_take_screenshot_on_failure(self, take: bool) -> bool:
        previous, self.take_screenshot_on_failure = self.take_screenshot_on_failure, bool(take)
        return previous

    @property
    def dry_run(self) -> bool:
        return bool(self.dry_run_window_handle)

    def enter_dry_run(self, window_handle: str) -> None:
        self.dry_run_window_handle = window_handle

    def exit_dry_run(self) -> Optional[str]:
        previous, self.dry_run_window_handle = self.dry_run_window_handle, None
        return previous
