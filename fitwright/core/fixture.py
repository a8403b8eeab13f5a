from __future__ import annotations

"""Browser fixture
------------------
User-facing commands. Each one is a small `Action(driver, selector)` handed to
the wait engine; the locator argument follows the mini-language

    [type=]selector[@attribute][->[!]expected]

Commands returning text can be checked either by the caller or by appending
`->expected` to the locator, in which case the engine waits for the match.
"""

import re
from pathlib import Path
from typing import Any, List, Optional, Tuple

from playwright.sync_api import ElementHandle
from playwright.sync_api import TimeoutError as PWTimeoutError

from fitwright.capture.screenshot import ScreenshotStore
from fitwright.core.compare import compare
from fitwright.core.dialogs import BrowserDialogHelper
from fitwright.core.errors import (
    ElementNotFound,
    FatalStop,
    InvalidElementState,
    StaleReference,
    TransientIgnorable,
    UnexpectedTagName,
)
from fitwright.core.session import SessionState
from fitwright.core.wait import WaitEngine, on_element
from fitwright.selectors.locator import Selector
from fitwright.selectors.resolver import Element, find_element
from fitwright.utils import markup
from fitwright.utils.logger import get_logger
from fitwright.utils.timing import measure

BLANK_PAGE = "about:blank"

_INPUT_TYPE_ATTRIBUTE = "type"
_FILE_INPUT = "file"
_TOGGLE_INPUTS = ("checkbox", "radio")

_OPTION_TYPES = ("label", "value", "index")
_FRAME_RELATIVE = ("top", "parent")
_RETURN_STATEMENT = re.compile(r"(^|[;{\s])return\b")

_SELECTED_OPTION_JS = """(e, kind) => {
    if (e.tagName !== 'SELECT') throw new Error('Element is not a <select> element');
    const i = e.selectedIndex;
    if (i < 0) return null;
    if (kind === 'index') return i;
    return kind === 'value' ? e.options[i].value : e.options[i].text;
}"""

log = get_logger(__name__)


def _expecting(expected: Optional[str]) -> str:
    """Locator with no selector, only an expected value."""
    if not expected:
        return ""
    if expected.startswith(markup.SELECTOR_VALUE_SEPARATOR):
        return expected
    return f"{markup.SELECTOR_VALUE_SEPARATOR}{expected}"


def _handle(element: Element) -> ElementHandle:
    if isinstance(element, ElementHandle):
        return element
    return element.element_handle()


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_option(option_locator: str) -> Tuple[str, str]:
    """`label=x`, `value=x`, `index=n`; anything else is a label."""
    key, value = markup.parse_key_value(option_locator)
    if key in _OPTION_TYPES and value:
        return key, value
    return "label", markup.clean(option_locator)


class BrowserFixture:
    """One table worth of browser commands bound to a SessionState."""

    def __init__(
        self,
        session: Optional[SessionState] = None,
        *,
        engine: Optional[WaitEngine] = None,
        screenshots: Optional[ScreenshotStore] = None,
    ) -> None:
        self.session = session or SessionState.from_settings()
        self.engine = engine or WaitEngine(self.session)
        self.screenshots = screenshots
        self.dialogs = BrowserDialogHelper()

    @classmethod
    def commands(cls) -> List[str]:
        """Public command names, as used by scripts."""
        return sorted(
            name for name, member in vars(cls).items()
            if not name.startswith("_") and callable(member) and name != "commands"
        )

    # ---------- Session ----------

    @measure("start browser", level="INFO")
    def start_browser(self, browser: str, capabilities: Optional[str] = None) -> bool:
        self.session.connect(browser, capabilities)
        return True

    def start_browser_with(self, browser: str, capabilities: str) -> bool:
        return self.start_browser(browser, capabilities)

    def quit_browser(self) -> bool:
        self.session.quit()
        return True

    def set_wait_timeout(self, seconds: Any) -> int:
        return self.session.set_timeout_seconds(int(markup.clean(seconds) or 0))

    def last_command_duration(self) -> float:
        return self.session.last_action_duration_seconds

    def stop_test_on_first_failure(self, should_stop: Any) -> str:
        previous = self.session.set_stop_on_first_failure(markup.on_or_off_to_bool(should_stop))
        return markup.bool_to_on_or_off(previous)

    def set_take_screenshot_on_failure(self, should_take: Any) -> str:
        previous = self.session.set_take_screenshot_on_failure(markup.on_or_off_to_bool(should_take))
        return markup.bool_to_on_or_off(previous)

    def set_dry_run(self, enable: Any) -> str:
        """Toggle dry run; returns the previous state as on/off."""
        enable_dry_run = markup.on_or_off_to_bool(enable)
        already_enabled = self.session.dry_run
        if not enable_dry_run:
            sandbox = self.session.exit_dry_run()
            if sandbox:
                self.select_window(sandbox)
                self.close_browser_tab()
            return markup.bool_to_on_or_off(already_enabled)
        if already_enabled:
            return markup.ON_VALUE

        def open_sandbox(driver, selector: Selector) -> None:
            handle = driver.open_window(BLANK_PAGE)
            if not handle:
                raise FatalStop("Unable to create blank window to run test in dry run mode")
            self.session.enter_dry_run(handle)

        self.engine.run("", open_sandbox, element=False)
        return markup.OFF_VALUE

    # ---------- Navigation ----------

    @measure("open")
    def open(self, url: str) -> bool:
        return self.engine.run(
            url,
            lambda driver, s: driver.page.goto(s.source, timeout=self._navigation_timeout_ms()),
            element=False,
        )

    def refresh(self) -> bool:
        return self.engine.run(
            "", lambda driver, s: driver.page.reload(timeout=self._navigation_timeout_ms()), element=False
        )

    def go_back(self) -> bool:
        return self.engine.run(
            "", lambda driver, s: driver.page.go_back(timeout=self._navigation_timeout_ms()), element=False
        )

    def current_url(self, expected: Optional[str] = None) -> str:
        return self.engine.wait_for(_expecting(expected), lambda driver, s: driver.page.url, element=False)

    def title(self, expected: Optional[str] = None) -> str:
        return self.engine.wait_for(_expecting(expected), lambda driver, s: driver.page.title(), element=False)

    # ---------- Windows ----------

    def open_window(self, url: str) -> bool:
        return self.engine.run(url, lambda driver, s: driver.open_window(s.source), element=False)

    def select_window(self, locator: str) -> bool:
        """Switch to the window whose handle, title or url matches `locator`."""
        def select(driver, selector: Selector) -> None:
            wanted = selector.source
            current = driver.current_window_handle
            for handle in driver.window_handles():
                page = driver.switch_to_window(handle)
                if compare(wanted, handle) or compare(wanted, page.title()) or compare(wanted, page.url):
                    return
            if current in driver.window_handles():
                driver.switch_to_window(current)
            raise ElementNotFound(f"No window found for locator: {wanted}")

        return self.engine.run(locator, select, element=False)

    def current_window(self, expected: Optional[str] = None) -> str:
        return self.engine.wait_for(
            _expecting(expected), lambda driver, s: driver.current_window_handle, element=False
        )

    def close_browser_tab(self) -> bool:
        return self.engine.run("", lambda driver, s: driver.close_current_window(), element=False)

    def window_size(self, expected: Optional[str] = None) -> str:
        return self.engine.wait_for(
            _expecting(expected), lambda driver, s: markup.format_width_and_height(*self._viewport(driver)), element=False
        )

    def set_window_size(self, width_and_height: str) -> bool:
        def resize(driver, selector: Selector) -> None:
            width, height = markup.parse_width_and_height(width_and_height)
            driver.page.set_viewport_size({"width": width, "height": height})

        return self.engine.run("", resize, element=False)

    def window_maximize(self) -> str:
        """Grow the viewport to the available screen size; returns WIDTHxHEIGHT."""
        def maximize(driver, selector: Selector) -> str:
            width, height = driver.page.evaluate("() => [screen.availWidth, screen.availHeight]")
            driver.page.set_viewport_size({"width": int(width), "height": int(height)})
            return markup.format_width_and_height(*self._viewport(driver))

        return self.engine.wait_for("", maximize, element=False)

    def select_frame(self, locator: str) -> bool:
        """`relative=top`, `relative=parent`, `index=N` or a locator of a frame element."""
        def select(driver, selector: Selector) -> None:
            key, value = markup.parse_key_value(selector.source)
            if key == "relative" and value in _FRAME_RELATIVE:
                if value == "top":
                    driver.switch_to_default_content()
                else:
                    driver.switch_to_parent_frame()
                return
            if key == "index" and value.isdigit():
                children = driver.frame.child_frames
                index = int(value)
                if index >= len(children):
                    raise ElementNotFound(f"No frame at index {index} (found {len(children)})")
                driver.switch_to_frame(children[index])
                return
            frame = _handle(find_element(driver, selector)).content_frame()
            if frame is None:
                raise UnexpectedTagName(f"Element is not a frame: {selector}")
            driver.switch_to_frame(frame)

        return self.engine.run(locator, select)

    # ---------- Input ----------

    def type(self, value: str) -> bool:
        return self.type_in(value, "")

    def type_in(self, value: str, locator: str) -> bool:
        """Clear the element and type `value` into it."""
        return self._send_keys_in(value, locator, clear_before=True)

    def send_keys(self, value: str) -> bool:
        return self.send_keys_in(value, "")

    def send_keys_in(self, value: str, locator: str) -> bool:
        return self._send_keys_in(value, locator, clear_before=False)

    def _send_keys_in(self, value: str, locator: str, *, clear_before: bool) -> bool:
        value, locator = markup.swap_value_to_check(value, locator)

        def send(element: Element, selector: Selector) -> None:
            selector.forbid_attribute("type")
            if element.get_attribute(_INPUT_TYPE_ATTRIBUTE) == _FILE_INPUT:
                element.set_input_files(str(Path(markup.clean(value)).expanduser().resolve()))
                return
            cleaned = markup.clean(value)
            if clear_before:
                element.fill(cleaned)
            elif cleaned:
                element.press_sequentially(cleaned)

        return self.engine.run(locator, on_element(send))

    def click(self, locator: str = "") -> bool:
        def click(driver, selector: Selector) -> None:
            if self.dialogs.click(driver, selector):
                return
            selector.forbid_attribute("click")
            element = find_element(driver, selector)
            if not element.is_enabled():
                raise InvalidElementState(f"Element found but is disabled: {selector}")
            try:
                element.click()
            except PWTimeoutError:
                # A dialog opened by the click blocks it from completing
                if driver.pending_dialog is not None:
                    return
                raise

        return self.engine.run(locator, click)

    def select(self, option_locator: str) -> bool:
        return self.select_in(option_locator, "")

    def select_in(self, option_locator: str, locator: str) -> bool:
        """Pick an option of a <select>: `label=`, `value=` or `index=` (default label)."""
        option_locator, locator = markup.swap_value_to_check(option_locator, locator)
        kind, value = _parse_option(option_locator)

        def choose(element: Element, selector: Selector) -> None:
            if kind == "index":
                element.select_option(index=int(value))
            elif kind == "value":
                element.select_option(value=value)
            else:
                element.select_option(label=value)

        return self.engine.run(locator, on_element(choose))

    def selected(self, option_type: str) -> str:
        return self.selected_in(option_type, "")

    def selected_in(self, option_type: str, locator: str) -> str:
        """Label (default), value or index of the first selected option."""
        option_type, locator = markup.swap_value_to_check(option_type, locator)
        kind, _ = markup.parse_key_value(option_type)
        if kind not in _OPTION_TYPES:
            kind = "label"
        return self.engine.wait_for(
            locator,
            on_element(lambda element, s: markup.clean(element.evaluate(_SELECTED_OPTION_JS, kind))),
        )

    # ---------- Reading ----------

    def value(self, locator: str) -> str:
        """Input value; checkboxes and radios report on/off."""
        def read(element: Element, selector: Selector) -> Optional[str]:
            selector.forbid_attribute("value")
            if element.get_attribute(_INPUT_TYPE_ATTRIBUTE) in _TOGGLE_INPUTS:
                return markup.bool_to_on_or_off(element.is_checked())
            return _to_text(element.evaluate("e => e.value"))

        return self.engine.wait_for(locator, on_element(read))

    def attribute(self, locator: str) -> str:
        """Attribute named in the locator itself, e.g. `css=a.next@href`."""
        return self.engine.wait_for(
            locator, on_element(lambda element, s: element.get_attribute(s.require_attribute("attribute")))
        )

    def attribute_in(self, attribute_name: str, locator: str) -> str:
        attribute_name, locator = markup.swap_value_to_check(attribute_name, locator)
        name = markup.clean(attribute_name)
        return self.engine.wait_for(locator, on_element(lambda element, s: element.get_attribute(name)))

    def text(self, locator: str = "") -> str:
        def read(driver, selector: Selector) -> Optional[str]:
            dialog_text = self.dialogs.text(driver, selector)
            if dialog_text is not None:
                return dialog_text
            selector.forbid_attribute("text")
            return find_element(driver, selector).inner_text()

        return self.engine.wait_for(locator, read)

    def present(self, locator: str) -> bool:
        """Whether the element (or dialog) exists; `->false` waits for it to go away."""
        def lookup(driver, selector: Selector) -> str:
            try:
                found = self.dialogs.present(driver, selector) or find_element(driver, selector) is not None
            except (ElementNotFound, StaleReference, TransientIgnorable):
                found = False
            return _to_text(found)

        return self.engine.wait_for(locator, lookup) == "true"

    def run_script(self, script: str) -> str:
        """Evaluate JavaScript in the page; scripts with `return` run as a function body."""
        def evaluate(driver, selector: Selector) -> Optional[str]:
            source = selector.source
            if _RETURN_STATEMENT.search(source):
                source = "() => {" + source + "}"
            return _to_text(driver.page.evaluate(source))

        return self.engine.wait_for(script, evaluate, element=False)

    def screenshot(self) -> str:
        """Base64 PNG of the page, or the saved file path when a screenshot store is set."""
        data = self.engine.wait_for("", lambda driver, s: driver.screenshot_base64(), element=False)
        if self.screenshots is None or self.session.dry_run:
            return data
        return str(self.screenshots.save_base64(data, "screenshot").path)

    def file_exists(self, path: str) -> bool:
        """Whether a file exists where the fixture runs, e.g. after a download; `->false` waits for removal."""
        def exists(driver, selector: Selector) -> str:
            return _to_text(bool(selector.source) and markup.clean_file(selector.source).exists())

        return self.engine.wait_for(path, exists, element=False) == "true"

    def element(self, locator: str) -> str:
        """Cache the element and return a `webelement=<id>` locator for it."""
        def cache(driver, selector: Selector) -> str:
            handle = _handle(find_element(driver, selector))
            return f"webelement{markup.KEY_VALUE_SEPARATOR}{driver.cache_element(handle)}"

        return self.engine.wait_for(locator, cache)

    # ---------- Internals ----------

    def _navigation_timeout_ms(self) -> int:
        return max(1, self.session.timeout_seconds) * 1000

    @staticmethod
    def _viewport(driver) -> Tuple[int, int]:
        size = driver.page.viewport_size
        if size:
            return size["width"], size["height"]
        width, height = driver.page.evaluate("() => [window.innerWidth, window.innerHeight]")
        return int(width), int(height)
