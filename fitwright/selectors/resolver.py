from __future__ import annotations

import re
from typing import Union

from playwright.sync_api import ElementHandle, Frame, Locator

from fitwright.core.errors import ElementNotFound, LocatorSyntaxError, StaleReference, translate_driver_error
from fitwright.selectors.locator import Selector, SelectorKind
from fitwright.utils.logger import get_logger

log = get_logger(__name__)

Element = Union[Locator, ElementHandle]


def _css_string(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def resolve_locator(frame: Frame, sel: Selector) -> Locator:
    """
    Convert a parsed Selector into a (lazy) Playwright Locator on `frame`.
    Raw element references have no locator; use `find_element` for those.
    """
    kind = sel.kind
    value = sel.expression

    if kind == SelectorKind.id:
        return frame.locator(f"id={value}")

    if kind == SelectorKind.name:
        return frame.locator(f"css=[name={_css_string(value)}]")

    if kind == SelectorKind.css:
        return frame.locator(f"css={value}")

    if kind == SelectorKind.xpath:
        return frame.locator(f"xpath={value}")

    if kind == SelectorKind.link_text:
        # Anchor whose whole visible text is the value, like Selenium's link text
        return frame.locator("a").filter(has_text=re.compile(f"^{re.escape(value)}$"))

    if kind == SelectorKind.focused_element:
        focused = frame.locator("*:focus")
        if focused.count() == 0:
            # Nothing focused yet: the document body receives keyboard input
            return frame.locator("body")
        return focused

    raise LocatorSyntaxError(f"Selector kind '{kind.value}' has no locator form")


def find_element(driver, sel: Selector) -> Element:
    """
    Resolve the selector to a single element on the driver's current frame.

    Never retries: a missing element raises ElementNotFound right away and the
    wait engine decides whether to try again.
    """
    driver.ensure_no_dialog()

    if sel.kind == SelectorKind.raw_element_reference:
        element = driver.cached_element(sel.expression)
        if element is None:
            raise StaleReference(f"Element with id {sel.expression} is no longer in the local cache.")
        return element

    try:
        loc = resolve_locator(driver.frame, sel)
        if loc.count() == 0:
            raise ElementNotFound(f"Unable to locate element: {sel.to_locator() or '<focused>'}")
    except Exception as exc:
        translated = translate_driver_error(exc)
        if translated is exc:
            raise
        raise translated from exc
    return loc.first
