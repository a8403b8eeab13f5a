# fitwright/selectors/__init__.py
"""
Selectors package
-----------------
Parses the locator mini-language and resolves parsed selectors to
Playwright locators on the current frame.
"""

from .locator import Selector, SelectorKind, parse
from .resolver import find_element, resolve_locator

__all__ = [
    "Selector",
    "SelectorKind",
    "parse",
    "find_element",
    "resolve_locator",
]
