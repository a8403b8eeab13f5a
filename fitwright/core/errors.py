"""
Exceptions raised by fitwright commands.

The wait engine only reasons about these classes. Driver-specific failures are
translated into them at the driver seam by `translate_driver_error`.
"""

from __future__ import annotations

from typing import Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError


class FitwrightError(Exception):
    """Base exception for all fitwright errors."""

    def with_message(self, message: str) -> "FitwrightError":
        """Copy of this error (same class and attributes) carrying a new message."""
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        clone.args = (message,)
        return clone


class LocatorSyntaxError(FitwrightError):
    """The locator string cannot be mapped to a query."""

    pass


class FatalStop(FitwrightError):
    """Stops the whole test run instead of failing only the current row."""

    pass


class SessionUnavailable(FatalStop):
    """No browser session is active. Always stops the test."""

    pass


class ElementNotFound(FitwrightError):
    """The selector resolved to nothing."""

    pass


class UnexpectedValue(ElementNotFound):
    """The element was found but its value did not match the expected one."""

    def __init__(self, expected: str, obtained: Optional[str]):
        super().__init__(f"Element with unexpected value [Expected: {expected}, Obtained: {obtained}]")
        self.expected = expected
        self.obtained = obtained


class StaleReference(FitwrightError):
    """A cached element handle is gone and will never come back."""

    pass


class WaitTimeout(FitwrightError):
    """The deadline elapsed before the command succeeded."""

    pass


# ---------- Transient conditions, retried silently inside the timeout ----------


class TransientIgnorable(FitwrightError):
    """Base of the closed set of conditions the wait engine retries on."""

    pass


class InvalidElementState(TransientIgnorable):
    """Element exists but cannot take the action yet (hidden, disabled, read-only)."""

    pass


class StaleElement(TransientIgnorable):
    """Element was detached from the DOM between lookup and action."""

    pass


class UnhandledDialog(TransientIgnorable):
    """A native browser dialog is blocking the page."""

    pass


class UnexpectedTagName(TransientIgnorable):
    """The element is not of the tag the operation needs (e.g. select on a div)."""

    pass


IGNORABLE_ERRORS = (InvalidElementState, StaleElement, UnhandledDialog, UnexpectedTagName)


# ---------- Playwright translation ----------

# Message fragments Playwright uses for each condition, matched against the
# first line only (the call log below it echoes urls, selectors and scripts).
# Pending dialogs are detected by the driver itself, see ensure_no_dialog.
_DRIVER_MESSAGE_MARKERS = (
    ("is not a valid selector", LocatorSyntaxError),
    ("unexpected token", LocatorSyntaxError),
    ("failed to parse", LocatorSyntaxError),
    ("not attached to the dom", StaleElement),
    ("element is detached", StaleElement),
    ("execution context was destroyed", StaleElement),
    ("is not a <select> element", UnexpectedTagName),
    ("not an <input>", UnexpectedTagName),
    ("element is not a checkbox", UnexpectedTagName),
    ("element is not visible", InvalidElementState),
    ("element is not enabled", InvalidElementState),
    ("element is not editable", InvalidElementState),
    ("element is outside of the viewport", InvalidElementState),
    ("intercepts pointer events", InvalidElementState),
    ("did not find some options", ElementNotFound),
    ("no element matches", ElementNotFound),
)


def translate_driver_error(exc: BaseException) -> BaseException:
    """Map a Playwright failure onto the fitwright taxonomy.

    Errors already in the taxonomy and non-driver errors are returned unchanged.
    A Playwright timeout inside one attempt means the element never became
    actionable, so it is reported as an invalid element state.
    """
    if isinstance(exc, FitwrightError) or not isinstance(exc, PlaywrightError):
        return exc
    message = str(getattr(exc, "message", None) or exc)
    first_line = message.split("\n", 1)[0]
    lowered = first_line.lower()
    for marker, error_cls in _DRIVER_MESSAGE_MARKERS:
        if marker in lowered:
            translated = error_cls(first_line)
            translated.__cause__ = exc
            return translated
    if isinstance(exc, PlaywrightTimeoutError):
        translated = InvalidElementState(first_line)
        translated.__cause__ = exc
        return translated
    return exc
