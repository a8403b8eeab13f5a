from __future__ import annotations

"""Failure reporting
--------------------
Turns a terminal command failure into the error the table shows: a one-line
diagnostic embedding a base64 screenshot, escalated to FatalStop when the
session is configured to stop on the first failure.
"""

from typing import Any, Optional

from fitwright.core.errors import FatalStop, FitwrightError
from fitwright.utils import markup
from fitwright.utils.logger import get_logger


def root_cause(error: BaseException) -> BaseException:
    """Deepest fitwright error in the cause chain, else the deepest cause.

    Driver errors translated into the taxonomy keep the driver error as their
    cause; the classified error is the one worth reporting.
    """
    chain = [error]
    while chain[-1].__cause__ is not None and chain[-1].__cause__ not in chain:
        chain.append(chain[-1].__cause__)
    classified = [e for e in chain if isinstance(e, FitwrightError)]
    return classified[-1] if classified else chain[-1]


def _first_line(error: BaseException) -> str:
    text = str(error) or error.__class__.__name__
    return text.split("\n", 1)[0]


class FailureReporter:
    """Decorates terminal errors with a screenshot and applies the stop policy."""

    def __init__(self) -> None:
        self.log = get_logger(__name__)

    def capture_screenshot(self, driver: Any, session) -> str:
        """Base64 PNG of the current page, or "" when disabled or unsupported."""
        if not session.take_screenshot_on_failure or driver is None:
            return ""
        take = getattr(driver, "screenshot_base64", None)
        if take is None:
            return ""
        try:
            return take() or ""
        except Exception as e:
            self.log.debug(f"Failed to retrieve screenshot after failure: {e!r}")
            return ""

    def report(self, error: BaseException, driver: Any, session) -> BaseException:
        """Build the error to raise in place of `error`.

        The returned exception keeps the original traceback. With
        `stop_on_first_failure` it is a FatalStop, otherwise it has the class
        of the root cause and the decorated message.
        """
        cause = root_cause(error)
        screenshot = self.capture_screenshot(driver, session)
        message = markup.exception_message(_first_line(cause), screenshot)
        self.log.info(
            f"Command failed: {_first_line(cause)}" + (" (screenshot attached)" if screenshot else ""),
            exc_info=cause,
        )

        converted: Optional[BaseException]
        if session.stop_on_first_failure:
            converted = FatalStop(message)
        elif isinstance(cause, FitwrightError):
            converted = cause.with_message(message)
        else:
            try:
                converted = cause.__class__(message)
            except Exception as e:
                self.log.debug(f"Failed to decorate {cause.__class__.__name__}: {e!r}")
                return error
        converted.__cause__ = cause
        return converted.with_traceback(cause.__traceback__)
