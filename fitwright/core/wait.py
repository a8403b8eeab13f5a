from __future__ import annotations

"""Wait engine
--------------
Runs a command (an `Action`) against a parsed locator until it succeeds and,
when the locator carries `->expected`, until its result matches.

    Polling -> Succeeded
    Polling -> TimedOut -> FatalStop            (stop_on_first_failure)
    Polling -> TimedOut -> one unchecked retry  (otherwise; mismatches are returned)

Transient conditions (TransientIgnorable) and missing elements are retried
until the deadline; anything else fails the command right away.
"""

from typing import Any, Callable, Optional, Union

from fitwright.core.compare import compare
from fitwright.core.errors import (
    ElementNotFound,
    SessionUnavailable,
    StaleReference,
    TransientIgnorable,
    UnexpectedValue,
    WaitTimeout,
    translate_driver_error,
)
from fitwright.core.failure import FailureReporter
from fitwright.core.session import SessionState
from fitwright.selectors.locator import Selector, parse
from fitwright.selectors.resolver import Element, find_element
from fitwright.utils.logger import get_logger
from fitwright.utils.timing import Deadline, Stopwatch, now_ms, sleep_ms

UNDEFINED_VALUE = "<<undefined_value>>"

Action = Callable[[Any, Selector], Any]

RETRYABLE_ERRORS = (TransientIgnorable, ElementNotFound)


def on_element(fn: Callable[[Element, Selector], Any]) -> Action:
    """Build an Action that resolves the selector first and hands the element to `fn`."""
    def action(driver: Any, selector: Selector) -> Any:
        return fn(find_element(driver, selector), selector)
    return action


class WaitEngine:
    def __init__(
        self,
        session: SessionState,
        *,
        reporter: Optional[FailureReporter] = None,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[int], None] = sleep_ms,
    ) -> None:
        self.session = session
        self.reporter = reporter or FailureReporter()
        self.clock = clock
        self.sleep = sleep
        self.log = get_logger(__name__)

    # ---------- Public API ----------

    def wait_for(self, locator: Union[str, Selector, None], action: Action, *, element: bool = True) -> str:
        """Run `action` until it succeeds (and matches), then return its result as text.

        `element=False` marks commands whose locator is not an element query
        (urls, scripts, window names); dry run then skips resolution.

        Raises SessionUnavailable without a browser, FatalStop on any failure
        when the session stops on first failure, and the decorated original
        error otherwise.
        """
        session = self.session
        session.last_action_duration_seconds = 0.0
        selector = locator if isinstance(locator, Selector) else parse(locator)
        if not session.is_browser_available():
            raise SessionUnavailable(
                "No browser instance available, please check if 'start browser' command completed successfully"
            )
        driver = session.driver

        stopwatch = Stopwatch(clock=self.clock).start()
        try:
            if session.dry_run:
                return self._respond_for_dry_run(driver, selector, element)
            return self._poll(driver, selector, action)
        except Exception as e:
            raise self.reporter.report(e, driver, session)
        finally:
            session.last_action_duration_seconds = stopwatch.elapsed_seconds()

    def run(self, locator: Union[str, Selector, None], action: Action, *, element: bool = True) -> bool:
        """Run a command with no value of its own.

        The expected value (if any) is echoed back as the result so only
        element availability is waited for.
        """
        def echo(driver: Any, selector: Selector) -> Optional[str]:
            action(driver, selector)
            return selector.expected_value

        self.wait_for(locator, echo, element=element)
        return True

    # ---------- Internals ----------

    def _poll(self, driver: Any, selector: Selector, action: Action) -> str:
        session = self.session
        deadline = Deadline(session.timeout_seconds * 1000, clock=self.clock)
        attempts = 0
        last_error: Optional[Exception] = None

        while True:
            attempts += 1
            try:
                result = self._evaluate(driver, selector, action, check_value=True)
                if attempts > 1:
                    self.log.debug(f"{selector} succeeded after {attempts} attempts")
                return result
            except RETRYABLE_ERRORS as e:
                last_error = e
                self.log.debug(f"Attempt {attempts} on {selector} not ready: {e}")
            if deadline.expired():
                break
            self.sleep(max(1, min(session.poll_interval_ms, deadline.remaining_ms())))

        self.log.warning(
            f"Timed out after {session.timeout_seconds}s waiting for {selector} ({attempts} attempts): {last_error}"
        )
        if session.stop_on_first_failure:
            raise self._timeout_error(selector, last_error)
        # Degraded retry: returns the value even when it does not match so the
        # caller can show what was obtained.
        try:
            return self._evaluate(driver, selector, action, check_value=False)
        except TransientIgnorable as e:
            raise self._timeout_error(selector, e)

    def _timeout_error(self, selector: Selector, last_error: Optional[Exception]) -> WaitTimeout:
        error = WaitTimeout(
            f"Timed out after {self.session.timeout_seconds} seconds waiting for {selector}: {last_error}"
        )
        # Transient conditions never surface; missing elements and mismatches do.
        if isinstance(last_error, ElementNotFound):
            error.__cause__ = last_error
        return error

    def _evaluate(self, driver: Any, selector: Selector, action: Action, *, check_value: bool) -> str:
        try:
            raw = action(driver, selector)
        except Exception as exc:
            translated = translate_driver_error(exc)
            if translated is exc:
                raise
            raise translated from exc
        result = "" if raw is None else str(raw).strip()
        expected = selector.expected_value
        if check_value and expected and not compare(expected, result):
            raise UnexpectedValue(expected, result)
        return result

    def _respond_for_dry_run(self, driver: Any, selector: Selector, element: bool) -> str:
        """Validate the locator against the sandbox window without asserting anything."""
        handle = self.session.dry_run_window_handle
        if driver.current_window_handle != handle:
            driver.switch_to_window(handle)
        if element:
            try:
                find_element(driver, selector)
            except (ElementNotFound, StaleReference):
                # Nothing exists in the blank sandbox window; the locator itself is fine
                pass
        expected = selector.expected_value
        if not expected or selector.negated:
            return UNDEFINED_VALUE
        return expected
