from fitwright.core.errors import ElementNotFound, FatalStop, StaleElement, WaitTimeout
from fitwright.core.failure import FailureReporter, root_cause
from fitwright.utils import markup


def _raised(error, cause=None):
    try:
        if cause is not None:
            raise error from cause
        raise error
    except Exception as e:
        return e


def test_root_cause_prefers_classified_error():
    driver_error = RuntimeError("protocol detail")
    stale = _raised(StaleElement("detached"), driver_error)
    outer = _raised(WaitTimeout("timed out"), stale)
    assert root_cause(outer) is stale
    assert root_cause(driver_error) is driver_error


def test_report_decorates_message_and_keeps_class(driver, session):
    error = _raised(ElementNotFound("Unable to locate element: id=x\nmore"))
    reported = FailureReporter().report(error, driver, session)
    assert isinstance(reported, ElementNotFound)
    assert str(reported) == "screenshot:<<U0hPVA==>>, message:<<Unable to locate element: id=x>>"
    assert reported.__traceback__ is not None


def test_report_escalates_when_stopping_on_first_failure(driver, session):
    session.stop_on_first_failure = True
    reported = FailureReporter().report(_raised(ValueError("boom")), driver, session)
    assert isinstance(reported, FatalStop)
    assert markup.parse_exception_message(str(reported)) == ("U0hPVA==", "boom")


def test_screenshot_failure_is_ignored(driver, session):
    driver.screenshot = RuntimeError("browser gone")
    reported = FailureReporter().report(_raised(ValueError("boom")), driver, session)
    assert str(reported) == "screenshot:<<>>, message:<<boom>>"


def test_screenshot_skipped_when_disabled(driver, session):
    session.take_screenshot_on_failure = False
    assert FailureReporter().capture_screenshot(driver, session) == ""


def test_undecoratable_error_is_returned_unchanged(driver, session):
    class Picky(Exception):
        def __init__(self, code, reason):
            super().__init__(f"{code}: {reason}")

    error = _raised(Picky(1, "nope"))
    assert FailureReporter().report(error, driver, session) is error
