import json

import pytest

from fitwright.core.driver import DriverRegistry
from fitwright.core.errors import FatalStop, ElementNotFound
from fitwright.core.runner import ERROR, FAIL, PASS, SKIPPED, ScriptRunner, inject_expectation, judge
from fitwright.core.script import Row, Script
from fitwright.core.session import SessionState
from fitwright.utils import markup
from fitwright.utils.config import get_settings


class StubFixture:
    """Records calls; `present` is true for locators listed in `visible`."""

    def __init__(self, visible=(), failures=None):
        self.visible = set(visible)
        self.failures = failures or {}
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    def start_browser(self, browser, capabilities=None):
        self._record("start_browser", browser)
        return True

    def open(self, url):
        self._record("open", url)
        return True

    def title(self, expected=None):
        self._record("title", expected)
        return "Dashboard"

    def present(self, locator):
        self._record("present", locator)
        return locator.split("->")[0] in self.visible

    def quit_browser(self):
        self._record("quit_browser")
        return True


def _script(*rows, name="demo"):
    return Script.model_validate({"name": name, "rows": list(rows)})


@pytest.fixture
def stub():
    return StubFixture(visible={"css=.ok"})


@pytest.fixture
def runner(stub):
    return ScriptRunner(
        session=SessionState(registry=DriverRegistry()),
        fixture_factory=lambda session, store: stub,
    )


def test_inject_expectation():
    def type_in(value, locator): ...
    def title(expected=None): ...
    def quit_browser(): ...

    assert inject_expectation(type_in, Row(do="type in", args=["a", "id=x"], check="a")) == ["a->a", "id=x"]
    assert inject_expectation(title, Row(do="title", check_not="Home")) == ["->!Home"]
    assert inject_expectation(title, Row(do="title", ensure=True)) == ["->true"]
    assert inject_expectation(quit_browser, Row(do="quit browser", check="true")) == []
    assert inject_expectation(title, Row(do="title")) == []


def test_judge():
    assert judge(Row(do="title", check="=~/Dash.*/"), "Dashboard")
    assert judge(Row(do="title", check_not="Home"), "Dashboard")
    assert judge(Row(do="present", args=["id=x"], ensure=True), True)
    assert not judge(Row(do="present", args=["id=x"], reject=True), True)
    assert judge(Row(do="title"), None)


def test_rows_are_judged(runner, stub):
    result = runner.run_script(_script(
        {"do": "title", "check": "Dashboard"},
        {"do": "title", "check": "Home"},
        {"do": "present", "args": ["css=.ok"], "ensure": True},
        {"do": "present", "args": ["css=.gone"], "reject": True},
        {"do": "quit browser", "check": "true"},
    ))
    assert [r.status for r in result.rows] == [PASS, FAIL, PASS, PASS, PASS]
    assert result.rows[1].message == "[Dashboard] expected [Home]"
    assert ("title", "->Dashboard") in stub.calls
    assert ("present", "css=.gone->false") in stub.calls
    assert not result.ok
    assert result.counts() == {PASS: 4, FAIL: 1, ERROR: 0, SKIPPED: 0}


def test_errors_fail_the_row_and_continue(stub, runner):
    stub.failures["open"] = ElementNotFound(markup.exception_message("Unable to locate element", ""))
    result = runner.run_script(_script(
        {"do": "open", "args": ["https://example.com"]},
        {"do": "title"},
    ))
    assert [r.status for r in result.rows] == [ERROR, PASS]
    assert result.rows[0].error_type == "ElementNotFound"
    assert result.rows[0].message == "Unable to locate element"
    assert result.rows[0].screenshot is None
    assert not result.stopped


def test_fatal_stop_skips_remaining_rows(stub, runner, png_base64):
    stub.failures["open"] = FatalStop(markup.exception_message("no browser", png_base64))
    result = runner.run_script(_script(
        {"do": "open", "args": ["https://example.com"]},
        {"do": "title"},
        {"do": "quit browser"},
    ))
    assert [r.status for r in result.rows] == [ERROR, SKIPPED, SKIPPED]
    assert result.stopped
    assert result.rows[0].fatal
    assert result.rows[0].screenshot.endswith("row_001_open.png")
    assert [c[0] for c in stub.calls if c[0] != "start_browser"] == ["open"]


def test_results_json_and_log_written(runner):
    result = runner.run_script(_script({"do": "title", "check": "Dashboard"}, name="written"))
    data = json.loads((runner.last_run_dir / "results.json").read_text(encoding="utf-8"))
    assert data["ok"] is True
    assert data["script"] == "written"
    assert data["rows"][0]["result"] == "Dashboard"
    assert (runner.last_run_dir / "run.log").exists()
    assert result.run_dir == str(runner.last_run_dir)


def test_default_browser_started_when_script_has_none(stub):
    runner = ScriptRunner(
        session=SessionState(registry=DriverRegistry()),
        default_browser="firefox",
        fixture_factory=lambda session, store: stub,
    )
    runner.run_script(_script({"do": "title"}))
    runner.run_script(_script({"do": "start browser", "args": ["chromium"]}))
    assert [c for c in stub.calls if c[0] == "start_browser"] == [
        ("start_browser", "firefox"),
        ("start_browser", "chromium"),
    ]


def test_run_file(tmp_path, runner):
    f = tmp_path / "two.yaml"
    f.write_text("name: one\nrows: [{do: title}]\n---\nname: two\nrows: [{do: title}]\n", encoding="utf-8")
    results = runner.run_file(f)
    assert [r.script for r in results] == ["one", "two"]
    assert all(r.ok for r in results)


def test_browser_type_setting_is_the_default_browser(monkeypatch, stub):
    monkeypatch.setenv("BROWSER_TYPE", "firefox")
    get_settings.cache_clear()
    runner = ScriptRunner(
        session=SessionState(registry=DriverRegistry()),
        fixture_factory=lambda session, store: stub,
    )
    result = runner.run_script(_script({"do": "title"}))
    assert result.ok
    assert stub.calls[0] == ("start_browser", "firefox")


def test_open_session_is_reused_instead_of_default_browser(stub, make_driver):
    session = SessionState(registry=DriverRegistry())
    session.attach("fake|", make_driver())
    runner = ScriptRunner(session=session, default_browser="firefox", fixture_factory=lambda s, store: stub)
    runner.run_script(_script({"do": "title"}))
    assert [c[0] for c in stub.calls] == ["title"]
