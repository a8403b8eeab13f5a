import json
import logging
import sys

from fitwright.utils.logger import (
    ConsoleFormatter,
    JsonFormatter,
    attach_run_log,
    bind,
    detach_run_log,
    get_logger,
    unbind,
    with_context,
)


def _record(msg, context=None, exc_info=None):
    record = logging.LogRecord("fitwright.core.runner", logging.INFO, __file__, 1, msg, None, exc_info)
    if context is not None:
        record.context = context
    return record


def test_json_line_has_run_context_at_top_level():
    line = JsonFormatter().format(_record("running", {"script": "login", "row": 3, "command": "click", "rows": 5}))
    data = json.loads(line)
    assert data["msg"] == "running"
    assert data["level"] == "INFO"
    assert data["logger"] == "fitwright.core.runner"
    assert (data["script"], data["row"], data["command"]) == ("login", 3, "click")
    assert data["context"] == {"rows": 5}
    assert data["ts"].endswith("Z")
    assert "error" not in data


def test_json_line_includes_traceback():
    try:
        raise ValueError("boom")
    except ValueError:
        record = _record("failed", exc_info=sys.exc_info())
    data = json.loads(JsonFormatter().format(record))
    assert "ValueError: boom" in data["error"]
    assert "script" not in data


def test_console_prefix_shows_script_and_row():
    fmt = ConsoleFormatter()
    assert fmt.format(_record("hi")) == "hi"
    assert fmt.format(_record("hi", {"script": "login"})) == "[login] hi"
    assert fmt.format(_record("hi", {"script": "login", "row": 2, "command": "open"})) == "[login #2:open] hi"


def test_run_log_mirrors_records_with_bound_context(tmp_path):
    path = tmp_path / "run" / "run.log"
    handler = attach_run_log(path)
    bind(script="login", run_id="r1")
    try:
        with_context(get_logger("fitwright.test"), row=1, command="open").info("Row 1/1: open")
    finally:
        unbind("script", "run_id")
        detach_run_log(handler)

    last = json.loads(path.read_text(encoding="utf-8").splitlines()[-1])
    assert last["msg"] == "Row 1/1: open"
    assert (last["script"], last["run_id"], last["row"], last["command"]) == ("login", "r1", 1, "open")
