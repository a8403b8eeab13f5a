from __future__ import annotations

"""Script runner
-----------------
Plays script rows against a BrowserFixture, the way a script table drives
its fixture: assertion rows get their expected value injected into the first
argument (so the wait engine waits for it), results are judged per row, and
a FatalStop skips the rest of the script. Writes results.json, run.log and
failure screenshots to a per-run directory.
"""

import inspect
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from fitwright.capture.screenshot import ScreenshotStore
from fitwright.core.compare import compare
from fitwright.core.errors import FatalStop
from fitwright.core.fixture import BrowserFixture
from fitwright.core.script import Expectation, Row, Script, load_scripts_file
from fitwright.core.session import SessionState
from fitwright.utils import markup
from fitwright.utils.config import Settings, get_settings
from fitwright.utils.logger import (
    attach_run_log,
    bind,
    detach_run_log,
    get_logger,
    unbind,
    with_context,
)
from fitwright.utils.timing import Stopwatch

PASS = "pass"
FAIL = "fail"
ERROR = "error"
SKIPPED = "skipped"


@dataclass
class RunContext:
    """Filesystem locations for the current run."""
    run_dir: Path
    screenshots_dir: Path
    results_path: Path


@dataclass
class RowResult:
    index: int
    command: str
    args: List[str]
    label: str
    expectation: str
    status: str
    result: Optional[str] = None
    message: Optional[str] = None
    error_type: Optional[str] = None
    duration_seconds: float = 0.0
    screenshot: Optional[str] = None
    fatal: bool = False


@dataclass
class ScriptResult:
    script: str
    run_dir: str
    started_at: str
    rows: List[RowResult] = field(default_factory=list)
    stopped: bool = False

    @property
    def ok(self) -> bool:
        return not self.stopped and all(r.status == PASS for r in self.rows)

    def counts(self) -> Dict[str, int]:
        out = {PASS: 0, FAIL: 0, ERROR: 0, SKIPPED: 0}
        for r in self.rows:
            out[r.status] += 1
        return out

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "ok": self.ok,
            "script": self.script,
            "run_dir": self.run_dir,
            "started_at": self.started_at,
            "stopped": self.stopped,
            "counts": self.counts(),
            "rows": [asdict(r) for r in self.rows],
        }
        return d


def _ts() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def inject_expectation(method: Callable[..., Any], row: Row) -> List[str]:
    """Arguments for `row` with `->[!]expected` appended to the first one.

    Injection is skipped when the command would not accept the resulting
    arguments (e.g. a check on a command without parameters).
    """
    args = list(row.args)
    exp = row.expectation
    if exp == Expectation.none:
        return args
    if exp in (Expectation.check, Expectation.check_not):
        expected = markup.clean(row.check if exp == Expectation.check else row.check_not)
        if not expected:
            return args
        deny = markup.SELECTOR_VALUE_DENY_INDICATOR if exp == Expectation.check_not else ""
        suffix = f"{markup.SELECTOR_VALUE_SEPARATOR}{deny}{expected}"
    else:
        suffix = f"{markup.SELECTOR_VALUE_SEPARATOR}{_as_text(exp == Expectation.ensure)}"

    injected = [args[0] + suffix, *args[1:]] if args else [suffix]
    try:
        inspect.signature(method).bind(*injected)
    except TypeError:
        get_logger(__name__).debug(f"Command '{row.do}' takes no injected value; checking result only")
        return args
    return injected


def judge(row: Row, result: Any) -> bool:
    text = _as_text(result)
    exp = row.expectation
    if exp == Expectation.check:
        return compare(row.check, text)
    if exp == Expectation.check_not:
        return not compare(row.check_not, text)
    if exp == Expectation.ensure:
        return text == "true"
    if exp == Expectation.reject:
        return text == "false"
    return True


class ScriptRunner:
    """Runs scripts sequentially on one shared SessionState."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[SessionState] = None,
        *,
        default_browser: Optional[str] = None,
        fixture_factory: Optional[Callable[[SessionState, ScreenshotStore], BrowserFixture]] = None,
    ):
        self.settings = settings or get_settings()
        self.session = session or SessionState.from_settings(self.settings)
        self.default_browser = default_browser or self.settings.BROWSER_TYPE.value
        self.fixture_factory = fixture_factory or (lambda session, store: BrowserFixture(session, screenshots=store))
        self.log = get_logger(__name__)
        self.last_run_dir: Optional[Path] = None

    def _prepare_run_dirs(self, script: Script) -> RunContext:
        base = self.settings.OUTPUT_DIR / script.name / _ts()
        base.mkdir(parents=True, exist_ok=True)
        self.last_run_dir = base
        return RunContext(
            run_dir=base,
            screenshots_dir=base / "screenshots",
            results_path=base / "results.json",
        )

    def run_script(self, script: Script) -> ScriptResult:
        """Execute every row of `script` and write results.json."""
        ctx = self._prepare_run_dirs(script)
        store = ScreenshotStore(ctx.screenshots_dir, settings=self.settings)
        fixture = self.fixture_factory(self.session, store)
        outcome = ScriptResult(script=script.name, run_dir=str(ctx.run_dir), started_at=_ts())

        per_run_handler = attach_run_log(ctx.run_dir / "run.log")
        bind(script=script.name, run_id=ctx.run_dir.name)
        try:
            script_log = with_context(self.log, rows=len(script.rows))
            script_log.info(f"Starting script: {script.name} (rows={len(script.rows)})")

            if self._needs_default_browser(script):
                fixture.start_browser(self.default_browser)

            for idx, row in enumerate(script.rows, start=1):
                if outcome.stopped:
                    outcome.rows.append(self._skipped(idx, row))
                    continue
                result = self.run_row(fixture, store, row, idx, total=len(script.rows))
                outcome.rows.append(result)
                if result.fatal:
                    outcome.stopped = True

            counts = outcome.counts()
            script_log.info(
                f"Finished script: {script.name} "
                f"(pass={counts[PASS]} fail={counts[FAIL]} error={counts[ERROR]} skipped={counts[SKIPPED]})"
            )
        finally:
            ctx.results_path.write_text(json.dumps(outcome.to_dict(), indent=2), encoding="utf-8")
            unbind("script", "run_id")
            detach_run_log(per_run_handler)
        return outcome

    def _needs_default_browser(self, script: Script) -> bool:
        """True when nothing would start a browser: no open session and no start row."""
        if not self.default_browser or self.session.is_browser_available():
            return False
        return not any(r.do.startswith("start_browser") for r in script.rows)

    def run_row(self, fixture: BrowserFixture, store: ScreenshotStore, row: Row, idx: int, *, total: int = 0) -> RowResult:
        row_log = with_context(self.log, row=idx, command=row.do)
        row_log.info(f"Row {idx}/{total}: {row.label}")
        method = getattr(fixture, row.do)
        args = inject_expectation(method, row)
        out = RowResult(
            index=idx,
            command=row.do,
            args=args,
            label=row.label,
            expectation=row.expectation.value,
            status=PASS,
        )
        stopwatch = Stopwatch().start()
        try:
            value = method(*args)
            out.result = _as_text(value)
            if not judge(row, value):
                out.status = FAIL
                out.message = f"[{out.result}] expected [{self._expected_text(row)}]"
                row_log.warning(f"Row {idx} failed: {out.message}")
        except Exception as e:
            out.status = ERROR
            out.error_type = e.__class__.__name__
            screenshot, message = markup.parse_exception_message(str(e))
            out.message = message
            out.fatal = isinstance(e, FatalStop)
            if screenshot:
                capture = store.save_from_message(str(e), f"row_{idx:03d}_{row.do}")
                out.screenshot = str(capture.path) if capture else None
            row_log.error(f"Row {idx} raised {out.error_type}: {message}")
        finally:
            out.duration_seconds = stopwatch.elapsed_seconds()
        return out

    def run_file(self, path: Path | str) -> List[ScriptResult]:
        return [self.run_script(s) for s in load_scripts_file(path)]

    def close(self) -> None:
        self.session.quit_all()

    @staticmethod
    def _expected_text(row: Row) -> str:
        exp = row.expectation
        if exp == Expectation.check:
            return row.check or ""
        if exp == Expectation.check_not:
            return f"not {row.check_not}"
        return "true" if exp == Expectation.ensure else "false"

    @staticmethod
    def _skipped(idx: int, row: Row) -> RowResult:
        return RowResult(
            index=idx,
            command=row.do,
            args=list(row.args),
            label=row.label,
            expectation=row.expectation.value,
            status=SKIPPED,
        )
