# fitwright/cli.py
from __future__ import annotations

"""Command-line interface
------------------------
Convenience commands to list/validate/run scripts, try out locators and
comparisons, and view effective config. Thin wrapper around the loader and
runner for local runs.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import click

from fitwright.core.compare import compare
from fitwright.core.fixture import BrowserFixture
from fitwright.core.runner import ScriptRunner
from fitwright.core.script import find_script_files, load_scripts_file
from fitwright.core.session import SessionState
from fitwright.selectors.locator import parse
from fitwright.utils.config import get_settings
from fitwright.utils.logger import bind, get_logger, set_log_level, unbind


# -------- helpers --------


def _echo_json(obj) -> None:
    click.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def _collect(targets: List[str], scripts_dir: Optional[str], recursive: bool) -> List[Path]:
    paths: List[Path] = []
    if targets:
        for p in (Path(t).resolve() for t in targets):
            paths.extend(find_script_files(p, recursive=True) if p.is_dir() else [p])
    elif scripts_dir:
        paths.extend(find_script_files(Path(scripts_dir), recursive=recursive))
    return paths


# -------- CLI root --------


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL from settings",
)
@click.version_option(package_name="fitwright")
def cli(log_level: Optional[str]):
    # Initialize settings + logger once at process start
    _ = get_settings()
    if log_level:
        set_log_level(log_level.upper())


# -------- commands --------


@cli.command("config")
def cmd_config():
    """Print effective configuration (after .env & env vars)."""
    s = get_settings()
    data = {k: (str(v) if isinstance(v, Path) else v) for k, v in s.model_dump(mode="json").items()}
    _echo_json(data)


@cli.command("commands")
def cmd_commands():
    """List the commands scripts can use."""
    for name in BrowserFixture.commands():
        click.echo(name.replace("_", " "))


@cli.command("parse")
@click.argument("locator")
def cmd_parse(locator: str):
    """Show how a locator is understood, e.g. 'css=#a@href->x'."""
    sel = parse(locator)
    _echo_json({
        "kind": sel.kind.value,
        "expression": sel.expression,
        "attribute": sel.attribute_name,
        "expected": sel.expected_value,
        "negated": sel.negated,
        "regex": sel.is_regex,
    })


@cli.command("compare")
@click.argument("expected")
@click.argument("actual")
def cmd_compare(expected: str, actual: str):
    """Check ACTUAL against EXPECTED ('!x' negates, '=~/re/' matches fully)."""
    matched = compare(expected, actual)
    click.echo("true" if matched else "false")
    sys.exit(0 if matched else 1)


@cli.command("list")
@click.option(
    "--dir", "scripts_dir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=lambda: str(get_settings().SCRIPTS_DIR),
    show_default=True,
    help="Directory containing script YAML files",
)
@click.option("--recursive/--no-recursive", default=True, show_default=True)
def cmd_list(scripts_dir: str, recursive: bool):
    """List scripts available in a directory."""
    rows = []
    for fp in find_script_files(Path(scripts_dir), recursive=recursive):
        try:
            rows.extend((fp, sc) for sc in load_scripts_file(fp))
        except (ValueError, OSError):
            # skip invalid files here; use `validate` for details
            continue

    if not rows:
        click.echo("No scripts found.")
        return

    click.echo(f"Found {len(rows)} script(s):\n")
    for fp, sc in rows:
        click.echo(f" - {sc.name}  ({len(sc.rows)} rows)  <- {fp}")


@cli.command("validate")
@click.argument("targets", nargs=-1, required=False)
@click.option("--dir", "scripts_dir", type=click.Path(file_okay=False, dir_okay=True, exists=True), help="Validate all scripts under this directory")
@click.option("--recursive/--no-recursive", default=True, show_default=True)
def cmd_validate(targets: List[str], scripts_dir: Optional[str], recursive: bool):
    """Validate scripts from files or a directory (supports multi-doc YAML)."""
    if not targets and not scripts_dir:
        click.echo("Provide file(s) or --dir to validate.")
        sys.exit(2)

    ok = True
    for fp in _collect(targets, scripts_dir, recursive):
        try:
            for sc in load_scripts_file(fp):
                click.echo(f"OK  {fp}  ->  {sc.name} ({len(sc.rows)} rows)")
        except (ValueError, OSError) as e:
            ok = False
            click.echo(f"ERR {fp}  ->  {e}")

    sys.exit(0 if ok else 1)


@cli.command("run")
@click.argument("targets", nargs=-1, required=False)
@click.option("--dir", "scripts_dir", type=click.Path(file_okay=False, dir_okay=True, exists=True),
              help="Run all scripts found under this directory")
@click.option("--recursive/--no-recursive", default=True, show_default=True)
@click.option("--browser", type=str, default=None, help="Browser to start when a script has no 'start browser' row [default: BROWSER_TYPE]")
@click.option("--timeout", type=int, default=None, help="Override TIMEOUT_SECONDS (wait per command)")
@click.option("--stop-on-first-failure/--no-stop-on-first-failure", default=None,
              help="Override STOP_ON_FIRST_FAILURE from settings")
@click.option("--json-out", type=click.Path(dir_okay=False), default=None, help="Write a JSON summary to this file")
def cmd_run(
    targets: List[str],
    scripts_dir: Optional[str],
    recursive: bool,
    browser: Optional[str],
    timeout: Optional[int],
    stop_on_first_failure: Optional[bool],
    json_out: Optional[str],
):
    """
    Run one or more scripts sequentially on one browser session.

    Examples:
      fitwright run scripts/login.yaml
      fitwright run --dir scripts --browser firefox --timeout 5
    """
    settings = get_settings()
    log = get_logger(__name__)

    if not targets and not scripts_dir:
        click.echo("Nothing to run. Provide file(s) or --dir.")
        sys.exit(2)
    files = _collect(targets, scripts_dir, recursive)
    if not files:
        click.echo("No scripts matched.")
        sys.exit(1)

    session = SessionState.from_settings(settings)
    if timeout is not None:
        session.set_timeout_seconds(timeout)
    if stop_on_first_failure is not None:
        session.set_stop_on_first_failure(stop_on_first_failure)

    bind(batch_id=datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ"))
    click.echo(f"Running {len(files)} script file(s)...")

    runner = ScriptRunner(settings=settings, session=session, default_browser=browser)
    results: List[dict] = []
    try:
        for fp in files:
            try:
                for outcome in runner.run_file(fp):
                    results.append({"file": str(fp), **outcome.to_dict()})
            except (ValueError, OSError) as e:
                log.error(f"Could not run {fp}: {e}")
                results.append({"file": str(fp), "ok": False, "error": str(e)})
    finally:
        runner.close()
        unbind("batch_id")

    for res in results:
        if res.get("ok"):
            click.echo(f"OK   {res['script']} -> run_dir={res['run_dir']}")
            continue
        if "error" in res:
            click.echo(f"ERR  {res['file']} -> {res['error']}")
            continue
        counts = res["counts"]
        stopped = " (stopped)" if res.get("stopped") else ""
        click.echo(
            f"FAIL {res['script']}{stopped} -> fail={counts['fail']} error={counts['error']} "
            f"skipped={counts['skipped']} run_dir={res['run_dir']}"
        )
        for row in res["rows"]:
            if row["status"] in ("fail", "error"):
                click.echo(f"     row {row['index']} {row['label']}: {row['message']}")

    ok_count = sum(1 for r in results if r.get("ok"))
    fail_count = len(results) - ok_count
    click.echo(f"Done. OK={ok_count}  FAIL={fail_count}")

    if json_out:
        outp = Path(json_out).resolve()
        outp.parent.mkdir(parents=True, exist_ok=True)
        outp.write_text(json.dumps({"results": results}, indent=2), encoding="utf-8")
        click.echo(f"Wrote summary: {outp}")

    sys.exit(0 if fail_count == 0 else 1)


def main() -> None:
    cli(prog_name="fitwright")


if __name__ == "__main__":
    main()
