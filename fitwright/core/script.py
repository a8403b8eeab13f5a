# fitwright/core/script.py
from __future__ import annotations

"""Script schema and loader
---------------------------
A script is a table of fixture commands written as YAML rows:

    name: login
    rows:
      - do: start browser
        args: [chromium]
      - do: type in
        args: [joe, id=user]
      - do: title
        check: Dashboard
      - do: present
        args: [css=.error]
        reject: true

`check`/`check_not`/`ensure`/`reject` mirror the assertion rows of a
script table. Multi-document files hold several scripts.
"""

import os
import re
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from fitwright.core.fixture import BrowserFixture

_ENV_VAR = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


# ---------- Helpers ----------


def command_name(text: str) -> str:
    """`Type In`, `type-in` and `type_in` all name the `type_in` command."""
    return re.sub(r"[\s\-]+", "_", str(text).strip()).lower()


def _subst_env(obj: Any) -> Any:
    """Replace ${VAR} in every string; unknown variables are left untouched."""
    if isinstance(obj, str):
        return _ENV_VAR.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    if isinstance(obj, list):
        return [_subst_env(x) for x in obj]
    if isinstance(obj, dict):
        return {k: _subst_env(v) for k, v in obj.items()}
    return obj


def _format_errors(header: str, ve: ValidationError) -> str:
    lines = [header]
    for e in ve.errors():
        loc = ".".join(str(p) for p in e.get("loc", []))
        msg = e.get("msg", "invalid value")
        lines.append(f"  - {loc}: {msg}")
    return "\n".join(lines)


# ---------- Models ----------


class Expectation(str, Enum):
    none = "none"
    check = "check"
    check_not = "check_not"
    ensure = "ensure"
    reject = "reject"


class Row(BaseModel):
    do: str = Field(..., description="Fixture command, e.g. 'type in'")
    args: list[str] = Field(default_factory=list)
    name: Optional[str] = Field(default=None, description="Human-friendly row label")

    check: Optional[str] = None
    check_not: Optional[str] = None
    ensure: bool = False
    reject: bool = False

    @field_validator("do")
    @classmethod
    def _known_command(cls, v: str) -> str:
        name = command_name(v)
        if name not in BrowserFixture.commands():
            raise ValueError(f"unknown command '{v}'")
        return name

    @field_validator("args", mode="before")
    @classmethod
    def _stringify_args(cls, v: Any) -> Any:
        if v is None:
            return []
        if not isinstance(v, list):
            v = [v]
        return ["" if a is None else (str(a).lower() if isinstance(a, bool) else str(a)) for a in v]

    @field_validator("check", "check_not", mode="before")
    @classmethod
    def _stringify_check(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return str(v).lower() if isinstance(v, bool) else str(v)

    @model_validator(mode="after")
    def _single_expectation(self) -> "Row":
        given = [
            k for k, on in (
                ("check", self.check is not None),
                ("check_not", self.check_not is not None),
                ("ensure", self.ensure),
                ("reject", self.reject),
            ) if on
        ]
        if len(given) > 1:
            raise ValueError(f"a row takes at most one of check/check_not/ensure/reject, got {', '.join(given)}")
        return self

    @property
    def expectation(self) -> Expectation:
        if self.check is not None:
            return Expectation.check
        if self.check_not is not None:
            return Expectation.check_not
        if self.ensure:
            return Expectation.ensure
        if self.reject:
            return Expectation.reject
        return Expectation.none

    @property
    def label(self) -> str:
        return self.name or " ".join([self.do.replace("_", " "), *self.args]).strip()


class Script(BaseModel):
    version: str = Field(default="1")
    name: str = Field(..., description="Script name, used for run folders")
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    rows: list[Row]

    @field_validator("name")
    @classmethod
    def _name_non_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("rows")
    @classmethod
    def _rows_non_empty(cls, v: list[Row]) -> list[Row]:
        if not v:
            raise ValueError("a script needs at least one row")
        return v


# ---------- Public API ----------


def _normalize(data: dict, p: Path, idx: int = 1) -> dict:
    data = dict(data)
    if not data.get("name"):
        data["name"] = p.stem if idx == 1 else f"{p.stem}_{idx}"
    # `steps` is accepted as an alias of `rows`
    if "rows" not in data and "steps" in data:
        data["rows"] = data.pop("steps")
    return _subst_env(data)


def load_scripts_file(path: Path | str) -> list[Script]:
    """Load one or more scripts from a YAML file (supports multi-document)."""
    sc_path = Path(path)
    if not sc_path.exists():
        raise FileNotFoundError(f"Script file not found: {sc_path}")
    try:
        docs = list(yaml.safe_load_all(sc_path.read_text(encoding="utf-8")))
    except yaml.YAMLError as ye:
        raise ValueError(f"YAML parse error in {sc_path}: {ye}") from ye

    out: list[Script] = []
    for idx, data in enumerate(docs, start=1):
        if data is None:
            continue
        if not isinstance(data, dict):
            raise ValueError(f"Document {idx} in {sc_path} must be a mapping/object.")
        try:
            out.append(Script.model_validate(_normalize(data, sc_path, idx)))
        except ValidationError as ve:
            raise ValueError(_format_errors(f"Invalid script '{sc_path}' (document {idx}):", ve)) from ve
    if not out:
        raise ValueError(f"No script documents found in {sc_path}")
    return out


def load_script(path: Path | str) -> Script:
    """Load a single-document script file."""
    scripts = load_scripts_file(path)
    if len(scripts) > 1:
        raise ValueError(f"{path} holds {len(scripts)} scripts; use load_scripts_file")
    return scripts[0]


def find_script_files(root: Path, *, recursive: bool = True) -> list[Path]:
    if root.is_file():
        return [root]
    if recursive:
        return sorted(list(root.rglob("*.yaml")) + list(root.rglob("*.yml")))
    return sorted(list(root.glob("*.yaml")) + list(root.glob("*.yml")))


__all__ = [
    "Expectation",
    "Row",
    "Script",
    "command_name",
    "load_script",
    "load_scripts_file",
    "find_script_files",
]
