# fitwright/utils/markup.py
from __future__ import annotations

"""Wiki markup helpers
----------------------
Table cells arrive rendered by the wiki: symbols may carry HTML tags, special
key spans, undefined variable notices or "create page" links. Everything the
fixture compares or sends to the browser goes through `clean()` first.
"""

import os
import re
from pathlib import Path
from typing import Any, Optional, Tuple

# Separators of the locator mini-language: [type=]selector[@attribute][->[!]value]
SELECTOR_VALUE_SEPARATOR = "->"
SELECTOR_VALUE_DENY_INDICATOR = "!"
SELECTOR_ATTRIBUTE_SEPARATOR = "@"
KEY_VALUE_SEPARATOR = "="

ON_VALUE = "on"
OFF_VALUE = "off"

_NULL_TOKEN = re.compile(r"\bnull\b")
_SPECIAL_KEY_SPAN = re.compile(r'<span keycode="([^"]+)"[^/]+/span>')
_UNDEFINED_VARIABLE_SPAN = re.compile(r"<span[^>]+>undefined variable:[^<]+</span>")
_CREATE_PAGE_LINK = re.compile(r"<a[^>]+>\[\?\]</a>")
_HTML_TAG = re.compile(r"</?[a-zA-Z][^>]*>")
_WIDTH_HEIGHT = re.compile(r"(\d{1,4})x(\d{1,4})")

_DIAGNOSTIC_TEMPLATE = "screenshot:<<{screenshot}>>, message:<<{message}>>"
_DIAGNOSTIC_PATTERN = re.compile(r"screenshot:<<(.*?)>>, message:<<(.*)>>", re.DOTALL)


def clean(symbol: Any) -> str:
    """Strip wiki rendering artifacts from a cell value.

    Whitespace and literal "null" tokens are removed, special key spans are
    replaced by their key code, undefined variable notices and "create page"
    links are dropped and any remaining HTML tag is stripped.
    """
    text = "" if symbol is None else str(symbol)
    text = _NULL_TOKEN.sub("", text.strip()).strip()
    if not text:
        return text
    text = _SPECIAL_KEY_SPAN.sub(r"\1", text)
    text = _UNDEFINED_VARIABLE_SPAN.sub("", text)
    text = _CREATE_PAGE_LINK.sub("", text)
    return _HTML_TAG.sub("", text).strip()


def parse_key_value(value: Any, separator: str = KEY_VALUE_SEPARATOR) -> Tuple[str, str]:
    """Clean and split `key<separator>value` on the first separator.

    Without a separator the whole cleaned value is the key.
    """
    cleaned = clean(value)
    if separator not in cleaned:
        return cleaned, ""
    key, _, rest = cleaned.partition(separator)
    return key, rest


def swap_value_to_check(value_with_check: str, locator: str) -> Tuple[str, str]:
    """Move a trailing `->expected` from a command value to its locator.

    `type_in("text->expected", "id=a")` reads naturally in a table but the
    wait engine only looks at the locator, so the check travels over.
    """
    value = value_with_check or ""
    locator = locator or ""
    if SELECTOR_VALUE_SEPARATOR not in value:
        return value, locator
    head, _, expected = value.rpartition(SELECTOR_VALUE_SEPARATOR)
    return head, f"{locator}{SELECTOR_VALUE_SEPARATOR}{expected}"


def clean_file(*parts: Any) -> Path:
    """Join cleaned path segments into a normalized, user-expanded Path."""
    cleaned = [os.path.normpath(clean(part)) for part in parts if clean(part)]
    return Path(*cleaned).expanduser() if cleaned else Path()


def on_or_off_to_bool(value: Any) -> bool:
    cleaned = clean(value).lower()
    return cleaned in ("true", ON_VALUE)


def bool_to_on_or_off(value: Any) -> str:
    if isinstance(value, bool):
        return ON_VALUE if value else OFF_VALUE
    return ON_VALUE if on_or_off_to_bool(value) else OFF_VALUE


def format_width_and_height(width: int, height: int) -> str:
    return f"{width}x{height}"


def parse_width_and_height(value: Any) -> Tuple[int, int]:
    cleaned = clean(value)
    m = _WIDTH_HEIGHT.fullmatch(cleaned)
    if not m:
        raise ValueError(
            "Invalid width and height format, should be something like "
            f"[width pixels]x[height pixels]. Obtained: {value}"
        )
    return int(m.group(1)), int(m.group(2))


# ---------- Failure diagnostics ----------

def exception_message(message: str, screenshot: Optional[str]) -> str:
    """Embed a base64 screenshot and the root cause message in one line."""
    return _DIAGNOSTIC_TEMPLATE.format(screenshot=screenshot or "", message=message or "")


def parse_exception_message(text: str) -> Tuple[str, str]:
    """Split a diagnostic message back into (screenshot, message).

    Messages that were never decorated come back as ("", text).
    """
    m = _DIAGNOSTIC_PATTERN.search(text or "")
    if not m:
        return "", text or ""
    return m.group(1), m.group(2)
