from __future__ import annotations

"""Locator mini-language
------------------------
Parses `[type=]selector[@attribute][->[!]expected]` into an immutable Selector.

    id=username                  find by id
    css=#user@value->Joe         read attribute "value", expect "Joe"
    ->!off                       focused element, expect anything but "off"
    name=q->=~/^sel.*/           expect a full regex match
    //div[@class='x']            no known prefix: raw XPath
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from fitwright.core.errors import LocatorSyntaxError
from fitwright.utils import markup
from fitwright.utils.logger import get_logger

log = get_logger(__name__)

_ATTRIBUTE_NAME = re.compile(r"[A-Za-z0-9]+")
_REGEX_MARKER = "=~/"


class SelectorKind(str, Enum):
    id = "id"
    name = "name"
    css = "css"
    xpath = "xpath"
    link_text = "link"
    focused_element = "focused"
    raw_element_reference = "webelement"


# Prefixes accepted before "=" in a locator.
PREFIXES = {
    "id": SelectorKind.id,
    "name": SelectorKind.name,
    "css": SelectorKind.css,
    "xpath": SelectorKind.xpath,
    "link": SelectorKind.link_text,
    "webelement": SelectorKind.raw_element_reference,
}


class Selector(BaseModel):
    """Parsed locator. Built once per command and never mutated."""

    model_config = ConfigDict(frozen=True)

    kind: SelectorKind
    expression: str = ""
    attribute_name: Optional[str] = None
    expected_value: Optional[str] = None
    source: str = ""  # cleaned text before "->", used by commands taking a raw value (urls, scripts)

    @property
    def is_focused(self) -> bool:
        return self.kind == SelectorKind.focused_element

    @property
    def negated(self) -> bool:
        return bool(self.expected_value) and self.expected_value.startswith(markup.SELECTOR_VALUE_DENY_INDICATOR)

    @property
    def is_regex(self) -> bool:
        value = self.expected_value or ""
        if value.startswith(markup.SELECTOR_VALUE_DENY_INDICATOR):
            value = value[1:]
        return value.startswith(_REGEX_MARKER) and value.endswith("/")

    def require_attribute(self, command: str) -> str:
        if not self.attribute_name:
            raise LocatorSyntaxError(f"'{command}' needs an attribute name, e.g. css=#link@href")
        return self.attribute_name

    def forbid_attribute(self, command: str) -> None:
        if self.attribute_name:
            raise LocatorSyntaxError(
                f"'{command}' does not read attributes, remove '@{self.attribute_name}' from the locator"
            )

    def to_locator(self) -> str:
        """Render back to the mini-language (without the expected value)."""
        if self.is_focused:
            body = ""
        else:
            body = f"{self.kind.value}{markup.KEY_VALUE_SEPARATOR}{self.expression}"
        if self.attribute_name:
            body += f"{markup.SELECTOR_ATTRIBUTE_SEPARATOR}{self.attribute_name}"
        return body

    def __str__(self) -> str:
        text = self.to_locator() or "<focused>"
        if self.expected_value is not None:
            text += f"{markup.SELECTOR_VALUE_SEPARATOR}{self.expected_value}"
        return text


def _split_expected(text: str) -> tuple[str, Optional[str]]:
    # Last "->" wins; selector bodies containing "->" are not supported.
    if markup.SELECTOR_VALUE_SEPARATOR not in text:
        return text, None
    selector_part, _, expected = text.rpartition(markup.SELECTOR_VALUE_SEPARATOR)
    expected = expected.strip()
    return selector_part, (expected or None)


def _split_attribute(text: str) -> tuple[str, Optional[str]]:
    if markup.SELECTOR_ATTRIBUTE_SEPARATOR not in text:
        return text, None
    body, _, candidate = text.rpartition(markup.SELECTOR_ATTRIBUTE_SEPARATOR)
    if not _ATTRIBUTE_NAME.fullmatch(candidate):
        # e.g. //div[@id='x'] keeps its "@" as part of the XPath
        return text, None
    return body, candidate


def _split_prefix(text: str) -> tuple[SelectorKind, str]:
    prefix, sep, body = text.partition(markup.KEY_VALUE_SEPARATOR)
    kind = PREFIXES.get(prefix.strip()) if sep else None
    if kind is None:
        # Unknown prefixes are plain XPath that happens to contain "="
        return SelectorKind.xpath, text
    return kind, body


def parse(raw: Optional[str]) -> Selector:
    """Parse a raw locator string into a Selector."""
    cleaned = markup.clean(raw)
    selector_part, expected = _split_expected(cleaned)
    selector_part = selector_part.strip()
    body, attribute = _split_attribute(selector_part)
    body = body.strip()

    if not body:
        selector = Selector(
            kind=SelectorKind.focused_element,
            attribute_name=attribute,
            expected_value=expected,
            source=selector_part,
        )
    else:
        kind, expression = _split_prefix(body)
        expression = expression.strip()
        if not expression:
            kind = SelectorKind.focused_element
        selector = Selector(
            kind=kind,
            expression=expression,
            attribute_name=attribute,
            expected_value=expected,
            source=selector_part,
        )
    log.debug(f"Parsed locator {raw!r} -> {selector.kind.value}:{selector.expression!r}")
    return selector
