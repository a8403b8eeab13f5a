from __future__ import annotations

"""Value comparison
-------------------
Single comparison primitive shared by every value-checking command.

    compare("abc", "abc")          -> True
    compare("!abc", "xyz")         -> True   (negation)
    compare("=~/^a.*c$/", "abc")   -> True   (full regex match)
"""

import re
from typing import Any

from fitwright.utils import markup

_REGEX_MARKUP = re.compile(r"^=~/(.+)/$", re.DOTALL)


def compare(expected: Any, actual: Any) -> bool:
    """Return True when `actual` satisfies `expected`.

    Both sides go through markup cleanup first. A leading "!" negates the
    result, `=~/pattern/` requires `actual` to match `pattern` entirely and
    anything else is an exact, case-sensitive equality check.
    """
    cleaned_expected = markup.clean(expected)
    cleaned_actual = markup.clean(actual)

    negated = cleaned_expected.startswith(markup.SELECTOR_VALUE_DENY_INDICATOR)
    if negated:
        cleaned_expected = cleaned_expected[len(markup.SELECTOR_VALUE_DENY_INDICATOR):]

    m = _REGEX_MARKUP.match(cleaned_expected)
    if m:
        result = re.fullmatch(m.group(1), cleaned_actual, flags=re.DOTALL) is not None
    else:
        result = cleaned_expected == cleaned_actual
    return not result if negated else result
