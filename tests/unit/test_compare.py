import pytest

from fitwright.core.compare import compare


@pytest.mark.parametrize(
    "expected, actual, result",
    [
        ("abc", "abc", True),
        ("abc", "abd", False),
        ("Abc", "abc", False),
        ("!abc", "xyz", True),
        ("!abc", "abc", False),
        ("=~/^a.*c$/", "abc", True),
        ("=~/b/", "abc", False),
        ("!=~/b/", "abc", True),
        ("", "", True),
    ],
)
def test_compare(expected, actual, result):
    assert compare(expected, actual) is result


def test_both_sides_are_cleaned():
    assert compare("<b>joe</b>", "  joe ")
    assert compare(None, "null")


def test_regex_spans_lines():
    assert compare("=~/first.*last/", "first\nlast")
