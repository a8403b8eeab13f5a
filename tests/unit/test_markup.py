import pytest

from fitwright.utils import markup


def test_clean_strips_wiki_artifacts():
    assert markup.clean("  <b>hello</b> ") == "hello"
    assert markup.clean('<span keycode="ENTER">x</span>') == "ENTER"
    assert markup.clean('a<span class="meta">undefined variable: X</span>') == "a"
    assert markup.clean('Page<a href="Page?edit">[?]</a>') == "Page"
    assert markup.clean(None) == ""


def test_clean_removes_null_tokens_but_keeps_words_containing_null():
    assert markup.clean("null") == ""
    assert markup.clean(" null ") == ""
    assert markup.clean("nullable") == "nullable"


def test_clean_keeps_comparison_operators():
    assert markup.clean("a < b") == "a < b"


def test_parse_key_value():
    assert markup.parse_key_value("index=2") == ("index", "2")
    assert markup.parse_key_value("label=a=b") == ("label", "a=b")
    assert markup.parse_key_value("Spain") == ("Spain", "")


def test_swap_value_to_check():
    assert markup.swap_value_to_check("joe->joe", "id=user") == ("joe", "id=user->joe")
    assert markup.swap_value_to_check("joe", "id=user") == ("joe", "id=user")
    assert markup.swap_value_to_check("a->b->c", "id=x") == ("a->b", "id=x->c")


@pytest.mark.parametrize("value, expected", [("on", True), ("TRUE", True), ("off", False), ("", False), ("yes", False)])
def test_on_or_off_to_bool(value, expected):
    assert markup.on_or_off_to_bool(value) is expected


def test_bool_to_on_or_off():
    assert markup.bool_to_on_or_off(True) == "on"
    assert markup.bool_to_on_or_off(False) == "off"
    assert markup.bool_to_on_or_off("true") == "on"


def test_width_and_height():
    assert markup.parse_width_and_height("1024x768") == (1024, 768)
    assert markup.format_width_and_height(800, 600) == "800x600"
    with pytest.raises(ValueError, match=r"Obtained: 1024\*768"):
        markup.parse_width_and_height("1024*768")
    with pytest.raises(ValueError):
        markup.parse_width_and_height("12345x1")


def test_exception_message_round_trip_keeps_multiline_message():
    text = markup.exception_message("line one\nline two", "AAAA")
    assert text == "screenshot:<<AAAA>>, message:<<line one\nline two>>"
    assert markup.parse_exception_message(text) == ("AAAA", "line one\nline two")


def test_parse_undecorated_message():
    assert markup.parse_exception_message("plain failure") == ("", "plain failure")
    assert markup.parse_exception_message("") == ("", "")


def test_clean_file_joins_and_normalizes(tmp_path):
    assert markup.clean_file(f"<b>{tmp_path}</b>", "sub/../report.csv") == tmp_path / "report.csv"
    assert markup.clean_file("~/x").is_absolute()
