import pytest
from pydantic import ValidationError

from fitwright.core.errors import LocatorSyntaxError
from fitwright.selectors.locator import SelectorKind, parse


def test_parse_id():
    sel = parse("id=foo")
    assert sel.kind == SelectorKind.id
    assert sel.expression == "foo"
    assert sel.attribute_name is None
    assert sel.expected_value is None


def test_parse_css_with_attribute_and_expected_value():
    sel = parse("css=#a@href->expected")
    assert sel.kind == SelectorKind.css
    assert sel.expression == "#a"
    assert sel.attribute_name == "href"
    assert sel.expected_value == "expected"


def test_empty_selector_is_focused_element_and_keeps_negation():
    sel = parse("->!off")
    assert sel.kind == SelectorKind.focused_element
    assert sel.expression == ""
    assert sel.expected_value == "!off"
    assert sel.negated


def test_unknown_prefix_falls_back_to_xpath():
    sel = parse("plainXPathNoPrefix")
    assert sel.kind == SelectorKind.xpath
    assert sel.expression == "plainXPathNoPrefix"


def test_xpath_containing_equals_and_at_sign_is_kept_whole():
    sel = parse("//div[@id='x']")
    assert sel.kind == SelectorKind.xpath
    assert sel.expression == "//div[@id='x']"
    assert sel.attribute_name is None


def test_regex_expectation_is_recognised():
    sel = parse("name=q->=~/^sel.*/")
    assert sel.kind == SelectorKind.name
    assert sel.expression == "q"
    assert sel.expected_value == "=~/^sel.*/"
    assert sel.is_regex
    assert not sel.negated


def test_last_value_separator_wins():
    sel = parse("xpath=//a->b->c")
    assert sel.expression == "//a->b"
    assert sel.expected_value == "c"


@pytest.mark.parametrize("raw", ["", None, "   ", "id="])
def test_blank_locators_target_the_focused_element(raw):
    sel = parse(raw)
    assert sel.is_focused
    assert sel.expression == ""


def test_attribute_on_focused_element():
    sel = parse("@value->joe")
    assert sel.is_focused
    assert sel.attribute_name == "value"
    assert sel.expected_value == "joe"


def test_link_and_webelement_prefixes():
    assert parse("link=Sign in").kind == SelectorKind.link_text
    sel = parse("webelement=12")
    assert sel.kind == SelectorKind.raw_element_reference
    assert sel.expression == "12"


def test_blank_expected_value_is_none():
    assert parse("id=a->   ").expected_value is None


def test_markup_is_cleaned_before_parsing():
    sel = parse("  <b>id=user</b>  ")
    assert sel.kind == SelectorKind.id
    assert sel.expression == "user"


def test_source_keeps_text_before_expected_value():
    sel = parse("https://example.com/?q=1->https://example.com/?q=1")
    assert sel.source == "https://example.com/?q=1"


def test_require_and_forbid_attribute():
    with_attr = parse("css=a@href")
    assert with_attr.require_attribute("attribute") == "href"
    with pytest.raises(LocatorSyntaxError):
        with_attr.forbid_attribute("click")

    without_attr = parse("css=a")
    without_attr.forbid_attribute("click")
    with pytest.raises(LocatorSyntaxError):
        without_attr.require_attribute("attribute")


def test_selector_is_immutable():
    sel = parse("id=foo")
    with pytest.raises(ValidationError):
        sel.expression = "bar"


def test_str_round_trips_to_locator_text():
    assert str(parse("css=#a@href->x")) == "css=#a@href->x"
    assert str(parse("->!off")) == "<focused>->!off"
