"""Unit tests for the body completion policy"""

import time

import pytest

from mailin.domain.mail.body_policy import (
    EMPTY_HTML,
    complete_bodies,
    convert_html_to_text,
    convert_text_to_html,
)
from mailin.domain.mail.envelope import NormalizedMail, ParsedMail


class TestConvertTextToHtml:
    """Test plain text to HTML conversion"""

    def test_line_breaks_become_br(self):
        """Test every line break style is replaced"""
        assert convert_text_to_html("a\r\nb\n\rc\nd") == "a<br>b<br>c<br>d"

    def test_leading_and_trailing_breaks_trimmed(self):
        """Test break runs at both ends are removed"""
        assert convert_text_to_html("\nHello\nWorld\n\n") == "Hello<br>World"
        assert convert_text_to_html("\r\n\r\n  Hello  \r\n") == "Hello"

    def test_inner_break_runs_kept(self):
        """Test consecutive breaks inside the body are preserved"""
        assert convert_text_to_html("Hello\n\nWorld") == "Hello<br><br>World"

    def test_only_breaks(self):
        """Test a body made only of line breaks converts to an empty string"""
        assert convert_text_to_html("\n\r\n\n") == ""

    @pytest.mark.parametrize("text", [
        "a" + " " * 40000 + "x",
        "a" + "\n" * 20000 + "x",
        "a" + " \n" * 20000,
        "\n" * 20000 + "a",
    ])
    def test_long_break_runs_convert_in_linear_time(self, text):
        """Test long whitespace or break runs do not stall the conversion"""
        started = time.monotonic()
        html = convert_text_to_html(text)
        assert time.monotonic() - started < 1.0
        assert html.startswith("a")

    def test_inner_whitespace_run_kept(self):
        assert convert_text_to_html("a" + " " * 50 + "x\n") == "a" + " " * 50 + "x"


class TestConvertHtmlToText:
    """Test HTML to plain text conversion"""

    def test_markup_stripped(self):
        """Test tags are removed and text nodes kept"""
        assert convert_html_to_text("<p>Hello <b>there</b></p>") == "Hello there"

    def test_entities_decoded(self):
        """Test character references are decoded"""
        assert convert_html_to_text("<p>Fish &amp; chips</p>") == "Fish & chips"


class TestCompleteBodies:
    """Test that a normalized mail always carries both bodies"""

    def test_html_only(self):
        """Test text is derived from HTML"""
        mail = complete_bodies(ParsedMail(html="<p>Hello</p>"))
        assert isinstance(mail, NormalizedMail)
        assert mail.text == "Hello"
        assert mail.html == "<p>Hello</p>"

    def test_text_only(self):
        """Test HTML is derived from text"""
        mail = complete_bodies(ParsedMail(text="\nHello\nWorld\n\n"))
        assert mail.html == "Hello<br>World"
        assert mail.text == "\nHello\nWorld\n\n"

    def test_neither(self):
        """Test a bodiless message gets empty text and empty container markup"""
        mail = complete_bodies(ParsedMail(subject="empty"))
        assert mail.text == ""
        assert mail.html == EMPTY_HTML

    def test_empty_strings_count_as_missing(self):
        """Test empty bodies are treated like absent ones"""
        mail = complete_bodies(ParsedMail(text="", html=""))
        assert mail.text == ""
        assert mail.html == EMPTY_HTML

    def test_text_of_only_breaks_never_yields_empty_html(self):
        """Test HTML falls back to the empty container when the conversion is empty"""
        mail = complete_bodies(ParsedMail(text="\n\n"))
        assert mail.html == EMPTY_HTML

    def test_both_present_untouched(self):
        """Test existing bodies are kept as they are"""
        mail = complete_bodies(ParsedMail(text="Hi", html="<b>Hello</b>"))
        assert mail.text == "Hi"
        assert mail.html == "<b>Hello</b>"

    def test_other_fields_carried_over(self):
        """Test headers and metadata survive normalization"""
        parsed = ParsedMail(
            headers={"subject": "Hi"},
            subject="Hi",
            from_="alice@example.com",
            message_id="<1@example.com>",
            html="<p>Hello</p>",
        )
        mail = complete_bodies(parsed)
        assert mail.headers == {"subject": "Hi"}
        assert mail.from_ == "alice@example.com"
        assert mail.message_id == "<1@example.com>"
