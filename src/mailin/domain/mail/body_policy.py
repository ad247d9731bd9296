"""Body completion policy.

Guarantees that a normalized mail carries both a text and an HTML body:

- neither present: empty text, empty container markup
- text only: HTML derived by turning line breaks into <br> and trimming
  leading/trailing break runs
- HTML only: text derived by stripping all markup
"""

import re

from bs4 import BeautifulSoup

from .envelope import NormalizedMail, ParsedMail

EMPTY_HTML = "<div></div>"

_BREAK = "<br>"
_LINE_BREAK = re.compile(r"\r\n|\n\r|\n")


def convert_text_to_html(text: str) -> str:
    """Convert a plain text body to HTML.

    Example:
        >>> convert_text_to_html("\\nHello\\nWorld\\n\\n")
        'Hello<br>World'
    """
    return _trim_breaks(_LINE_BREAK.sub(_BREAK, text))


def _trim_breaks(html: str) -> str:
    """Drop whitespace and <br> runs from both ends, scanning each end once."""
    start, end = 0, len(html)

    while start < end:
        if html[start].isspace():
            start += 1
        elif html.startswith(_BREAK, start, end):
            start += len(_BREAK)
        else:
            break

    while end > start:
        if html[end - 1].isspace():
            end -= 1
        elif html.endswith(_BREAK, start, end):
            end -= len(_BREAK)
        else:
            break

    return html[start:end]


def convert_html_to_text(html: str) -> str:
    """Strip all markup from an HTML body, keeping its text nodes."""
    return BeautifulSoup(html, "html.parser").get_text()


def complete_bodies(mail: ParsedMail) -> NormalizedMail:
    """Apply the body completion policy to a parsed mail.

    A body counts as missing when it is absent or empty.

    Args:
        mail: Parsed mail, possibly lacking one or both bodies

    Returns:
        NormalizedMail: Copy with both ``text`` and ``html`` set
    """
    text = mail.text
    html = mail.html

    if not text and not html:
        text = ""
        html = EMPTY_HTML
    elif not html:
        html = convert_text_to_html(text) or EMPTY_HTML
    elif not text:
        text = convert_html_to_text(html)

    data = mail.model_dump(by_alias=True)
    data.update(text=text, html=html)
    return NormalizedMail(**data)
