"""HTML cleaning for AI form analysis.

Reduces a page to the markup an LLM needs to find form fields by:
- Removing media, scripts, styles and other non-form noise
- Removing hidden elements, navigation and footers
- Stripping inline styles, event handlers and data-* attributes
- Collapsing whitespace
- Isolating the form or main content when the page is too large
"""

import re

from bs4 import BeautifulSoup, Comment, Tag

MAX_HTML_LENGTH = 80000

REMOVE_TAGS = [
    "script",
    "style",
    "svg",
    "img",
    "video",
    "audio",
    "noscript",
    "iframe",
    "link",
    "meta",
    "picture",
    "source",
    "canvas",
]

REMOVE_SELECTORS = [
    "[hidden]",
    "[aria-hidden='true']",
    "footer",
    "nav",
]

KEEP_DATA_ATTRIBUTES = {"data-testid"}


def clean_form_html(html_content: str, max_length: int = MAX_HTML_LENGTH) -> str:
    """
    Clean page HTML for form field analysis.

    Args:
        html_content: Raw page HTML
        max_length: Maximum output length (chars)

    Returns:
        Cleaned HTML, at most max_length characters
    """
    soup = BeautifulSoup(html_content, "html.parser")
    root = soup.body or soup

    # 1. Remove noise tags and comments
    _remove_noise(root)

    # 2. Remove hidden and layout-only sections
    _remove_sections(root)

    # 3. Strip attributes the model does not need
    _strip_attributes(root)

    # 4. Isolate relevant content if too long
    return _isolate_content(root, max_length)


def _remove_noise(root: Tag) -> None:
    """Remove tags that never carry form structure."""
    for tag in root.find_all(REMOVE_TAGS):
        if not tag.decomposed:
            tag.decompose()

    for comment in root.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()


def _remove_sections(root: Tag) -> None:
    """Remove hidden elements, navigation, footers and form-less headers."""
    for selector in REMOVE_SELECTORS:
        for element in root.select(selector):
            if not element.decomposed:
                element.decompose()

    for header in root.find_all("header"):
        if not header.decomposed and header.find("form") is None:
            header.decompose()


def _strip_attributes(root: Tag) -> None:
    """Drop inline styles, event handlers and data-* attributes."""
    for element in root.find_all(True):
        for attr in list(element.attrs):
            if attr == "style" or attr.startswith("on"):
                del element[attr]
            elif attr.startswith("data-") and attr not in KEEP_DATA_ATTRIBUTES:
                del element[attr]


def _collapse_whitespace(html: str) -> str:
    """Collapse runs of whitespace, including around tag brackets."""
    html = re.sub(r"\s+", " ", html)
    html = re.sub(r">\s+<", "> <", html)
    html = re.sub(r"\s+>", ">", html)
    html = re.sub(r"<\s+", "<", html)
    return html.strip()


def _inner_html(element: Tag) -> str:
    if element.name == "[document]":
        return str(element)
    return element.decode_contents()


def _isolate_content(root: Tag, max_length: int) -> str:
    """Fall back to form, then main, then [role=main], then a hard cap."""
    html = _collapse_whitespace(_inner_html(root))
    if len(html) <= max_length:
        return html

    for selector in ("form", "main", "[role='main']"):
        candidate = root.select_one(selector)
        if candidate is None:
            continue
        candidate_html = _collapse_whitespace(str(candidate))
        if len(candidate_html) <= max_length:
            return candidate_html

    return html[:max_length]
