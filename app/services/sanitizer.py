"""Cleanup of admin-authored rich text (privacy policy, terms, disclaimers)."""

import re

from bs4 import BeautifulSoup, Comment, Tag
from markdownify import markdownify

# Tags whose entire subtree should be removed (scripting / embedded content)
_REMOVE_TAGS = {
    "script",
    "style",
    "noscript",
    "iframe",
    "object",
    "embed",
    "applet",
    "link",
    "meta",
    "base",
    "form",
    "template",
}

# Inline CSS and event-handler attributes
_JUNK_ATTRS = re.compile(r"^(style|on\w+)$", re.IGNORECASE)

_URL_ATTRS = ("href", "src", "action", "formaction")

# Schemes that execute code when followed
_UNSAFE_SCHEME_RE = re.compile(r"^\s*(javascript|vbscript|data)\s*:", re.IGNORECASE)


def sanitize(html: str) -> BeautifulSoup:
    """Remove scripting and embedded content from *html* and return the tree."""
    soup = BeautifulSoup(html, "lxml")

    for tag in soup.find_all(_REMOVE_TAGS):
        tag.decompose()

    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    for tag in soup.find_all(True):
        if not isinstance(tag, Tag):
            continue
        junk = [attr for attr in tag.attrs if _JUNK_ATTRS.match(attr)]
        for attr in junk:
            del tag[attr]
        for attr in _URL_ATTRS:
            value = tag.get(attr)
            if isinstance(value, str) and _UNSAFE_SCHEME_RE.match(value):
                del tag[attr]

    return soup


def clean_html(html: str) -> str:
    """Return *html* with unsafe markup removed, as a fragment (no html/body wrapper)."""
    if not html.strip():
        return ""
    soup = sanitize(html)
    body = soup.find("body")
    fragment = body.decode_contents() if body else soup.decode_contents()
    return fragment.strip()


def to_markdown(html: str) -> str:
    """Render a rich-text fragment as Markdown for plain-text channels."""
    cleaned = clean_html(html)
    if not cleaned:
        return ""
    return markdownify(cleaned, heading_style="ATX").strip()
