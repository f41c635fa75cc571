import re

from bs4 import BeautifulSoup, Comment, Tag

# Matches `display:none` or `visibility:hidden` in inline style attributes
_HIDDEN_STYLE_RE = re.compile(
    r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE
)

# Tags whose entire subtree should be removed before reading page text
_REMOVE_TAGS = {
    "script",
    "style",
    "noscript",
    "iframe",
    "object",
    "embed",
    "link",
    "meta",
    "svg",
    "canvas",
    "template",
    # Page chrome that repeats on every page of a site
    "nav",
    "header",
    "footer",
    "button",
    "form",
}

# CSS classes / ids that strongly indicate non-content elements
_NOISE_KEYWORDS = {
    "navbar",
    "navigation",
    "menu",
    "sidebar",
    "side-bar",
    "banner",
    "popup",
    "modal",
    "cookie",
    "gdpr",
    "advertisement",
    "breadcrumb",
    "pagination",
    "share",
    "subscribe",
    "newsletter",
    "overlay",
    "site-footer",
    "site-header",
    "skip-link",
}


def _has_noise_attr(tag: Tag) -> bool:
    """Return True when a tag's id or class suggests it is non-content."""
    if not tag.attrs:
        return False
    attrs_to_check = []
    if tag.get("id"):
        attrs_to_check.append(str(tag["id"]).lower())
    for cls in tag.get("class", []):
        attrs_to_check.append(cls.lower())

    return any(keyword in attr for attr in attrs_to_check for keyword in _NOISE_KEYWORDS)


def sanitize(html: str) -> BeautifulSoup:
    """Remove non-content elements from *html* and return the cleaned tree."""
    soup = BeautifulSoup(html, "lxml")

    # find_all returns a snapshot, so descendants of a decomposed tag are
    # still visited; skip them once they have been detached.
    for tag in soup.find_all(_REMOVE_TAGS):
        if not tag.decomposed:
            tag.decompose()

    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    for tag in soup.find_all(True):
        if not isinstance(tag, Tag) or tag.decomposed:
            continue
        if _has_noise_attr(tag):
            tag.decompose()
            continue
        inline_style = tag.get("style", "")
        if inline_style and _HIDDEN_STYLE_RE.search(inline_style):
            tag.decompose()

    return soup
