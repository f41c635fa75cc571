"""Turn rendered HTML into a :class:`Document` and a crawlable link list."""

from typing import List, NamedTuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from markdownify import markdownify

from siteqa.services.cleaner import clean_text
from siteqa.services.sanitizer import sanitize

# Links ending in one of these are downloads, not pages
BINARY_EXTENSIONS = (
    ".pdf",
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".webp",
    ".svg",
    ".bmp",
    ".ico",
    ".zip",
    ".gz",
    ".tar",
    ".rar",
    ".7z",
    ".exe",
    ".dmg",
    ".msi",
    ".doc",
    ".docx",
    ".xls",
    ".xlsx",
    ".ppt",
    ".pptx",
)

_MAIN_SELECTORS = (
    "main",
    '[role="main"]',
    "article",
    "#content",
    ".content",
    "#main",
    ".main",
)


class ExtractedPage(NamedTuple):
    title: str
    description: str
    text_content: str


def _extract_title(soup: BeautifulSoup) -> str:
    title_tag = soup.find("title")
    if title_tag and title_tag.get_text(strip=True):
        return title_tag.get_text(strip=True)
    h1 = soup.find("h1")
    if h1:
        return h1.get_text(strip=True)
    return ""


def _extract_description(soup: BeautifulSoup) -> str:
    meta = soup.find("meta", attrs={"name": "description"})
    if meta and meta.get("content"):
        return str(meta["content"]).strip()
    og_desc = soup.find("meta", attrs={"property": "og:description"})
    if og_desc and og_desc.get("content"):
        return str(og_desc["content"]).strip()
    return ""


def _find_main_content(soup: BeautifulSoup):
    for selector in _MAIN_SELECTORS:
        node = soup.select_one(selector)
        if node:
            return node
    return soup.find("body") or soup


def extract_page(html: str) -> ExtractedPage:
    """Return the title, meta description and readable text of *html*."""
    # Title and description live in <head>, which sanitize() strips
    raw_soup = BeautifulSoup(html, "lxml")
    title = _extract_title(raw_soup)
    description = _extract_description(raw_soup)

    main_node = _find_main_content(sanitize(html))
    text = markdownify(
        str(main_node),
        heading_style="ATX",
        strip=["a", "img"],
        escape_asterisks=False,
        escape_underscores=False,
    )
    return ExtractedPage(title=title, description=description, text_content=clean_text(text))


def is_crawlable_link(url: str, base_hostname: str) -> bool:
    """Return True for same-host, fragment-free, non-binary http(s) URLs."""
    if "#" in url:
        return False
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return False
    if parsed.hostname != base_hostname:
        return False
    return not url.lower().endswith(BINARY_EXTENSIONS)


def extract_links(html: str, base_url: str) -> List[str]:
    """Return the crawlable outbound links of *html*, absolute and de-duplicated."""
    soup = BeautifulSoup(html, "lxml")
    base_hostname = urlparse(base_url).hostname
    seen: set = set()
    links: List[str] = []
    for a in soup.find_all("a", href=True):
        href = str(a["href"]).strip()
        if not href:
            continue
        abs_url = urljoin(base_url, href)
        if abs_url in seen or not is_crawlable_link(abs_url, base_hostname):
            continue
        seen.add(abs_url)
        links.append(abs_url)
    return links
