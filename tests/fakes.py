"""In-memory stand-ins for the browsing surface, shared by the crawler and API tests."""

from contextlib import asynccontextmanager
from urllib.parse import urlparse

from siteqa.errors import ExtractionFailure, NavigationTimeout, SurfaceBusy
from siteqa.models.document import Document
from siteqa.services.extractor import extract_links, extract_page

BASE = "https://x.com"


def html_page(title: str, hrefs=(), body: str = "Some readable text.") -> str:
    anchors = "".join(f'<a href="{href}">link</a>' for href in hrefs)
    return f"<html><head><title>{title}</title></head><body><main><p>{body}</p>{anchors}</main></body></html>"


def tree_site():
    """Start page → 10 children → 10 grandchildren each."""
    site = {f"{BASE}/": html_page("Home", [f"/p{i}" for i in range(10)])}
    for i in range(10):
        site[f"{BASE}/p{i}"] = html_page(f"P{i}", [f"/p{i}/c{j}" for j in range(10)] + ["/"])
        for j in range(10):
            site[f"{BASE}/p{i}/c{j}"] = html_page(f"P{i}C{j}")
    return site


class FakeSession:
    """Serves *site* (url → html); URLs in *timeouts*/*broken* fail on navigate/extract.

    *redirects* maps a requested URL to the URL the tab ends up on.
    """

    def __init__(self, site, timeouts=(), broken=(), redirects=None):
        self.site = site
        self.redirects = dict(redirects or {})
        self.timeouts = set(timeouts)
        self.broken = set(broken)
        self.navigations = []
        self.current = None

    async def navigate(self, url):
        self.navigations.append(url)
        if url in self.timeouts:
            raise NavigationTimeout(f"Page load timeout for {url}")
        self.current = self.redirects.get(url, url)

    async def extract_document(self):
        if self.current in self.broken:
            raise ExtractionFailure("script injection failed")
        page = extract_page(self.site.get(self.current, html_page("Not found")))
        return Document(
            url=self.current,
            title=page.title,
            text_content=page.text_content,
            description=page.description,
            domain=urlparse(self.current).hostname,
        )

    async def extract_links(self):
        return extract_links(self.site.get(self.current, ""), self.current)


class FakeSurface:
    """One-session-at-a-time surface handing out a :class:`FakeSession`."""

    def __init__(self, session: FakeSession):
        self.session = session
        self.busy = False

    @asynccontextmanager
    async def acquire(self):
        if self.busy:
            raise SurfaceBusy("The browsing surface is already in use by another crawl.")
        self.busy = True
        try:
            yield self.session
        finally:
            self.busy = False

    async def close(self):
        pass
