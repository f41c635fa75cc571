"""Playwright-backed browsing surface that the crawler repoints from page to page.

A :class:`BrowserSurface` owns one browser tab.  Navigation and extraction are
only reachable through the :class:`SurfaceSession` handed out by
:meth:`BrowserSurface.acquire`, and a surface hands out one session at a time,
so two crawls can never drive the same tab.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Protocol
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from siteqa.errors import ExtractionFailure, NavigationTimeout, PageFetchError, SurfaceBusy
from siteqa.models.document import Document
from siteqa.services.extractor import extract_links, extract_page
from siteqa.services.fetcher import validate_url

logger = logging.getLogger(__name__)

TIMEOUT_MS = 30_000  # 30 s in milliseconds
MAX_CONTENT_SIZE = 10 * 1024 * 1024  # 10 MB


class PageFetcher(Protocol):
    """What the crawler needs from a browsing surface."""

    async def navigate(self, url: str) -> None: ...

    async def extract_document(self) -> Document: ...

    async def extract_links(self) -> List[str]: ...


def normalise_url(url: str) -> str:
    """Strip URL fragment so http://x.com/page#sec and http://x.com/page are the same."""
    return urlparse(url)._replace(fragment="").geturl()


class SurfaceSession:
    """Exclusive handle on a surface's tab for the duration of one crawl."""

    def __init__(self, page, timeout_ms: int = TIMEOUT_MS) -> None:
        self._page = page
        self._timeout_ms = timeout_ms
        self._active = True

    def _ensure_active(self) -> None:
        if not self._active:
            raise RuntimeError("Surface session has been released.")

    def release(self) -> None:
        self._active = False

    async def navigate(self, url: str) -> None:
        """Point the tab at *url* and wait for the load event.

        Raises:
            ValueError: if the URL fails SSRF / scheme validation.
            NavigationTimeout: if the page does not load within the timeout.
            PageFetchError: on any other browser/network error.
        """
        self._ensure_active()
        await asyncio.to_thread(validate_url, url)
        try:
            await self._page.goto(url, wait_until="load", timeout=self._timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeout(f"Page load timeout for {url}") from exc
        except PlaywrightError as exc:
            raise PageFetchError(f"Navigation to {url} failed: {exc}") from exc

    async def _rendered_html(self) -> str:
        try:
            html = await self._page.content()
        except PlaywrightError as exc:
            raise ExtractionFailure(f"Cannot read page content: {exc}") from exc
        if len(html.encode()) > MAX_CONTENT_SIZE:
            raise ExtractionFailure("Rendered HTML exceeds the maximum allowed size.")
        return html

    async def extract_document(self) -> Document:
        self._ensure_active()
        url = normalise_url(self._page.url)
        html = await self._rendered_html()
        try:
            page = extract_page(html)
        except Exception as exc:
            raise ExtractionFailure(f"Cannot extract content from {url}: {exc!r}") from exc
        return Document(
            url=url,
            title=page.title,
            text_content=page.text_content,
            description=page.description,
            domain=urlparse(url).hostname or "",
        )

    async def extract_links(self) -> List[str]:
        self._ensure_active()
        html = await self._rendered_html()
        try:
            return extract_links(html, self._page.url)
        except Exception as exc:
            raise ExtractionFailure(f"Cannot extract links from {self._page.url}: {exc!r}") from exc


class BrowserSurface:
    """A headless Chromium tab, started lazily on first :meth:`acquire`."""

    def __init__(
        self,
        *,
        user_agent: Optional[str] = None,
        timeout_ms: int = TIMEOUT_MS,
        headless: bool = True,
    ) -> None:
        self.user_agent = user_agent
        self.timeout_ms = timeout_ms
        self.headless = headless
        self._playwright = None
        self._browser = None
        self._page = None
        self._in_use = False

    @property
    def busy(self) -> bool:
        return self._in_use

    async def start(self) -> None:
        if self._page is not None:
            return
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=[
                # --no-sandbox is required when running as root inside a container
                # (Docker drops the user namespace needed by Chromium's sandbox).
                "--no-sandbox",
                "--disable-dev-shm-usage",
                "--disable-gpu",
            ],
        )
        context = await self._browser.new_context(user_agent=self.user_agent)
        self._page = await context.new_page()
        logger.info("Browser surface started", extra={"headless": self.headless})

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        self._playwright = self._browser = self._page = None

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[SurfaceSession]:
        """Yield the surface's only session.

        Raises:
            SurfaceBusy: if another session is still live.
        """
        if self._in_use:
            raise SurfaceBusy("The browsing surface is already in use by another crawl.")
        self._in_use = True
        session = None
        try:
            await self.start()
            session = SurfaceSession(self._page, self.timeout_ms)
            yield session
        finally:
            if session is not None:
                session.release()
            self._in_use = False

    async def __aenter__(self) -> "BrowserSurface":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
