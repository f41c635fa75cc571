"""Site crawler: bounded BFS over one origin, driven through a single browsing surface."""

import asyncio
import logging
from collections import deque
from typing import List, NamedTuple, Optional
from urllib.parse import urlparse

from siteqa.config import get_settings
from siteqa.errors import InvalidCrawlRequest, PageFetchError, PolicyBlocked
from siteqa.models.document import Document
from siteqa.services.browser_surface import PageFetcher, normalise_url
from siteqa.services.progress import CrawlProgress, ProgressChannel
from siteqa.services.robots import RobotsCache

logger = logging.getLogger(__name__)


class CrawlResult(NamedTuple):
    origin_host: str
    documents: List[Document]
    document_count: int
    delay_ms: float


def _validate(start_url: str, max_pages: int) -> None:
    parsed = urlparse(start_url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidCrawlRequest(f"Start URL must be an absolute http(s) URL: {start_url!r}")
    if max_pages < 1:
        raise InvalidCrawlRequest("max_pages must be at least 1.")


async def resolve_delay(
    start_url: str,
    per_request_delay_ms: float,
    robots_cache: RobotsCache,
) -> float:
    """Check *start_url* against robots.txt and return the delay to use.

    A robots.txt ``Crawl-delay`` replaces the caller's delay, even when shorter.

    Raises:
        PolicyBlocked: if robots.txt disallows *start_url*.
    """
    decision = await robots_cache.check(start_url)
    if not decision.allowed:
        raise PolicyBlocked(start_url, decision.matched_pattern)
    if decision.crawl_delay_ms is not None:
        logger.info(
            "Crawler: robots.txt crawl-delay overrides requested delay",
            extra={"requested_ms": per_request_delay_ms, "robots_ms": decision.crawl_delay_ms},
        )
        return decision.crawl_delay_ms
    return per_request_delay_ms


async def crawl(
    session: PageFetcher,
    start_url: str,
    max_pages: int,
    per_request_delay_ms: float,
    respect_robots: bool = True,
    progress: Optional[ProgressChannel] = None,
    robots_cache: Optional[RobotsCache] = None,
) -> CrawlResult:
    """Crawl pages on the same origin as *start_url* in breadth-first order.

    *session* is the exclusive handle on a browsing surface; every page is
    loaded into it in turn, so pages are fetched strictly one after another.
    After each navigation the crawler waits *per_request_delay_ms* (or the
    robots.txt crawl-delay, when one is declared) before reading the page.

    A page that times out or cannot be extracted is logged and skipped, as is
    one that redirects to another host or to a page already collected.

    Raises:
        InvalidCrawlRequest: if *start_url* is not absolute http(s) or *max_pages* < 1.
        PolicyBlocked: if *respect_robots* is set and robots.txt disallows *start_url*.

    Returns:
        A :class:`CrawlResult` with the documents in fetch order.
    """
    _validate(start_url, max_pages)
    start_url = normalise_url(start_url)
    origin_host = urlparse(start_url).hostname

    delay_ms = per_request_delay_ms
    if respect_robots:
        if robots_cache is None:
            settings = get_settings()
            robots_cache = RobotsCache(settings.user_agent, timeout=settings.robots_timeout_s)
        delay_ms = await resolve_delay(start_url, per_request_delay_ms, robots_cache)

    visited: set = set()
    queued: set = {start_url}
    frontier: deque = deque([start_url])
    collected: List[Document] = []

    logger.info(
        "Crawl started",
        extra={"url": start_url, "max_pages": max_pages, "delay_ms": delay_ms},
    )

    while frontier and len(collected) < max_pages:
        url = frontier.popleft()
        queued.discard(url)

        if url in visited:
            continue
        visited.add(url)

        if progress is not None:
            progress.publish(
                CrawlProgress(
                    current=len(collected) + 1,
                    total=min(max_pages, len(collected) + len(frontier) + 1),
                    current_url=url,
                )
            )

        try:
            await session.navigate(url)
            await asyncio.sleep(delay_ms / 1000)
            document = await session.extract_document()
            links = await session.extract_links()
        except (PageFetchError, ValueError) as exc:
            logger.warning("Crawler: skipping %s – %s", url, exc)
            continue

        if urlparse(document.url).hostname != origin_host:
            logger.warning("Crawler: %s redirected off-site to %s, skipping", url, document.url)
            continue
        if document.url != url and document.url in visited:
            logger.info("Crawler: %s redirected to already-visited %s", url, document.url)
            continue

        collected.append(document)
        visited.add(document.url)

        added = 0
        for link in links:
            if urlparse(link).hostname != origin_host:
                continue
            if link not in visited and link not in queued:
                frontier.append(link)
                queued.add(link)
                added += 1
        logger.debug(
            "Crawler: %s yielded %d links, %d new; queue size %d",
            url,
            len(links),
            added,
            len(frontier),
        )

    logger.info(
        "Crawl complete",
        extra={"url": start_url, "visited": len(visited), "collected": len(collected)},
    )
    return CrawlResult(
        origin_host=origin_host,
        documents=collected,
        document_count=len(collected),
        delay_ms=delay_ms,
    )
