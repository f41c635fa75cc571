import asyncio
import json
import logging
from typing import AsyncIterator, Tuple

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from siteqa.errors import (
    InvalidCrawlRequest,
    NavigationTimeout,
    PolicyBlocked,
    SiteQAError,
    SurfaceBusy,
)
from siteqa.limits import limiter
from siteqa.models.crawl_request import CrawlRequest, IndexRequest
from siteqa.models.crawl_response import CrawlResponse, IndexResponse
from siteqa.services.browser_surface import BrowserSurface
from siteqa.services.crawler import CrawlResult, crawl
from siteqa.services.progress import ProgressChannel
from siteqa.services.store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _crawl_parameters(store: DocumentStore, body: CrawlRequest) -> Tuple[int, int, bool]:
    """Merge request overrides with the stored crawl settings."""
    settings = store.get_settings()
    max_pages = min(body.max_pages, settings.max_pages_per_crawl)
    delay_ms = body.crawl_delay_ms if body.crawl_delay_ms is not None else settings.crawl_delay_ms
    respect = body.respect_robots if body.respect_robots is not None else settings.respect_robots_txt
    return max_pages, delay_ms, respect


async def _run_crawl(
    surface: BrowserSurface,
    url: str,
    max_pages: int,
    delay_ms: int,
    respect_robots: bool,
    progress: ProgressChannel | None = None,
) -> CrawlResult:
    async with surface.acquire() as session:
        return await crawl(
            session,
            url,
            max_pages=max_pages,
            per_request_delay_ms=delay_ms,
            respect_robots=respect_robots,
            progress=progress,
        )


def _to_http_error(url: str, exc: Exception) -> HTTPException:
    if isinstance(exc, PolicyBlocked):
        logger.warning("Crawl blocked by robots.txt: %s (%s)", url, exc.matched_pattern)
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, SurfaceBusy):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (InvalidCrawlRequest, ValueError)):
        logger.warning("Invalid or blocked URL: %s – %s", url, exc)
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, NavigationTimeout):
        return HTTPException(status_code=504, detail="The target URL timed out.")
    logger.error("Error crawling URL %s: %s", url, exc)
    return HTTPException(status_code=502, detail=str(exc))


@router.post(
    "/crawl",
    response_model=CrawlResponse,
    summary="Crawl and index a site",
    description=(
        "Starting from *url*, loads same-host pages breadth-first in a browser tab, "
        "one at a time, until `max_pages` pages have been indexed or no links remain.  "
        "robots.txt is honoured unless disabled, and its Crawl-delay replaces the "
        "requested delay.  Every page is stored for later questions."
    ),
)
@limiter.limit("5/minute")
async def crawl_endpoint(request: Request, body: CrawlRequest) -> CrawlResponse:
    url = str(body.url)
    store: DocumentStore = request.app.state.store
    max_pages, delay_ms, respect = _crawl_parameters(store, body)
    logger.info(
        "Crawl request received",
        extra={"url": url, "max_pages": max_pages, "delay_ms": delay_ms, "respect_robots": respect},
    )

    try:
        result = await _run_crawl(request.app.state.surface, url, max_pages, delay_ms, respect)
    except (SiteQAError, ValueError) as exc:
        raise _to_http_error(url, exc)

    store.put_documents(result.documents)

    return CrawlResponse(
        start_url=url,
        domain=result.origin_host,
        pages_requested=max_pages,
        pages_crawled=result.document_count,
        pages=result.documents,
    )


@router.post(
    "/crawl/stream",
    summary="Crawl and index a site, streaming progress",
    description=(
        "Same as `POST /crawl`, but responds with newline-delimited JSON: one "
        "`progress` line per page, then a final `result` or `error` line."
    ),
)
@limiter.limit("5/minute")
async def crawl_stream_endpoint(request: Request, body: CrawlRequest) -> StreamingResponse:
    url = str(body.url)
    store: DocumentStore = request.app.state.store
    surface: BrowserSurface = request.app.state.surface
    max_pages, delay_ms, respect = _crawl_parameters(store, body)

    if surface.busy:
        raise HTTPException(status_code=409, detail="The browsing surface is already in use.")

    async def events() -> AsyncIterator[str]:
        channel = ProgressChannel()

        async def run() -> CrawlResult:
            try:
                return await _run_crawl(surface, url, max_pages, delay_ms, respect, channel)
            finally:
                channel.close()

        task = asyncio.create_task(run())
        try:
            async for event in channel:
                yield json.dumps({"type": "progress", **event._asdict()}) + "\n"
            try:
                result = await task
            except (SiteQAError, ValueError) as exc:
                error = _to_http_error(url, exc)
                yield json.dumps(
                    {"type": "error", "status_code": error.status_code, "detail": error.detail}
                ) + "\n"
                return
            store.put_documents(result.documents)
            yield json.dumps(
                {
                    "type": "result",
                    "domain": result.origin_host,
                    "pages_requested": max_pages,
                    "pages_crawled": result.document_count,
                }
            ) + "\n"
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(events(), media_type="application/x-ndjson")


@router.post("/index", response_model=IndexResponse, summary="Index a single page")
@limiter.limit("10/minute")
async def index_endpoint(request: Request, body: IndexRequest) -> IndexResponse:
    """Load *url* in the browser tab, extract it, and store it."""
    url = str(body.url)
    store: DocumentStore = request.app.state.store
    logger.info("Index request received", extra={"url": url})

    try:
        async with request.app.state.surface.acquire() as session:
            await session.navigate(url)
            document = await session.extract_document()
    except (SiteQAError, ValueError) as exc:
        raise _to_http_error(url, exc)

    store.put_document(document)
    return IndexResponse(domain=document.domain, page=document)
