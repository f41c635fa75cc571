import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from siteqa.config import get_settings
from siteqa.limits import limiter
from siteqa.models.records import CrawlSettings
from siteqa.routers.ask import router as ask_router
from siteqa.routers.crawl import router as crawl_router
from siteqa.routers.domains import router as domains_router
from siteqa.services.browser_surface import BrowserSurface
from siteqa.services.store import DocumentStore

settings = get_settings()

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {"level": settings.log_level, "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.surface.close()


app = FastAPI(
    title="SiteQA – Website Q&A API",
    description="Crawls websites into a local index and answers questions about them.",
    version="1.0.0",
    lifespan=lifespan,
)

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# One browser tab per process; crawls take turns on it
app.state.surface = BrowserSurface(
    user_agent=settings.user_agent,
    timeout_ms=settings.navigation_timeout_ms,
    headless=settings.headless,
)
app.state.store = DocumentStore(
    CrawlSettings(
        max_pages_per_crawl=settings.default_max_pages,
        crawl_delay_ms=settings.default_crawl_delay_ms,
        respect_robots_txt=settings.respect_robots_txt,
    )
)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(crawl_router)
app.include_router(ask_router)
app.include_router(domains_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "Hello from SiteQA"}
