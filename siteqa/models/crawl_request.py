from typing import Optional

from pydantic import BaseModel, Field, HttpUrl


class CrawlRequest(BaseModel):
    url: HttpUrl
    max_pages: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Maximum number of pages to crawl; capped by the stored max_pages_per_crawl.",
    )
    crawl_delay_ms: Optional[int] = Field(
        default=None,
        ge=0,
        le=60_000,
        description="Settle delay after each navigation. Defaults to the stored setting; "
        "a robots.txt Crawl-delay always takes precedence.",
    )
    respect_robots: Optional[bool] = Field(
        default=None,
        description="Check robots.txt before crawling. Defaults to the stored setting.",
    )


class IndexRequest(BaseModel):
    url: HttpUrl
