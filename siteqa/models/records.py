from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from siteqa.models.document import Source


class DomainRecord(BaseModel):
    """Per-domain bookkeeping kept alongside the indexed pages."""

    domain: str
    added_at: datetime
    last_crawled: datetime
    page_count: int = 0


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    domain: Optional[str] = None
    sources: List[Source] = []
    timestamp: Optional[datetime] = None


class CrawlSettings(BaseModel):
    max_pages_per_crawl: int = Field(default=50, ge=1, le=500)
    crawl_delay_ms: int = Field(default=2000, ge=0, le=60_000)
    respect_robots_txt: bool = True


class CrawlSettingsUpdate(BaseModel):
    max_pages_per_crawl: Optional[int] = Field(default=None, ge=1, le=500)
    crawl_delay_ms: Optional[int] = Field(default=None, ge=0, le=60_000)
    respect_robots_txt: Optional[bool] = None


class DomainStats(BaseModel):
    domain: str
    page_count: int
    last_crawled: datetime


class StoreStats(BaseModel):
    total_pages: int
    total_domains: int
    has_api_key: bool
    domains: List[DomainStats]
