from typing import List

from pydantic import BaseModel

from siteqa.models.document import Document


class CrawlResponse(BaseModel):
    start_url: str
    domain: str
    pages_requested: int
    pages_crawled: int
    pages: List[Document]


class IndexResponse(BaseModel):
    domain: str
    page: Document
