from typing import List

from pydantic import BaseModel

from siteqa.models.document import Document


class SearchResponse(BaseModel):
    query: str
    keywords: List[str]
    results: List[Document]
