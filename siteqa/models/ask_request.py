from typing import Optional

from pydantic import BaseModel, Field


class AskRequest(BaseModel):
    question: str = Field(min_length=1, max_length=4000)
    domain: Optional[str] = Field(
        default=None,
        description="Restrict retrieval to pages from this hostname.",
    )


class SearchRequest(BaseModel):
    query: str = Field(min_length=1, max_length=4000)
    domain: Optional[str] = None
    limit: int = Field(default=5, ge=1, le=50)
