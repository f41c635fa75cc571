from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Document(BaseModel):
    """One indexed page.  Identity key is the fragment-free absolute ``url``."""

    url: str
    title: str = ""
    text_content: str = ""
    description: str = ""
    domain: str = ""
    fetched_at: datetime = Field(default_factory=_utcnow)


class Source(BaseModel):
    url: str
    title: str
    domain: str


class Answer(BaseModel):
    answer: str
    sources: List[Source]
    context_used: int
