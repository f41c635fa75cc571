"""Exception hierarchy shared by the crawler, retrieval engine and answering client."""

from typing import Optional


class SiteQAError(Exception):
    """Base class for all domain errors raised by SiteQA."""


class InvalidCrawlRequest(SiteQAError, ValueError):
    """Raised when crawl preconditions (absolute http(s) URL, max_pages >= 1) fail."""


class PolicyBlocked(SiteQAError):
    """robots.txt disallows the crawl's start URL."""

    def __init__(self, url: str, matched_pattern: Optional[str]) -> None:
        self.url = url
        self.matched_pattern = matched_pattern
        super().__init__(f"robots.txt disallows {url} (pattern: {matched_pattern})")


class SurfaceBusy(SiteQAError):
    """The browsing surface is already driven by another session."""


class PageFetchError(SiteQAError):
    """A single page could not be fetched or extracted.  Never fatal to a crawl."""


class NavigationTimeout(PageFetchError):
    pass


class ExtractionFailure(PageFetchError):
    pass


class RetrievalError(SiteQAError):
    """No usable context could be selected for a question."""


class EmptyCorpus(RetrievalError):
    pass


class NoRelevantDocuments(RetrievalError):
    pass


class AnswerModelNotConfigured(SiteQAError):
    pass


class UpstreamModelFailure(SiteQAError):
    """The answering model returned a non-success response."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Answering model error: {status_code} - {body}")
