"""In-process store for indexed pages, domain bookkeeping, chat history and settings."""

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from siteqa.models.document import Document
from siteqa.models.records import (
    ChatMessage,
    CrawlSettings,
    CrawlSettingsUpdate,
    DomainRecord,
    DomainStats,
    StoreStats,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStore:
    """Thread-safe store keyed by document URL.

    Re-indexing a URL replaces the stored document and moves it to the end, so
    a snapshot never holds two documents for the same URL.
    """

    def __init__(self, settings: Optional[CrawlSettings] = None) -> None:
        self._lock = threading.Lock()
        self._pages: Dict[str, Document] = {}
        self._domains: Dict[str, DomainRecord] = {}
        self._chat: List[ChatMessage] = []
        self._settings = settings or CrawlSettings()

    # -- pages -------------------------------------------------------------

    def put_document(self, document: Document) -> None:
        with self._lock:
            self._pages.pop(document.url, None)
            self._pages[document.url] = document
            self._touch_domain(document.domain)

    def put_documents(self, documents: List[Document]) -> None:
        for document in documents:
            self.put_document(document)

    def get_documents(self, domain: Optional[str] = None) -> List[Document]:
        with self._lock:
            pages = list(self._pages.values())
        if domain:
            return [page for page in pages if page.domain == domain]
        return pages

    # -- domains -----------------------------------------------------------

    def _touch_domain(self, domain: str) -> None:
        now = _utcnow()
        count = sum(1 for page in self._pages.values() if page.domain == domain)
        record = self._domains.get(domain)
        if record is None:
            self._domains[domain] = DomainRecord(
                domain=domain, added_at=now, last_crawled=now, page_count=count
            )
        else:
            record.last_crawled = now
            record.page_count = count

    def get_domains(self) -> List[DomainRecord]:
        with self._lock:
            return [record.model_copy() for record in self._domains.values()]

    def remove_domain(self, domain: str) -> bool:
        """Drop *domain* and all of its pages.  Returns False if it was unknown."""
        with self._lock:
            known = self._domains.pop(domain, None) is not None
            self._pages = {
                url: page for url, page in self._pages.items() if page.domain != domain
            }
        if known:
            logger.info("Store: removed domain %s", domain)
        return known

    def clear_all(self) -> None:
        with self._lock:
            self._pages.clear()
            self._domains.clear()

    # -- chat history ------------------------------------------------------

    def add_chat_message(self, message: ChatMessage) -> None:
        stamped = message.model_copy(update={"timestamp": message.timestamp or _utcnow()})
        with self._lock:
            self._chat.append(stamped)

    def get_chat_history(self) -> List[ChatMessage]:
        with self._lock:
            return list(self._chat)

    def clear_chat_history(self) -> None:
        with self._lock:
            self._chat.clear()

    # -- settings ----------------------------------------------------------

    def get_settings(self) -> CrawlSettings:
        with self._lock:
            return self._settings.model_copy()

    def update_settings(self, update: CrawlSettingsUpdate) -> CrawlSettings:
        changes = update.model_dump(exclude_none=True)
        with self._lock:
            self._settings = self._settings.model_copy(update=changes)
            return self._settings.model_copy()

    # -- stats -------------------------------------------------------------

    def stats(self, has_api_key: bool) -> StoreStats:
        with self._lock:
            return StoreStats(
                total_pages=len(self._pages),
                total_domains=len(self._domains),
                has_api_key=has_api_key,
                domains=[
                    DomainStats(
                        domain=record.domain,
                        page_count=record.page_count,
                        last_crawled=record.last_crawled,
                    )
                    for record in self._domains.values()
                ],
            )
