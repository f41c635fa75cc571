"""Crawl progress events and the bounded channel the crawler publishes them on."""

import asyncio
import logging
from typing import AsyncIterator, Callable, List, NamedTuple, Optional

logger = logging.getLogger(__name__)

_CLOSED = object()


class CrawlProgress(NamedTuple):
    current: int
    total: int
    current_url: str


class ProgressChannel:
    """Best-effort, bounded event queue between a crawl and whoever watches it.

    The crawler only ever calls :meth:`publish`, which never blocks and never
    raises.  When the queue is full the oldest event is dropped.  Consumers
    either ``async for`` over the channel until :meth:`close` is called, or
    :meth:`drain` whatever is pending.  An optional *listener* is invoked
    synchronously for every event; its exceptions are logged and dropped.
    """

    def __init__(
        self,
        maxsize: int = 100,
        listener: Optional[Callable[[CrawlProgress], None]] = None,
    ) -> None:
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._listener = listener
        self.dropped = 0

    def _put(self, item) -> None:
        while True:
            try:
                self._queue.put_nowait(item)
                return
            except asyncio.QueueFull:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except asyncio.QueueEmpty:
                    pass

    def publish(self, event: CrawlProgress) -> None:
        if self._listener is not None:
            try:
                self._listener(event)
            except Exception:
                logger.warning("Progress listener failed for %s", event.current_url, exc_info=True)
        self._put(event)

    def close(self) -> None:
        self._put(_CLOSED)

    def drain(self) -> List[CrawlProgress]:
        events: List[CrawlProgress] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return events
            if item is not _CLOSED:
                events.append(item)

    async def __aiter__(self) -> AsyncIterator[CrawlProgress]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
