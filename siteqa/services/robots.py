"""robots.txt policy engine: parsing, allow/disallow decisions, and a per-session cache.

Only the crawler's own user-agent token and the wildcard agent are honoured.
Allow rules are always checked before disallow rules and the first match in
each category wins, unlike the longest-match rule of RFC 9309.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional
from urllib.parse import urlparse

import httpx

from siteqa.services.fetcher import fetch_robots_txt

logger = logging.getLogger(__name__)

REASON_EXPLICITLY_ALLOWED = "explicitly allowed"
REASON_DISALLOWED = "disallowed"
REASON_NOT_RESTRICTED = "not restricted"


@dataclass
class RobotsRuleset:
    disallowed: List[str] = field(default_factory=list)
    allowed: List[str] = field(default_factory=list)
    crawl_delay_ms: Optional[float] = None


@dataclass(frozen=True)
class RobotsDecision:
    allowed: bool
    reason: str
    crawl_delay_ms: Optional[float] = None
    matched_pattern: Optional[str] = None


class RobotsPattern:
    """A robots.txt path pattern.

    Patterns without ``*`` are plain path prefixes.  Patterns with ``*`` are
    split into literal segments that must appear in order, the first one
    anchored at the start of the path.  No regular expression is ever built
    from the pattern text.
    """

    __slots__ = ("raw", "_segments")

    def __init__(self, raw: str) -> None:
        self.raw = raw
        self._segments = raw.split("*") if "*" in raw else None

    def matches(self, path: str) -> bool:
        if self._segments is None:
            return path.startswith(self.raw)

        head, *rest = self._segments
        if not path.startswith(head):
            return False
        pos = len(head)
        for segment in rest:
            if not segment:
                continue
            found = path.find(segment, pos)
            if found < 0:
                return False
            pos = found + len(segment)
        return True

    def __repr__(self) -> str:
        return f"RobotsPattern({self.raw!r})"


@lru_cache(maxsize=1024)
def compile_pattern(raw: str) -> RobotsPattern:
    return RobotsPattern(raw)


def parse(body: str, user_agent: str) -> RobotsRuleset:
    """Parse a robots.txt *body* into the rules that apply to *user_agent*."""
    ruleset = RobotsRuleset()
    token = user_agent.lower()
    applies = False

    for raw_line in body.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if ":" not in line:
            continue

        directive, _, value = line.partition(":")
        directive = directive.strip().lower()
        value = value.strip()

        if directive == "user-agent":
            agent = value.lower()
            applies = agent == "*" or agent == token
            continue
        if not applies:
            continue

        if directive == "disallow":
            if value:
                ruleset.disallowed.append(value)
        elif directive == "allow":
            if value:
                ruleset.allowed.append(value)
        elif directive == "crawl-delay":
            try:
                ruleset.crawl_delay_ms = float(value) * 1000
            except ValueError:
                logger.debug("Robots: ignoring non-numeric crawl-delay %r", value)

    return ruleset


def _request_path(url: str) -> str:
    parsed = urlparse(url)
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    return path


def is_allowed(url: str, ruleset: RobotsRuleset) -> RobotsDecision:
    """Decide whether *url* may be fetched under *ruleset*."""
    path = _request_path(url)

    for pattern in ruleset.allowed:
        if compile_pattern(pattern).matches(path):
            return RobotsDecision(
                allowed=True,
                reason=REASON_EXPLICITLY_ALLOWED,
                crawl_delay_ms=ruleset.crawl_delay_ms,
                matched_pattern=pattern,
            )

    for pattern in ruleset.disallowed:
        if compile_pattern(pattern).matches(path):
            return RobotsDecision(
                allowed=False,
                reason=REASON_DISALLOWED,
                crawl_delay_ms=ruleset.crawl_delay_ms,
                matched_pattern=pattern,
            )

    return RobotsDecision(
        allowed=True, reason=REASON_NOT_RESTRICTED, crawl_delay_ms=ruleset.crawl_delay_ms
    )


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for *url*."""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


class RobotsCache:
    """Origin → :class:`RobotsRuleset` map with lazy, fetch-once filling.

    The map is guarded by a thread lock so one cache can be shared by crawls
    running on different surfaces.  Each origin also gets an ``asyncio.Lock``
    so coroutines asking for the same origin at once trigger one fetch.  A
    failed fetch caches an empty ruleset.
    """

    def __init__(self, user_agent: str, timeout: float = 10.0) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self._rulesets: Dict[str, RobotsRuleset] = {}
        self._fetch_locks: Dict[str, asyncio.Lock] = {}
        self._lock = threading.Lock()

    def __contains__(self, origin: str) -> bool:
        with self._lock:
            return origin in self._rulesets

    def _origin_lock(self, origin: str) -> asyncio.Lock:
        with self._lock:
            return self._fetch_locks.setdefault(origin, asyncio.Lock())

    async def ruleset_for(self, url: str) -> RobotsRuleset:
        origin = origin_of(url)
        async with self._origin_lock(origin):
            with self._lock:
                cached = self._rulesets.get(origin)
            if cached is None:
                cached = await self._fetch(origin)
                with self._lock:
                    self._rulesets[origin] = cached
        return cached

    async def check(self, url: str) -> RobotsDecision:
        return is_allowed(url, await self.ruleset_for(url))

    async def _fetch(self, origin: str) -> RobotsRuleset:
        try:
            body = await fetch_robots_txt(
                origin, user_agent=self.user_agent, timeout=self.timeout
            )
        except (ValueError, httpx.HTTPError, RuntimeError) as exc:
            logger.warning("Robots: treating %s as unrestricted – %s", origin, exc)
            return RobotsRuleset()

        if body is None:
            logger.warning("Robots: no robots.txt at %s, treating as unrestricted", origin)
            return RobotsRuleset()

        ruleset = parse(body, self.user_agent)
        logger.info(
            "Robots: loaded %s/robots.txt",
            origin,
            extra={
                "allowed": len(ruleset.allowed),
                "disallowed": len(ruleset.disallowed),
                "crawl_delay_ms": ruleset.crawl_delay_ms,
            },
        )
        return ruleset
