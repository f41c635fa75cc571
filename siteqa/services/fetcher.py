"""SSRF-guarded plain-HTTP access for robots.txt.

Pages themselves are loaded in the browser surface; this module only serves
the robots policy engine, which needs the raw file before a crawl starts.
"""

import ipaddress
import socket
from typing import Optional
from urllib.parse import urljoin, urlparse

import httpx

MAX_ROBOTS_SIZE = 512 * 1024  # 512 KiB
TIMEOUT = 10  # seconds
MAX_REDIRECTS = 5
ALLOWED_SCHEMES = {"http", "https"}


def _is_private_address(hostname: str) -> bool:
    """Return True if *hostname* resolves to a private, loopback, or link-local address."""
    try:
        infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror:
        return False

    for info in infos:
        # Strip IPv6 zone IDs (e.g. "::1%eth0" → "::1")
        raw_ip = info[4][0].split("%")[0]
        try:
            addr = ipaddress.ip_address(raw_ip)
        except ValueError:
            continue
        if addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved:
            return True
    return False


def validate_url(url: str) -> None:
    """Raise ValueError if *url* fails SSRF / scheme validation."""
    parsed = urlparse(url)

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Scheme '{parsed.scheme}' is not allowed. Use http or https.")

    hostname = parsed.hostname
    if not hostname:
        raise ValueError("URL must have a valid hostname.")

    if _is_private_address(hostname):
        raise ValueError("Requests to private/internal addresses are not allowed.")


async def fetch_robots_txt(
    origin: str,
    *,
    user_agent: Optional[str] = None,
    timeout: float = TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[str]:
    """Return the body of ``{origin}/robots.txt``, or None if the site has none.

    Any non-success final status counts as "no robots.txt".  Redirects are
    followed by hand so every hop passes :func:`validate_url` first.

    Raises:
        ValueError: if a URL on the redirect chain fails SSRF / scheme validation.
        httpx.HTTPError: on network errors.
        RuntimeError: on a redirect loop or a body larger than MAX_ROBOTS_SIZE.
    """
    current_url = f"{origin}/robots.txt"
    validate_url(current_url)

    headers = {"User-Agent": user_agent} if user_agent else {}
    async with httpx.AsyncClient(
        follow_redirects=False, timeout=timeout, headers=headers, transport=transport
    ) as client:
        for _ in range(MAX_REDIRECTS + 1):
            async with client.stream("GET", current_url) as response:
                if response.is_redirect:
                    next_url = urljoin(current_url, response.headers.get("location", ""))
                    validate_url(next_url)
                    current_url = next_url
                    continue

                if not response.is_success:
                    return None

                chunks = []
                total = 0
                async for chunk in response.aiter_bytes():
                    total += len(chunk)
                    if total > MAX_ROBOTS_SIZE:
                        raise RuntimeError(f"{current_url} exceeds {MAX_ROBOTS_SIZE} bytes.")
                    chunks.append(chunk)
                return b"".join(chunks).decode(errors="replace")

    raise RuntimeError(f"Too many redirects fetching {origin}/robots.txt.")
