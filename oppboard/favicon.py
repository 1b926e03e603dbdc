"""Best-effort favicon lookup for opportunity application links.

``sync_url`` hands back the favicon-service URL immediately for optimistic
display. ``FaviconResolver.resolve_with_fallback`` actually loads that URL
and falls back to a generated placeholder when the load fails or does not
finish within the configured timeout. Resolution never raises.
"""

from __future__ import annotations

import asyncio
import logging
import re
from urllib.parse import quote, urlencode, urlsplit

import httpx

from .config import Config
from .metrics import FAVICON_RESOLUTIONS

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_URL = "https://www.google.com/s2/favicons"
ICON_SIZE = 64

_DOMAIN_PATTERN = re.compile(r"(?:https?://)?(?:www\.)?([^/]+)")
_PLACEHOLDER_SVG = (
    '<svg width="64" height="64" xmlns="http://www.w3.org/2000/svg">'
    '<rect width="64" height="64" fill="#000000"/>'
    '<text x="32" y="42" font-family="Arial, sans-serif" font-size="36" font-weight="bold" '
    'fill="#FFFFFF" text-anchor="middle" dominant-baseline="middle">{initial}</text></svg>'
)


def extract_domain(url: str) -> str | None:
    """Return the hostname of ``url`` without a leading ``www.``."""

    if not url:
        return None
    try:
        hostname = urlsplit(url.strip()).hostname
    except ValueError:
        hostname = None
    if hostname:
        return hostname.removeprefix("www.")

    match = _DOMAIN_PATTERN.search(url.strip())
    return match.group(1) if match else None


def placeholder(domain: str) -> str:
    """Build an inline SVG data URL showing the domain's first character."""

    initial = (domain[:1] or "?").upper()
    svg = _PLACEHOLDER_SVG.format(initial=initial)
    # Same escaping as encodeURIComponent so the URL is stable across clients.
    return "data:image/svg+xml;charset=utf-8," + quote(svg, safe="-_.!~*'()")


def sync_url(apply_url: str, service_url: str = DEFAULT_SERVICE_URL) -> str:
    domain = extract_domain(apply_url)
    if not domain:
        return placeholder("?")
    return f"{service_url}?{urlencode({'domain': domain, 'sz': ICON_SIZE})}"


class FaviconResolver:
    """Resolve favicons with a bounded wait."""

    def __init__(
        self,
        config: Config | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self._service_url = config.favicon_service_url if config else DEFAULT_SERVICE_URL
        if timeout is not None:
            self._timeout = timeout
        else:
            self._timeout = config.favicon_timeout if config else 2.0
        self._client = client

    def sync_url(self, apply_url: str) -> str:
        return sync_url(apply_url, self._service_url)

    async def _loads(self, client: httpx.AsyncClient, url: str) -> bool:
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            logger.debug("Favicon request for %s failed: %s", url, exc)
            return False
        content_type = response.headers.get("content-type", "")
        return response.is_success and content_type.startswith("image/")

    async def resolve_with_fallback(self, apply_url: str) -> str:
        """Return a favicon URL that loaded, or the placeholder for the domain."""

        domain = extract_domain(apply_url)
        if not domain:
            FAVICON_RESOLUTIONS.labels(outcome="placeholder").inc()
            return placeholder("?")

        candidate = self.sync_url(apply_url)
        fallback = placeholder(domain)
        client = self._client or httpx.AsyncClient(follow_redirects=True)
        try:
            loaded = await asyncio.wait_for(self._loads(client, candidate), self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Favicon for %s did not load within %ss", domain, self._timeout)
            FAVICON_RESOLUTIONS.labels(outcome="timeout").inc()
            return fallback
        finally:
            if self._client is None:
                await client.aclose()

        if loaded:
            FAVICON_RESOLUTIONS.labels(outcome="loaded").inc()
            return candidate
        logger.warning("Favicon for %s failed to load; using placeholder", domain)
        FAVICON_RESOLUTIONS.labels(outcome="placeholder").inc()
        return fallback

    def resolve(self, apply_url: str) -> str:
        """Blocking wrapper around :meth:`resolve_with_fallback`."""

        return asyncio.run(self.resolve_with_fallback(apply_url))
