"""Gateway reader — fetch published content by CID.

Uses subdomain-per-CID addressing: ``<cid>.ipfs.<gateway-host>/<path>``.
Each CID gets its own origin, which is how public gateways isolate content.
"""

from __future__ import annotations

import logging
from urllib.parse import quote, urlsplit

import httpx

from rootline.core.cid import ContentId
from rootline.errors import ConfigurationError, GatewayError

logger = logging.getLogger(__name__)


class Gateway:
    """Read-only access to published content.

    Parameters
    ----------
    gateway_url:
        Base URL of the gateway, e.g. ``http://localhost:8080``.
    timeout_seconds:
        Per-request timeout.
    transport:
        Optional ``httpx`` transport for tests.
    """

    def __init__(
        self,
        gateway_url: str,
        *,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        parts = urlsplit(gateway_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ConfigurationError(f"invalid gateway URL: {gateway_url!r}")
        self._scheme = parts.scheme
        self._netloc = parts.netloc
        self._timeout = timeout_seconds
        self._transport = transport

    def resolve_url(self, cid: ContentId, path: str | None = None) -> str:
        """Build the subdomain URL for *cid* and optional sub-path."""
        url = f"{self._scheme}://{cid}.ipfs.{self._netloc}/"
        if path:
            url += quote(path.lstrip("/"))
        return url

    async def fetch(self, cid: ContentId, path: str | None = None) -> bytes:
        """Return the bytes at *cid* (and *path*, for structured content)."""
        url = self.resolve_url(cid, path)
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport, follow_redirects=True
        ) as client:
            try:
                response = await client.get(url)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise GatewayError(
                    f"gateway returned HTTP {exc.response.status_code} for {url}"
                ) from exc
            except httpx.HTTPError as exc:
                raise GatewayError(f"gateway request for {url} failed: {exc}") from exc
        logger.debug("Gateway: fetched %d bytes from %s", len(response.content), url)
        return response.content
