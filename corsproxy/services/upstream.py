"""HTTP client wrapper for the proxied target.

Issues exactly one request per call through a shared httpx.AsyncClient and
returns the raw (still content-encoded) body so it can be relayed byte for
byte. Includes basic Prometheus metrics for request counts and latency.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from prometheus_client import Counter, Histogram

from corsproxy.core.logging import SERVICE_NAME
from corsproxy.models.schemas import UpstreamResponse

log = logging.getLogger(f"{SERVICE_NAME}.Upstream")

UPSTREAM_REQUESTS = Counter("cors_proxy_upstream_requests_total", "Upstream requests", ["status"])
UPSTREAM_LATENCY = Histogram("cors_proxy_upstream_latency_seconds", "Upstream request latency seconds")

# RFC 9110 hop-by-hop headers plus those httpx derives from the URL and body
TRANSPORT_HEADERS = {
    "connection", "keep-alive", "proxy-authenticate", "proxy-authorization",
    "te", "trailers", "transfer-encoding", "upgrade", "host", "content-length",
}


def strip_transport_headers(headers: httpx.Headers) -> httpx.Headers:
    """Copy ``headers`` without transport headers, keeping the raw value bytes."""
    return httpx.Headers(
        [(k, v) for k, v in headers.raw if k.decode("latin-1").lower() not in TRANSPORT_HEADERS]
    )


class UpstreamError(Exception):
    """The target could not be reached or answered with a protocol error."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


class UpstreamClient:
    """
    Tiny HTTP client wrapper for arbitrary target URLs.

    Holds an httpx.AsyncClient for connection pooling. Redirects are followed;
    there are no retries.
    """

    def __init__(self, client: httpx.AsyncClient, timeout_s: float = 30.0):
        self._client = client
        self._timeout = timeout_s

    async def fetch(
        self,
        method: str,
        url: str,
        headers: httpx.Headers,
        body: Optional[bytes] = None,
    ) -> UpstreamResponse:
        """Send one request to ``url`` and read the whole raw response."""
        try:
            request = self._client.build_request(
                method,
                url,
                headers=strip_transport_headers(headers),
                content=body or None,
                timeout=httpx.Timeout(self._timeout),
            )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            UPSTREAM_REQUESTS.labels(status="error").inc()
            raise UpstreamError(f"invalid target url {url!r}: {e}") from e
        if request.url.scheme not in ("http", "https") or not request.url.host:
            UPSTREAM_REQUESTS.labels(status="error").inc()
            raise UpstreamError(f"invalid target url {url!r}")

        try:
            with UPSTREAM_LATENCY.time():
                response = await self._client.send(request, stream=True, follow_redirects=True)
                try:
                    raw = b"".join([chunk async for chunk in response.aiter_raw()])
                finally:
                    await response.aclose()
        except httpx.TimeoutException as e:
            UPSTREAM_REQUESTS.labels(status="timeout").inc()
            raise UpstreamError(f"upstream timed out: {url}", status_code=504) from e
        except httpx.HTTPError as e:
            UPSTREAM_REQUESTS.labels(status="error").inc()
            raise UpstreamError(f"upstream request failed: {e}") from e

        UPSTREAM_REQUESTS.labels(status=str(response.status_code)).inc()
        log.info("%s %s -> %s %s", method, url, response.status_code, response.reason_phrase)
        return UpstreamResponse(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            headers=response.headers,
            body=raw,
        )
