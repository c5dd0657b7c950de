"""Response header composition: CORS headers and the raw-header echo channel.

Browsers hide most response headers (``Set-Cookie`` included) from scripts.
Every upstream header is therefore listed in ``Access-Control-Expose-Headers``
and also serialized as JSON into the ``cors-received-headers`` header.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Optional

import httpx

from corsproxy.models.schemas import RequestContext, UpstreamResponse

RECEIVED_HEADERS = "cors-received-headers"

ALLOW_ORIGIN = "Access-Control-Allow-Origin"
ALLOW_METHODS = "Access-Control-Allow-Methods"
ALLOW_HEADERS = "Access-Control-Allow-Headers"
EXPOSE_HEADERS = "Access-Control-Expose-Headers"
NOSNIFF = "X-Content-Type-Options"

LIMITS = (
    "Limits: 100,000 requests/day\n"
    "          1,000 requests/10 minutes\n"
)


def apply_cors_headers(headers: httpx.Headers, ctx: RequestContext) -> httpx.Headers:
    """Set CORS headers in place; preflights also echo the requested method/headers."""
    if ctx.origin is not None:
        headers[ALLOW_ORIGIN] = ctx.origin
    if ctx.is_preflight:
        if ctx.request_method is not None:
            headers[ALLOW_METHODS] = ctx.request_method
        if ctx.request_headers:
            headers[ALLOW_HEADERS] = ctx.request_headers
        if NOSNIFF in headers:
            del headers[NOSNIFF]
    return headers


def received_headers(upstream: UpstreamResponse) -> Dict[str, str]:
    """Upstream headers as a flat mapping; repeated names are joined with ', '."""
    return dict(upstream.headers.items())


def compose_proxy_headers(upstream: UpstreamResponse, ctx: RequestContext) -> httpx.Headers:
    """Build the caller-facing headers for a proxied response."""
    headers = httpx.Headers(upstream.headers.raw)
    apply_cors_headers(headers, ctx)
    received = received_headers(upstream)
    exposed = [*received.keys(), RECEIVED_HEADERS]
    headers[EXPOSE_HEADERS] = ",".join(exposed)
    headers[RECEIVED_HEADERS] = json.dumps(received, separators=(",", ":"))
    return headers


def compose_preflight_headers(ctx: RequestContext, upstream: Optional[UpstreamResponse] = None) -> httpx.Headers:
    """Headers for an OPTIONS reply, merged with the upstream's when it was consulted."""
    if upstream is not None:
        return compose_proxy_headers(upstream, ctx)
    return apply_cors_headers(httpx.Headers(), ctx)


def render_info_page(
    *,
    banner: str,
    source_url: str,
    service_origin: str,
    origin: Optional[str],
    client_ip: Optional[str],
    country: Optional[str] = None,
    datacenter: Optional[str] = None,
    custom_headers: Optional[Dict[str, Any]] = None,
) -> str:
    """Plain-text usage page returned when no target URL is given."""
    lines = [
        f"{banner}\n\n",
        f"Source:\n{source_url}\n\n",
        f"Usage:\n{service_origin}/?uri\n\n",
        LIMITS,
        "\n",
    ]
    if origin is not None:
        lines.append(f"Origin: {origin}\n")
    lines.append(f"IP: {client_ip or 'unknown'}\n")
    if country:
        lines.append(f"Country: {country}\n")
    if datacenter:
        lines.append(f"Datacenter: {datacenter}\n")
    lines.append("\n")
    if custom_headers is not None:
        lines.append(f"\nx-cors-headers: {json.dumps(custom_headers, separators=(',', ':'))}")
    return "".join(lines)


def render_denied_page(source_url: str) -> str:
    return (
        "Create your own CORS proxy</br>\n"
        f"<a href='{source_url}'>{source_url}</a></br>\n"
    )
