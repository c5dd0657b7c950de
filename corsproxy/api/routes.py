"""API routes for the CORS proxy.

The service root takes the target URL as its whole query string
(``/?https://example.com/x``), checks it against the access lists and either
forwards the request, answers the preflight, serves the usage page or rejects.
"""
from __future__ import annotations

from logging import getLogger
from typing import Optional
from urllib.parse import unquote

import httpx
from fastapi import APIRouter, Request, Response
from fastapi.responses import HTMLResponse, PlainTextResponse
from prometheus_client import Counter

from corsproxy.core.config import Settings, load_settings
from corsproxy.core.logging import SERVICE_NAME
from corsproxy.models.schemas import RequestContext
from corsproxy.services.policy import is_allowed
from corsproxy.services.request_headers import CUSTOM_HEADERS, build_outbound_headers, parse_custom_headers
from corsproxy.services.response_headers import (
    apply_cors_headers,
    compose_preflight_headers,
    compose_proxy_headers,
    render_denied_page,
    render_info_page,
)
from corsproxy.services.upstream import TRANSPORT_HEADERS, UpstreamClient, UpstreamError

log = getLogger(f"{SERVICE_NAME}.API")
router = APIRouter()

BANNER = "CLOUDFLARE-CORS-ANYWHERE"
PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

REQUESTS = Counter("cors_proxy_requests_total", "Incoming proxy requests by outcome", ["outcome"])


def _get_settings(request: Request) -> Settings:
    """Return the app-scoped Settings, loading them from the environment if missing."""
    settings: Optional[Settings] = getattr(request.app.state, "settings", None)
    if settings is None:
        settings = load_settings()
        request.app.state.settings = settings
    return settings


def extract_target_url(query: str) -> str:
    """The target is the raw query string, percent-decoded twice."""
    return unquote(unquote(query))


def _request_context(request: Request) -> RequestContext:
    return RequestContext(
        method=request.method,
        origin=request.headers.get("origin"),
        request_method=request.headers.get("access-control-request-method"),
        request_headers=request.headers.get("access-control-request-headers"),
    )


def _datacenter(value: Optional[str]) -> Optional[str]:
    # cf-ray looks like "8a1b2c3d4e5f6a7b-FRA"
    if not value:
        return None
    return value.rsplit("-", 1)[-1] if "-" in value else value


def _to_response(
    content: bytes,
    status_code: int,
    headers: httpx.Headers,
    *,
    keep_length: bool = False,
) -> Response:
    """Relay raw header bytes; transport headers are recomputed by the server.

    ``keep_length`` keeps the upstream content-length for bodiless HEAD replies.
    """
    response = Response(content=content, status_code=status_code)
    upstream_length = headers.get("content-length")
    if keep_length and upstream_length is not None:
        response.raw_headers = [(k, v) for k, v in response.raw_headers if k != b"content-length"]
        response.raw_headers.append((b"content-length", upstream_length.encode("latin-1")))
    for name, value in headers.raw:
        key = name.lower()
        if key.decode("latin-1") not in TRANSPORT_HEADERS:
            response.raw_headers.append((key, value))
    return response


@router.api_route("/", methods=PROXY_METHODS)
async def proxy(request: Request):
    """
    CORS proxy entry point:
      - no query string      -> usage page
      - denied by policy     -> 403
      - OPTIONS              -> preflight reply (200, no body)
      - anything else        -> forward and relay status, headers and body
    """
    settings = _get_settings(request)
    upstream: Optional[UpstreamClient] = getattr(request.app.state, "upstream", None)
    if upstream is not None:
        return await _handle(request, settings, upstream)
    # Outside the app lifespan (scripts, bare ASGI): a pool for this request only
    async with httpx.AsyncClient(timeout=settings.request_timeout_s) as client:
        return await _handle(request, settings, UpstreamClient(client, settings.request_timeout_s))


async def _handle(request: Request, settings: Settings, upstream: UpstreamClient) -> Response:
    ctx = _request_context(request)
    query = request.url.query
    target_url = extract_target_url(query)

    if not is_allowed(target_url, ctx.origin, settings.access):
        REQUESTS.labels(outcome="denied").inc()
        return HTMLResponse(render_denied_page(settings.source_url), status_code=403)

    custom_headers = parse_custom_headers(request.headers.get(CUSTOM_HEADERS))

    if not query:
        REQUESTS.labels(outcome="info").inc()
        client_ip = request.headers.get(settings.client_ip_header) or (
            request.client.host if request.client else None
        )
        body = render_info_page(
            banner=BANNER,
            source_url=settings.source_url,
            service_origin=f"{request.url.scheme}://{request.url.netloc}",
            origin=ctx.origin,
            client_ip=client_ip,
            country=request.headers.get(settings.country_header),
            datacenter=_datacenter(request.headers.get(settings.datacenter_header)),
            custom_headers=custom_headers,
        )
        headers = apply_cors_headers(httpx.Headers(), ctx)
        return PlainTextResponse(body, headers=dict(headers.items()))

    outbound = build_outbound_headers(request.headers.raw, custom_headers)

    try:
        if ctx.is_preflight:
            upstream_response = None
            if settings.forward_preflight:
                upstream_response = await upstream.fetch(request.method, target_url, outbound)
            REQUESTS.labels(outcome="preflight").inc()
            return _to_response(b"", 200, compose_preflight_headers(ctx, upstream_response))

        upstream_response = await upstream.fetch(request.method, target_url, outbound, await request.body())
    except UpstreamError as e:
        REQUESTS.labels(outcome="upstream_error").inc()
        log.warning("upstream failure for %s: %s", target_url, e)
        headers = apply_cors_headers(httpx.Headers(), ctx)
        return PlainTextResponse(str(e), status_code=e.status_code, headers=dict(headers.items()))

    REQUESTS.labels(outcome="forwarded").inc()
    log.info("proxied %s %s -> %s", request.method, target_url, upstream_response.status_code)
    return _to_response(
        upstream_response.body,
        upstream_response.status_code,
        compose_proxy_headers(upstream_response, ctx),
        keep_length=request.method == "HEAD",
    )
