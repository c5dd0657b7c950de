"""Pydantic models used by the CORS proxy."""
from __future__ import annotations

from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict


class AccessLists(BaseModel):
    """Origin and target-URL pattern lists. An empty list means no restriction."""
    model_config = ConfigDict(frozen=True)

    whitelist_origins: tuple[str, ...] = ()
    blacklist_origins: tuple[str, ...] = ()
    whitelist_urls: tuple[str, ...] = ()
    blacklist_urls: tuple[str, ...] = ()


class RequestContext(BaseModel):
    """The parts of the incoming request the response headers depend on."""
    model_config = ConfigDict(frozen=True)

    method: str
    origin: Optional[str] = None
    request_method: Optional[str] = None
    request_headers: Optional[str] = None

    @property
    def is_preflight(self) -> bool:
        return self.method.upper() == "OPTIONS"


class UpstreamResponse(BaseModel):
    """Response received from the target URL. ``body`` holds the raw wire bytes."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    status_code: int
    reason_phrase: str = ""
    headers: httpx.Headers
    body: bytes = b""
