"""Configuration for the CORS proxy.

Provides strongly-typed settings using Pydantic and a loader from environment
variables with defaults suitable for local development. Access-list patterns
are compiled here once so a malformed regex fails at startup, not per request.
"""

from __future__ import annotations

import os
import re
from typing import Optional

from pydantic import BaseModel, ValidationError, field_validator

from corsproxy.models.schemas import AccessLists

DEFAULT_SOURCE_URL = "https://github.com/Zibri/cloudflare-cors-anywhere"


def parse_list(value: Optional[str]) -> list[str]:
    """Split a comma-separated variable into trimmed, non-empty patterns."""
    if value is None or not value.strip():
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    """Pydantic settings for the proxy service."""
    access: AccessLists = AccessLists()
    request_timeout_s: float = 30.0
    # Send OPTIONS upstream too and merge its headers into the preflight reply
    forward_preflight: bool = False
    client_ip_header: str = "cf-connecting-ip"
    country_header: str = "cf-ipcountry"
    datacenter_header: str = "cf-ray"
    source_url: str = DEFAULT_SOURCE_URL

    @field_validator("access")
    @classmethod
    def patterns_must_compile(cls, v: AccessLists) -> AccessLists:
        for name, patterns in v.model_dump().items():
            for pattern in patterns:
                if "*" in pattern:
                    continue  # globs are escaped, they always compile
                try:
                    re.compile(pattern)
                except re.error as e:
                    raise ValueError(f"{name}: invalid pattern {pattern!r}: {e}") from e
        return v

    @field_validator("request_timeout_s")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout_s must be positive")
        return v


def load_settings() -> Settings:
    """Load settings from environment variables and return a Settings object."""
    try:
        return Settings(
            access=AccessLists(
                whitelist_origins=parse_list(os.getenv("WHITELIST_ORIGINS")),
                blacklist_origins=parse_list(os.getenv("BLACKLIST_ORIGINS")),
                whitelist_urls=parse_list(os.getenv("WHITELIST_URLS")),
                blacklist_urls=parse_list(os.getenv("BLACKLIST_URLS")),
            ),
            request_timeout_s=float(os.getenv("REQUEST_TIMEOUT_S", "30.0")),
            forward_preflight=os.getenv("FORWARD_PREFLIGHT", "false").strip().lower() in {"1", "true", "yes"},
            client_ip_header=os.getenv("CLIENT_IP_HEADER", "cf-connecting-ip"),
            country_header=os.getenv("COUNTRY_HEADER", "cf-ipcountry"),
            datacenter_header=os.getenv("DATACENTER_HEADER", "cf-ray"),
            source_url=os.getenv("SOURCE_URL", DEFAULT_SOURCE_URL),
        )
    except (ValidationError, ValueError) as e:
        raise RuntimeError(f"Invalid configuration: {e}") from e
