"""Allow/deny decision over origins and target URLs.

Blacklists are a hard veto and are checked first. A configured whitelist is a
required membership test; an empty one allows anything for its dimension.
"""
from __future__ import annotations

from logging import getLogger
from typing import Optional

from corsproxy.core.logging import SERVICE_NAME
from corsproxy.models.schemas import AccessLists
from corsproxy.services.matcher import matches

log = getLogger(f"{SERVICE_NAME}.Policy")


def is_allowed(target_url: Optional[str], origin: Optional[str], lists: AccessLists) -> bool:
    """Evaluate the four access lists in precedence order; first failing rule denies."""
    if lists.blacklist_origins and matches(origin, lists.blacklist_origins):
        log.warning("denied: origin %r is blacklisted", origin)
        return False
    if lists.blacklist_urls and matches(target_url, lists.blacklist_urls):
        log.warning("denied: url %r is blacklisted", target_url)
        return False
    if lists.whitelist_origins and not matches(origin, lists.whitelist_origins):
        log.warning("denied: origin %r is not whitelisted", origin)
        return False
    if lists.whitelist_urls and not matches(target_url, lists.whitelist_urls):
        log.warning("denied: url %r is not whitelisted", target_url)
        return False
    return True
