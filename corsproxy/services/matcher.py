"""Wildcard / regex pattern matching for access lists.

A pattern containing ``*`` is a glob anchored to the whole subject; any other
pattern is an unanchored regular expression. Matching is case-insensitive.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Optional, Sequence

WILDCARD = "*"


def wildcard_to_regex(pattern: str) -> str:
    """Escape every regex metacharacter except ``*`` and turn ``*`` into ``.*``."""
    return re.escape(pattern).replace(r"\*", ".*")


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile (and cache) one access-list pattern."""
    if WILDCARD in pattern:
        return re.compile(rf"\A{wildcard_to_regex(pattern)}\Z", re.IGNORECASE | re.DOTALL)
    return re.compile(pattern, re.IGNORECASE)


def matches(subject: Optional[str], patterns: Sequence[str]) -> bool:
    """Return True if ``subject`` matches any pattern, or if there are no patterns."""
    if not patterns:
        return True
    if not isinstance(subject, str) or not subject:
        return False
    return any(compile_pattern(p).search(subject) for p in patterns)
