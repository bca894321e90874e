"""
Small argument validators shared across components.
"""

from typing import Any

import httpx


def is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def is_url(value: Any) -> bool:
    """Return True for absolute http(s) URLs with a host."""
    if not is_non_empty_string(value):
        return False
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError):
        return False
    return url.scheme in ("http", "https") and bool(url.host)
