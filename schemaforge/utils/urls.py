"""
URL Utilities

Shared URL handling used by request validation, the content analyzer and
URL library bookkeeping:
- Absolute http/https validation
- Base domain (origin) and path extraction
- Path depth for library grouping
"""

import logging
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")


def is_valid_http_url(url: Optional[str]) -> bool:
    """
    Check that a URL is absolute and uses http or https.

    Args:
        url: URL string to check

    Returns:
        True if the URL has an http(s) scheme and a host
    """
    if not url or not isinstance(url, str):
        return False

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False

    return parsed.scheme.lower() in ALLOWED_SCHEMES and bool(parsed.netloc)


def extract_base_domain(url: str) -> str:
    """Origin of a URL, e.g. "https://blog.example.com"."""
    if not is_valid_http_url(url):
        raise ValueError(f"Invalid URL: {url}")
    parsed = urlparse(url.strip())
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def extract_path(url: str) -> str:
    """Path including query and fragment, e.g. "/blog/post?id=1"."""
    if not is_valid_http_url(url):
        raise ValueError(f"Invalid URL: {url}")
    parsed = urlparse(url.strip())
    path = parsed.path or "/"
    if parsed.query:
        path += f"?{parsed.query}"
    if parsed.fragment:
        path += f"#{parsed.fragment}"
    return path


def path_depth(path: str) -> int:
    """Number of non-empty segments in a URL path ("/" is depth 0)."""
    path = (path or "").split("?", 1)[0].split("#", 1)[0]
    if path in ("", "/"):
        return 0
    return len([segment for segment in path.split("/") if segment])
