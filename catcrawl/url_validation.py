"""URL sanitizing and validation for crawl requests and extracted links."""

import re
from typing import AbstractSet, Optional
from urllib.parse import urljoin, urlparse

__all__ = [
    "URLValidationError",
    "ALLOWED_DOMAINS",
    "sanitize_url",
    "absolute_url",
    "validate_url",
    "validate_image_url",
]


class URLValidationError(Exception):
    """Raised when URL validation fails."""


# Domains the crawler may fetch from
ALLOWED_DOMAINS: AbstractSet[str] = frozenset({
    "www.thomann.de",
    "thomann.de",
})

IMAGE_URL_PATTERN = re.compile(
    r"^https?://[a-zA-Z0-9.-]+/.*\.(jpg|jpeg|png|webp|avif|gif)(\?.*)?$",
    re.IGNORECASE,
)

DANGEROUS_SCHEMES = {"javascript", "data", "vbscript", "file"}

SUSPICIOUS_PATTERNS = (
    r"\.\./",       # Path traversal
    r"%2e%2e",      # Encoded path traversal
    r"<script",
    r"javascript:",
)


def sanitize_url(url: Optional[str]) -> str:
    """Strip whitespace, control characters and null bytes."""
    if not url:
        return ""
    url = url.strip()
    url = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", url)
    return url.replace("%00", "")


def absolute_url(href: Optional[str], base_url: str) -> str:
    """Resolve a (possibly relative) href against the page it was found on."""
    href = sanitize_url(href)
    if not href:
        return ""
    return urljoin(base_url, href)


def validate_url(
    url: str,
    allowed_domains: Optional[AbstractSet[str]] = None,
    require_https: bool = False,
) -> str:
    """Validate a URL before it is fetched.

    Args:
        url: URL to validate
        allowed_domains: Allowed hosts (default: ALLOWED_DOMAINS); an empty
            set allows any host
        require_https: Whether to require the HTTPS scheme

    Returns:
        The sanitized URL

    Raises:
        URLValidationError: If the URL is malformed, unsafe or off-site
    """
    if not url:
        raise URLValidationError("URL is empty")

    url = sanitize_url(url)
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise URLValidationError(f"Failed to parse URL: {e}") from e

    scheme = parsed.scheme.lower()
    if scheme in DANGEROUS_SCHEMES:
        raise URLValidationError(f"Dangerous URL scheme: {scheme}")
    if require_https and scheme != "https":
        raise URLValidationError(f"URL must use HTTPS, got: {scheme}")
    if scheme not in ("http", "https"):
        raise URLValidationError(f"Invalid URL scheme: {scheme!r}")

    host = (parsed.hostname or "").lower()
    if not host:
        raise URLValidationError("URL has no domain")

    domains = ALLOWED_DOMAINS if allowed_domains is None else allowed_domains
    if domains and host not in domains:
        raise URLValidationError(f"URL domain '{host}' not in allowed domains")

    url_lower = url.lower()
    for pattern in SUSPICIOUS_PATTERNS:
        if re.search(pattern, url_lower):
            raise URLValidationError(f"URL contains suspicious pattern: {pattern}")

    return url


def validate_image_url(url: Optional[str]) -> str:
    """Validate an image URL. Images may live on any CDN host.

    Returns "" for a missing image.
    """
    if not url:
        return ""
    url = sanitize_url(url)

    scheme = urlparse(url).scheme.lower()
    if scheme not in ("http", "https"):
        raise URLValidationError(f"Invalid image URL scheme: {scheme!r}")
    if not IMAGE_URL_PATTERN.match(url):
        raise URLValidationError(f"URL does not look like an image: {url}")
    return url
