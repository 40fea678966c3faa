from urllib.parse import urlparse

from app.platform.exceptions import InvalidRequestError

ALLOWED_SCHEMES = ("http", "https")


def normalize_url(url: str) -> str:
    """Trim whitespace and default a bare host to https."""
    url = url.strip()
    if "://" not in url:
        return f"https://{url}"
    return url


def validate_url(url: str) -> str:
    """
    Return the normalized URL, or raise InvalidRequestError when it cannot be
    analyzed (empty, non-http(s) scheme, or no host).
    """
    if not url or not url.strip():
        raise InvalidRequestError("URL cannot be empty")

    normalized = normalize_url(url)
    parsed = urlparse(normalized)

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise InvalidRequestError(f"Invalid URL scheme: {parsed.scheme} (must be http or https)")
    if not parsed.netloc:
        raise InvalidRequestError("Invalid URL format: missing domain")
    return normalized
