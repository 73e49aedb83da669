"""Classification of MEDIA_URL / STATIC_URL values."""

from __future__ import annotations

from urllib.parse import urlsplit

HTTP_PORT = 80


def is_local_url(url: str) -> bool:
    """A URL is served from local disk by Caddy iff it is a path."""
    return url.startswith("/")


def is_absolute_url(url: str) -> bool:
    parts = urlsplit(url)
    try:
        parts.port
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


def remote_address(url: str, default_port: int) -> tuple[str, str]:
    """
    Split a remote asset URL into the Caddy address serving it and the path prefix.

    Args:
        url: Absolute URL, e.g. "https://cdn.example.com/static/"
        default_port: Port used for an https URL that does not name one

    Returns:
        Tuple of ("host:port", path)
    """
    parts = urlsplit(url)
    port = parts.port
    if port is None:
        port = HTTP_PORT if parts.scheme == "http" else default_port
    return f"{parts.hostname}:{port}", parts.path or "/"
