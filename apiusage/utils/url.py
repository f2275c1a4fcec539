"""
URL utility functions for attribution and aggregation.

Validity and origin rules follow the WHATWG URL standard closely
enough for the values found in trace frame labels: special schemes
need a host, everything else with a scheme is a valid (opaque) URL.
"""

from __future__ import annotations

import re
from urllib import parse

# Schemes the URL standard treats as "special" (hierarchical, host required).
_SPECIAL_SCHEMES = {
    "http": 80,
    "https": 443,
    "ws": 80,
    "wss": 443,
    "ftp": 21,
}

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")

OPAQUE_ORIGIN = "null"


def extract_domain(url: str) -> str:
    """Extract the hostname from a URL string."""
    try:
        parsed = parse.urlparse(url)
        return parsed.hostname or "unknown"
    except ValueError:
        return "unknown"


def _split(value: str) -> parse.SplitResult | None:
    """Split *value* into URL parts, or ``None`` if it is not a URL."""
    if not value or value != value.strip() or not _SCHEME_RE.match(value):
        return None
    try:
        parts = parse.urlsplit(value)
        # Accessing .port validates it.
        _ = parts.port
    except ValueError:
        return None
    if not parts.scheme:
        return None
    if parts.scheme in _SPECIAL_SCHEMES and not parts.hostname:
        return None
    return parts


def is_valid_url(value: str | None) -> bool:
    """Return True if *value* parses as an absolute URL."""
    if value is None:
        return False
    return _split(value) is not None


def _host_for_origin(parts: parse.SplitResult) -> str:
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    default_port = _SPECIAL_SCHEMES.get(parts.scheme)
    if parts.port is not None and parts.port != default_port:
        return f"{host}:{parts.port}"
    return host


def get_origin(value: str) -> str | None:
    """Return the origin of *value*, or ``None`` if it is not a URL.

    Special schemes yield ``scheme://host[:port]`` with default ports
    omitted.  ``blob:`` URLs take the origin of the URL they wrap.
    Every other scheme has an opaque origin, serialised as ``"null"``.
    """
    parts = _split(value)
    if parts is None:
        return None
    if parts.scheme in _SPECIAL_SCHEMES:
        return f"{parts.scheme}://{_host_for_origin(parts)}"
    if parts.scheme == "blob":
        inner = _split(value[len("blob:"):])
        if inner is not None and inner.scheme in ("http", "https"):
            return f"{inner.scheme}://{_host_for_origin(inner)}"
    return OPAQUE_ORIGIN


def strip_query(value: str) -> str | None:
    """Return *value* without its query string and fragment.

    Returns ``None`` if *value* is not a URL.
    """
    parts = _split(value)
    if parts is None:
        return None
    if parts.scheme in _SPECIAL_SCHEMES:
        return f"{parts.scheme}://{_host_for_origin(parts)}{parts.path or '/'}"
    return parse.urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def decompose_url(value: str | None) -> tuple[str, str]:
    """Decompose a URL into ``(origin, query_stripped)``.

    Values that are not URLs pass through unchanged as both their
    own origin and query-stripped form.  ``None`` becomes empty
    strings.
    """
    if value is None:
        return "", ""
    origin = get_origin(value)
    if origin is None:
        return value, value
    return origin, strip_query(value) or value


def is_http_page(url: str) -> bool:
    """Return True for pages loaded over HTTP(S)."""
    return url.startswith("http")
