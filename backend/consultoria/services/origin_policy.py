"""
Origin allow-list and CORS headers for the contact endpoint.

An origin is allowed when it exactly matches an allow-listed origin, or when
it is an https origin whose host ends with the configured suffix (preview
deployments on the hosting provider get a fresh subdomain per build).
"""

from typing import Optional
from urllib.parse import urlparse

from consultoria.config import Settings

ALLOWED_HEADERS = "authorization, x-client-info, apikey, content-type"
ALLOWED_METHODS = "POST, OPTIONS"


def _matches_suffix(origin: str, suffix: str) -> bool:
    parsed = urlparse(origin)
    if parsed.scheme != "https" or not parsed.hostname:
        return False
    # Origins never carry a path; anything beyond scheme://host[:port] is bogus.
    if parsed.path not in ("", "/") or parsed.query or parsed.fragment:
        return False
    dotted = suffix if suffix.startswith(".") else f".{suffix}"
    return parsed.hostname.endswith(dotted)


def is_allowed_origin(origin: Optional[str], settings: Settings) -> bool:
    if not origin:
        return False
    normalized = origin.strip().rstrip("/")
    if normalized in settings.allowed_origins:
        return True
    if settings.allowed_origin_suffix:
        return _matches_suffix(normalized, settings.allowed_origin_suffix)
    return False


def cors_headers(origin: Optional[str], settings: Settings) -> dict[str, str]:
    """
    CORS headers for a response to `origin`.

    The caller's origin is echoed only when it is allowed; everyone else gets
    the configured fallback origin, which the browser will refuse to match.
    """
    allow_origin = origin.strip().rstrip("/") if is_allowed_origin(origin, settings) else settings.cors_fallback_origin
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Vary": "Origin",
    }
