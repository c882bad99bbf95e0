"""
URL Sanitizer
=============
Cleans attachment URLs proposed by a backend before they reach a report.

Rules:
    - Only http and https URLs with a host survive (no javascript:, data:, file:)
    - Embedded credentials (user:pass@host) are removed
    - Query parameters whose key looks like a secret are removed
    - Fragments are kept
"""
import logging
import re
from typing import Any, Iterable, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = ("http", "https")

# Whole words of a query parameter key, after splitting on camelCase and
# separators, so "author" or "monkey" never match
_SECRET_WORDS = frozenset({
    "token", "accesstoken", "authtoken", "jwt", "bearer",
    "auth", "authorization",
    "sig", "signature",
    "key", "apikey",
    "secret", "password", "passwd", "pwd",
    "credential", "credentials",
    "session", "sessionid", "sid",
})
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_WORD_SPLIT_RE = re.compile(r"[^a-z0-9]+")


def is_secret_param(key: str) -> bool:
    words = _WORD_SPLIT_RE.split(_CAMEL_BOUNDARY_RE.sub("_", key).lower())
    return any(word in _SECRET_WORDS for word in words)


def sanitize_url(value: Any) -> Optional[str]:
    """
    Return a cleaned http(s) URL, or None when the value is not acceptable.

    Parameters
    ----------
    value : Any
        Candidate URL. Non-strings are rejected.
    """
    if not isinstance(value, str):
        return None
    candidate = value.strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        return None

    try:
        parts = urlsplit(candidate)
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        return None

    if parts.scheme.lower() not in _ALLOWED_SCHEMES or not hostname:
        return None

    if ":" in hostname:
        hostname = f"[{hostname}]"
    netloc = hostname if port is None else f"{hostname}:{port}"
    query = urlencode(
        [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if not is_secret_param(k)]
    )
    return urlunsplit((parts.scheme.lower(), netloc, parts.path, query, parts.fragment))


def sanitize_urls(values: Iterable[Any], limit: Optional[int] = None) -> List[str]:
    """Sanitize each URL, drop rejects and duplicates, keep at most ``limit``."""
    cleaned: List[str] = []
    for value in values:
        url = sanitize_url(value)
        if url is None:
            logger.debug("Dropping unsafe URL: %r", value)
            continue
        if url not in cleaned:
            cleaned.append(url)
        if limit is not None and len(cleaned) >= limit:
            break
    return cleaned
