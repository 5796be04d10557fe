# relay/url_safety.py
from typing import Any, Iterable
from urllib.parse import urlsplit

DEFAULT_ALLOWED_SCHEMES = ("http", "https")


def is_safe_url(url: Any, allowed_schemes: Iterable[str] = DEFAULT_ALLOWED_SCHEMES) -> bool:
    """
    True only for an absolute URL with an allowed scheme and a host.

    Never raises: non-strings, empty strings, scheme-relative URLs
    ("//host/path") and unparseable input all return False.
    """
    if not isinstance(url, str):
        return False
    candidate = url.strip()
    if not candidate:
        return False
    # urlsplit tolerates most garbage; control characters and whitespace never
    # belong in a URL the client is going to send.
    if any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in candidate):
        return False
    try:
        parts = urlsplit(candidate)
        # accessing .port validates it (raises ValueError when out of range)
        parts.port
    except ValueError:
        return False
    scheme = parts.scheme.lower()
    if not scheme or scheme not in {s.lower() for s in allowed_schemes}:
        return False
    return bool(parts.hostname)
