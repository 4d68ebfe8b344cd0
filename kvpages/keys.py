"""
KV Pages - Page key helpers

Keys are stored percent-encoded (the way a browser sends a path segment) and
shown decoded.  Routes receive already-decoded segments, so everything that
touches storage goes through :func:`storage_key` first.
"""

import locale
from typing import Iterable, List
from urllib.parse import quote, unquote


def storage_key(name: str) -> str:
    """Return the storage form of a decoded page name."""
    return quote(name, safe="")


def display_name(key: str) -> str:
    """Return the human-readable form of a storage key."""
    try:
        return unquote(key, errors="strict")
    except UnicodeDecodeError:
        return key


def sort_keys(keys: Iterable[str]) -> List[str]:
    """Sort storage keys by a locale-aware comparison of their display names."""
    return sorted(keys, key=lambda k: locale.strxfrm(display_name(k)))
