"""Predicates deciding which urls can be stored in and restored from a group."""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import urlsplit

__all__ = ["RESTORABLE_SCHEMES", "is_restorable_url", "display_hostname"]

RESTORABLE_SCHEMES: tuple[str, ...] = ("http", "https", "file", "ftp")
_RESTORABLE_PATTERN = re.compile(r"^(https?:|file:|ftp:)", re.IGNORECASE)


def is_restorable_url(value: Any) -> bool:
    """Return ``True`` when ``value`` is a string with a restorable scheme.

    Browser-internal pages (``chrome://``, ``about:``, extension pages) cannot be
    recreated through the tab primitives, so only the schemes listed in
    :data:`RESTORABLE_SCHEMES` qualify. The check is anchored at the start of the
    string and ignores case.
    """

    return isinstance(value, str) and _RESTORABLE_PATTERN.match(value) is not None


def display_hostname(url: str) -> str:
    """Return the hostname shown for ``url`` in listings, or ``url`` itself."""

    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return url
    return hostname or url
