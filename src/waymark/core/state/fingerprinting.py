#!/usr/bin/env python3
"""
State fingerprinting for web exploration.

A fingerprint is a readable identity key built from the page location and its
top two headings. Page body content is deliberately left out so that ads,
timestamps and tokens do not split one logical state into many.
"""

import re
from typing import Optional
from urllib.parse import urlparse

COMPONENT_LIMIT = 100
FINGERPRINT_LIMIT = 200

_INVALID_CHARS = re.compile(r'[^a-zA-Z0-9_]')
_REPEATED_UNDERSCORES = re.compile(r'_+')


def extract_relative_path(url: Optional[str]) -> str:
    """
    Reduce a URL to path + fragment.

    Scheme, host, port and query are dropped, one trailing slash is stripped
    and an empty path becomes '/'. Strings that are not URLs come back as-is.
    """
    if not url:
        return '/'

    parsed = urlparse(url)
    if not parsed.scheme and not parsed.netloc and not url.startswith('/') and not url.startswith('#'):
        return url

    path = parsed.path or ''
    if path.endswith('/'):
        path = path[:-1]
    path = path or '/'

    if parsed.fragment:
        return f"{path}#{parsed.fragment}"
    return path


def normalize_path(path: Optional[str]) -> str:
    """Strip leading and trailing slashes for coarse path comparison."""
    return (path or '').strip('/')


def generate_fingerprint(relative_path: Optional[str], h1: Optional[str] = None,
                         h2: Optional[str] = None) -> str:
    """
    Generate the canonical fingerprint for a location.

    Args:
        relative_path: Path + fragment of the page ('/' when unknown)
        h1: First level-1 heading, if any
        h2: First level-2 heading, if any

    Returns:
        Lowercase identifier made of [a-z0-9_], at most 200 characters
    """
    parts = [relative_path or '/']
    for name, value in (('h1', h1), ('h2', h2)):
        if value:
            parts.append(f"{name}_{value}")

    state_string = '_'.join(part[:COMPONENT_LIMIT] for part in parts)
    state_string = _INVALID_CHARS.sub('_', state_string)
    state_string = _REPEATED_UNDERSCORES.sub('_', state_string)
    state_string = state_string.strip('_').lower()

    if len(state_string) > FINGERPRINT_LIMIT:
        state_string = state_string[:FINGERPRINT_LIMIT]
        if state_string.endswith('_'):
            state_string = state_string[:-1]

    return state_string
