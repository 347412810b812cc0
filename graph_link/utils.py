"""
Operation id and endpoint helpers.
"""

from __future__ import annotations

import random
import string
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

QUERY_ID_LENGTH = 8
_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_query_id(length: int = QUERY_ID_LENGTH) -> str:
    """
    Generate a short random operation id.

    Ids only need to be unique among the operations tracked by one client,
    so collisions are accepted as negligible.

    Args:
        length: Number of characters in the id

    Returns:
        Random lowercase alphanumeric token
    """
    return "".join(random.choices(_ID_ALPHABET, k=length))


def default_ws_url(http_url: str, path: str = "/graphql-ws") -> Optional[str]:
    """
    Derive the WebSocket endpoint that pairs with an HTTP endpoint.

    ``https://api.example.com/graphql`` becomes
    ``wss://api.example.com/graphql-ws``.

    Args:
        http_url: HTTP(S) GraphQL endpoint
        path: Path of the WebSocket endpoint on the same host

    Returns:
        WebSocket URL, or None if http_url has no host
    """
    parts = urlsplit(http_url)
    if not parts.netloc:
        return None

    scheme = "wss" if parts.scheme == "https" else "ws"
    return urlunsplit((scheme, parts.netloc, path, "", ""))
