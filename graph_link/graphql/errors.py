"""
Normalization of failed GraphQL calls into the canonical errors shape.

Every failure handed to a caller looks like::

    {"errors": [{"message": ..., "extensions": {"status": ...}}, ...]}

The body is first classified into a ``DecodedBody`` and the result is built
from that classification:

1. a mapping carrying a non-empty list of error mappings keeps its errors,
   each annotated with the HTTP status;
2. any other mapping keeps its keys and gains the default error;
3. anything else is replaced by the default error.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

DEFAULT_ERROR_MESSAGE = "The HTTP call failed."


class BodyKind(str, Enum):
    """Classification of a response body."""

    GRAPHQL_ERRORS = "graphql_errors"
    MAPPING = "mapping"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class DecodedBody:
    """A response body tagged with its classification."""

    kind: BodyKind
    body: Any


def _is_error_list(errors: Any) -> bool:
    return (
        isinstance(errors, (list, tuple))
        and len(errors) > 0
        and all(isinstance(error, Mapping) for error in errors)
    )


def decode_body(body: Any) -> DecodedBody:
    """Classify a decoded response body."""
    if isinstance(body, Mapping):
        if _is_error_list(body.get("errors")):
            return DecodedBody(BodyKind.GRAPHQL_ERRORS, body)
        return DecodedBody(BodyKind.MAPPING, body)
    return DecodedBody(BodyKind.OPAQUE, body)


def default_errors(status: Optional[int]) -> List[Dict[str, Any]]:
    """The single error used when no GraphQL errors are available."""
    return [{"message": DEFAULT_ERROR_MESSAGE, "extensions": {"status": status}}]


def _with_status(error: Mapping[str, Any], status: Optional[int]) -> Dict[str, Any]:
    annotated = copy.deepcopy(dict(error))
    extensions = annotated.get("extensions")
    extensions = dict(extensions) if isinstance(extensions, Mapping) else {}
    extensions["status"] = status
    annotated["extensions"] = extensions
    return annotated


def normalize(body: Any, status: Optional[int]) -> Dict[str, Any]:
    """
    Convert a failed response into the canonical GraphQL errors shape.

    The input is never mutated.

    Args:
        body: Decoded response body (any JSON value, or raw text)
        status: HTTP status of the response; 0 when no response was received

    Returns:
        Mapping with a non-empty ``errors`` list
    """
    decoded = decode_body(body)

    if decoded.kind is BodyKind.GRAPHQL_ERRORS:
        result = copy.deepcopy(dict(decoded.body))
        result["errors"] = [_with_status(error, status) for error in decoded.body["errors"]]
        return result

    if decoded.kind is BodyKind.MAPPING:
        result = copy.deepcopy(dict(decoded.body))
        result["errors"] = default_errors(status)
        return result

    return {"errors": default_errors(status)}


def is_graphql_response(body: Any) -> bool:
    """Whether a body looks like a GraphQL response (``data`` and/or ``errors``)."""
    return isinstance(body, Mapping) and ("data" in body or "errors" in body)
