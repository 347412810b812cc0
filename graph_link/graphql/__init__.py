"""
GraphQL request models, error normalization and the HTTP executor.
"""

from .errors import (
    DEFAULT_ERROR_MESSAGE,
    BodyKind,
    DecodedBody,
    decode_body,
    is_graphql_response,
    normalize,
)
from .http import HttpExecutor
from .models import GraphQLCallback, GraphQLOperationType, GraphQLPayload, GraphQLRequest

__all__ = [
    "GraphQLRequest",
    "GraphQLOperationType",
    "GraphQLCallback",
    "GraphQLPayload",
    "HttpExecutor",
    "normalize",
    "decode_body",
    "is_graphql_response",
    "BodyKind",
    "DecodedBody",
    "DEFAULT_ERROR_MESSAGE",
]
