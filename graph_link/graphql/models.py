"""
GraphQL request models.

This module defines the replayable request shared by the HTTP and WebSocket
paths.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

GraphQLPayload = Dict[str, Any]
GraphQLCallback = Callable[[GraphQLPayload], Any]


class GraphQLOperationType(str, Enum):
    """GraphQL operation types."""

    QUERY = "query"
    MUTATION = "mutation"
    SUBSCRIPTION = "subscription"


@dataclass(frozen=True)
class GraphQLRequest:
    """
    A GraphQL operation as issued by the application.

    Instances are immutable so a subscription can be re-issued verbatim after
    a reconnect.
    """

    query: str
    variables: Dict[str, Any] = field(default_factory=dict)
    operation_name: Optional[str] = None
    operation_type: GraphQLOperationType = GraphQLOperationType.QUERY

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON payload sent over HTTP and in subscribe frames."""
        result: Dict[str, Any] = {
            "query": self.query,
            "variables": dict(self.variables),
        }

        if self.operation_name:
            result["operationName"] = self.operation_name

        return result
