"""Place a transformed payload into path, query string and body.

Each payload key is routed by the tool descriptor's parameter mapping. Path
placeholders are substituted with percent-encoded values; a missing required
path parameter is a validation error raised before any upstream call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from m365mcp.foundation.errors import validation_error

from .definitions import Placement, ToolDescriptor


@dataclass(frozen=True, slots=True)
class RequestPlan:
    """Concrete request for one tool call.

    Attributes:
        method: HTTP method from the descriptor
        path: Endpoint with placeholders substituted and encoded
        path_params: Raw (unencoded) path parameter values
        query: Query-string parameters
        body: Request body fields
        context: Underscore-prefixed caller context (_userId, _deviceId)
    """

    method: str
    path: str
    path_params: dict[str, str] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)
    context: dict[str, Any] = field(default_factory=dict)

    def arguments(self) -> dict[str, Any]:
        """Placed parameters flattened back into module arguments; path values win."""
        return {**self.context, **self.body, **self.query, **self.path_params}


def resolve_placement(descriptor: ToolDescriptor, payload: dict[str, Any]) -> RequestPlan:
    """Build a RequestPlan; raises a validation McpException on missing path params."""
    path_params: dict[str, str] = {}
    query: dict[str, Any] = {}
    body: dict[str, Any] = {}
    context: dict[str, Any] = {}
    for key, value in payload.items():
        if key.startswith("_"):
            context[key] = value
            continue
        match descriptor.placement_of(key):
            case Placement.PATH:
                if value is not None and value != "":
                    path_params[key] = str(value)
            case Placement.QUERY:
                if value is not None:
                    query[key] = value
            case Placement.BODY:
                body[key] = value
    path = descriptor.endpoint
    # Longest names first so ':id' never clobbers ':idx'
    for name in sorted(descriptor.path_params, key=len, reverse=True):
        if name not in path_params:
            raise validation_error(
                f"Missing required path parameter '{name}' for {descriptor.name}",
                module=descriptor.module_id, method=descriptor.method_name, tool=descriptor.name, parameter=name,
            )
        path = path.replace(f":{name}", quote(path_params[name], safe=""))
    return RequestPlan(descriptor.method, path, path_params, query, body, context)
