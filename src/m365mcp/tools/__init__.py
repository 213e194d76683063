"""Tool layer: descriptors, catalog, router, parameter transformer, placement."""

from .catalog import ToolCatalog, default_descriptor
from .definitions import (
    TOOL_TABLE,
    Placement,
    ParameterSpec,
    ToolDescriptor,
    ToolSpec,
    derive_method,
    path_placeholders,
)
from .placement import RequestPlan, resolve_placement
from .router import ALIASES, Route, ToolRouter
from .transform import ParameterTransformer, coerce_datetime, coerce_recipients

__all__ = [
    # Descriptors
    "ToolDescriptor", "ParameterSpec", "ToolSpec", "Placement", "TOOL_TABLE",
    "derive_method", "path_placeholders", "default_descriptor",
    # Catalog & routing
    "ToolCatalog", "ToolRouter", "Route", "ALIASES",
    # Payload shaping
    "ParameterTransformer", "coerce_recipients", "coerce_datetime",
    "RequestPlan", "resolve_placement",
]
