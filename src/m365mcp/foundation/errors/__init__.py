"""Unified error handling for m365mcp.

- ErrorCategory/Severity: Stable category and severity vocabularies
- McpError/McpException: Structured errors and exceptions
- create_error/validation_error/from_exception/ensure_error: Factories
- JsonRpcCode/jsonrpc_code: Protocol error mapping
"""

from .errors import (
    ErrorCategory,
    JsonRpcCode,
    McpError,
    McpException,
    Severity,
    create_error,
    ensure_error,
    from_exception,
    jsonrpc_code,
    validation_error,
)

__all__ = [
    "ErrorCategory", "Severity", "McpError", "McpException",
    "create_error", "validation_error", "from_exception", "ensure_error",
    "JsonRpcCode", "jsonrpc_code",
]
