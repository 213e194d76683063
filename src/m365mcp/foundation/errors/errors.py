"""Structured error values for modules, the transformer and the observability core.

Every failure path produces an McpError: a frozen pydantic model carrying
category, severity, context and correlation ids. McpException wraps one for
raising; the JSON-RPC surface maps it to a protocol error code.
"""

from __future__ import annotations

import traceback
import uuid
from datetime import UTC, datetime
from enum import IntEnum, StrEnum
from typing import Annotated, Any, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class ErrorCategory(StrEnum):
    """Well-known error categories. Category fields stay open-ended strings."""
    VALIDATION = "validation"
    AUTH = "auth"
    UPSTREAM = "upstream"
    SYSTEM = "system"
    MODULE_INIT = "module_init"
    PROTOCOL = "protocol"
    MAIL = "mail"
    CALENDAR = "calendar"
    FILES = "files"
    PEOPLE = "people"
    TODO = "todo"
    CONTACTS = "contacts"
    TEAMS = "teams"
    SEARCH = "search"
    GROUPS = "groups"
    QUERY = "query"


class Severity(StrEnum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class JsonRpcCode(IntEnum):
    """JSON-RPC 2.0 error codes."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


def _now() -> str:
    return datetime.now(UTC).isoformat()


class McpError(BaseModel):
    """Immutable structured error.

    Attributes:
        id: Unique error id for log correlation
        category: Error category (see ErrorCategory; unknown strings allowed)
        message: Short human-readable message
        severity: warning, error or critical
        context: Free-form diagnostic key/values (never argument values)
        trace_id: Request trace id, when known
        user_id: Owning user, when known
        device_id: Originating device, when known
        stack: Formatted stack at creation
        timestamp: ISO-8601 UTC creation time
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "title": "MCP Error",
            "examples": [{
                "category": "validation",
                "message": "Missing required path parameter 'id'",
                "severity": "error",
                "context": {"module": "calendar", "method": "update"},
            }],
        },
    )

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    category: Annotated[str, Field(min_length=1)] = ErrorCategory.SYSTEM
    message: Annotated[str, Field(min_length=1)]
    severity: Severity = Severity.ERROR
    context: dict[str, Any] = Field(default_factory=dict)
    trace_id: str | None = None
    user_id: str | None = None
    device_id: str | None = None
    stack: str | None = None
    timestamp: str = Field(default_factory=_now)

    @field_validator("message", mode="before")
    @classmethod
    def _ensure_message(cls, v: str | Exception) -> str:
        """Accept Exception objects and extract message."""
        return (str(v) or type(v).__name__) if isinstance(v, Exception) else v

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, v: str) -> str:
        return str(v).strip().lower() if isinstance(v, str) else v

    @computed_field
    @property
    def is_validation(self) -> bool:
        return self.category == ErrorCategory.VALIDATION

    def render(self) -> str:
        """Short agent-facing message. Details stay in logs."""
        return f"{self.category}: {self.message}"

    def to_log(self) -> dict[str, Any]:
        """JSON-ready dict using the wire field names of log entries."""
        return {
            "id": self.id,
            "category": self.category,
            "message": self.message,
            "severity": str(self.severity),
            "context": self.context,
            "traceId": self.trace_id,
            "userId": self.user_id,
            "deviceId": self.device_id,
            "stack": self.stack,
            "timestamp": self.timestamp,
        }

    __str__ = render


class McpException(Exception):
    """Exception wrapping an McpError for raising."""

    __slots__ = ("error",)

    def __init__(self, error: McpError) -> None:
        self.error = error
        super().__init__(error.message)

    @property
    def category(self) -> str:
        return self.error.category

    @classmethod
    def create(cls, category: str, message: str, severity: Severity = Severity.ERROR, **context: Any) -> Self:
        return cls(create_error(category, message, severity, context))


def _stack() -> str | None:
    formatted = traceback.format_exc()
    if formatted.startswith("NoneType: None"):
        return "".join(traceback.format_stack(limit=12)[:-2]) or None
    return formatted


def create_error(
    category: str,
    message: str,
    severity: Severity = Severity.ERROR,
    context: dict[str, Any] | None = None,
    *,
    trace_id: str | None = None,
    user_id: str | None = None,
    device_id: str | None = None,
    include_stack: bool = True,
) -> McpError:
    """Factory for structured errors. Captures the active stack unless disabled."""
    return McpError(
        category=category,
        message=message,
        severity=severity,
        context=dict(context or {}),
        trace_id=trace_id,
        user_id=user_id,
        device_id=device_id,
        stack=_stack() if include_stack else None,
    )


def validation_error(message: str, **context: Any) -> McpException:
    """Build (not raise) a validation exception."""
    return McpException(create_error(ErrorCategory.VALIDATION, message, context=context))


def from_exception(
    exc: BaseException,
    category: str = ErrorCategory.SYSTEM,
    message: str | None = None,
    severity: Severity = Severity.ERROR,
    **context: Any,
) -> McpError:
    """Wrap an arbitrary exception, keeping its traceback as the stack."""
    if isinstance(exc, McpException):
        return exc.error
    return McpError(
        category=category,
        message=message or str(exc) or type(exc).__name__,
        severity=severity,
        context={"errorType": type(exc).__name__, **context},
        stack="".join(traceback.format_exception(exc)),
    )


def ensure_error(err: McpError | BaseException | str | dict[str, Any], category: str = ErrorCategory.SYSTEM) -> McpError:
    """Normalize anything passed to logError into an McpError."""
    match err:
        case McpError():
            return err
        case McpException():
            return err.error
        case BaseException():
            return from_exception(err, category)
        case dict():
            return McpError.model_validate({"category": category, "message": "Unknown error", **err})
        case _:
            return create_error(category, str(err) or "Unknown error", include_stack=False)


def jsonrpc_code(error: McpError) -> int:
    """Map a structured error to the JSON-RPC code returned to the agent."""
    return JsonRpcCode.INVALID_PARAMS if error.category == ErrorCategory.VALIDATION else JsonRpcCode.INTERNAL_ERROR
