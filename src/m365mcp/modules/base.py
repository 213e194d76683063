"""Module method contract shared by every domain module.

A GraphModule declares an operation table; each entry is one capability:

    operations = {
        "getInbox": Operation("GET", "/me/mailFolders/inbox/messages", query=_inbox_query,
                              normalize=normalize_email, collection=True),
        "getEmailDetails": Operation("GET", "/me/messages/{id}", normalize=normalize_email_detail),
    }

`invoke` wraps every call in the same envelope: argument validation, a debug
trace in development, the upstream call under the request timeout, response
normalization, an info entry with executionTimeMs, a duration metric, and
conversion of any unstructured failure into an McpException in the module's
own category.
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Final, Literal
from urllib.parse import quote

from m365mcp.foundation.errors import (
    ErrorCategory,
    McpException,
    Severity,
    create_error,
    from_exception,
    validation_error,
)
from m365mcp.observability import get_monitor
from m365mcp.registry import ModuleDescriptor

from .normalizers import Normalizer

if TYPE_CHECKING:
    from m365mcp.graph import GraphClient
    from m365mcp.observability import MonitoringService
    from m365mcp.tools.placement import RequestPlan

Args = dict[str, Any]
Verb = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
Handler = Callable[["GraphModule", Args, "RequestContext"], Awaitable[Any]]

_PLACEHOLDER: Final = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Per-call caller identity and limits.

    Attributes:
        user_id: Caller user id, tagged on logs and upstream calls
        session_id: Caller session id
        device_id: Caller device id
        trace_id: Correlation id for log entries
        timeout: Upstream timeout in seconds; None uses the module default
        plan: Resolved placement for the tool call, when dispatched; its path
            values fill the upstream path placeholders
    """

    user_id: str | None = None
    session_id: str | None = None
    device_id: str | None = None
    trace_id: str | None = None
    timeout: float | None = None
    plan: RequestPlan | None = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class Operation:
    """One capability: upstream request recipe plus response shaping.

    Attributes:
        verb: HTTP verb for the upstream request
        path: Upstream path with `{name}` placeholders (always required)
        required: Additional argument keys that must be present and non-empty
        required_any: At least one of these keys must be present
        query: Builds query parameters from arguments
        body: Builds the request body from arguments
        normalize: Per-entity normalizer for the response
        collection: Response is `{value: [...]}`; normalize each item
        shape: Final result from (arguments, normalized response); overrides
            the default of returning the normalized response
        version: Upstream API version override (e.g. "beta")
        handler: Custom coroutine replacing the single-request recipe
    """

    verb: Verb = "GET"
    path: str = ""
    required: tuple[str, ...] = ()
    required_any: tuple[str, ...] = ()
    query: Callable[[Args], dict[str, Any]] | None = None
    body: Callable[[Args], Any] | None = None
    normalize: Normalizer | None = None
    collection: bool = False
    shape: Callable[[Args, Any], Any] | None = None
    version: str | None = None
    handler: Handler | None = None

    @property
    def placeholders(self) -> tuple[str, ...]:
        return tuple(_PLACEHOLDER.findall(self.path))

    def missing(self, args: Args) -> list[str]:
        """Required keys absent or empty in args, placeholders first."""
        keys = dict.fromkeys((*self.placeholders, *self.required))
        absent = [k for k in keys if args.get(k) is None or args.get(k) == ""]
        if self.required_any and all(args.get(k) in (None, "") for k in self.required_any):
            absent.append(" or ".join(self.required_any))
        return absent

    def render_path(self, args: Args) -> str:
        return _PLACEHOLDER.sub(lambda m: quote(str(args[m.group(1)]), safe=""), self.path)


def top(args: Args, default: int, ceiling: int = 999, key: str = "limit") -> int:
    """Page size from `limit` (or `top`), clamped to [1, ceiling]."""
    raw = args.get(key, args.get("top"))
    try:
        value = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        value = default
    return max(1, min(value, ceiling))


def values(raw: Any) -> list[Any]:
    """Items of a Graph collection response."""
    if isinstance(raw, Mapping):
        return list(raw.get("value") or [])
    return list(raw or [])


def compact(**fields: Any) -> Args:
    return {k: v for k, v in fields.items() if v is not None}


def odata_literal(value: Any) -> str:
    """OData string literal with embedded single quotes doubled."""
    return "'" + str(value).replace("'", "''") + "'"


def search_phrase(value: Any) -> str:
    """`$search` value: wrapped in double quotes unless the caller already did."""
    text = str(value).strip()
    if len(text) > 1 and text.startswith('"') and text.endswith('"'):
        return text
    return '"' + text.replace('"', '\\"') + '"'


def recipients(value: Any, kind: str | None = None) -> list[dict[str, Any]]:
    """Addresses (strings, `{address, name}` or Graph recipient objects) to Graph recipients."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [part.strip() for part in value.split(",") if part.strip()]
    elif not isinstance(value, (list, tuple)):
        value = [value]
    out: list[dict[str, Any]] = []
    for item in value:
        if isinstance(item, Mapping) and isinstance(item.get("emailAddress"), Mapping):
            recipient = dict(item)
        elif isinstance(item, Mapping):
            recipient = {"emailAddress": compact(address=item.get("address") or item.get("email"),
                                                 name=item.get("name"))}
        else:
            recipient = {"emailAddress": {"address": str(item)}}
        if kind is not None:
            recipient.setdefault("type", kind)
        out.append(recipient)
    return out


def file_attachment(args: Args) -> dict[str, Any]:
    return compact(**{
        "@odata.type": "#microsoft.graph.fileAttachment",
        "name": args.get("name"),
        "contentType": args.get("contentType") or "application/octet-stream",
        "contentBytes": args.get("contentBytes"),
        "isInline": args.get("isInline"),
    })


# ─────────────────────────────────────────────────────────────────────────────
# Base module
# ─────────────────────────────────────────────────────────────────────────────


class GraphModule:
    """Domain module backed by the upstream Graph client.

    Subclasses set `id`, `display_name` and `operations`. The registry calls
    `init` with the services named in `requires` before the module is visible.

    Args:
        monitor: Monitoring service (defaults to the global one)
        development: Emit debug entries on every call
        default_timeout: Upstream timeout when the request context has none

    Example:
        >>> mail = MailModule()
        >>> registry.register(mail.descriptor())
        >>> await mail.invoke("getInbox", {"limit": 5}, RequestContext(user_id="u1"))
    """

    id: ClassVar[str]
    display_name: ClassVar[str]
    operations: ClassVar[Mapping[str, Operation]]
    requires: ClassVar[tuple[str, ...]] = ("graph",)

    def __init__(self, monitor: MonitoringService | None = None, *, development: bool = False,
                 default_timeout: float = 30.0) -> None:
        self._monitor = monitor
        self.development = development
        self.default_timeout = default_timeout
        self.services: dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, capabilities={len(self.operations)})"

    @property
    def monitor(self) -> MonitoringService:
        return self._monitor or get_monitor()

    @property
    def capabilities(self) -> tuple[str, ...]:
        return tuple(self.operations)

    @property
    def graph(self) -> GraphClient:
        client = self.services.get("graph")
        if client is None:
            raise McpException(create_error(
                ErrorCategory.MODULE_INIT, f"Module '{self.id}' used before initialization", Severity.CRITICAL,
                {"moduleId": self.id},
            ))
        return client

    def init(self, services: Mapping[str, Any]) -> None:
        """Bind required services. Raises a module_init error when one is missing."""
        missing = [name for name in self.requires if services.get(name) is None]
        if missing:
            raise McpException(create_error(
                ErrorCategory.MODULE_INIT,
                f"Module '{self.id}' is missing required services: {', '.join(missing)}",
                Severity.CRITICAL, {"moduleId": self.id, "missing": missing},
            ))
        self.services = dict(services)

    def descriptor(self) -> ModuleDescriptor:
        return ModuleDescriptor(self.id, self.display_name, self.capabilities, self, self.requires)

    def operation(self, method: str) -> tuple[str, Operation] | None:
        """Case-insensitive operation lookup returning the declared name."""
        lowered = method.lower()
        return next(((k, v) for k, v in self.operations.items() if k.lower() == lowered), None)

    # ─────────────────────────────────────────────────────────────────────────
    # Invocation
    # ─────────────────────────────────────────────────────────────────────────

    async def invoke(self, method: str, args: Mapping[str, Any] | None = None,
                     request: RequestContext | None = None) -> Any:
        ctx = request or RequestContext()
        source = dict(args or {})
        ctx = _with_caller(ctx, source)
        payload = {k: v for k, v in source.items() if not k.startswith("_")}
        found = self.operation(method)
        if found is None:
            error = create_error(self.id, f"Module '{self.id}' does not support '{method}'", Severity.ERROR,
                                 {"module": self.id, "method": method}, user_id=ctx.user_id, trace_id=ctx.trace_id)
            self.monitor.log_error(error, ctx.user_id, ctx.session_id)
            raise McpException(error)
        name, op = found
        started = time.perf_counter()
        if self.development:
            self.monitor.debug(f"{self.display_name}: {name}", {
                "module": self.id, "method": name, "argKeys": sorted(payload), "sessionId": ctx.session_id,
            }, self.id, ctx.trace_id, ctx.user_id, ctx.device_id, ctx.session_id)
        try:
            if missing := op.missing(payload):
                raise validation_error(
                    f"{name} requires: {', '.join(missing)}", module=self.id, method=name, missing=missing,
                )
            timeout = ctx.timeout or self.default_timeout
            result = await asyncio.wait_for(self._execute(op, payload, ctx), timeout=timeout)
        except McpException as e:
            self.monitor.log_error(e.error, ctx.user_id, ctx.session_id)
            raise
        except TimeoutError as e:
            error = create_error(
                self.id, f"{name} timed out after {ctx.timeout or self.default_timeout}s", Severity.ERROR,
                {"module": self.id, "method": name, "timeout": ctx.timeout or self.default_timeout},
                trace_id=ctx.trace_id, user_id=ctx.user_id, device_id=ctx.device_id,
            )
            self.monitor.log_error(error, ctx.user_id, ctx.session_id)
            raise McpException(error) from e
        except Exception as e:
            error = from_exception(
                e, self.id, f"Failed to {name}: {e}", Severity.ERROR,
                module=self.id, method=name, statusCode=getattr(e, "status_code", None),
            ).model_copy(update={"trace_id": ctx.trace_id, "user_id": ctx.user_id, "device_id": ctx.device_id})
            self.monitor.log_error(error, ctx.user_id, ctx.session_id)
            raise McpException(error) from e
        elapsed = (time.perf_counter() - started) * 1000
        self.monitor.info(f"{self.display_name}: {name} succeeded", {
            "module": self.id, "method": name, "executionTimeMs": round(elapsed, 2), **_size(result),
        }, self.id, ctx.trace_id, ctx.user_id, ctx.device_id, ctx.session_id)
        self.monitor.track_metric(f"{self.id}.{name}.duration", elapsed, {"module": self.id, "method": name},
                                  ctx.user_id, ctx.device_id, ctx.session_id)
        return result

    async def _execute(self, op: Operation, args: Args, ctx: RequestContext) -> Any:
        if op.handler is not None:
            return await op.handler(self, args, ctx)
        raw = await self.request(op, args, ctx)
        return self.shape(op, args, raw)

    async def request(self, op: Operation, args: Args, ctx: RequestContext) -> Any:
        """Send the operation's single upstream request and return the raw response."""
        path_args = {**args, **ctx.plan.path_params} if ctx.plan is not None else args
        req = self.graph.api(op.render_path(path_args), ctx.user_id, ctx.session_id)
        if op.version:
            req = req.version(op.version)
        if op.query is not None and (params := op.query(args)):
            req = req.query(params)
        match op.verb:
            case "GET":
                return await req.get()
            case "DELETE":
                return await req.delete()
            case "POST":
                return await req.post(op.body(args) if op.body else None)
            case "PATCH":
                return await req.patch(op.body(args) if op.body else None)
            case "PUT":
                return await req.put(op.body(args) if op.body else None)

    @staticmethod
    def shape(op: Operation, args: Args, raw: Any) -> Any:
        result = raw
        if op.normalize is not None:
            if op.collection:
                result = [op.normalize(item) for item in values(raw) if isinstance(item, Mapping)]
            elif isinstance(raw, Mapping):
                result = op.normalize(raw)
        return op.shape(args, result) if op.shape is not None else result


def _with_caller(ctx: RequestContext, args: Args) -> RequestContext:
    """Fill caller ids from `_userId`/`_deviceId` payload context when the request lacks them."""
    user_id = ctx.user_id or args.get("_userId")
    device_id = ctx.device_id or args.get("_deviceId")
    if user_id == ctx.user_id and device_id == ctx.device_id:
        return ctx
    return RequestContext(user_id, ctx.session_id, device_id, ctx.trace_id, ctx.timeout, ctx.plan)


def _size(result: Any) -> dict[str, int]:
    return {"count": len(result)} if isinstance(result, list) else {}
