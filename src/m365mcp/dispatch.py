"""tools/call dispatch: route, transform, place, invoke.

    >>> dispatcher = Dispatcher(registry, router, catalog, transformer)
    >>> await dispatcher.call_tool("sendMail", {"to": "x@y", "subject": "s", "body": "b"}, user_id="u1")
    {'sent': True, 'to': ['x@y'], 'subject': 's'}

The sequence within one call is fixed: route, transform, placement check,
module invocation. A missing path parameter is rejected at placement, before
any upstream request.
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING, Any

from m365mcp.foundation.errors import ErrorCategory, McpException, Severity, create_error
from m365mcp.modules.base import RequestContext
from m365mcp.tools import ParameterTransformer, ToolCatalog, ToolRouter, resolve_placement

if TYPE_CHECKING:
    from collections.abc import Mapping

    from m365mcp.observability import MonitoringService
    from m365mcp.registry import ModuleRegistry


class ToolNotFoundError(McpException):
    """No route for the requested tool name."""

    __slots__ = ()

    @classmethod
    def for_name(cls, name: str) -> ToolNotFoundError:
        return cls(create_error(ErrorCategory.PROTOCOL, f"Unknown tool: {name}", Severity.WARNING,
                                {"toolName": name}, include_stack=False))


class Dispatcher:
    """Execute one tool call end to end.

    Args:
        registry: Module registry holding the dispatch handles
        router: Tool name resolution
        catalog: Descriptors used for placement
        transformer: Argument reshaping per (module, method)
        monitor: Monitoring service; None disables dispatcher logging
        timeout: Upstream timeout passed to modules in the request context
    """

    __slots__ = ("registry", "router", "catalog", "transformer", "_monitor", "timeout")

    def __init__(
        self,
        registry: ModuleRegistry,
        router: ToolRouter,
        catalog: ToolCatalog,
        transformer: ParameterTransformer,
        monitor: MonitoringService | None = None,
        timeout: float | None = None,
    ) -> None:
        self.registry = registry
        self.router = router
        self.catalog = catalog
        self.transformer = transformer
        self._monitor = monitor
        self.timeout = timeout

    async def call_tool(
        self,
        name: str,
        arguments: Mapping[str, Any] | None = None,
        *,
        user_id: str | None = None,
        session_id: str | None = None,
        device_id: str | None = None,
        trace_id: str | None = None,
    ) -> Any:
        """Run a tool and return the module's normalized result.

        Raises:
            ToolNotFoundError: No capability or alias matches `name`
            McpException: Validation, module or system failure (already logged)
        """
        started = time.perf_counter()
        route = self.router.resolve(name)
        if route is None:
            if self._monitor:
                self._monitor.warn(f"Unknown tool requested: {name}", {"toolName": name}, "tools",
                                   trace_id, user_id, device_id, session_id)
            raise ToolNotFoundError.for_name(name)
        module = self.registry.get(route.module_id)
        if module is None:
            raise ToolNotFoundError.for_name(name)

        payload = self.transformer.transform(route.module_id, route.method_name, arguments, user_id, device_id)
        descriptor = self.catalog.for_route(route.module_id, route.method_name)
        try:
            plan = resolve_placement(descriptor, payload)
        except McpException as e:
            if self._monitor:
                self._monitor.log_error(e.error, user_id, session_id)
            raise

        ctx = RequestContext(user_id, session_id, device_id, trace_id or uuid.uuid4().hex, self.timeout, plan)
        result = await module.handle.invoke(route.method_name, plan.arguments(), ctx)
        if self._monitor:
            self._monitor.track_metric("tools.call.duration", (time.perf_counter() - started) * 1000,
                                       {"toolName": name, "module": route.module_id, "method": route.method_name},
                                       user_id, device_id, session_id)
        return result
