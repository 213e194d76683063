"""Application assembly and the stdio server loop.

Construction is two-phase: components are built without references to each
other, then `wire` connects the monitoring service to the event bus and the
user-log store. Nothing logs from a constructor.
"""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass, field
from typing import IO, TYPE_CHECKING, Any

from m365mcp.dispatch import Dispatcher
from m365mcp.foundation.config import M365Settings, get_settings
from m365mcp.graph import GraphClient, HttpxGraphClient
from m365mcp.modules import GraphModule, build_modules
from m365mcp.observability import EventBus, MonitoringService, UserLogStore, get_event_bus, get_monitor
from m365mcp.protocol import JsonRpcHandler
from m365mcp.registry import ModuleRegistry
from m365mcp.tools import ParameterTransformer, ToolCatalog, ToolRouter

if TYPE_CHECKING:
    from m365mcp.graph.client import TokenProvider


@dataclass(slots=True)
class Application:
    """Every long-lived component of one server process."""

    settings: M365Settings
    monitor: MonitoringService
    bus: EventBus
    graph: GraphClient
    registry: ModuleRegistry
    catalog: ToolCatalog
    router: ToolRouter
    transformer: ParameterTransformer
    dispatcher: Dispatcher
    handler: JsonRpcHandler
    modules: list[GraphModule] = field(default_factory=list)

    async def aclose(self) -> None:
        await self.monitor.governor.stop()
        await self.monitor.drain()
        if isinstance(self.graph, HttpxGraphClient):
            await self.graph.aclose()


def build_application(
    settings: M365Settings | None = None,
    *,
    graph: GraphClient | None = None,
    token_provider: TokenProvider | None = None,
    monitor: MonitoringService | None = None,
    bus: EventBus | None = None,
    store: UserLogStore | None = None,
    user_id: str | None = None,
    session_id: str | None = None,
) -> Application:
    """Build and wire the full tool-dispatch stack.

    Args:
        settings: Configuration; defaults to the cached environment settings
        graph: Upstream client; defaults to HttpxGraphClient over settings.graph
        token_provider: Bearer token source for the default client
        monitor: Monitoring service; defaults to the global one
        bus: Event bus; defaults to the global one
        store: User-log persistence collaborator
        user_id: Identity attached to every tool call from this process
        session_id: Session attached to every tool call from this process
    """
    settings = settings or get_settings()
    monitor = monitor or get_monitor()
    bus = bus or get_event_bus()
    graph = graph or HttpxGraphClient(settings.graph, token_provider)

    # Phase two: cross references
    monitor.wire(bus, store)
    registry = ModuleRegistry({"graph": graph, "monitor": monitor})
    modules = build_modules(monitor, development=settings.is_development, default_timeout=settings.request_timeout)
    for module in modules:
        registry.register(module.descriptor())
        monitor.info(f"Module registered: {module.display_name}",
                     {"moduleId": module.id, "capabilities": len(module.capabilities)}, "system")

    catalog = ToolCatalog(registry, monitor)
    router = ToolRouter(registry, monitor)
    transformer = ParameterTransformer(monitor, settings.default_time_zone, settings.is_development)
    dispatcher = Dispatcher(registry, router, catalog, transformer, monitor, settings.request_timeout)
    handler = JsonRpcHandler(catalog, dispatcher, monitor, user_id=user_id, session_id=session_id,
                             version=settings.version)
    monitor.info("Application assembled", {"modules": [m.id for m in modules]}, "system")
    return Application(settings, monitor, bus, graph, registry, catalog, router, transformer, dispatcher, handler,
                       modules)


async def serve(app: Application, stdin: IO[bytes] | None = None, stdout: IO[bytes] | None = None) -> None:
    """Read newline-delimited JSON-RPC from stdin and answer on stdout until EOF."""
    reader = stdin or sys.stdin.buffer
    writer = stdout or sys.stdout.buffer
    app.monitor.governor.start()
    app.monitor.info("MCP server listening on stdio", {"tools": len(app.catalog)}, "system")
    try:
        while line := await asyncio.to_thread(reader.readline):
            if not line.strip():
                continue
            reply = await app.handler.handle_line(line)
            if reply is not None:
                writer.write(reply + b"\n")
                writer.flush()
    finally:
        app.monitor.info("MCP server stopping", None, "system")
        await app.aclose()


def run(**kwargs: Any) -> None:
    asyncio.run(serve(build_application(**kwargs)))
