"""Tool catalog materialized from the module registry.

Each registered capability becomes one tool. Known capabilities take their
descriptor from the table in definitions; others get a derived default. The
person-resolution tool always leads and the synthetic `query` tool always
closes the list.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Any

from .definitions import (
    PERSON_RESOLUTION,
    QUERY_TOOL,
    TOOLS_BY_NAME,
    TOOLS_BY_ROUTE,
    ToolDescriptor,
    ToolSpec,
)

if TYPE_CHECKING:
    from m365mcp.observability import MonitoringService
    from m365mcp.registry import ModuleRegistry


def default_descriptor(module_id: str, capability: str) -> ToolDescriptor:
    """Generated descriptor for a capability with no table entry."""
    return ToolSpec(
        name=capability, module=module_id, method=capability,
        description=f"{capability} operation for {module_id}",
        endpoint=f"/api/v1/{module_id.lower()}/{capability}",
    ).build()


class ToolCatalog:
    """Cached, deterministic list of tool descriptors.

    Example:
        >>> catalog = ToolCatalog(registry)
        >>> catalog.list_tools()[0].name
        'findPeople'
        >>> catalog.get("CREATEEVENT").endpoint
        '/api/v1/calendar/events'
    """

    __slots__ = ("_registry", "_monitor", "_cache", "_index", "_lock")

    def __init__(self, registry: ModuleRegistry, monitor: MonitoringService | None = None) -> None:
        self._registry = registry
        self._monitor = monitor
        self._cache: tuple[ToolDescriptor, ...] | None = None
        self._index: dict[str, ToolDescriptor] = {}
        self._lock = threading.Lock()

    def list_tools(self) -> list[ToolDescriptor]:
        with self._lock:
            if self._cache is None:
                self._cache = self._generate()
                self._index = {t.name.lower(): t for t in self._cache}
            return list(self._cache)

    def list_wire(self) -> list[dict[str, Any]]:
        """`tools/list` payload."""
        return [t.to_wire() for t in self.list_tools()]

    def refresh(self) -> None:
        """Drop the cache; the next access regenerates."""
        with self._lock:
            previous = len(self._cache or ())
            self._cache = None
            self._index = {}
        if self._monitor:
            self._monitor.info("Tool catalog cache cleared", {"previousCacheSize": previous}, "tools")

    def get(self, name: str) -> ToolDescriptor | None:
        """Tool by case-insensitive name."""
        self.list_tools()
        return self._index.get(name.lower())

    def for_route(self, module_id: str, method_name: str) -> ToolDescriptor:
        """Descriptor for a resolved route, falling back to a generated default."""
        for tool in self.list_tools():
            if tool.module_id == module_id and tool.method_name.lower() == method_name.lower():
                return tool
        if spec := TOOLS_BY_ROUTE.get((module_id, method_name.lower())):
            return spec.build()
        return default_descriptor(module_id, method_name)

    def __len__(self) -> int:
        return len(self.list_tools())

    # ─────────────────────────────────────────────────────────────────────────

    def _generate(self) -> tuple[ToolDescriptor, ...]:
        started = time.perf_counter()
        lead: list[ToolDescriptor] = []
        tools: list[ToolDescriptor] = []
        seen: set[str] = set()
        for module in self._registry.all():
            for capability in module.capabilities:
                tool = self._describe(module.id, capability)
                key = tool.name.lower()
                if key in seen or key == QUERY_TOOL:
                    continue
                seen.add(key)
                is_person = (module.id, capability.lower()) == PERSON_RESOLUTION or key == "findpeople"
                (lead if is_person and not lead else tools).append(tool)
        result = (*lead, *tools, TOOLS_BY_NAME[QUERY_TOOL].build())
        if self._monitor:
            self._monitor.info("Generated tool definitions", {"toolCount": len(result)}, "tools")
            self._monitor.track_metric("tools.catalog.generate", (time.perf_counter() - started) * 1000,
                                       {"toolCount": len(result)})
        return result

    def _describe(self, module_id: str, capability: str) -> ToolDescriptor:
        if spec := TOOLS_BY_ROUTE.get((module_id, capability.lower())):
            tool = spec.build()
            return tool if tool.method_name == capability else tool.model_copy(update={"method_name": capability})
        if self._monitor:
            self._monitor.warn(
                f"No specific definition found for capability '{capability}' in module '{module_id}'. Using defaults.",
                {"capability": capability, "moduleName": module_id}, "tools",
            )
        return default_descriptor(module_id, capability)
