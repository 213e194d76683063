"""Central registry of domain modules.

Modules are registered once at startup with their declared service
dependencies. The tool catalog and router read descriptors from here; the
dispatcher invokes a module through its handle by method name.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from m365mcp.foundation.errors import ErrorCategory, McpException, Severity, create_error


@runtime_checkable
class ModuleHandle(Protocol):
    """Dispatch handle. Opaque to the catalog; invoked by method name."""

    async def invoke(self, method: str, args: dict[str, Any], request: Any = None) -> Any: ...


@dataclass(frozen=True, slots=True)
class ModuleDescriptor:
    """Registered module.

    Attributes:
        id: Stable module identifier (e.g. "calendar")
        display_name: Human-readable name
        capabilities: Ordered capability names, case-preserved
        handle: Dispatch handle
        requires: Service names that must be available at registration
    """

    id: str
    display_name: str
    capabilities: tuple[str, ...]
    handle: Any = field(default=None, compare=False)
    requires: tuple[str, ...] = ()

    def find_capability(self, name: str) -> str | None:
        """Case-insensitive lookup returning the declared casing."""
        lowered = name.lower()
        return next((c for c in self.capabilities if c.lower() == lowered), None)


class ModuleRegistry:
    """Thread-safe module registry.

    Example:
        >>> registry = ModuleRegistry(services={"graph": client})
        >>> registry.register(ModuleDescriptor("mail", "Mail", ("getInbox",), handle, ("graph",)))
        >>> registry.get("mail").display_name
        'Mail'
    """

    __slots__ = ("_modules", "_services", "_lock")

    def __init__(self, services: Mapping[str, Any] | None = None) -> None:
        self._modules: dict[str, ModuleDescriptor] = {}
        self._services: dict[str, Any] = dict(services or {})
        self._lock = threading.RLock()

    def provide(self, name: str, service: Any) -> None:
        with self._lock:
            self._services[name] = service

    def register(self, descriptor: ModuleDescriptor) -> None:
        """Register a module, initializing its handle with required services.

        Raises:
            McpException: module_init error on duplicate id, missing services
                or a failing handle init. The registry is left unchanged.
        """
        with self._lock:
            if descriptor.id in self._modules:
                raise _init_error(descriptor, f"Module '{descriptor.id}' is already registered")
            missing = [s for s in descriptor.requires if self._services.get(s) is None]
            if missing:
                raise _init_error(descriptor, f"Module '{descriptor.id}' is missing required services: {', '.join(missing)}",
                                  missing=missing)
            init = getattr(descriptor.handle, "init", None)
            if callable(init):
                try:
                    init({s: self._services[s] for s in descriptor.requires})
                except McpException:
                    raise
                except Exception as e:
                    raise _init_error(descriptor, f"Module '{descriptor.id}' failed to initialize: {e}") from e
            self._modules[descriptor.id] = descriptor

    def unregister(self, module_id: str) -> bool:
        with self._lock:
            return self._modules.pop(module_id, None) is not None

    def get(self, module_id: str) -> ModuleDescriptor | None:
        with self._lock:
            return self._modules.get(module_id)

    def all(self) -> list[ModuleDescriptor]:
        """Descriptors in registration order."""
        with self._lock:
            return list(self._modules.values())

    def __contains__(self, module_id: str) -> bool:
        return module_id in self._modules

    def __iter__(self) -> Iterator[ModuleDescriptor]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self._modules)

    def clear(self) -> None:
        with self._lock:
            self._modules.clear()


def _init_error(descriptor: ModuleDescriptor, message: str, **context: Any) -> McpException:
    return McpException(create_error(
        ErrorCategory.MODULE_INIT, message, Severity.CRITICAL,
        {"moduleId": descriptor.id, "requires": list(descriptor.requires), **context},
    ))


# ─────────────────────────────────────────────────────────────────────────────
# Global Registry
# ─────────────────────────────────────────────────────────────────────────────

_registry: ModuleRegistry | None = None


def get_registry() -> ModuleRegistry:
    """Get the global module registry instance."""
    global _registry
    if _registry is None:
        _registry = ModuleRegistry()
    return _registry


def set_registry(registry: ModuleRegistry) -> None:
    """Replace the global registry."""
    global _registry
    _registry = registry


def reset_registry() -> None:
    """Reset the global registry (useful for testing)."""
    global _registry
    if _registry is not None:
        _registry.clear()
    _registry = None
