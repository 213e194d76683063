"""Tests for the module registry."""

from typing import Any

import pytest

from m365mcp.foundation.errors import ErrorCategory, McpException
from m365mcp.registry import ModuleDescriptor, ModuleRegistry, get_registry, reset_registry


class RecordingHandle:
    """Handle that records the services it was initialized with."""

    def __init__(self, fail: bool = False) -> None:
        self.services: dict[str, Any] | None = None
        self.fail = fail

    def init(self, services: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("token cache unavailable")
        self.services = services

    async def invoke(self, method: str, args: dict[str, Any], request: Any = None) -> Any:
        return method


def test_register_initializes_handle() -> None:
    registry = ModuleRegistry({"graph": "client", "other": 1})
    handle = RecordingHandle()
    registry.register(ModuleDescriptor("mail", "Mail", ("getInbox",), handle, ("graph",)))
    assert handle.services == {"graph": "client"}
    assert "mail" in registry
    assert registry.get("mail").display_name == "Mail"
    assert [m.id for m in registry] == ["mail"]


def test_missing_service_is_module_init_error() -> None:
    """Missing services fail registration and leave the registry unchanged."""
    registry = ModuleRegistry()
    with pytest.raises(McpException) as exc_info:
        registry.register(ModuleDescriptor("mail", "Mail", (), RecordingHandle(), ("graph",)))
    assert exc_info.value.category == ErrorCategory.MODULE_INIT
    assert exc_info.value.error.context["missing"] == ["graph"]
    assert len(registry) == 0


def test_failing_init_wrapped() -> None:
    registry = ModuleRegistry({"graph": object()})
    with pytest.raises(McpException) as exc_info:
        registry.register(ModuleDescriptor("files", "Files", (), RecordingHandle(fail=True), ("graph",)))
    assert exc_info.value.category == ErrorCategory.MODULE_INIT
    assert "token cache unavailable" in exc_info.value.error.message
    assert "files" not in registry


def test_duplicate_rejected() -> None:
    registry = ModuleRegistry()
    registry.register(ModuleDescriptor("people", "People", ()))
    with pytest.raises(McpException):
        registry.register(ModuleDescriptor("people", "People again", ()))


def test_find_capability_case_insensitive() -> None:
    descriptor = ModuleDescriptor("calendar", "Calendar", ("getEvents", "create"))
    assert descriptor.find_capability("GETEVENTS") == "getEvents"
    assert descriptor.find_capability("missing") is None


def test_unregister_and_provide() -> None:
    registry = ModuleRegistry()
    registry.provide("graph", "client")
    registry.register(ModuleDescriptor("mail", "Mail", (), RecordingHandle(), ("graph",)))
    assert registry.unregister("mail") is True
    assert registry.unregister("mail") is False


def test_global_registry() -> None:
    registry = get_registry()
    assert get_registry() is registry
    reset_registry()
    assert get_registry() is not registry
