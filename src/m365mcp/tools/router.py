"""Tool name to (module, method) resolution.

Order: special literals, then a case-insensitive scan of registered
capabilities, then the alias table. An alias whose target module or
capability is not registered resolves to nothing and is logged as an error.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Final, NamedTuple

from .definitions import TOOL_TABLE

if TYPE_CHECKING:
    from m365mcp.observability import MonitoringService
    from m365mcp.registry import ModuleRegistry


class Route(NamedTuple):
    module_id: str
    method_name: str

    def __str__(self) -> str:
        return f"{self.module_id}.{self.method_name}"


SPECIAL_ROUTES: Final[Mapping[str, Route]] = MappingProxyType({"query": Route("query", "processQuery")})

# Public names that differ from, or predate, a module's own capability name
_RENAMES: Final[dict[str, Route]] = {
    "getMail": Route("mail", "getInbox"),
    "readMail": Route("mail", "getInbox"),
    "sendMail": Route("mail", "sendEmail"),
    "searchMail": Route("mail", "searchEmails"),
    "flagMail": Route("mail", "flagEmail"),
    "getAttachments": Route("mail", "getMailAttachments"),
    "getMailDetails": Route("mail", "getEmailDetails"),
    "readMailDetails": Route("mail", "getEmailDetails"),
    "markMailRead": Route("mail", "markAsRead"),
    "markEmailRead": Route("mail", "markAsRead"),
    "getCalendar": Route("calendar", "getEvents"),
    "createEvent": Route("calendar", "create"),
    "updateEvent": Route("calendar", "update"),
    "deleteEvent": Route("calendar", "cancelEvent"),
    "findPeople": Route("people", "find"),
    "searchPeople": Route("people", "find"),
}

ALIASES: Final[Mapping[str, Route]] = MappingProxyType({
    **{s.name.lower(): Route(s.module, s.method) for s in TOOL_TABLE},
    **{k.lower(): v for k, v in _RENAMES.items()},
})


class ToolRouter:
    """Resolve agent tool names against the registry.

    Example:
        >>> router = ToolRouter(registry)
        >>> router.resolve("sendMail")
        Route(module_id='mail', method_name='sendEmail')
        >>> router.resolve("GETEVENTS")
        Route(module_id='calendar', method_name='getEvents')
    """

    __slots__ = ("_registry", "_monitor", "_aliases")

    def __init__(
        self,
        registry: ModuleRegistry,
        monitor: MonitoringService | None = None,
        aliases: Mapping[str, Route] = ALIASES,
    ) -> None:
        self._registry = registry
        self._monitor = monitor
        self._aliases = {k.lower(): Route(*v) for k, v in aliases.items()}

    def resolve(self, tool_name: str) -> Route | None:
        key = tool_name.strip().lower()
        if not key:
            return None
        if route := SPECIAL_ROUTES.get(key):
            return route
        for module in self._registry.all():
            if capability := module.find_capability(key):
                return Route(module.id, capability)
        if (alias := self._aliases.get(key)) is None:
            return None
        module = self._registry.get(alias.module_id)
        capability = module.find_capability(alias.method_name) if module else None
        if capability is None:
            if self._monitor:
                self._monitor.error(
                    f"Alias '{tool_name}' targets unavailable {alias}",
                    {"toolName": tool_name, "moduleId": alias.module_id, "methodName": alias.method_name,
                     "moduleFound": module is not None},
                    "tools",
                )
            return None
        return Route(module.id, capability)

    def aliases(self) -> dict[str, Route]:
        return dict(self._aliases)
