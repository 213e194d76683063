"""Domain modules over Microsoft Graph.

Each module is a GraphModule with an operation table; `build_modules`
returns one instance of each, in the order they are registered.

    >>> registry = ModuleRegistry({"graph": client})
    >>> for module in build_modules():
    ...     registry.register(module.descriptor())
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import GraphModule, Operation, RequestContext, recipients, top, values
from .calendar import CalendarModule
from .contacts import ContactsModule
from .files import FilesModule
from .groups import GroupsModule
from .mail import MailModule
from .people import PeopleModule
from .query import QueryModule
from .search import SearchModule, group_entity_types, unified_search
from .teams import TeamsModule
from .todo import TodoModule

if TYPE_CHECKING:
    from m365mcp.observability import MonitoringService

MODULE_TYPES: tuple[type[GraphModule], ...] = (
    PeopleModule,
    MailModule,
    CalendarModule,
    FilesModule,
    TodoModule,
    ContactsModule,
    TeamsModule,
    GroupsModule,
    SearchModule,
    QueryModule,
)


def build_modules(monitor: MonitoringService | None = None, *, development: bool = False,
                  default_timeout: float = 30.0) -> list[GraphModule]:
    return [m(monitor, development=development, default_timeout=default_timeout) for m in MODULE_TYPES]


__all__ = [
    "GraphModule", "Operation", "RequestContext", "recipients", "top", "values",
    "MailModule", "CalendarModule", "FilesModule", "PeopleModule", "TodoModule", "ContactsModule",
    "TeamsModule", "GroupsModule", "SearchModule", "QueryModule",
    "MODULE_TYPES", "build_modules", "group_entity_types", "unified_search",
]
