"""Microsoft 365 and security groups."""

from __future__ import annotations

from typing import Final

from .base import GraphModule, Operation, compact, top
from .normalizers import normalize_group, normalize_member

_GROUP_FIELDS: Final = (
    "id,displayName,description,mail,mailEnabled,mailNickname,securityEnabled,groupTypes,visibility,createdDateTime"
)


class GroupsModule(GraphModule):
    id = "groups"
    display_name = "Groups"
    operations = {
        "listGroups": Operation(
            "GET", "/groups",
            query=lambda a: compact(**{"$top": top(a, 50), "$select": _GROUP_FIELDS, "$filter": a.get("filter")}),
            normalize=normalize_group, collection=True,
        ),
        "getGroup": Operation("GET", "/groups/{id}", query=lambda a: {"$select": _GROUP_FIELDS},
                              normalize=normalize_group),
        "listGroupMembers": Operation("GET", "/groups/{id}/members", query=lambda a: {"$top": top(a, 100)},
                                      normalize=normalize_member, collection=True),
        "listMyGroups": Operation(
            "GET", "/me/memberOf/microsoft.graph.group",
            query=lambda a: {"$top": top(a, 100), "$select": _GROUP_FIELDS},
            normalize=normalize_group, collection=True,
        ),
    }
