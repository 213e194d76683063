"""Unified Microsoft 365 search over the Graph search API.

Graph rejects requests that mix incompatible entity types, so types are
grouped (messages, SharePoint items, then each standalone type alone) and
each group is sent as its own request. Hits from every response are merged
and ordered by rank.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any, Final

from m365mcp.foundation.errors import validation_error

from .base import Args, GraphModule, Operation, RequestContext, top
from .normalizers import normalize_search_hit

ENTITY_TYPES: Final = ("message", "event", "driveItem", "person")
_MESSAGE_GROUP: Final = frozenset({"message", "chatMessage"})
_SHAREPOINT_GROUP: Final = frozenset({"driveItem", "site", "list", "listItem"})
_MAX_PAGE: Final = 25


def group_entity_types(entity_types: Sequence[str]) -> list[list[str]]:
    """Split entity types into the request groups Graph accepts together."""
    messages = [t for t in entity_types if t in _MESSAGE_GROUP]
    sharepoint = [t for t in entity_types if t in _SHAREPOINT_GROUP]
    standalone = [[t] for t in entity_types if t not in _MESSAGE_GROUP and t not in _SHAREPOINT_GROUP]
    return [g for g in (messages, sharepoint) if g] + standalone


def _entity_type(hit: Mapping[str, Any], fallback: str) -> str:
    odata = (hit.get("resource") or {}).get("@odata.type") or ""
    return odata.removeprefix("#microsoft.graph.") or fallback


async def unified_search(module: GraphModule, args: Args, ctx: RequestContext) -> dict[str, Any]:
    """Run one search request per entity-type group and merge the hits."""
    query = str(args.get("query") or "").strip()
    if not query:
        raise validation_error("search requires a non-empty query", module=module.id, method="search")
    entity_types = list(dict.fromkeys(args.get("entityTypes") or ENTITY_TYPES))
    size = top(args, _MAX_PAGE, _MAX_PAGE)
    try:
        offset = int(args.get("from") or 0)
    except (TypeError, ValueError):
        raise validation_error(f"from must be an integer offset, got {args['from']!r}", module=module.id,
                               method="search", argument="from") from None
    groups = group_entity_types(entity_types)

    async def send(types: list[str]) -> dict[str, Any]:
        request = {"entityTypes": types, "query": {"queryString": query}, "from": offset, "size": size}
        api = module.graph.api("/search/query", ctx.user_id, ctx.session_id).version("beta")
        return await api.post({"requests": [request]}) or {}

    responses = await asyncio.gather(*(send(g) for g in groups))
    results: list[dict[str, Any]] = []
    total = 0
    more = False
    alteration: dict[str, Any] | None = None
    for types, response in zip(groups, responses):
        for answer in response.get("value") or []:
            if altered := answer.get("queryAlterationResponse"):
                alteration = {
                    "originalQuery": altered.get("originalQueryString"),
                    "alteredQuery": (altered.get("queryAlteration") or {}).get("alteredQueryString"),
                    "alterationType": altered.get("queryAlterationType"),
                }
            for container in answer.get("hitsContainers") or []:
                total += container.get("total") or 0
                more = more or bool(container.get("moreResultsAvailable"))
                results.extend(normalize_search_hit(h, _entity_type(h, types[0])) for h in container.get("hits") or [])
    results.sort(key=lambda r: r.get("rank") or 999)
    return {
        "query": query,
        "entityTypes": entity_types,
        "results": results,
        "total": total,
        "moreResultsAvailable": more,
        "spellingAlteration": alteration,
    }


class SearchModule(GraphModule):
    id = "search"
    display_name = "Microsoft Search"
    operations = {"search": Operation(required=("query",), handler=unified_search)}
