"""Natural-language questions answered with unified search across every entity type."""

from __future__ import annotations

from collections import Counter
from typing import Any

from .base import Args, GraphModule, Operation, RequestContext
from .search import ENTITY_TYPES, unified_search


async def _process_query(module: GraphModule, args: Args, ctx: RequestContext) -> dict[str, Any]:
    found = await unified_search(module, {"query": args["query"], "entityTypes": list(ENTITY_TYPES)}, ctx)
    counts = Counter(r["entityType"] for r in found["results"])
    return {
        **found,
        "context": args.get("context"),
        "countsByEntityType": {t: counts.get(t, 0) for t in ENTITY_TYPES},
    }


class QueryModule(GraphModule):
    id = "query"
    display_name = "Query"
    operations = {"processQuery": Operation(required=("query",), handler=_process_query)}
