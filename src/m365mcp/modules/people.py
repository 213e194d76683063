"""People relevant to the signed-in user; person resolution before mail and scheduling."""

from __future__ import annotations

from typing import Any

from .base import Args, GraphModule, Operation, compact, search_phrase, top
from .normalizers import normalize_person


def _find_query(args: Args) -> dict[str, Any]:
    return {"$search": search_phrase(args.get("query") or args.get("name")), "$top": top(args, 10, 100)}


def _relevant_query(args: Args) -> dict[str, Any]:
    return compact(**{"$top": top(args, 10, 100), "$filter": args.get("filter"), "$orderby": args.get("orderby")})


class PeopleModule(GraphModule):
    id = "people"
    display_name = "People"
    operations = {
        "find": Operation("GET", "/me/people", required_any=("query", "name"), query=_find_query,
                          normalize=normalize_person, collection=True),
        "getRelevantPeople": Operation("GET", "/me/people", query=_relevant_query, normalize=normalize_person,
                                       collection=True),
        "getPersonById": Operation("GET", "/users/{id}", normalize=normalize_person),
    }
