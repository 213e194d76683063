"""Outlook contacts."""

from __future__ import annotations

from typing import Any, Final

from .base import Args, GraphModule, Operation, compact, search_phrase, top
from .normalizers import normalize_contact

_CONTACT_FIELDS: Final = (
    "displayName", "givenName", "surname", "emailAddresses", "businessPhones", "homePhones", "mobilePhone",
    "jobTitle", "companyName", "department", "officeLocation", "businessAddress", "homeAddress", "birthday",
    "personalNotes", "categories",
)


def _contact(args: Args) -> dict[str, Any]:
    contact = {k: args[k] for k in _CONTACT_FIELDS if args.get(k) is not None}
    if "displayName" not in contact and (args.get("givenName") or args.get("surname")):
        contact["displayName"] = " ".join(p for p in (args.get("givenName"), args.get("surname")) if p)
    return contact


class ContactsModule(GraphModule):
    id = "contacts"
    display_name = "Outlook Contacts"
    operations = {
        "listContacts": Operation(
            "GET", "/me/contacts",
            query=lambda a: compact(**{"$top": top(a, 50), "$filter": a.get("filter"),
                                       "$orderby": a.get("orderby") or "displayName"}),
            normalize=normalize_contact, collection=True,
        ),
        "getContact": Operation("GET", "/me/contacts/{id}", normalize=normalize_contact),
        "createContact": Operation("POST", "/me/contacts", required_any=("displayName", "givenName", "surname"),
                                   body=_contact, normalize=normalize_contact),
        "updateContact": Operation("PATCH", "/me/contacts/{id}", body=_contact, normalize=normalize_contact),
        "deleteContact": Operation("DELETE", "/me/contacts/{id}", shape=lambda a, _: {"deleted": True, "id": a["id"]}),
        "searchContacts": Operation(
            "GET", "/me/contacts", required=("query",),
            query=lambda a: {"$search": search_phrase(a["query"]), "$top": top(a, 25)},
            normalize=normalize_contact, collection=True,
        ),
    }
