"""Outlook mail."""

from __future__ import annotations

from typing import Any, Final

from .base import Args, GraphModule, Operation, compact, file_attachment, recipients, search_phrase, top
from .normalizers import normalize_attachment, normalize_email, normalize_email_detail

_LIST_FIELDS: Final = (
    "id,subject,from,toRecipients,ccRecipients,receivedDateTime,bodyPreview,isRead,importance,"
    "hasAttachments,flag,conversationId,webLink"
)


def _inbox_query(args: Args) -> dict[str, Any]:
    return compact(**{
        "$top": top(args, 20, 100),
        "$filter": args.get("filter"),
        "$orderby": None if args.get("filter") else "receivedDateTime desc",
        "$select": _LIST_FIELDS,
    })


def _search_query(args: Args) -> dict[str, Any]:
    # $search cannot be combined with $orderby
    return {"$search": search_phrase(args["q"]), "$top": top(args, 20, 250), "$select": _LIST_FIELDS}


def _message(args: Args) -> dict[str, Any]:
    message: dict[str, Any] = {
        "subject": args.get("subject"),
        "body": {"contentType": args.get("contentType") or "Text", "content": args.get("body") or ""},
        "toRecipients": recipients(args.get("to")),
    }
    if args.get("cc"):
        message["ccRecipients"] = recipients(args["cc"])
    if args.get("bcc"):
        message["bccRecipients"] = recipients(args["bcc"])
    if attachments := args.get("attachments"):
        message["attachments"] = [file_attachment(a) for a in attachments]
    return {"message": message, "saveToSentItems": True}


def _sent(args: Args, _: Any) -> dict[str, Any]:
    return {
        "sent": True,
        "to": [r["emailAddress"]["address"] for r in recipients(args.get("to"))],
        "subject": args.get("subject"),
    }


class MailModule(GraphModule):
    id = "mail"
    display_name = "Outlook Mail"
    operations = {
        "getInbox": Operation(
            "GET", "/me/mailFolders/inbox/messages", query=_inbox_query,
            normalize=normalize_email, collection=True,
        ),
        "sendEmail": Operation("POST", "/me/sendMail", required=("to", "subject"), body=_message, shape=_sent),
        "searchEmails": Operation(
            "GET", "/me/messages", required=("q",), query=_search_query,
            normalize=normalize_email, collection=True,
        ),
        "flagEmail": Operation(
            "PATCH", "/me/messages/{id}",
            body=lambda a: {"flag": {"flagStatus": "flagged" if a.get("flag", True) else "notFlagged"}},
            shape=lambda a, _: {"id": a["id"], "flagged": bool(a.get("flag", True))},
        ),
        "getEmailDetails": Operation("GET", "/me/messages/{id}", normalize=normalize_email_detail),
        "markAsRead": Operation(
            "PATCH", "/me/messages/{id}",
            body=lambda a: {"isRead": bool(a.get("isRead", True))},
            shape=lambda a, _: {"id": a["id"], "isRead": bool(a.get("isRead", True))},
        ),
        "getMailAttachments": Operation(
            "GET", "/me/messages/{id}/attachments", normalize=normalize_attachment, collection=True,
        ),
        "addMailAttachment": Operation(
            "POST", "/me/messages/{id}/attachments", required=("name", "contentBytes"),
            body=file_attachment, normalize=normalize_attachment,
        ),
        "removeMailAttachment": Operation(
            "DELETE", "/me/messages/{id}/attachments/{attachmentId}",
            shape=lambda a, _: {"removed": True, "id": a["id"], "attachmentId": a["attachmentId"]},
        ),
    }
