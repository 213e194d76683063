"""Per-entity normalizers: collapse Graph response variability into stable shapes.

Every normalizer accepts a raw Graph resource dict (missing keys tolerated)
and returns a plain dict with a fixed key set. Absent scalars become None,
absent collections become empty lists.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Final
from urllib.parse import quote

Raw = dict[str, Any]
Normalizer = Callable[[Raw], dict[str, Any]]

OUTLOOK_BASE: Final = "https://outlook.office.com"


def _get(obj: Any, *path: str) -> Any:
    """Nested lookup tolerant of missing or non-dict levels."""
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _address(email: Any) -> dict[str, Any] | None:
    """Graph `{emailAddress: {name, address}}` to `{name, email}`."""
    inner = _get(email, "emailAddress")
    if not isinstance(inner, dict):
        return None
    return {"name": inner.get("name"), "email": inner.get("address")}


def _addresses(items: Any) -> list[dict[str, Any]]:
    return [a for a in map(_address, items or []) if a is not None]


def _date_time(value: Any) -> dict[str, Any] | None:
    if not isinstance(value, dict):
        return None
    return {"dateTime": value.get("dateTime"), "timeZone": value.get("timeZone")}


def outlook_item_url(item_id: str | None) -> str | None:
    return f"{OUTLOOK_BASE}/mail/deeplink/read/{quote(item_id, safe='')}" if item_id else None


def calendar_event_url(item_id: str | None) -> str | None:
    return f"{OUTLOOK_BASE}/calendar/item/{quote(item_id, safe='')}" if item_id else None


# ─────────────────────────────────────────────────────────────────────────────
# Mail, calendar, files, people
# ─────────────────────────────────────────────────────────────────────────────


def normalize_email(m: Raw) -> dict[str, Any]:
    return {
        "id": m.get("id"),
        "type": "email",
        "subject": m.get("subject"),
        "from": _address(m.get("from")),
        "to": _addresses(m.get("toRecipients")),
        "cc": _addresses(m.get("ccRecipients")),
        "received": m.get("receivedDateTime"),
        "preview": (m.get("bodyPreview") or "")[:200] or None,
        "isRead": bool(m.get("isRead", False)),
        "importance": m.get("importance") or "normal",
        "hasAttachments": bool(m.get("hasAttachments", False)),
        "flagged": _get(m, "flag", "flagStatus") == "flagged",
        "conversationId": m.get("conversationId"),
        "webLink": m.get("webLink") or outlook_item_url(m.get("id")),
    }


def normalize_email_detail(m: Raw) -> dict[str, Any]:
    return {
        **normalize_email(m),
        "bcc": _addresses(m.get("bccRecipients")),
        "body": {"contentType": _get(m, "body", "contentType"), "content": _get(m, "body", "content")},
        "sent": m.get("sentDateTime"),
        "categories": m.get("categories") or [],
    }


def normalize_attachment(a: Raw) -> dict[str, Any]:
    return {
        "id": a.get("id"),
        "name": a.get("name"),
        "contentType": a.get("contentType"),
        "size": a.get("size"),
        "isInline": bool(a.get("isInline", False)),
        "lastModifiedDateTime": a.get("lastModifiedDateTime"),
    }


def normalize_event(e: Raw) -> dict[str, Any]:
    return {
        "id": e.get("id"),
        "type": "event",
        "subject": e.get("subject"),
        "start": _date_time(e.get("start")),
        "end": _date_time(e.get("end")),
        "location": _get(e, "location", "displayName"),
        "organizer": _address(e.get("organizer")),
        "attendees": [
            {**(_address(a) or {}), "type": a.get("type"), "response": _get(a, "status", "response")}
            for a in e.get("attendees") or []
        ],
        "isAllDay": bool(e.get("isAllDay", False)),
        "isCancelled": bool(e.get("isCancelled", False)),
        "isOnlineMeeting": bool(e.get("isOnlineMeeting", False)),
        "onlineMeetingUrl": _get(e, "onlineMeeting", "joinUrl") or e.get("onlineMeetingUrl"),
        "preview": e.get("bodyPreview"),
        "webLink": e.get("webLink") or calendar_event_url(e.get("id")),
    }


def normalize_schedule(s: Raw) -> dict[str, Any]:
    return {
        "email": s.get("scheduleId"),
        "availabilityView": s.get("availabilityView"),
        "items": [
            {"status": i.get("status"), "start": _date_time(i.get("start")), "end": _date_time(i.get("end")),
             "subject": i.get("subject"), "location": i.get("location")}
            for i in s.get("scheduleItems") or []
        ],
        "error": _get(s, "error", "message"),
    }


def normalize_meeting_suggestion(s: Raw) -> dict[str, Any]:
    slot = s.get("meetingTimeSlot") or {}
    return {
        "start": _date_time(slot.get("start")),
        "end": _date_time(slot.get("end")),
        "confidence": s.get("confidence"),
        "organizerAvailability": s.get("organizerAvailability"),
        "suggestionReason": s.get("suggestionReason"),
        "attendeeAvailability": [
            {"email": _get(a, "attendee", "emailAddress", "address"), "availability": a.get("availability")}
            for a in s.get("attendeeAvailability") or []
        ],
    }


def normalize_file(f: Raw) -> dict[str, Any]:
    return {
        "id": f.get("id"),
        "type": "folder" if "folder" in f else "file",
        "name": f.get("name"),
        "size": f.get("size"),
        "mimeType": _get(f, "file", "mimeType"),
        "childCount": _get(f, "folder", "childCount"),
        "webUrl": f.get("webUrl"),
        "createdDateTime": f.get("createdDateTime"),
        "lastModifiedDateTime": f.get("lastModifiedDateTime"),
        "createdBy": _get(f, "createdBy", "user", "displayName"),
        "lastModifiedBy": _get(f, "lastModifiedBy", "user", "displayName"),
        "parentId": _get(f, "parentReference", "id"),
        "parentPath": _get(f, "parentReference", "path"),
    }


def normalize_permission(p: Raw) -> dict[str, Any]:
    return {
        "id": p.get("id"),
        "roles": p.get("roles") or [],
        "linkType": _get(p, "link", "type"),
        "linkScope": _get(p, "link", "scope"),
        "webUrl": _get(p, "link", "webUrl"),
        "grantedTo": _get(p, "grantedToV2", "user", "displayName") or _get(p, "grantedTo", "user", "displayName"),
    }


def normalize_person(p: Raw) -> dict[str, Any]:
    emails = p.get("scoredEmailAddresses") or p.get("emailAddresses") or []
    return {
        "id": p.get("id"),
        "type": "person",
        "displayName": p.get("displayName"),
        "givenName": p.get("givenName"),
        "surname": p.get("surname"),
        "emails": [e.get("address") for e in emails if isinstance(e, dict) and e.get("address")],
        "jobTitle": p.get("jobTitle"),
        "department": p.get("department"),
        "companyName": p.get("companyName"),
        "officeLocation": p.get("officeLocation"),
        "phones": [ph.get("number") for ph in p.get("phones") or [] if isinstance(ph, dict)],
        "relevanceScore": _get(emails[0], "relevanceScore") if emails else None,
        "userPrincipalName": p.get("userPrincipalName"),
    }


# ─────────────────────────────────────────────────────────────────────────────
# To Do, contacts, groups
# ─────────────────────────────────────────────────────────────────────────────


def normalize_task_list(t: Raw) -> dict[str, Any]:
    return {
        "id": t.get("id"),
        "displayName": t.get("displayName"),
        "isOwner": t.get("isOwner"),
        "isShared": t.get("isShared"),
        "wellknownListName": t.get("wellknownListName") or "none",
    }


def normalize_task(t: Raw) -> dict[str, Any]:
    body = t.get("body")
    return {
        "id": t.get("id"),
        "title": t.get("title"),
        "body": {"content": body.get("content"), "contentType": body.get("contentType")} if body else None,
        "importance": t.get("importance") or "normal",
        "status": t.get("status") or "notStarted",
        "isReminderOn": bool(t.get("isReminderOn", False)),
        "createdDateTime": t.get("createdDateTime"),
        "lastModifiedDateTime": t.get("lastModifiedDateTime"),
        "completedDateTime": _get(t, "completedDateTime", "dateTime"),
        "dueDateTime": _date_time(t.get("dueDateTime")),
        "reminderDateTime": _date_time(t.get("reminderDateTime")),
        "categories": t.get("categories") or [],
        "linkedResources": t.get("linkedResources") or [],
    }


def _postal(a: Any) -> dict[str, Any] | None:
    if not isinstance(a, dict) or not a:
        return None
    return {k: a.get(k) for k in ("street", "city", "state", "postalCode", "countryOrRegion")}


def normalize_contact(c: Raw) -> dict[str, Any]:
    return {
        "id": c.get("id"),
        "displayName": c.get("displayName"),
        "givenName": c.get("givenName"),
        "surname": c.get("surname"),
        "emailAddresses": [{"address": e.get("address"), "name": e.get("name")}
                           for e in c.get("emailAddresses") or [] if isinstance(e, dict)],
        "businessPhones": c.get("businessPhones") or [],
        "mobilePhone": c.get("mobilePhone"),
        "homePhones": c.get("homePhones") or [],
        "jobTitle": c.get("jobTitle"),
        "companyName": c.get("companyName"),
        "department": c.get("department"),
        "officeLocation": c.get("officeLocation"),
        "businessAddress": _postal(c.get("businessAddress")),
        "homeAddress": _postal(c.get("homeAddress")),
        "birthday": c.get("birthday"),
        "personalNotes": c.get("personalNotes"),
        "categories": c.get("categories") or [],
        "createdDateTime": c.get("createdDateTime"),
        "lastModifiedDateTime": c.get("lastModifiedDateTime"),
    }


def normalize_group(g: Raw) -> dict[str, Any]:
    return {
        "id": g.get("id"),
        "displayName": g.get("displayName"),
        "description": g.get("description"),
        "mail": g.get("mail"),
        "mailEnabled": g.get("mailEnabled"),
        "mailNickname": g.get("mailNickname"),
        "securityEnabled": g.get("securityEnabled"),
        "groupTypes": g.get("groupTypes") or [],
        "visibility": g.get("visibility"),
        "createdDateTime": g.get("createdDateTime"),
    }


def normalize_member(m: Raw) -> dict[str, Any]:
    return {
        "id": m.get("id"),
        "displayName": m.get("displayName"),
        "mail": m.get("mail"),
        "userPrincipalName": m.get("userPrincipalName"),
        "jobTitle": m.get("jobTitle"),
        "department": m.get("department"),
        "officeLocation": m.get("officeLocation"),
        "@odata.type": m.get("@odata.type"),
    }


# ─────────────────────────────────────────────────────────────────────────────
# Teams
# ─────────────────────────────────────────────────────────────────────────────


def normalize_chat(c: Raw) -> dict[str, Any]:
    return {
        "id": c.get("id"),
        "type": "chat",
        "chatType": c.get("chatType"),
        "topic": c.get("topic"),
        "createdDateTime": c.get("createdDateTime"),
        "lastUpdatedDateTime": c.get("lastUpdatedDateTime"),
        "webUrl": c.get("webUrl"),
        "members": [{"id": m.get("id"), "displayName": m.get("displayName"), "email": m.get("email")}
                    for m in c.get("members") or []],
    }


def normalize_teams_message(m: Raw) -> dict[str, Any]:
    user = _get(m, "from", "user")
    return {
        "id": m.get("id"),
        "type": "teamsMessage",
        "messageType": m.get("messageType"),
        "createdDateTime": m.get("createdDateTime"),
        "lastModifiedDateTime": m.get("lastModifiedDateTime"),
        "subject": m.get("subject"),
        "body": {"contentType": _get(m, "body", "contentType"), "content": _get(m, "body", "content")},
        "from": {"id": user.get("id"), "displayName": user.get("displayName"), "email": user.get("email")}
        if isinstance(user, dict) else None,
        "importance": m.get("importance"),
        "webUrl": m.get("webUrl"),
        "attachments": [{"id": a.get("id"), "contentType": a.get("contentType"), "name": a.get("name"),
                         "contentUrl": a.get("contentUrl")} for a in m.get("attachments") or []],
        "mentions": [{"id": x.get("id"), "mentionText": x.get("mentionText"),
                      "mentioned": _get(x, "mentioned", "user", "displayName")} for x in m.get("mentions") or []],
        "reactions": [{"reactionType": r.get("reactionType"), "user": _get(r, "user", "user", "displayName")}
                      for r in m.get("reactions") or []],
    }


def normalize_team(t: Raw) -> dict[str, Any]:
    return {
        "id": t.get("id"),
        "type": "team",
        "displayName": t.get("displayName"),
        "description": t.get("description"),
        "visibility": t.get("visibility"),
        "webUrl": t.get("webUrl"),
        "createdDateTime": t.get("createdDateTime"),
    }


def normalize_channel(c: Raw) -> dict[str, Any]:
    return {
        "id": c.get("id"),
        "type": "channel",
        "displayName": c.get("displayName"),
        "description": c.get("description"),
        "membershipType": c.get("membershipType"),
        "webUrl": c.get("webUrl"),
        "email": c.get("email"),
    }


def normalize_online_meeting(m: Raw) -> dict[str, Any]:
    chat = m.get("chatInfo")
    return {
        "id": m.get("id"),
        "type": "onlineMeeting",
        "subject": m.get("subject"),
        "startDateTime": m.get("startDateTime"),
        "endDateTime": m.get("endDateTime"),
        "joinUrl": m.get("joinUrl") or m.get("joinWebUrl"),
        "joinInformation": _get(m, "joinInformation", "content"),
        "videoTeleconferenceId": m.get("videoTeleconferenceId"),
        "participants": {
            "organizer": _get(m, "participants", "organizer", "upn"),
            "attendees": [a.get("upn") for a in _get(m, "participants", "attendees") or []],
        },
        "lobbyBypassSettings": _get(m, "lobbyBypassSettings", "scope"),
        "chatInfo": {"threadId": chat.get("threadId"), "messageId": chat.get("messageId")} if chat else None,
    }


# ─────────────────────────────────────────────────────────────────────────────
# Unified search
# ─────────────────────────────────────────────────────────────────────────────


def normalize_search_hit(hit: Raw, entity_type: str) -> dict[str, Any]:
    resource: Raw = hit.get("resource") or {}
    base = {
        "id": resource.get("id") or hit.get("hitId"),
        "entityType": entity_type,
        "rank": hit.get("rank"),
        "summary": hit.get("summary"),
    }
    match entity_type:
        case "message":
            return {
                **base,
                "subject": resource.get("subject"),
                "from": _address(resource.get("from")),
                "receivedDateTime": resource.get("receivedDateTime"),
                "bodyPreview": (resource.get("bodyPreview") or "")[:200] or None,
                "hasAttachments": resource.get("hasAttachments"),
                "importance": resource.get("importance"),
                "webLink": resource.get("webLink") or outlook_item_url(resource.get("id")),
            }
        case "event":
            return {
                **base,
                "subject": resource.get("subject"),
                "start": resource.get("start"),
                "end": resource.get("end"),
                "location": _get(resource, "location", "displayName"),
                "organizer": _address(resource.get("organizer")),
                "isAllDay": resource.get("isAllDay"),
                "webLink": resource.get("webLink") or calendar_event_url(resource.get("id")),
            }
        case "driveItem":
            return {
                **base,
                "name": resource.get("name"),
                "webUrl": resource.get("webUrl"),
                "size": resource.get("size"),
                "createdDateTime": resource.get("createdDateTime"),
                "lastModifiedDateTime": resource.get("lastModifiedDateTime"),
                "createdBy": _get(resource, "createdBy", "user", "displayName"),
                "lastModifiedBy": _get(resource, "lastModifiedBy", "user", "displayName"),
                "mimeType": _get(resource, "file", "mimeType"),
                "parentPath": _get(resource, "parentReference", "path"),
            }
        case "person":
            scored = resource.get("scoredEmailAddresses") or []
            return {
                **base,
                "displayName": resource.get("displayName"),
                "givenName": resource.get("givenName"),
                "surname": resource.get("surname"),
                "emailAddresses": resource.get("emailAddresses") or [e.get("address") for e in scored],
                "jobTitle": resource.get("jobTitle"),
                "department": resource.get("department"),
                "officeLocation": resource.get("officeLocation"),
                "companyName": resource.get("companyName"),
            }
        case _:
            return {**base, **resource}
