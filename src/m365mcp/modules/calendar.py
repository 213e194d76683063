"""Outlook calendar: events, invitations, availability and scheduling."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, Final

from m365mcp.foundation.errors import validation_error
from m365mcp.tools.transform import coerce_datetime

from .base import (
    Args,
    GraphModule,
    Operation,
    RequestContext,
    compact,
    file_attachment,
    odata_literal,
    recipients,
    top,
    values,
)
from .normalizers import normalize_attachment, normalize_event, normalize_meeting_suggestion, normalize_schedule

_TIMEFRAMES: Final = ("today", "tomorrow", "this_week", "next_week", "this_month", "next_month")


def timeframe_window(timeframe: str, today: date) -> tuple[datetime, datetime]:
    """[start, end) for a named timeframe, weeks starting on Monday."""
    midnight = datetime.combine(today, time.min)
    match timeframe:
        case "today":
            return midnight, midnight + timedelta(days=1)
        case "tomorrow":
            return midnight + timedelta(days=1), midnight + timedelta(days=2)
        case "this_week" | "next_week":
            monday = midnight - timedelta(days=today.weekday())
            if timeframe == "next_week":
                monday += timedelta(days=7)
            return monday, monday + timedelta(days=7)
        case "this_month" | "next_month":
            first = midnight.replace(day=1)
            if timeframe == "next_month":
                first = (first + timedelta(days=32)).replace(day=1)
            return first, (first + timedelta(days=32)).replace(day=1)
        case _:
            raise ValueError(f"Unknown timeframe '{timeframe}', expected one of {', '.join(_TIMEFRAMES)}")


def _edge(value: str, end: bool) -> str:
    """Date-only bounds widen to the whole day."""
    if len(value) == 10:
        return f"{value}T23:59:59" if end else f"{value}T00:00:00"
    return value


def _window(args: Args, today: date | None = None) -> tuple[str, str] | None:
    today = today or datetime.now(UTC).date()
    if timeframe := args.get("timeframe"):
        try:
            start, end = timeframe_window(timeframe, today)
        except ValueError as e:
            raise validation_error(str(e), module="calendar", method="getEvents", timeframe=timeframe) from None
        return start.isoformat(), end.isoformat()
    start, end = args.get("start"), args.get("end")
    if not start and not end:
        return None
    if not start:
        start = today.isoformat()
    if not end:
        end = (date.fromisoformat(str(start)[:10]) + timedelta(days=30)).isoformat()
    return _edge(str(start), False), _edge(str(end), True)


def _event_filter(args: Args) -> str | None:
    parts = [args["filter"]] if args.get("filter") else []
    if subject := args.get("subject"):
        parts.append(f"contains(subject,{odata_literal(subject)})")
    if organizer := args.get("organizer"):
        parts.append(f"contains(organizer/emailAddress/name,{odata_literal(organizer)})")
    if attendee := args.get("attendee"):
        parts.append(f"attendees/any(a:a/emailAddress/address eq {odata_literal(attendee)})")
    if location := args.get("location"):
        parts.append(f"contains(location/displayName,{odata_literal(location)})")
    return " and ".join(parts) or None


async def _get_events(module: GraphModule, args: Args, ctx: RequestContext) -> list[dict[str, Any]]:
    params = compact(**{
        "$top": top(args, 50, 999),
        "$orderby": args.get("orderby") or "start/dateTime",
        "$filter": _event_filter(args),
        "$select": args.get("select"),
        "$expand": args.get("expand"),
    })
    path = "/me/events"
    if window := _window(args):
        path = "/me/calendarView"
        params.update(startDateTime=window[0], endDateTime=window[1])
    raw = await module.graph.api(path, ctx.user_id, ctx.session_id).query(params).get()
    return [normalize_event(e) for e in values(raw)]


def _event(args: Args) -> dict[str, Any]:
    """Graph event body from whichever fields the caller set."""
    tz = args.get("timeZone") or "UTC"
    event = compact(
        subject=args.get("subject"),
        start=coerce_datetime(args.get("start"), tz),
        end=coerce_datetime(args.get("end"), tz),
        isOnlineMeeting=args.get("isOnlineMeeting"),
        isAllDay=args.get("isAllDay"),
    )
    match args.get("location"):
        case str() as name:
            event["location"] = {"displayName": name}
        case Mapping() as loc:
            event["location"] = dict(loc)
    match args.get("body"):
        case str() as text:
            event["body"] = {"contentType": "text", "content": text}
        case Mapping() as body:
            event["body"] = {"contentType": body.get("contentType") or "text", "content": body.get("content") or ""}
    if args.get("attendees") is not None:
        event["attendees"] = recipients(args["attendees"], "required")
    if args.get("isOnlineMeeting"):
        event["onlineMeetingProvider"] = "teamsForBusiness"
    return event


def _respond(verb: str) -> Operation:
    return Operation(
        "POST", f"/me/events/{{id}}/{verb}",
        body=lambda a: compact(comment=a.get("comment"), sendResponse=True if verb != "cancel" else None),
        shape=lambda a, _: {"id": a["id"], "action": verb, "success": True},
    )


async def _availability(module: GraphModule, args: Args, ctx: RequestContext) -> list[dict[str, Any]]:
    schedules = [r["emailAddress"]["address"] for r in recipients(args["users"])]

    async def one(slot: Mapping[str, Any]) -> dict[str, Any]:
        raw = await module.graph.api("/me/calendar/getSchedule", ctx.user_id, ctx.session_id).post({
            "schedules": schedules,
            "startTime": slot["start"],
            "endTime": slot["end"],
            "availabilityViewInterval": args.get("interval") or 30,
        })
        return {"start": slot["start"], "end": slot["end"], "schedules": [normalize_schedule(s) for s in values(raw)]}

    return list(await asyncio.gather(*(one(s) for s in args["timeSlots"])))


def _iso_duration(value: Any) -> str:
    """Minutes (number or digit string) to ISO 8601; ISO strings pass through."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return f"PT{int(value)}M"
    text = str(value).strip()
    return f"PT{text}M" if text.isdigit() else text


def _or_default(value: Any, default: Any) -> Any:
    return default if value is None else value


def _meeting_times(args: Args) -> dict[str, Any]:
    return compact(
        attendees=recipients(args.get("attendees"), "required"),
        timeConstraint=args.get("timeConstraint"),
        locationConstraint=args.get("locationConstraint"),
        meetingDuration=_iso_duration(_or_default(args.get("meetingDuration"), 60)),
        maxCandidates=_or_default(args.get("maxCandidates"), 10),
        minimumAttendeePercentage=_or_default(args.get("minimumAttendeePercentage"), 100),
        isOrganizerOptional=args.get("isOrganizerOptional"),
    )


def _suggestions(_: Args, raw: Any) -> dict[str, Any]:
    raw = raw if isinstance(raw, Mapping) else {}
    return {
        "suggestions": [normalize_meeting_suggestion(s) for s in raw.get("meetingTimeSuggestions") or []],
        "emptySuggestionsReason": raw.get("emptySuggestionsReason") or None,
    }


class CalendarModule(GraphModule):
    id = "calendar"
    display_name = "Outlook Calendar"
    operations = {
        "getEvents": Operation(handler=_get_events),
        "create": Operation("POST", "/me/events", required=("subject", "start", "end"), body=_event,
                            normalize=normalize_event),
        "update": Operation("PATCH", "/me/events/{id}", body=lambda a: _event({k: v for k, v in a.items() if k != "id"}),
                            normalize=normalize_event),
        "cancelEvent": _respond("cancel"),
        "acceptEvent": _respond("accept"),
        "tentativelyAcceptEvent": _respond("tentativelyAccept"),
        "declineEvent": _respond("decline"),
        "getAvailability": Operation(required=("users", "timeSlots"), handler=_availability),
        "findMeetingTimes": Operation("POST", "/me/findMeetingTimes", required=("attendees",), body=_meeting_times,
                                      shape=_suggestions),
        "addAttachment": Operation("POST", "/me/events/{id}/attachments", required=("name", "contentBytes"),
                                   body=file_attachment, normalize=normalize_attachment),
        "removeAttachment": Operation(
            "DELETE", "/me/events/{eventId}/attachments/{attachmentId}",
            shape=lambda a, _: {"removed": True, "eventId": a["eventId"], "attachmentId": a["attachmentId"]},
        ),
    }
