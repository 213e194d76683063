"""Reshape agent-supplied arguments into the payload a module expects.

Rules are keyed by (module, method). Every rule works on a copy of the
arguments, so callers' dicts are never mutated. Unknown pairs pass through.
Caller identity is attached as `_userId` / `_deviceId` when known.

Coercions:
    >>> coerce_recipients("a, b , c")
    ['a', 'b', 'c']
    >>> coerce_datetime("2025-05-02T14:00:00", "UTC")
    {'dateTime': '2025-05-02T14:00:00', 'timeZone': 'UTC'}
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Final

from m365mcp.foundation.errors import ErrorCategory, McpException, Severity, create_error

if TYPE_CHECKING:
    from m365mcp.observability import MonitoringService

Args = dict[str, Any]


class _Invalid(ValueError):
    """Structural violation in caller arguments."""


# ─────────────────────────────────────────────────────────────────────────────
# Coercions
# ─────────────────────────────────────────────────────────────────────────────


def coerce_recipients(value: Any) -> list[Any] | None:
    """Comma-separated string or list to a list; None stays None."""
    match value:
        case None:
            return None
        case str():
            return [part.strip() for part in value.split(",") if part.strip()]
        case list() | tuple():
            return list(value)
        case _:
            return [value]


def coerce_datetime(value: Any, time_zone: str | None = None) -> Any:
    """Bare string to `{dateTime, timeZone}`; objects with dateTime pass through."""
    if isinstance(value, str):
        return {"dateTime": value, "timeZone": time_zone or "UTC"}
    if isinstance(value, Mapping) and value.get("dateTime"):
        return dict(value)
    return value


def _slot_edge(value: Any, tz: str, edge: str, index: int) -> dict[str, Any]:
    if isinstance(value, Mapping) and value.get("dateTime"):
        return {"dateTime": value["dateTime"], "timeZone": value.get("timeZone") or tz}
    if isinstance(value, str) and value:
        return {"dateTime": value, "timeZone": tz}
    raise _Invalid(f"Time slot {index} is missing a valid {edge}")


def _slot(slot: Any, tz: str, index: int = 0) -> dict[str, Any]:
    if not isinstance(slot, Mapping):
        raise _Invalid(f"Time slot {index} must be an object with start and end")
    return {"start": _slot_edge(slot.get("start"), tz, "start", index),
            "end": _slot_edge(slot.get("end"), tz, "end", index)}


def _compact(**fields: Any) -> Args:
    return {k: v for k, v in fields.items() if v is not None}


def _given(args: Args, *keys: str, default: Any = None) -> Any:
    """First of `keys` holding a value; zero and empty values count as given."""
    return next((args[k] for k in keys if args.get(k) is not None), default)


def _tz(args: Args, default: str) -> str:
    return args.get("timeZone") or default


# ─────────────────────────────────────────────────────────────────────────────
# Per-operation rules
# ─────────────────────────────────────────────────────────────────────────────


def _mail_send(args: Args, tz: str) -> Args:
    return _compact(
        to=coerce_recipients(args.get("to")),
        subject=args.get("subject"),
        body=args.get("body"),
        cc=coerce_recipients(args.get("cc")),
        bcc=coerce_recipients(args.get("bcc")),
        contentType=args.get("contentType"),
        attachments=args.get("attachments"),
    )


def _query_to_q(args: Args, tz: str) -> Args:
    # KQL passthrough: the value is never rewritten
    if "query" in args and "q" not in args:
        args["q"] = args.pop("query")
    return args


def _calendar_create(args: Args, tz: str) -> Args:
    tz = _tz(args, tz)
    return _compact(
        subject=args.get("subject"),
        start=coerce_datetime(args.get("start"), tz),
        end=coerce_datetime(args.get("end"), tz),
        location=args.get("location"),
        body=args.get("body"),
        attendees=coerce_recipients(args.get("attendees")),
        isOnlineMeeting=args.get("isOnlineMeeting"),
    )


_UPDATABLE: Final = ("id", "subject", "start", "end", "attendees", "location", "body", "isOnlineMeeting", "isAllDay")


def _calendar_update(args: Args, tz: str) -> Args:
    tz = _tz(args, tz)
    patch = {k: args[k] for k in _UPDATABLE if args.get(k) is not None}
    for key in ("start", "end"):
        if key in patch:
            patch[key] = coerce_datetime(patch[key], tz)
    if "attendees" in patch:
        patch["attendees"] = coerce_recipients(patch["attendees"])
    return patch


def _calendar_availability(args: Args, tz: str) -> Args:
    tz = _tz(args, tz)
    users = coerce_recipients(args.get("users")) or coerce_recipients(args.get("attendees")) or []
    slots = args.get("timeSlots")
    if isinstance(slots, list) and slots:
        return {"users": users, "timeSlots": [_slot(s, tz, i) for i, s in enumerate(slots)]}
    start = args.get("start") or args.get("startTime")
    end = args.get("end") or args.get("endTime")
    if not start or not end:
        raise _Invalid("getAvailability requires timeSlots or both start and end")
    return {"users": users, "timeSlots": [_slot({"start": start, "end": end}, tz)]}


def _calendar_meeting_times(args: Args, tz: str) -> Args:
    tz = _tz(args, tz)
    constraints = args.get("timeConstraints") or args.get("timeConstraint")
    slots: list[dict[str, Any]] | None = None
    domain = "work"
    if isinstance(constraints, Mapping):
        domain = constraints.get("activityDomain") or domain
        tz = constraints.get("timeZone") or tz
        listed = constraints.get("timeslots") or constraints.get("timeSlots")
        if isinstance(listed, list) and listed:
            slots = [_slot(s, tz, i) for i, s in enumerate(listed)]
        elif (start := constraints.get("startTime") or constraints.get("start")) is not None:
            slots = [_slot({"start": start, "end": constraints.get("endTime") or constraints.get("end")}, tz)]
    elif (start := args.get("startTime") or args.get("start")) is not None:
        slots = [_slot({"start": start, "end": args.get("endTime") or args.get("end")}, tz)]
    payload: Args = {
        "attendees": coerce_recipients(args.get("attendees")) or [],
        "meetingDuration": _given(args, "meetingDuration", "duration", default=60),
        "maxCandidates": _given(args, "maxCandidates", default=10),
        "minimumAttendeePercentage": _given(args, "minimumAttendeePercentage", default=100),
    }
    if slots is not None:
        payload["timeConstraint"] = {"activityDomain": domain, "timeSlots": slots}
    if args.get("locationConstraint") is not None:
        payload["locationConstraint"] = args["locationConstraint"]
    return payload


def _integer(args: Args, key: str) -> None:
    if args.get(key) is not None:
        try:
            args[key] = int(str(args[key]).strip())
        except ValueError:
            raise _Invalid(f"{key} must be an integer, got {type(args[key]).__name__}") from None


def _people_find(args: Args, tz: str) -> Args:
    args = _q_to_query(args, tz)
    _integer(args, "limit")
    return args


def _q_to_query(args: Args, tz: str) -> Args:
    if not args.get("query") and args.get("q"):
        args["query"] = args.pop("q")
    return args


def _query(args: Args, tz: str) -> Args:
    return _compact(query=args.get("query"), context=args.get("context"))


def _search(args: Args, tz: str) -> Args:
    args = _q_to_query(args, tz)
    if isinstance(args.get("entityTypes"), str):
        args["entityTypes"] = coerce_recipients(args["entityTypes"])
    _integer(args, "from")
    return args


def _todo_task(args: Args, tz: str) -> Args:
    tz = _tz(args, tz)
    for key in ("dueDateTime", "reminderDateTime", "startDateTime"):
        if args.get(key) is not None:
            args[key] = coerce_datetime(args[key], tz)
    if isinstance(args.get("body"), str):
        args["body"] = {"content": args["body"], "contentType": "text"}
    args.pop("timeZone", None)
    return args


def _contact(args: Args, tz: str) -> Args:
    if (emails := args.get("emailAddresses")) is not None:
        args["emailAddresses"] = [
            e if isinstance(e, Mapping) else {"address": e, "name": args.get("displayName") or e}
            for e in coerce_recipients(emails) or []
        ]
    for key in ("businessPhones", "homePhones"):
        if isinstance(args.get(key), str):
            args[key] = coerce_recipients(args[key])
    return args


def _chat_create(args: Args, tz: str) -> Args:
    args["members"] = coerce_recipients(args.get("members")) or []
    return args


def _online_meeting(args: Args, tz: str) -> Args:
    for key in ("startDateTime", "endDateTime"):
        value = args.get(key)
        if isinstance(value, Mapping):
            args[key] = value.get("dateTime")
    if args.get("participants") is not None:
        args["participants"] = coerce_recipients(args["participants"])
    return args


Rule = Callable[[Args, str], Args]

RULES: Final[dict[tuple[str, str], Rule]] = {
    ("mail", "sendemail"): _mail_send,
    ("mail", "sendmail"): _mail_send,
    ("mail", "searchemails"): _query_to_q,
    ("mail", "searchmail"): _query_to_q,
    ("calendar", "create"): _calendar_create,
    ("calendar", "createevent"): _calendar_create,
    ("calendar", "update"): _calendar_update,
    ("calendar", "updateevent"): _calendar_update,
    ("calendar", "getavailability"): _calendar_availability,
    ("calendar", "findmeetingtimes"): _calendar_meeting_times,
    ("people", "find"): _people_find,
    ("people", "findpeople"): _people_find,
    ("query", "processquery"): _query,
    ("search", "search"): _search,
    ("todo", "createtask"): _todo_task,
    ("todo", "updatetask"): _todo_task,
    ("files", "searchfiles"): _query_to_q,
    ("contacts", "searchcontacts"): _q_to_query,
    ("contacts", "createcontact"): _contact,
    ("contacts", "updatecontact"): _contact,
    ("teams", "createchat"): _chat_create,
    ("teams", "createonlinemeeting"): _online_meeting,
}


# ─────────────────────────────────────────────────────────────────────────────
# Transformer
# ─────────────────────────────────────────────────────────────────────────────


class ParameterTransformer:
    """Apply the per-operation rule for (module, method).

    Args:
        monitor: Monitoring service for debug traces, failures and timing
        default_time_zone: Time zone used when callers give bare date-time strings
        development: Emit a debug entry for every transformation

    Raises (from transform):
        McpException: validation on structural violations, system on
            unexpected failures. Both carry the category, method and argument
            keys in context, are logged, then re-raised.
    """

    __slots__ = ("_monitor", "default_time_zone", "development")

    def __init__(self, monitor: MonitoringService | None = None, default_time_zone: str = "UTC",
                 development: bool = False) -> None:
        self._monitor = monitor
        self.default_time_zone = default_time_zone
        self.development = development

    def transform(self, module_id: str, method_name: str, args: Mapping[str, Any] | None,
                  user_id: str | None = None, device_id: str | None = None) -> Args:
        started = time.perf_counter()
        source: Mapping[str, Any] = args or {}
        if self.development and self._monitor:
            self._monitor.debug("Transforming parameters", {
                "moduleName": module_id, "methodName": method_name, "paramKeys": list(source),
            }, "tools", None, user_id, device_id)
        rule = RULES.get((module_id, method_name.lower()))
        try:
            payload = rule(dict(source), self.default_time_zone) if rule else dict(source)
        except _Invalid as e:
            raise self._fail(ErrorCategory.VALIDATION, str(e), module_id, method_name, source, user_id, e) from e
        except McpException:
            raise
        except Exception as e:
            raise self._fail(ErrorCategory.SYSTEM, f"Parameter transformation failed: {e}", module_id, method_name,
                             source, user_id, e) from e
        if user_id:
            payload["_userId"] = user_id
        if device_id:
            payload["_deviceId"] = device_id
        if self._monitor:
            self._monitor.track_metric("tools.transform.duration", (time.perf_counter() - started) * 1000, {
                "moduleName": module_id, "methodName": method_name, "hasTransform": rule is not None,
            }, user_id, device_id)
        return payload

    def _fail(self, category: str, message: str, module_id: str, method_name: str, args: Mapping[str, Any],
              user_id: str | None, exc: Exception) -> McpException:
        error = create_error(category, message, Severity.ERROR, {
            "category": module_id,
            "module": module_id,
            "method": method_name,
            "argKeys": sorted(args),
            "errorType": type(exc).__name__,
        }, user_id=user_id)
        if self._monitor:
            self._monitor.log_error(error, user_id)
        return McpException(error)
