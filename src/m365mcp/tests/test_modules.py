"""Tests for the module method contract and the Graph-backed domain modules."""

import asyncio
import base64
from datetime import date
from typing import Any

import pytest

from m365mcp.foundation.errors import ErrorCategory, McpException
from m365mcp.graph import UpstreamError
from m365mcp.modules import (
    CalendarModule,
    FilesModule,
    GraphModule,
    MailModule,
    PeopleModule,
    QueryModule,
    RequestContext,
    SearchModule,
    TeamsModule,
    TodoModule,
    group_entity_types,
    recipients,
    top,
)
from m365mcp.modules.calendar import timeframe_window
from m365mcp.observability import MonitoringService
from m365mcp.tools import RequestPlan

CTX = RequestContext(user_id="u1", session_id="s1")


class StalledGraph:
    """Graph client whose requests never complete."""

    def api(self, path: str, user_id: str | None = None, session_id: str | None = None) -> "StalledGraph":
        return self

    def query(self, params: dict[str, Any]) -> "StalledGraph":
        return self

    def version(self, version: str) -> "StalledGraph":
        return self

    async def get(self) -> Any:
        await asyncio.sleep(10)


@pytest.fixture
def make(graph, monitor: MonitoringService):
    """Build and initialize a module against the recording graph."""
    def build(cls: type[GraphModule], **kwargs: Any) -> GraphModule:
        module = cls(monitor, **kwargs)
        module.init({"graph": graph})
        return module
    return build


# ─────────────────────────────────────────────────────────────────────────────
# Contract
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_missing_argument_is_validation(make, graph, monitor: MonitoringService) -> None:
    """Validation happens before any upstream call and names module and method."""
    mail = make(MailModule)
    with pytest.raises(McpException) as exc_info:
        await mail.invoke("getEmailDetails", {}, CTX)
    error = exc_info.value.error
    assert error.category == ErrorCategory.VALIDATION
    assert error.context == {"module": "mail", "method": "getEmailDetails", "missing": ["id"]}
    assert graph.calls == []
    assert monitor.get_latest_logs(1)[0]["level"] == "error"


@pytest.mark.asyncio
async def test_upstream_failure_wrapped_in_module_category(make, graph) -> None:
    graph.respond("GET", "/me/mailFolders/inbox/messages", UpstreamError(503, "Service Unavailable"))
    mail = make(MailModule)
    with pytest.raises(McpException) as exc_info:
        await mail.invoke("getInbox", {}, CTX)
    error = exc_info.value.error
    assert error.category == "mail"
    assert error.context["statusCode"] == 503
    assert error.context["errorType"] == "UpstreamError"
    assert error.user_id == "u1"
    assert error.message.startswith("Failed to getInbox")


@pytest.mark.asyncio
async def test_timeout(monitor: MonitoringService) -> None:
    mail = MailModule(monitor)
    mail.init({"graph": StalledGraph()})
    with pytest.raises(McpException) as exc_info:
        await mail.invoke("getInbox", {}, RequestContext(timeout=0.01))
    assert exc_info.value.category == "mail"
    assert "timed out" in exc_info.value.error.message


@pytest.mark.asyncio
async def test_unknown_method(make) -> None:
    with pytest.raises(McpException) as exc_info:
        await make(PeopleModule).invoke("teleport", {})
    assert exc_info.value.category == "people"


@pytest.mark.asyncio
async def test_uninitialized_module(monitor: MonitoringService) -> None:
    with pytest.raises(McpException) as exc_info:
        await PeopleModule(monitor).invoke("getRelevantPeople", {})
    assert exc_info.value.category == ErrorCategory.MODULE_INIT


def test_init_requires_graph(monitor: MonitoringService) -> None:
    with pytest.raises(McpException) as exc_info:
        MailModule(monitor).init({})
    assert exc_info.value.error.context["missing"] == ["graph"]


@pytest.mark.asyncio
async def test_success_logged_with_timing(make, graph, monitor: MonitoringService) -> None:
    graph.respond("GET", "/me/people", {"value": [{"id": "p1", "displayName": "Ana"}]})
    await make(PeopleModule).invoke("getRelevantPeople", {"_userId": "u9"}, RequestContext(session_id="s1"))
    entry = next(e for e in monitor.get_latest_logs() if e.get("level") == "info")
    assert entry["level"] == "info"
    assert entry["category"] == "people"
    assert entry["context"]["method"] == "getRelevantPeople"
    assert entry["context"]["count"] == 1
    assert "executionTimeMs" in entry["context"]
    assert entry["userId"] == "u9"
    assert graph.last.user_id == "u9"


@pytest.mark.asyncio
async def test_development_debug_entry(make, graph, monitor: MonitoringService) -> None:
    graph.respond("GET", "/me/people", {"value": []})
    await make(PeopleModule, development=True).invoke("getRelevantPeople", {"limit": 3})
    levels = [e["level"] for e in monitor.get_latest_logs() if "level" in e]
    assert levels == ["info", "debug"]


def test_helpers() -> None:
    assert top({"limit": "7"}, 10) == 7
    assert top({"top": 5000}, 10, 100) == 100
    assert top({"limit": "x"}, 10) == 10
    assert recipients("a@x, b@y", "required") == [
        {"emailAddress": {"address": "a@x"}, "type": "required"},
        {"emailAddress": {"address": "b@y"}, "type": "required"},
    ]
    assert recipients([{"address": "a@x", "name": "A"}]) == [{"emailAddress": {"address": "a@x", "name": "A"}}]


# ─────────────────────────────────────────────────────────────────────────────
# Mail
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_send_email_body(make, graph) -> None:
    result = await make(MailModule).invoke("sendEmail", {"to": ["x@y"], "subject": "s", "body": "b"}, CTX)
    assert result == {"sent": True, "to": ["x@y"], "subject": "s"}
    call = graph.last
    assert (call.method, call.path) == ("POST", "/me/sendMail")
    assert call.body == {
        "message": {
            "subject": "s",
            "body": {"contentType": "Text", "content": "b"},
            "toRecipients": [{"emailAddress": {"address": "x@y"}}],
        },
        "saveToSentItems": True,
    }


@pytest.mark.asyncio
async def test_inbox_normalized(make, graph) -> None:
    graph.respond("GET", "/me/mailFolders/inbox/messages", {"value": [{
        "id": "m1", "subject": "Hi", "isRead": False, "flag": {"flagStatus": "flagged"},
        "from": {"emailAddress": {"name": "Bob", "address": "bob@x"}},
    }]})
    result = await make(MailModule).invoke("getInbox", {"limit": 5}, CTX)
    assert result[0]["from"] == {"name": "Bob", "email": "bob@x"}
    assert result[0]["flagged"] is True
    assert graph.last.params["$top"] == 5
    assert graph.last.params["$orderby"] == "receivedDateTime desc"
    assert (graph.last.user_id, graph.last.session_id) == ("u1", "s1")


@pytest.mark.asyncio
async def test_search_emails_quotes_phrase(make, graph) -> None:
    await make(MailModule).invoke("searchEmails", {"q": "quarterly report"}, CTX)
    assert graph.last.params["$search"] == '"quarterly report"'
    assert "$orderby" not in graph.last.params


@pytest.mark.asyncio
async def test_mark_as_read_patch(make, graph) -> None:
    result = await make(MailModule).invoke("markAsRead", {"id": "m/1", "isRead": False}, CTX)
    assert graph.last.path == "/me/messages/m%2F1"
    assert graph.last.body == {"isRead": False}
    assert result == {"id": "m/1", "isRead": False}


# ─────────────────────────────────────────────────────────────────────────────
# Calendar
# ─────────────────────────────────────────────────────────────────────────────


def test_timeframe_windows() -> None:
    wednesday = date(2025, 5, 7)
    start, end = timeframe_window("this_week", wednesday)
    assert (start.isoformat(), end.isoformat()) == ("2025-05-05T00:00:00", "2025-05-12T00:00:00")
    start, end = timeframe_window("next_month", date(2025, 12, 15))
    assert (start.isoformat(), end.isoformat()) == ("2026-01-01T00:00:00", "2026-02-01T00:00:00")


@pytest.mark.asyncio
async def test_get_events_window(make, graph) -> None:
    """A window switches to calendarView; no window lists events."""
    calendar = make(CalendarModule)
    await calendar.invoke("getEvents", {"start": "2025-05-01", "end": "2025-05-02", "subject": "O'Neil"}, CTX)
    assert graph.last.path == "/me/calendarView"
    assert graph.last.params["startDateTime"] == "2025-05-01T00:00:00"
    assert graph.last.params["endDateTime"] == "2025-05-02T23:59:59"
    assert graph.last.params["$filter"] == "contains(subject,'O''Neil')"

    await calendar.invoke("getEvents", {}, CTX)
    assert graph.last.path == "/me/events"
    assert "startDateTime" not in graph.last.params


@pytest.mark.asyncio
async def test_get_events_unknown_timeframe(make) -> None:
    with pytest.raises(McpException) as exc_info:
        await make(CalendarModule).invoke("getEvents", {"timeframe": "someday"}, CTX)
    assert exc_info.value.category == ErrorCategory.VALIDATION


@pytest.mark.asyncio
async def test_create_event_body(make, graph) -> None:
    graph.respond("POST", "/me/events", lambda call: {"id": "e1", "subject": call.body["subject"]})
    result = await make(CalendarModule).invoke("create", {
        "subject": "Sync",
        "start": {"dateTime": "2025-05-02T14:00:00", "timeZone": "UTC"},
        "end": "2025-05-02T15:00:00",
        "attendees": ["a@x"],
        "location": "Room 1",
        "body": "Agenda",
        "isOnlineMeeting": True,
    }, CTX)
    body = graph.last.body
    assert body["end"] == {"dateTime": "2025-05-02T15:00:00", "timeZone": "UTC"}
    assert body["attendees"] == [{"emailAddress": {"address": "a@x"}, "type": "required"}]
    assert body["location"] == {"displayName": "Room 1"}
    assert body["body"] == {"contentType": "text", "content": "Agenda"}
    assert body["onlineMeetingProvider"] == "teamsForBusiness"
    assert result["id"] == "e1"
    assert result["type"] == "event"


@pytest.mark.asyncio
async def test_respond_to_invitation(make, graph) -> None:
    result = await make(CalendarModule).invoke("acceptEvent", {"id": "e1", "comment": "See you"}, CTX)
    assert (graph.last.method, graph.last.path) == ("POST", "/me/events/e1/accept")
    assert graph.last.body == {"comment": "See you", "sendResponse": True}
    assert result == {"id": "e1", "action": "accept", "success": True}


@pytest.mark.asyncio
async def test_availability_one_request_per_slot(make, graph) -> None:
    graph.respond("POST", "/me/calendar/getSchedule", {"value": [{"scheduleId": "u@x", "availabilityView": "02"}]})
    slots = [
        {"start": {"dateTime": "2025-05-02T09:00:00", "timeZone": "UTC"},
         "end": {"dateTime": "2025-05-02T10:00:00", "timeZone": "UTC"}},
        {"start": {"dateTime": "2025-05-03T09:00:00", "timeZone": "UTC"},
         "end": {"dateTime": "2025-05-03T10:00:00", "timeZone": "UTC"}},
    ]
    result = await make(CalendarModule).invoke("getAvailability", {"users": ["u@x"], "timeSlots": slots}, CTX)
    assert len(graph.calls) == 2
    assert graph.calls[0].body["schedules"] == ["u@x"]
    assert [r["start"]["dateTime"] for r in result] == ["2025-05-02T09:00:00", "2025-05-03T09:00:00"]


@pytest.mark.asyncio
async def test_find_meeting_times(make, graph) -> None:
    graph.respond("POST", "/me/findMeetingTimes", {"meetingTimeSuggestions": [], "emptySuggestionsReason": "Unknown"})
    result = await make(CalendarModule).invoke("findMeetingTimes", {"attendees": ["a@x"], "meetingDuration": 45}, CTX)
    assert graph.last.body["meetingDuration"] == "PT45M"
    assert result == {"suggestions": [], "emptySuggestionsReason": "Unknown"}


@pytest.mark.asyncio
async def test_find_meeting_times_sends_zero_percentage(make, graph) -> None:
    await make(CalendarModule).invoke("findMeetingTimes", {"attendees": ["a@x"], "minimumAttendeePercentage": 0}, CTX)
    assert graph.last.body["minimumAttendeePercentage"] == 0
    assert graph.last.body["maxCandidates"] == 10


@pytest.mark.asyncio
async def test_placed_path_values_fill_upstream_path(make, graph) -> None:
    """Path placeholders take the placement's values over raw arguments."""
    ctx = RequestContext(user_id="u1", plan=RequestPlan("GET", "/api/v1/mail/messages/m%2F1", {"id": "m/1"}))
    await make(MailModule).invoke("getEmailDetails", {"id": "stale"}, ctx)
    assert graph.last.path == "/me/messages/m%2F1"


# ─────────────────────────────────────────────────────────────────────────────
# Files, people, tasks, Teams
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_download_binary_is_base64(make, graph) -> None:
    graph.respond("GET", "/me/drive/items/f1/content", b"\x00\x01binary")
    result = await make(FilesModule).invoke("downloadFile", {"id": "f1"}, CTX)
    assert result == {"id": "f1", "encoding": "base64", "content": base64.b64encode(b"\x00\x01binary").decode()}


@pytest.mark.asyncio
async def test_upload_and_search_paths(make, graph) -> None:
    files = make(FilesModule)
    await files.invoke("uploadFile", {"name": "Q1 report.txt", "content": "hello", "parentId": "dir1"}, CTX)
    assert (graph.last.method, graph.last.path) == ("PUT", "/me/drive/items/dir1:/Q1%20report.txt:/content")
    assert graph.last.body == "hello"
    await files.invoke("searchFiles", {"q": "it's"}, CTX)
    assert graph.last.path == "/me/drive/root/search(q='it''s')"


@pytest.mark.asyncio
async def test_find_people(make, graph) -> None:
    graph.respond("GET", "/me/people", {"value": [
        {"id": "p1", "displayName": "Ana", "scoredEmailAddresses": [{"address": "ana@x", "relevanceScore": 9}]},
    ]})
    result = await make(PeopleModule).invoke("find", {"name": "Ana"}, CTX)
    assert graph.last.params["$search"] == '"Ana"'
    assert result[0]["emails"] == ["ana@x"]
    with pytest.raises(McpException):
        await make(PeopleModule).invoke("find", {}, CTX)


@pytest.mark.asyncio
async def test_create_task_with_reminder(make, graph) -> None:
    graph.respond("POST", "/me/todo/lists/L1/tasks", lambda call: {"id": "t1", **call.body})
    result = await make(TodoModule).invoke("createTask", {
        "listId": "L1", "title": "Pay rent", "body": "by card", "reminderDateTime": "2025-05-01T09:00:00",
    }, CTX)
    assert graph.last.body == {
        "title": "Pay rent",
        "body": {"content": "by card", "contentType": "text"},
        "reminderDateTime": {"dateTime": "2025-05-01T09:00:00", "timeZone": "UTC"},
        "isReminderOn": True,
    }
    assert result["isReminderOn"] is True


@pytest.mark.asyncio
async def test_complete_task(make, graph) -> None:
    graph.respond("PATCH", "/me/todo/lists/L1/tasks/t1", {"id": "t1", "status": "completed"})
    result = await make(TodoModule).invoke("completeTask", {"listId": "L1", "taskId": "t1"}, CTX)
    assert graph.last.body == {"status": "completed"}
    assert result["status"] == "completed"


@pytest.mark.asyncio
async def test_create_chat_members(make, graph) -> None:
    await make(TeamsModule).invoke("createChat", {"members": ["me@x", "you@x"]}, CTX)
    body = graph.last.body
    assert body["chatType"] == "oneOnOne"
    assert [m["roles"] for m in body["members"]] == [["owner"], ["owner"]]
    assert body["members"][0]["user@odata.bind"].endswith("('me@x')")


@pytest.mark.asyncio
async def test_online_meetings_require_filter(make) -> None:
    with pytest.raises(McpException) as exc_info:
        await make(TeamsModule).invoke("listOnlineMeetings", {}, CTX)
    assert exc_info.value.error.context["missing"] == ["filter or joinUrl"]


# ─────────────────────────────────────────────────────────────────────────────
# Search and query
# ─────────────────────────────────────────────────────────────────────────────


def test_entity_type_grouping() -> None:
    """Messages and SharePoint types are batched; everything else goes alone."""
    groups = group_entity_types(["message", "driveItem", "event", "chatMessage", "site", "person"])
    assert groups == [["message", "chatMessage"], ["driveItem", "site"], ["event"], ["person"]]


def _search_response(call) -> dict[str, Any]:
    types = call.body["requests"][0]["entityTypes"]
    hits = {
        "message": [{"hitId": "m1", "rank": 2, "resource": {"@odata.type": "#microsoft.graph.message",
                                                             "id": "m1", "subject": "Budget"}}],
        "event": [{"hitId": "e1", "rank": 1, "resource": {"@odata.type": "#microsoft.graph.event",
                                                           "id": "e1", "subject": "Budget review"}}],
        "driveItem": [{"hitId": "d1", "resource": {"@odata.type": "#microsoft.graph.driveItem", "name": "b.xlsx"}}],
        "person": [],
    }[types[0]]
    return {"value": [{"hitsContainers": [{"hits": hits, "total": len(hits), "moreResultsAvailable": False}]}]}


@pytest.mark.asyncio
async def test_unified_search_merges_by_rank(make, graph) -> None:
    graph.respond("POST", "/search/query", _search_response)
    result = await make(SearchModule).invoke("search", {"query": "budget"}, CTX)
    assert len(graph.calls) == 4
    assert all(call.version == "beta" for call in graph.calls)
    assert [r["id"] for r in result["results"]] == ["e1", "m1", "d1"]
    assert [r["entityType"] for r in result["results"]] == ["event", "message", "driveItem"]
    assert result["total"] == 3
    assert result["moreResultsAvailable"] is False
    assert graph.calls[0].body["requests"][0]["size"] == 25


@pytest.mark.asyncio
async def test_search_requires_query(make) -> None:
    with pytest.raises(McpException) as exc_info:
        await make(SearchModule).invoke("search", {"query": "   "}, CTX)
    assert exc_info.value.category == ErrorCategory.VALIDATION


@pytest.mark.asyncio
async def test_search_offset_must_be_integer(make, graph) -> None:
    """A non-numeric offset is a validation error, raised before any request."""
    with pytest.raises(McpException) as exc_info:
        await make(SearchModule).invoke("search", {"query": "budget", "from": "page two"}, CTX)
    assert exc_info.value.category == ErrorCategory.VALIDATION
    assert exc_info.value.error.context["argument"] == "from"
    assert graph.calls == []


@pytest.mark.asyncio
async def test_process_query_counts(make, graph) -> None:
    graph.respond("POST", "/search/query", _search_response)
    result = await make(QueryModule).invoke("processQuery", {"query": "budget", "context": {"turn": 2}}, CTX)
    assert result["countsByEntityType"] == {"message": 1, "event": 1, "driveItem": 1, "person": 0}
    assert result["context"] == {"turn": 2}
