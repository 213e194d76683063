"""Tests for argument transformation."""

import copy

import pytest
from hypothesis import given
from hypothesis import strategies as st

from m365mcp.foundation.errors import ErrorCategory, McpException
from m365mcp.observability import MonitoringService
from m365mcp.tools import ParameterTransformer, coerce_datetime, coerce_recipients
from m365mcp.tools.transform import RULES


@pytest.fixture
def transformer(monitor: MonitoringService) -> ParameterTransformer:
    return ParameterTransformer(monitor, "UTC")


def test_create_event_string_times(transformer: ParameterTransformer) -> None:
    """Bare start/end strings become dateTime objects; unset fields are omitted."""
    payload = transformer.transform("calendar", "create", {
        "subject": "S", "start": "2025-05-02T14:00:00", "end": "2025-05-02T15:00:00",
        "attendees": "a@x,b@y", "timeZone": "UTC",
    })
    assert payload == {
        "subject": "S",
        "start": {"dateTime": "2025-05-02T14:00:00", "timeZone": "UTC"},
        "end": {"dateTime": "2025-05-02T15:00:00", "timeZone": "UTC"},
        "attendees": ["a@x", "b@y"],
    }


def test_availability_single_slot(transformer: ParameterTransformer) -> None:
    payload = transformer.transform("calendar", "getAvailability", {
        "users": ["u@x"], "start": "2025-05-02T14:00:00", "end": "2025-05-02T15:00:00",
    })
    assert payload == {
        "users": ["u@x"],
        "timeSlots": [{
            "start": {"dateTime": "2025-05-02T14:00:00", "timeZone": "UTC"},
            "end": {"dateTime": "2025-05-02T15:00:00", "timeZone": "UTC"},
        }],
    }


def test_availability_explicit_slots_keep_zone(transformer: ParameterTransformer) -> None:
    payload = transformer.transform("calendar", "getAvailability", {
        "users": "u@x",
        "timeZone": "Europe/Oslo",
        "timeSlots": [{"start": {"dateTime": "2025-05-02T09:00:00", "timeZone": "UTC"}, "end": "2025-05-02T10:00:00"}],
    })
    assert payload["timeSlots"][0] == {
        "start": {"dateTime": "2025-05-02T09:00:00", "timeZone": "UTC"},
        "end": {"dateTime": "2025-05-02T10:00:00", "timeZone": "Europe/Oslo"},
    }


def test_send_mail_recipients(transformer: ParameterTransformer) -> None:
    payload = transformer.transform("mail", "sendEmail", {"to": "x@y", "subject": "s", "body": "b"})
    assert payload == {"to": ["x@y"], "subject": "s", "body": "b"}
    payload = transformer.transform("mail", "sendEmail", {"to": ["a@x"], "cc": "b@x, c@x", "subject": "s"})
    assert payload["cc"] == ["b@x", "c@x"]


def test_update_keeps_only_set_fields(transformer: ParameterTransformer) -> None:
    payload = transformer.transform("calendar", "update", {"id": "e1", "start": "2025-05-02T14:00:00",
                                                           "location": None, "unrelated": 1})
    assert payload == {"id": "e1", "start": {"dateTime": "2025-05-02T14:00:00", "timeZone": "UTC"}}


def test_meeting_times_constraint(transformer: ParameterTransformer) -> None:
    payload = transformer.transform("calendar", "findMeetingTimes", {
        "attendees": "a@x", "timeConstraints": {"startTime": "2025-05-02T09:00:00", "endTime": "2025-05-02T17:00:00"},
        "duration": 30,
    })
    assert payload["attendees"] == ["a@x"]
    assert payload["meetingDuration"] == 30
    assert payload["timeConstraint"] == {
        "activityDomain": "work",
        "timeSlots": [{"start": {"dateTime": "2025-05-02T09:00:00", "timeZone": "UTC"},
                       "end": {"dateTime": "2025-05-02T17:00:00", "timeZone": "UTC"}}],
    }


def test_meeting_times_keeps_explicit_zero(transformer: ParameterTransformer) -> None:
    """Zero is a value, not an absence: only missing keys get defaults."""
    payload = transformer.transform("calendar", "findMeetingTimes", {
        "attendees": "a@x", "minimumAttendeePercentage": 0, "maxCandidates": 0,
    })
    assert payload["minimumAttendeePercentage"] == 0
    assert payload["maxCandidates"] == 0
    assert payload["meetingDuration"] == 60


def test_query_aliases(transformer: ParameterTransformer) -> None:
    """KQL text is moved between q and query without being rewritten."""
    assert transformer.transform("mail", "searchEmails", {"query": "from:bob AND budget"}) == {
        "q": "from:bob AND budget",
    }
    assert transformer.transform("people", "find", {"q": "Ana", "limit": " 5 "}) == {"query": "Ana", "limit": 5}
    assert transformer.transform("search", "search", {"q": "plan", "entityTypes": "message,event"}) == {
        "query": "plan", "entityTypes": ["message", "event"],
    }


def test_caller_identity_attached(transformer: ParameterTransformer) -> None:
    payload = transformer.transform("mail", "getInbox", {"limit": 5}, "u1", "d1")
    assert payload == {"limit": 5, "_userId": "u1", "_deviceId": "d1"}


def test_unknown_pair_passes_through(transformer: ParameterTransformer) -> None:
    assert transformer.transform("notes", "listNotebooks", {"x": 1}) == {"x": 1}
    assert transformer.transform("notes", "listNotebooks", None) == {}


def test_input_never_mutated(transformer: ParameterTransformer) -> None:
    args = {"to": "a@x", "subject": "s", "q": "x", "timeSlots": [{"start": "s", "end": "e"}], "users": "u"}
    snapshot = copy.deepcopy(args)
    for module, method in RULES:
        try:
            transformer.transform(module, method, args)
        except McpException:
            pass
    assert args == snapshot


def test_missing_window_is_validation(transformer: ParameterTransformer, monitor: MonitoringService) -> None:
    with pytest.raises(McpException) as exc_info:
        transformer.transform("calendar", "getAvailability", {"users": ["u@x"]}, "u1")
    error = exc_info.value.error
    assert error.category == ErrorCategory.VALIDATION
    assert error.context["module"] == "calendar"
    assert error.context["method"] == "getAvailability"
    assert error.context["argKeys"] == ["users"]
    assert monitor.get_latest_logs(1)[0]["level"] == "error"


def test_malformed_slot(transformer: ParameterTransformer) -> None:
    with pytest.raises(McpException, match="Time slot 0 is missing a valid end"):
        transformer.transform("calendar", "getAvailability", {"users": "u", "timeSlots": [{"start": "s"}]})


def test_bad_limit(transformer: ParameterTransformer) -> None:
    with pytest.raises(McpException) as exc_info:
        transformer.transform("people", "find", {"query": "a", "limit": "many"})
    assert exc_info.value.category == ErrorCategory.VALIDATION


def test_bad_search_offset(transformer: ParameterTransformer) -> None:
    with pytest.raises(McpException) as exc_info:
        transformer.transform("search", "search", {"query": "a", "from": "next"})
    assert exc_info.value.category == ErrorCategory.VALIDATION
    assert transformer.transform("search", "search", {"query": "a", "from": "25"})["from"] == 25


def test_unexpected_failure_is_system_error(transformer: ParameterTransformer, monkeypatch) -> None:
    def broken(args: dict, tz: str) -> dict:
        raise KeyError("boom")

    monkeypatch.setitem(RULES, ("mail", "getinbox"), broken)
    with pytest.raises(McpException) as exc_info:
        transformer.transform("mail", "getInbox", {})
    assert exc_info.value.category == ErrorCategory.SYSTEM
    assert exc_info.value.error.context["errorType"] == "KeyError"


def test_development_debug_trace(monitor: MonitoringService) -> None:
    ParameterTransformer(monitor, development=True).transform("mail", "getInbox", {"limit": 1})
    entry = next(e for e in monitor.get_latest_logs() if e.get("level") == "debug")
    assert entry["level"] == "debug"
    assert entry["context"]["paramKeys"] == ["limit"]


# ─────────────────────────────────────────────────────────────────────────────
# Coercions
# ─────────────────────────────────────────────────────────────────────────────


_address = st.from_regex(r"[a-z]{1,8}@[a-z]{1,8}\.com", fullmatch=True)


@given(st.lists(_address, max_size=6))
def test_recipients_string_matches_list(addresses: list[str]) -> None:
    """Joining addresses with commas and coercing gives the list back."""
    assert coerce_recipients(", ".join(addresses)) == addresses
    assert coerce_recipients(addresses) == addresses


def test_recipients_edge_cases() -> None:
    assert coerce_recipients(None) is None
    assert coerce_recipients(" a , ,b ") == ["a", "b"]
    assert coerce_recipients({"address": "a@x"}) == [{"address": "a@x"}]


def test_datetime_coercion() -> None:
    assert coerce_datetime("2025-05-02T14:00:00", "Europe/Oslo") == {
        "dateTime": "2025-05-02T14:00:00", "timeZone": "Europe/Oslo",
    }
    value = {"dateTime": "2025-05-02T14:00:00", "timeZone": "UTC"}
    assert coerce_datetime(value) == value
    assert coerce_datetime(None) is None


@given(st.dictionaries(st.sampled_from(["subject", "start", "end", "attendees", "body"]), st.text(max_size=10)))
def test_transform_deterministic(args: dict[str, str]) -> None:
    transformer = ParameterTransformer()
    assert transformer.transform("calendar", "create", args) == transformer.transform("calendar", "create", args)
