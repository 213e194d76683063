"""Tests for argument placement into path, query and body."""

import pytest

from m365mcp.foundation.errors import ErrorCategory, McpException
from m365mcp.tools import resolve_placement
from m365mcp.tools.definitions import TOOLS_BY_NAME


def _tool(name: str):
    return TOOLS_BY_NAME[name.lower()].build()


def test_missing_path_param() -> None:
    """updateEvent without id fails validation naming module and method."""
    with pytest.raises(McpException) as exc_info:
        resolve_placement(_tool("updateEvent"), {"subject": "x"})
    error = exc_info.value.error
    assert error.category == ErrorCategory.VALIDATION
    assert error.context["module"] == "calendar"
    assert error.context["method"] == "update"
    assert error.context["parameter"] == "id"


def test_empty_path_param_is_missing() -> None:
    with pytest.raises(McpException):
        resolve_placement(_tool("getEmailDetails"), {"id": ""})


def test_path_values_encoded() -> None:
    plan = resolve_placement(_tool("updateEvent"), {"id": "AAMk/a b+c=", "subject": "x"})
    assert plan.path == "/api/v1/calendar/events/AAMk%2Fa%20b%2Bc%3D"
    assert plan.path_params == {"id": "AAMk/a b+c="}
    assert plan.body == {"subject": "x"}
    assert plan.method == "PUT"


def test_query_and_context() -> None:
    plan = resolve_placement(_tool("getInbox"), {"limit": 5, "filter": None, "_userId": "u1"})
    assert plan.query == {"limit": 5}
    assert plan.body == {}
    assert plan.context == {"_userId": "u1"}


def test_arguments_drop_unplaced_values() -> None:
    """Module arguments are rebuilt from the placed parts: null query values are gone."""
    plan = resolve_placement(_tool("getInbox"), {"limit": 5, "filter": None, "_userId": "u1"})
    assert plan.arguments() == {"_userId": "u1", "limit": 5}
    update = resolve_placement(_tool("updateEvent"), {"id": 7, "subject": "x"})
    assert update.arguments() == {"subject": "x", "id": "7"}


def test_multiple_path_params() -> None:
    plan = resolve_placement(_tool("getTask"), {"listId": "L1", "taskId": "T/2"})
    assert plan.path == "/api/v1/todo/lists/L1/tasks/T%2F2"
    assert plan.path_params == {"listId": "L1", "taskId": "T/2"}


def test_alias_follows_parameter() -> None:
    """An alias key lands where its parameter is mapped."""
    plan = resolve_placement(_tool("findPeople"), {"q": "Ana"})
    assert plan.query == {"q": "Ana"}
