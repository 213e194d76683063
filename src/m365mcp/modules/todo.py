"""Microsoft To Do task lists and tasks."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Final

from m365mcp.tools.transform import coerce_datetime

from .base import Args, GraphModule, Operation, compact, top
from .normalizers import normalize_task, normalize_task_list

_TASK_FIELDS: Final = ("title", "body", "importance", "status", "categories", "linkedResources", "isReminderOn",
                       "startDateTime", "dueDateTime", "reminderDateTime", "completedDateTime", "recurrence")


def _task(args: Args) -> dict[str, Any]:
    """Graph task body. A reminder date turns the reminder on unless the caller says otherwise."""
    task = {k: args[k] for k in _TASK_FIELDS if args.get(k) is not None}
    if isinstance(task.get("body"), str):
        task["body"] = {"content": task["body"], "contentType": "text"}
    for key in ("startDateTime", "dueDateTime", "reminderDateTime", "completedDateTime"):
        if key in task:
            task[key] = coerce_datetime(task[key], "UTC")
    if "reminderDateTime" in task and not isinstance(args.get("isReminderOn"), bool):
        task["isReminderOn"] = True
    return task


def _list_query(default: int) -> Callable[[Args], dict[str, Any]]:
    def build(args: Args) -> dict[str, Any]:
        return compact(**{"$top": top(args, default), "$filter": args.get("filter"), "$orderby": args.get("orderby")})
    return build


def _deleted(*keys: str) -> Callable[[Args, Any], dict[str, Any]]:
    return lambda a, _: {"deleted": True, **{k: a[k] for k in keys}}


class TodoModule(GraphModule):
    id = "todo"
    display_name = "Microsoft To Do"
    operations = {
        "listTaskLists": Operation("GET", "/me/todo/lists", query=_list_query(50), normalize=normalize_task_list,
                                   collection=True),
        "getTaskList": Operation("GET", "/me/todo/lists/{listId}", normalize=normalize_task_list),
        "createTaskList": Operation("POST", "/me/todo/lists", required=("displayName",),
                                    body=lambda a: {"displayName": a["displayName"]}, normalize=normalize_task_list),
        "updateTaskList": Operation("PATCH", "/me/todo/lists/{listId}", required=("displayName",),
                                    body=lambda a: {"displayName": a["displayName"]}, normalize=normalize_task_list),
        "deleteTaskList": Operation("DELETE", "/me/todo/lists/{listId}", shape=_deleted("listId")),
        "listTasks": Operation("GET", "/me/todo/lists/{listId}/tasks", query=_list_query(100),
                               normalize=normalize_task, collection=True),
        "getTask": Operation("GET", "/me/todo/lists/{listId}/tasks/{taskId}", normalize=normalize_task),
        "createTask": Operation("POST", "/me/todo/lists/{listId}/tasks", required=("title",), body=_task,
                                normalize=normalize_task),
        "updateTask": Operation("PATCH", "/me/todo/lists/{listId}/tasks/{taskId}", body=_task,
                                normalize=normalize_task),
        "deleteTask": Operation("DELETE", "/me/todo/lists/{listId}/tasks/{taskId}", shape=_deleted("listId", "taskId")),
        "completeTask": Operation("PATCH", "/me/todo/lists/{listId}/tasks/{taskId}",
                                  body=lambda a: {"status": "completed"}, normalize=normalize_task),
    }
