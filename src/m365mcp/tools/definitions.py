"""Tool descriptor models and the capability-to-descriptor table.

The table is the single source of truth for tool names, endpoints, HTTP
methods, parameter schemas and argument placement. Capabilities without an
entry get a generated default (see catalog.default_descriptor).
"""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Annotated, Any, Final, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
ParamType = Literal["string", "number", "boolean", "object", "array"]

_PLACEHOLDER = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


class Placement(StrEnum):
    PATH = "path"
    QUERY = "query"
    BODY = "body"

    @property
    def wire_key(self) -> str:
        return {"path": "inPath", "query": "inQuery", "body": "inBody"}[self.value]


def path_placeholders(endpoint: str) -> list[str]:
    """`:name` placeholders in order of appearance."""
    return _PLACEHOLDER.findall(endpoint)


def default_placement(method: str) -> Placement:
    return Placement.QUERY if method in ("GET", "DELETE") else Placement.BODY


def derive_method(capability: str) -> HttpMethod:
    """Default HTTP method from the capability name prefix."""
    if capability.startswith(("create", "add", "send", "search", "flag")):
        return "POST"
    if capability.startswith(("update", "set")):
        return "PUT"
    if capability.startswith(("delete", "remove")):
        return "DELETE"
    return "GET"


# ─────────────────────────────────────────────────────────────────────────────
# Models
# ─────────────────────────────────────────────────────────────────────────────


class ParameterSpec(BaseModel):
    """Schema record for one tool parameter."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: ParamType
    description: str = ""
    required: bool = False
    default: Any = None
    enum: tuple[Any, ...] | None = None
    format: str | None = None
    properties: dict[str, ParameterSpec] | None = None
    items: ParameterSpec | None = None
    aliases: tuple[str, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        """Catalog shape: `required: true` or `optional: true`, unset keys omitted."""
        out: dict[str, Any] = {"type": self.type, "description": self.description}
        out["required" if self.required else "optional"] = True
        if self.default is not None:
            out["default"] = self.default
        if self.enum is not None:
            out["enum"] = list(self.enum)
        if self.format:
            out["format"] = self.format
        if self.properties is not None:
            out["properties"] = {k: v.to_wire() for k, v in self.properties.items()}
        if self.items is not None:
            out["items"] = self.items.to_wire()
        if self.aliases:
            out["aliases"] = list(self.aliases)
        return out

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.default is not None:
            schema["default"] = self.default
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.format:
            schema["format"] = self.format
        if self.properties is not None:
            schema["properties"] = {k: v.to_json_schema() for k, v in self.properties.items()}
            if required := [k for k, v in self.properties.items() if v.required]:
                schema["required"] = required
        if self.items is not None:
            schema["items"] = self.items.to_json_schema()
        return schema


ParameterSpec.model_rebuild()


class ToolDescriptor(BaseModel):
    """Agent-visible tool.

    Attributes:
        name: Unique tool name (matched case-insensitively)
        description: Tool description shown to the agent
        endpoint: Path template with `:param` placeholders
        method: HTTP method
        parameters: Parameter name to schema record
        parameter_mapping: Parameter name to placement (path, query or body)
        module_id: Owning module
        method_name: Module capability the tool invokes
    """

    model_config = ConfigDict(frozen=True)

    name: Annotated[str, Field(min_length=1)]
    description: str
    endpoint: str
    method: HttpMethod
    parameters: dict[str, ParameterSpec] = Field(default_factory=dict)
    parameter_mapping: dict[str, Placement] = Field(default_factory=dict)
    module_id: str
    method_name: str

    @computed_field
    @property
    def path_params(self) -> tuple[str, ...]:
        return tuple(path_placeholders(self.endpoint))

    def placement_of(self, key: str) -> Placement:
        """Placement for a payload key. Aliases resolve to their parameter."""
        if key in self.path_params:
            return Placement.PATH
        if key in self.parameter_mapping:
            return self.parameter_mapping[key]
        for name, spec in self.parameters.items():
            if key in spec.aliases:
                return self.placement_of(name)
        return default_placement(self.method)

    def to_wire(self) -> dict[str, Any]:
        """`tools/list` shape, plus an MCP `inputSchema`."""
        return {
            "name": self.name,
            "description": self.description,
            "endpoint": self.endpoint,
            "method": self.method,
            "parameters": {k: v.to_wire() for k, v in self.parameters.items()},
            "parameterMapping": {k: {v.wire_key: True} for k, v in self.parameter_mapping.items()},
            "inputSchema": self.input_schema(),
        }

    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {k: v.to_json_schema() for k, v in self.parameters.items()},
            "required": [k for k, v in self.parameters.items() if v.required],
        }


class ToolSpec(BaseModel):
    """One row of the capability-to-descriptor table."""

    model_config = ConfigDict(frozen=True)

    name: str
    module: str
    method: str
    description: str
    endpoint: str
    http_method: HttpMethod | None = None
    parameters: dict[str, ParameterSpec] = Field(default_factory=dict)
    placement: dict[str, Placement] = Field(default_factory=dict)

    def build(self) -> ToolDescriptor:
        """Descriptor with a complete mapping: explicit, then path, then method default."""
        http = self.http_method or derive_method(self.name)
        params = dict(self.parameters)
        placeholders = path_placeholders(self.endpoint)
        for name in placeholders:
            params.setdefault(name, ParameterSpec(type="string", description=f"{name} path parameter", required=True))
        mapping = {
            name: Placement.PATH if name in placeholders else self.placement.get(name, default_placement(http))
            for name in params
        }
        return ToolDescriptor(
            name=self.name, description=self.description, endpoint=self.endpoint, method=http,
            parameters=params, parameter_mapping=mapping, module_id=self.module, method_name=self.method,
        )


# ─────────────────────────────────────────────────────────────────────────────
# Table helpers
# ─────────────────────────────────────────────────────────────────────────────


def _p(type_: ParamType, description: str, required: bool = False, **extra: Any) -> ParameterSpec:
    return ParameterSpec(type=type_, description=description, required=required, **extra)


def _id(what: str) -> ParameterSpec:
    return _p("string", what, True)


_DATE_TIME: Final = {
    "dateTime": _p("string", "ISO date string (e.g. 2025-05-02T14:00:00)", True),
    "timeZone": _p("string", "Time zone (e.g. UTC, Europe/Oslo)", default="UTC"),
}
_SLOT: Final = _p("object", "Time slot", properties={
    "start": _p("object", "Start time", True, properties=_DATE_TIME),
    "end": _p("object", "End time", True, properties=_DATE_TIME),
})
_RECIPIENTS: Final = "Email address(es): a single address, comma-separated list, or array"
_ATTENDEES: Final = _p("array", "Attendee email addresses or attendee objects (with emailAddress.address)",
                       items=_p("object", "Attendee", properties={
                           "emailAddress": _p("object", "Email address", True,
                                              properties={"address": _p("string", "Address", True)}),
                           "type": _p("string", "Attendee type", enum=("required", "optional", "resource")),
                       }))


def _event_fields(required: bool) -> dict[str, ParameterSpec]:
    return {
        "subject": _p("string", "Event subject/title", required),
        "start": _p("object", "Start time (object or ISO string)", required, properties=_DATE_TIME),
        "end": _p("object", "End time (object or ISO string)", required, properties=_DATE_TIME),
        "timeZone": _p("string", "Time zone applied to string start/end values"),
        "location": _p("object", "Event location (omit if unknown)",
                       properties={"displayName": _p("string", "Location display name", True)}),
        "body": _p("object", "Event body", properties={
            "content": _p("string", "Body content text", True),
            "contentType": _p("string", "Content type (text or html)", default="text"),
        }),
        "attendees": _ATTENDEES,
        "isOnlineMeeting": _p("boolean", "Whether this is an online meeting"),
    }


def _respond(verb: str) -> dict[str, ParameterSpec]:
    return {"id": _id(f"Event ID to {verb}"), "comment": _p("string", f"Optional comment to include when you {verb}")}


Q, B = Placement.QUERY, Placement.BODY
_ATTENDEE_ONLY: Final = " Note: This only works for events where the user is an attendee, not the organizer."

FIND_PEOPLE_DESCRIPTION: Final = (
    "IMPORTANT: Find and resolve people by name or email before scheduling meetings or sending emails. "
    "This tool MUST be used to resolve any person references before creating calendar events or sending mail."
)


TOOL_TABLE: Final[tuple[ToolSpec, ...]] = (
    # ── people ──────────────────────────────────────────────────────────────
    ToolSpec(
        name="findPeople", module="people", method="find",
        description=FIND_PEOPLE_DESCRIPTION, endpoint="/api/v1/people/find", http_method="GET",
        parameters={
            "query": _p("string", "Search query to find a person", aliases=("q",)),
            "name": _p("string", "Person name to search for"),
            "limit": _p("number", "Maximum number of results", default=10),
        },
        placement={"query": Q, "name": Q, "limit": Q},
    ),
    ToolSpec(
        name="getRelevantPeople", module="people", method="getRelevantPeople",
        description="Get people relevant to the user", endpoint="/api/v1/people", http_method="GET",
        parameters={
            "limit": _p("number", "Maximum number of people to return", default=10),
            "filter": _p("string", "Filter criteria"),
            "orderby": _p("string", "Order by field"),
        },
    ),
    ToolSpec(
        name="getPersonById", module="people", method="getPersonById",
        description="Get a specific person by ID", endpoint="/api/v1/people/:id", http_method="GET",
        parameters={"id": _id("ID of the person to retrieve")},
    ),
    # ── mail ────────────────────────────────────────────────────────────────
    ToolSpec(
        name="getInbox", module="mail", method="getInbox",
        description="Fetch mail from Microsoft 365 inbox", endpoint="/api/v1/mail", http_method="GET",
        parameters={
            "limit": _p("number", "Maximum number of messages to retrieve", default=20),
            "filter": _p("string", "Filter string for messages"),
        },
    ),
    ToolSpec(
        name="sendEmail", module="mail", method="sendEmail",
        description="Send an email via Microsoft 365", endpoint="/api/v1/mail/send", http_method="POST",
        parameters={
            "to": _p("string", f"Recipient {_RECIPIENTS}", True),
            "subject": _p("string", "Email subject line", True),
            "body": _p("string", "Email body content", True),
            "cc": _p("string", f"CC {_RECIPIENTS}"),
            "bcc": _p("string", f"BCC {_RECIPIENTS}"),
            "contentType": _p("string", "Content type of the email body", enum=("Text", "HTML"), default="Text"),
            "attachments": _p("array", "File attachments"),
        },
    ),
    ToolSpec(
        name="searchEmails", module="mail", method="searchEmails",
        description="Search emails using Microsoft Graph KQL (Keyword Query Language) syntax",
        endpoint="/api/v1/mail/search", http_method="GET",
        parameters={
            "query": _p("string", 'KQL search query, e.g. "from:user@domain.com", "subject:meeting". '
                        "Do not wrap the entire query in quotes.", True, aliases=("q",)),
            "limit": _p("number", "Maximum number of results to return", default=20),
        },
    ),
    ToolSpec(
        name="flagEmail", module="mail", method="flagEmail",
        description="Flag or unflag an email", endpoint="/api/v1/mail/flag", http_method="POST",
        parameters={
            "id": _id("Email ID to flag or unflag"),
            "flag": _p("boolean", "Whether to flag (true) or unflag (false) the email", default=True),
        },
    ),
    ToolSpec(
        name="getMailAttachments", module="mail", method="getMailAttachments",
        description="Get email attachments", endpoint="/api/v1/mail/attachments", http_method="GET",
        parameters={"id": _id("Email ID to get attachments for")}, placement={"id": Q},
    ),
    ToolSpec(
        name="getEmailDetails", module="mail", method="getEmailDetails",
        description="Get detailed information for a specific email", endpoint="/api/v1/mail/:id", http_method="GET",
        parameters={"id": _id("Email ID to retrieve details for")},
    ),
    ToolSpec(
        name="markAsRead", module="mail", method="markAsRead",
        description="Mark an email as read or unread", endpoint="/api/v1/mail/:id/read", http_method="PATCH",
        parameters={
            "id": _id("Email ID to mark as read/unread"),
            "isRead": _p("boolean", "Whether to mark as read (true) or unread (false)", default=True),
        },
        placement={"isRead": B},
    ),
    ToolSpec(
        name="addMailAttachment", module="mail", method="addMailAttachment",
        description="Add an attachment to an existing email", endpoint="/api/v1/mail/:id/attachments",
        http_method="POST",
        parameters={
            "id": _id("Email ID to add attachment to"),
            "name": _p("string", "Name of the attachment file", True),
            "contentBytes": _p("string", "Base64 encoded content of the attachment", True),
            "contentType": _p("string", "MIME type of the attachment"),
            "isInline": _p("boolean", "Whether the attachment is inline", default=False),
        },
    ),
    ToolSpec(
        name="removeMailAttachment", module="mail", method="removeMailAttachment",
        description="Remove an attachment from an existing email",
        endpoint="/api/v1/mail/:id/attachments/:attachmentId", http_method="DELETE",
        parameters={"id": _id("Email ID to remove attachment from"), "attachmentId": _id("ID of the attachment to remove")},
    ),
    # ── calendar ────────────────────────────────────────────────────────────
    ToolSpec(
        name="getEvents", module="calendar", method="getEvents",
        description="Fetch calendar events from Microsoft 365. Use the convenience parameters (subject, organizer, "
                    "attendee) instead of complex $filter expressions.",
        endpoint="/api/v1/calendar", http_method="GET",
        parameters={
            "start": _p("string", "Start date (YYYY-MM-DD) to filter events from", format="date"),
            "end": _p("string", "End date (YYYY-MM-DD) to filter events until", format="date"),
            "limit": _p("number", "Maximum number of events to return (1-999)", default=50),
            "top": _p("number", "Alias for limit"),
            "filter": _p("string", "OData $filter query; keep expressions simple"),
            "select": _p("string", "Comma-separated properties to include"),
            "orderby": _p("string", "Sort expression", default="start/dateTime"),
            "expand": _p("string", "Comma-separated related properties to expand"),
            "subject": _p("string", "Filter events by subject containing this text"),
            "organizer": _p("string", "Filter events by organizer display name"),
            "attendee": _p("string", "Filter events where this email address is an attendee"),
            "location": _p("string", "Filter events by location containing this text"),
            "timeframe": _p("string", "Predefined time range",
                            enum=("today", "tomorrow", "this_week", "next_week", "this_month", "next_month")),
        },
    ),
    ToolSpec(
        name="createEvent", module="calendar", method="create",
        description="Create a new calendar event", endpoint="/api/v1/calendar/events", http_method="POST",
        parameters=_event_fields(required=True),
    ),
    ToolSpec(
        name="updateEvent", module="calendar", method="update",
        description="Update an existing calendar event", endpoint="/api/v1/calendar/events/:id", http_method="PUT",
        parameters={"id": _id("Event ID to update"), **_event_fields(required=False),
                    "isAllDay": _p("boolean", "Whether this is an all-day event")},
    ),
    ToolSpec(
        name="cancelEvent", module="calendar", method="cancelEvent",
        description="Delete or cancel a calendar event", endpoint="/api/v1/calendar/events/:id/cancel",
        http_method="POST", parameters=_respond("cancel"),
    ),
    ToolSpec(
        name="acceptEvent", module="calendar", method="acceptEvent",
        description="Accept a calendar event invitation." + _ATTENDEE_ONLY,
        endpoint="/api/v1/calendar/events/:id/accept", http_method="POST", parameters=_respond("accept"),
    ),
    ToolSpec(
        name="tentativelyAcceptEvent", module="calendar", method="tentativelyAcceptEvent",
        description="Tentatively accept a calendar event invitation." + _ATTENDEE_ONLY,
        endpoint="/api/v1/calendar/events/:id/tentativelyAccept", http_method="POST",
        parameters=_respond("tentatively accept"),
    ),
    ToolSpec(
        name="declineEvent", module="calendar", method="declineEvent",
        description="Decline a calendar event invitation." + _ATTENDEE_ONLY,
        endpoint="/api/v1/calendar/events/:id/decline", http_method="POST", parameters=_respond("decline"),
    ),
    ToolSpec(
        name="getAvailability", module="calendar", method="getAvailability",
        description="Get availability information for specified users and time slots. Use before scheduling "
                    "meetings to see when people are free or busy.",
        endpoint="/api/v1/calendar/availability", http_method="POST",
        parameters={
            "users": _p("array", "User email addresses to check availability for", True, items=_p("string", "Email")),
            "timeSlots": _p("array", "Time slots to check availability within", items=_SLOT),
            "start": _p("string", "Alternative to timeSlots: start of a single slot", format="date-time"),
            "end": _p("string", "Alternative to timeSlots: end of a single slot", format="date-time"),
            "timeZone": _p("string", "Time zone for string start/end values"),
        },
    ),
    ToolSpec(
        name="findMeetingTimes", module="calendar", method="findMeetingTimes",
        description="Find suggested meeting times based on attendees and constraints",
        endpoint="/api/v1/calendar/findMeetingTimes", http_method="POST",
        parameters={
            "attendees": _p("array", "Attendee email addresses", True, items=_p("string", "Email", format="email")),
            "timeConstraints": _p("object", "Time constraints for the meeting", properties={
                "activityDomain": _p("string", "Activity domain", default="work",
                                     enum=("work", "personal", "unrestricted")),
                "timeslots": _p("array", "Candidate time slots", True, items=_SLOT),
            }),
            "startTime": _p("string", "Alternative to timeConstraints: window start", format="date-time"),
            "endTime": _p("string", "Alternative to timeConstraints: window end", format="date-time"),
            "locationConstraint": _p("object", "Location constraints for the meeting", properties={
                "isRequired": _p("boolean", "Whether a location is required", default=False),
                "suggestLocation": _p("boolean", "Whether to suggest a location", default=False),
            }),
            "meetingDuration": _p("string", "Duration in ISO8601 (e.g. PT1H) or minutes", default="PT1H"),
            "maxCandidates": _p("number", "Maximum number of suggestions", default=10),
            "minimumAttendeePercentage": _p("number", "Minimum attendee availability percentage", default=100),
        },
    ),
    ToolSpec(
        name="addAttachment", module="calendar", method="addAttachment",
        description="Add attachment to a calendar event", endpoint="/api/v1/calendar/events/:id/attachments",
        http_method="POST",
        parameters={
            "id": _id("Event ID to add attachment to"),
            "name": _p("string", "Name of the attachment file", True),
            "contentBytes": _p("string", "Base64-encoded file content", True),
            "contentType": _p("string", "MIME type of the attachment"),
        },
    ),
    ToolSpec(
        name="removeAttachment", module="calendar", method="removeAttachment",
        description="Remove attachment from a calendar event",
        endpoint="/api/v1/calendar/events/:eventId/attachments/:attachmentId", http_method="DELETE",
        parameters={"eventId": _id("Event ID to remove attachment from"), "attachmentId": _id("Attachment ID to remove")},
    ),
    # ── files ───────────────────────────────────────────────────────────────
    ToolSpec(
        name="listFiles", module="files", method="listFiles",
        description="List files in a specific drive or folder", endpoint="/api/v1/files", http_method="GET",
        parameters={"parentId": _p("string", "Parent folder ID; lists the root folder when omitted")},
    ),
    ToolSpec(
        name="searchFiles", module="files", method="searchFiles",
        description="Search for files by name or content. Use this to find files before operating on them.",
        endpoint="/api/v1/files/search", http_method="GET",
        parameters={"q": _p("string", "Search query to find files by name or content", True, aliases=("query",))},
    ),
    ToolSpec(
        name="uploadFile", module="files", method="uploadFile",
        description="Upload a file to OneDrive or SharePoint", endpoint="/api/v1/files/upload", http_method="POST",
        parameters={
            "name": _p("string", "Name of the file to upload", True),
            "content": _p("string", "Content of the file to upload", True),
            "parentId": _p("string", "Destination folder ID; root when omitted"),
        },
    ),
    ToolSpec(
        name="downloadFile", module="files", method="downloadFile",
        description="Download a file from OneDrive or SharePoint", endpoint="/api/v1/files/download",
        http_method="GET", parameters={"id": _id("ID of the file to download")},
    ),
    ToolSpec(
        name="getFileMetadata", module="files", method="getFileMetadata",
        description="Get metadata for a specific file", endpoint="/api/v1/files/metadata", http_method="GET",
        parameters={"id": _id("ID of the file to get metadata for")},
    ),
    ToolSpec(
        name="getFileContent", module="files", method="getFileContent",
        description="Get the content of a specific file. Use searchFiles first to find the file ID.",
        endpoint="/api/v1/files/content", http_method="GET",
        parameters={"id": _id("ID of the file (from searchFiles or listFiles)")},
    ),
    ToolSpec(
        name="setFileContent", module="files", method="setFileContent",
        description="Set the content of a specific file", endpoint="/api/v1/files/content", http_method="POST",
        parameters={"fileId": _id("ID of the file to set content for"), "content": _p("string", "New content", True)},
    ),
    ToolSpec(
        name="updateFileContent", module="files", method="updateFileContent",
        description="Update the content of a specific file", endpoint="/api/v1/files/content/update",
        http_method="POST",
        parameters={"fileId": _id("ID of the file to update content for"), "content": _p("string", "New content", True)},
    ),
    ToolSpec(
        name="deleteFile", module="files", method="deleteFile",
        description="Delete a file or folder", endpoint="/api/v1/files/:id", http_method="DELETE",
        parameters={"id": _id("ID of the file or folder to delete")},
    ),
    ToolSpec(
        name="createSharingLink", module="files", method="createSharingLink",
        description="Create a sharing link for a file", endpoint="/api/v1/files/share", http_method="POST",
        parameters={
            "fileId": _id("ID of the file to create a sharing link for"),
            "type": _p("string", "Type of sharing link", enum=("view", "edit"), default="view"),
        },
    ),
    ToolSpec(
        name="getSharingLinks", module="files", method="getSharingLinks",
        description="Get sharing links for a file", endpoint="/api/v1/files/sharing", http_method="GET",
        parameters={"fileId": _id("ID of the file to get sharing links for")},
    ),
    ToolSpec(
        name="removeSharingPermission", module="files", method="removeSharingPermission",
        description="Remove a sharing permission from a file", endpoint="/api/v1/files/sharing/remove",
        http_method="POST",
        parameters={"fileId": _id("ID of the file"), "permissionId": _id("ID of the permission to remove")},
    ),
    # ── search ──────────────────────────────────────────────────────────────
    ToolSpec(
        name="search", module="search", method="search",
        description="Unified Microsoft 365 search across mail, calendar, files and people",
        endpoint="/api/v1/search", http_method="POST",
        parameters={
            "query": _p("string", "Search text (KQL supported)", True, aliases=("q",)),
            "entityTypes": _p("array", "Entity types to search", items=_p(
                "string", "Entity type", enum=("message", "event", "driveItem", "person"))),
            "limit": _p("number", "Maximum results per entity type", default=25),
            "from": _p("number", "Offset for paging", default=0),
        },
    ),
    # ── todo ────────────────────────────────────────────────────────────────
    ToolSpec(
        name="listTaskLists", module="todo", method="listTaskLists",
        description="List Microsoft To Do task lists", endpoint="/api/v1/todo/lists", http_method="GET",
        parameters={"limit": _p("number", "Maximum number of lists to return", default=50)},
    ),
    ToolSpec(
        name="getTaskList", module="todo", method="getTaskList",
        description="Get a To Do task list", endpoint="/api/v1/todo/lists/:listId", http_method="GET",
        parameters={"listId": _id("Task list ID")},
    ),
    ToolSpec(
        name="createTaskList", module="todo", method="createTaskList",
        description="Create a To Do task list", endpoint="/api/v1/todo/lists", http_method="POST",
        parameters={"displayName": _p("string", "Name of the new list", True)},
    ),
    ToolSpec(
        name="updateTaskList", module="todo", method="updateTaskList",
        description="Rename a To Do task list", endpoint="/api/v1/todo/lists/:listId", http_method="PATCH",
        parameters={"listId": _id("Task list ID"), "displayName": _p("string", "New list name", True)},
    ),
    ToolSpec(
        name="deleteTaskList", module="todo", method="deleteTaskList",
        description="Delete a To Do task list", endpoint="/api/v1/todo/lists/:listId", http_method="DELETE",
        parameters={"listId": _id("Task list ID")},
    ),
    ToolSpec(
        name="listTasks", module="todo", method="listTasks",
        description="List tasks in a To Do list", endpoint="/api/v1/todo/lists/:listId/tasks", http_method="GET",
        parameters={
            "listId": _id("Task list ID"),
            "filter": _p("string", "OData filter, e.g. status ne 'completed'"),
            "orderby": _p("string", "Sort expression"),
            "limit": _p("number", "Maximum number of tasks to return", default=100),
        },
    ),
    ToolSpec(
        name="getTask", module="todo", method="getTask",
        description="Get a task", endpoint="/api/v1/todo/lists/:listId/tasks/:taskId", http_method="GET",
        parameters={"listId": _id("Task list ID"), "taskId": _id("Task ID")},
    ),
    ToolSpec(
        name="createTask", module="todo", method="createTask",
        description="Create a task in a To Do list", endpoint="/api/v1/todo/lists/:listId/tasks", http_method="POST",
        parameters={
            "listId": _id("Task list ID"),
            "title": _p("string", "Task title", True),
            "body": _p("string", "Task notes"),
            "importance": _p("string", "Importance", enum=("low", "normal", "high"), default="normal"),
            "dueDateTime": _p("object", "Due date (object or ISO string)", properties=_DATE_TIME),
            "reminderDateTime": _p("object", "Reminder time (object or ISO string)", properties=_DATE_TIME),
            "isReminderOn": _p("boolean", "Whether the reminder is enabled"),
            "categories": _p("array", "Category names", items=_p("string", "Category")),
            "timeZone": _p("string", "Time zone applied to string date values"),
        },
    ),
    ToolSpec(
        name="updateTask", module="todo", method="updateTask",
        description="Update a task", endpoint="/api/v1/todo/lists/:listId/tasks/:taskId", http_method="PATCH",
        parameters={
            "listId": _id("Task list ID"),
            "taskId": _id("Task ID"),
            "title": _p("string", "Task title"),
            "body": _p("string", "Task notes"),
            "importance": _p("string", "Importance", enum=("low", "normal", "high")),
            "status": _p("string", "Status", enum=("notStarted", "inProgress", "completed", "waitingOnOthers",
                                                   "deferred")),
            "dueDateTime": _p("object", "Due date (object or ISO string)", properties=_DATE_TIME),
            "reminderDateTime": _p("object", "Reminder time (object or ISO string)", properties=_DATE_TIME),
            "timeZone": _p("string", "Time zone applied to string date values"),
        },
    ),
    ToolSpec(
        name="deleteTask", module="todo", method="deleteTask",
        description="Delete a task", endpoint="/api/v1/todo/lists/:listId/tasks/:taskId", http_method="DELETE",
        parameters={"listId": _id("Task list ID"), "taskId": _id("Task ID")},
    ),
    ToolSpec(
        name="completeTask", module="todo", method="completeTask",
        description="Mark a task as completed", endpoint="/api/v1/todo/lists/:listId/tasks/:taskId/complete",
        http_method="POST", parameters={"listId": _id("Task list ID"), "taskId": _id("Task ID")},
    ),
    # ── contacts ────────────────────────────────────────────────────────────
    ToolSpec(
        name="listContacts", module="contacts", method="listContacts",
        description="List Outlook contacts", endpoint="/api/v1/contacts", http_method="GET",
        parameters={
            "limit": _p("number", "Maximum number of contacts to return", default=50),
            "filter": _p("string", "OData filter"),
            "orderby": _p("string", "Sort expression", default="displayName"),
        },
    ),
    ToolSpec(
        name="getContact", module="contacts", method="getContact",
        description="Get a contact", endpoint="/api/v1/contacts/:id", http_method="GET",
        parameters={"id": _id("Contact ID")},
    ),
    ToolSpec(
        name="createContact", module="contacts", method="createContact",
        description="Create an Outlook contact", endpoint="/api/v1/contacts", http_method="POST",
        parameters={
            "displayName": _p("string", "Display name"),
            "givenName": _p("string", "First name"),
            "surname": _p("string", "Last name"),
            "emailAddresses": _p("array", f"Contact {_RECIPIENTS}"),
            "businessPhones": _p("array", "Business phone numbers", items=_p("string", "Phone number")),
            "mobilePhone": _p("string", "Mobile phone number"),
            "jobTitle": _p("string", "Job title"),
            "companyName": _p("string", "Company"),
            "department": _p("string", "Department"),
        },
    ),
    ToolSpec(
        name="updateContact", module="contacts", method="updateContact",
        description="Update an Outlook contact", endpoint="/api/v1/contacts/:id", http_method="PATCH",
        parameters={
            "id": _id("Contact ID"),
            "displayName": _p("string", "Display name"),
            "emailAddresses": _p("array", f"Contact {_RECIPIENTS}"),
            "businessPhones": _p("array", "Business phone numbers", items=_p("string", "Phone number")),
            "mobilePhone": _p("string", "Mobile phone number"),
            "jobTitle": _p("string", "Job title"),
            "companyName": _p("string", "Company"),
        },
    ),
    ToolSpec(
        name="deleteContact", module="contacts", method="deleteContact",
        description="Delete a contact", endpoint="/api/v1/contacts/:id", http_method="DELETE",
        parameters={"id": _id("Contact ID")},
    ),
    ToolSpec(
        name="searchContacts", module="contacts", method="searchContacts",
        description="Search contacts by name or email", endpoint="/api/v1/contacts/search", http_method="GET",
        parameters={
            "query": _p("string", "Search text", True, aliases=("q",)),
            "limit": _p("number", "Maximum number of contacts to return", default=25),
        },
    ),
    # ── teams ───────────────────────────────────────────────────────────────
    ToolSpec(
        name="listChats", module="teams", method="listChats",
        description="List the user's Teams chats", endpoint="/api/v1/teams/chats", http_method="GET",
        parameters={"limit": _p("number", "Maximum number of chats to return", default=20)},
    ),
    ToolSpec(
        name="createChat", module="teams", method="createChat",
        description="Create a Teams chat. Members must include the signed-in user.",
        endpoint="/api/v1/teams/chats", http_method="POST",
        parameters={
            "members": _p("array", "Member user IDs or principal names", True, items=_p("string", "User")),
            "topic": _p("string", "Group chat topic"),
            "chatType": _p("string", "Chat type", enum=("oneOnOne", "group")),
        },
    ),
    ToolSpec(
        name="getChatMessages", module="teams", method="getChatMessages",
        description="Get messages from a Teams chat", endpoint="/api/v1/teams/chats/:chatId/messages",
        http_method="GET",
        parameters={"chatId": _id("Chat ID"), "limit": _p("number", "Maximum number of messages", default=20)},
    ),
    ToolSpec(
        name="sendChatMessage", module="teams", method="sendChatMessage",
        description="Send a message to a Teams chat", endpoint="/api/v1/teams/chats/:chatId/messages",
        http_method="POST",
        parameters={
            "chatId": _id("Chat ID"),
            "content": _p("string", "Message content", True),
            "contentType": _p("string", "Content type", enum=("text", "html"), default="text"),
        },
    ),
    ToolSpec(
        name="listJoinedTeams", module="teams", method="listJoinedTeams",
        description="List teams the user is a member of", endpoint="/api/v1/teams", http_method="GET",
    ),
    ToolSpec(
        name="listTeamChannels", module="teams", method="listTeamChannels",
        description="List channels in a team", endpoint="/api/v1/teams/:teamId/channels", http_method="GET",
        parameters={"teamId": _id("Team ID")},
    ),
    ToolSpec(
        name="getChannelMessages", module="teams", method="getChannelMessages",
        description="Get messages from a team channel",
        endpoint="/api/v1/teams/:teamId/channels/:channelId/messages", http_method="GET",
        parameters={"teamId": _id("Team ID"), "channelId": _id("Channel ID"),
                    "limit": _p("number", "Maximum number of messages", default=20)},
    ),
    ToolSpec(
        name="sendChannelMessage", module="teams", method="sendChannelMessage",
        description="Post a message to a team channel",
        endpoint="/api/v1/teams/:teamId/channels/:channelId/messages", http_method="POST",
        parameters={
            "teamId": _id("Team ID"),
            "channelId": _id("Channel ID"),
            "content": _p("string", "Message content", True),
            "subject": _p("string", "Message subject"),
            "contentType": _p("string", "Content type", enum=("text", "html"), default="text"),
        },
    ),
    ToolSpec(
        name="replyToMessage", module="teams", method="replyToMessage",
        description="Reply to a channel message",
        endpoint="/api/v1/teams/:teamId/channels/:channelId/messages/:messageId/replies", http_method="POST",
        parameters={
            "teamId": _id("Team ID"),
            "channelId": _id("Channel ID"),
            "messageId": _id("ID of the message to reply to"),
            "content": _p("string", "Reply content", True),
            "contentType": _p("string", "Content type", enum=("text", "html"), default="text"),
        },
    ),
    ToolSpec(
        name="createTeamChannel", module="teams", method="createTeamChannel",
        description="Create a channel in a team", endpoint="/api/v1/teams/:teamId/channels", http_method="POST",
        parameters={
            "teamId": _id("Team ID"),
            "displayName": _p("string", "Channel name", True),
            "description": _p("string", "Channel description"),
            "membershipType": _p("string", "Membership type", enum=("standard", "private", "shared"),
                                 default="standard"),
        },
    ),
    ToolSpec(
        name="addChannelMember", module="teams", method="addChannelMember",
        description="Add a member to a private or shared channel",
        endpoint="/api/v1/teams/:teamId/channels/:channelId/members", http_method="POST",
        parameters={
            "teamId": _id("Team ID"),
            "channelId": _id("Channel ID"),
            "userId": _id("User ID or principal name to add"),
            "roles": _p("array", "Member roles (empty for member, owner for owner)", items=_p("string", "Role")),
        },
    ),
    ToolSpec(
        name="createOnlineMeeting", module="teams", method="createOnlineMeeting",
        description="Create a Teams online meeting", endpoint="/api/v1/teams/meetings", http_method="POST",
        parameters={
            "subject": _p("string", "Meeting subject", True),
            "startDateTime": _p("string", "Start time (ISO 8601)", format="date-time"),
            "endDateTime": _p("string", "End time (ISO 8601)", format="date-time"),
            "participants": _p("array", "Attendee principal names", items=_p("string", "User")),
        },
    ),
    ToolSpec(
        name="getOnlineMeeting", module="teams", method="getOnlineMeeting",
        description="Get a Teams online meeting", endpoint="/api/v1/teams/meetings/:meetingId", http_method="GET",
        parameters={"meetingId": _id("Online meeting ID")},
    ),
    ToolSpec(
        name="listOnlineMeetings", module="teams", method="listOnlineMeetings",
        description="Find online meetings by join URL or OData filter", endpoint="/api/v1/teams/meetings",
        http_method="GET",
        parameters={"joinUrl": _p("string", "Meeting join URL"), "filter": _p("string", "OData filter")},
    ),
    # ── groups ──────────────────────────────────────────────────────────────
    ToolSpec(
        name="listGroups", module="groups", method="listGroups",
        description="List groups in the organization", endpoint="/api/v1/groups", http_method="GET",
        parameters={
            "limit": _p("number", "Maximum number of groups to return", default=50),
            "filter": _p("string", "OData filter"),
        },
    ),
    ToolSpec(
        name="getGroup", module="groups", method="getGroup",
        description="Get a group", endpoint="/api/v1/groups/:id", http_method="GET",
        parameters={"id": _id("Group ID")},
    ),
    ToolSpec(
        name="listGroupMembers", module="groups", method="listGroupMembers",
        description="List members of a group", endpoint="/api/v1/groups/:id/members", http_method="GET",
        parameters={"id": _id("Group ID"), "limit": _p("number", "Maximum number of members", default=100)},
    ),
    ToolSpec(
        name="listMyGroups", module="groups", method="listMyGroups",
        description="List groups the user belongs to", endpoint="/api/v1/groups/my", http_method="GET",
        parameters={"limit": _p("number", "Maximum number of groups to return", default=100)},
    ),
    # ── query ───────────────────────────────────────────────────────────────
    ToolSpec(
        name="query", module="query", method="processQuery",
        description="Answer a natural-language question using unified search across Microsoft 365",
        endpoint="/api/v1/query", http_method="POST",
        parameters={
            "query": _p("string", "The question or search text", True),
            "context": _p("object", "Conversation context"),
        },
    ),
)

TOOLS_BY_ROUTE: Final[dict[tuple[str, str], ToolSpec]] = {(s.module, s.method.lower()): s for s in TOOL_TABLE}
TOOLS_BY_NAME: Final[dict[str, ToolSpec]] = {s.name.lower(): s for s in TOOL_TABLE}

PERSON_RESOLUTION: Final = ("people", "find")
QUERY_TOOL: Final = "query"
