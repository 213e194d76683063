"""Teams chats, channels and online meetings."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Final

from .base import Args, GraphModule, Operation, compact, odata_literal, top
from .normalizers import (
    normalize_channel,
    normalize_chat,
    normalize_online_meeting,
    normalize_team,
    normalize_teams_message,
)

_USER_BIND: Final = "https://graph.microsoft.com/v1.0/users('{}')"
_MEMBER_TYPE: Final = "#microsoft.graph.aadUserConversationMember"


def _member(user: str, roles: list[str] | None = None) -> dict[str, Any]:
    return {
        "@odata.type": _MEMBER_TYPE,
        "roles": ["owner"] if roles is None else roles,
        "user@odata.bind": _USER_BIND.format(user),
    }


def _chat(args: Args) -> dict[str, Any]:
    members = list(args.get("members") or [])
    chat_type = args.get("chatType") or ("oneOnOne" if len(members) <= 2 and not args.get("topic") else "group")
    return compact(chatType=chat_type, topic=args.get("topic"), members=[_member(m) for m in members])


def _message(args: Args) -> dict[str, Any]:
    return compact(
        subject=args.get("subject"),
        body={"contentType": args.get("contentType") or "text", "content": args["content"]},
        importance=args.get("importance"),
    )


def _channel(args: Args) -> dict[str, Any]:
    return compact(
        displayName=args["displayName"],
        description=args.get("description"),
        membershipType=args.get("membershipType") or "standard",
    )


def _meeting(args: Args) -> dict[str, Any]:
    meeting = compact(subject=args.get("subject"), startDateTime=args.get("startDateTime"),
                      endDateTime=args.get("endDateTime"))
    if participants := args.get("participants"):
        meeting["participants"] = {"attendees": [{"upn": p, "role": "attendee"} for p in participants]}
    return meeting


def _meetings_query(args: Args) -> dict[str, Any]:
    if args.get("filter"):
        return {"$filter": args["filter"]}
    return {"$filter": f"JoinWebUrl eq {odata_literal(args['joinUrl'])}"}


def _page(default: int) -> Callable[[Args], dict[str, Any]]:
    return lambda a: {"$top": top(a, default, 50)}


class TeamsModule(GraphModule):
    id = "teams"
    display_name = "Microsoft Teams"
    operations = {
        "listChats": Operation("GET", "/me/chats", query=lambda a: {"$top": top(a, 20, 50), "$expand": "members"},
                               normalize=normalize_chat, collection=True),
        "createChat": Operation("POST", "/chats", required=("members",), body=_chat, normalize=normalize_chat),
        "getChatMessages": Operation("GET", "/chats/{chatId}/messages", query=_page(20),
                                     normalize=normalize_teams_message, collection=True),
        "sendChatMessage": Operation("POST", "/chats/{chatId}/messages", required=("content",), body=_message,
                                     normalize=normalize_teams_message),
        "listJoinedTeams": Operation("GET", "/me/joinedTeams", normalize=normalize_team, collection=True),
        "listTeamChannels": Operation("GET", "/teams/{teamId}/channels", normalize=normalize_channel, collection=True),
        "getChannelMessages": Operation("GET", "/teams/{teamId}/channels/{channelId}/messages", query=_page(20),
                                        normalize=normalize_teams_message, collection=True),
        "sendChannelMessage": Operation("POST", "/teams/{teamId}/channels/{channelId}/messages",
                                        required=("content",), body=_message, normalize=normalize_teams_message),
        "replyToMessage": Operation("POST", "/teams/{teamId}/channels/{channelId}/messages/{messageId}/replies",
                                    required=("content",), body=_message, normalize=normalize_teams_message),
        "createTeamChannel": Operation("POST", "/teams/{teamId}/channels", required=("displayName",), body=_channel,
                                       normalize=normalize_channel),
        "addChannelMember": Operation(
            "POST", "/teams/{teamId}/channels/{channelId}/members", required=("userId",),
            body=lambda a: _member(a["userId"], a.get("roles") or []),
            shape=lambda a, raw: {"id": (raw or {}).get("id"), "displayName": (raw or {}).get("displayName"),
                                  "roles": (raw or {}).get("roles") or []},
        ),
        "createOnlineMeeting": Operation("POST", "/me/onlineMeetings", required=("subject",), body=_meeting,
                                         normalize=normalize_online_meeting),
        "getOnlineMeeting": Operation("GET", "/me/onlineMeetings/{meetingId}", normalize=normalize_online_meeting),
        "listOnlineMeetings": Operation("GET", "/me/onlineMeetings", required_any=("filter", "joinUrl"),
                                        query=_meetings_query, normalize=normalize_online_meeting, collection=True),
    }
