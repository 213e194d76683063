"""JSON-RPC 2.0 request handling for the MCP tool surface.

Supported methods: initialize, notifications/initialized, ping, tools/list,
tools/call. Messages without an id are notifications and get no response.
Error mapping:

    parse failure           -32700
    malformed request       -32600
    unknown method or tool  -32601
    validation McpException -32602
    anything else           -32603
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Final

import orjson

from m365mcp import __version__
from m365mcp.foundation.errors import JsonRpcCode, McpException, jsonrpc_code

from .dispatch import ToolNotFoundError

if TYPE_CHECKING:
    from m365mcp.dispatch import Dispatcher
    from m365mcp.observability import MonitoringService
    from m365mcp.tools import ToolCatalog

PROTOCOL_VERSION: Final = "2024-11-05"
SERVER_NAME: Final = "mcp-microsoft-365"

Message = dict[str, Any]


class JsonRpcError(Exception):
    """Protocol-level failure carrying its JSON-RPC code."""

    __slots__ = ("code",)

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        super().__init__(message)


def response(id_: Any, result: Any) -> Message:
    return {"jsonrpc": "2.0", "id": id_, "result": result}


def error_response(id_: Any, code: int, message: str) -> Message:
    return {"jsonrpc": "2.0", "id": id_, "error": {"code": int(code), "message": message}}


def text_content(result: Any) -> dict[str, Any]:
    """tools/call result: the module output serialized as one text block."""
    text = orjson.dumps(result, default=str, option=orjson.OPT_INDENT_2).decode()
    return {"content": [{"type": "text", "text": text}]}


class JsonRpcHandler:
    """Answer JSON-RPC messages using the catalog and dispatcher.

    Args:
        catalog: Source of the tools/list payload
        dispatcher: Executes tools/call
        monitor: Monitoring service for protocol-level failures
        user_id: Caller identity attached to every tool call
        session_id: Caller session attached to every tool call
        version: Reported in serverInfo

    Example:
        >>> handler = JsonRpcHandler(app.catalog, app.dispatcher)
        >>> await handler.handle({"jsonrpc": "2.0", "id": 1, "method": "ping"})
        {'jsonrpc': '2.0', 'id': 1, 'result': {}}
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        dispatcher: Dispatcher,
        monitor: MonitoringService | None = None,
        *,
        user_id: str | None = None,
        session_id: str | None = None,
        version: str = __version__,
    ) -> None:
        self.catalog = catalog
        self.dispatcher = dispatcher
        self._monitor = monitor
        self.user_id = user_id
        self.session_id = session_id
        self.version = version
        self.client_info: dict[str, Any] | None = None
        self.initialized = False

    async def handle_line(self, line: bytes | str) -> bytes | None:
        """Parse one serialized message (or batch) and serialize the reply."""
        try:
            message = orjson.loads(line)
        except orjson.JSONDecodeError as e:
            return orjson.dumps(error_response(None, JsonRpcCode.PARSE_ERROR, f"Parse error: {e}"))
        if isinstance(message, list):
            if not message:
                return orjson.dumps(error_response(None, JsonRpcCode.INVALID_REQUEST, "Empty batch"))
            replies = [r for r in await asyncio.gather(*(self.handle(m) for m in message)) if r is not None]
            return orjson.dumps(replies) if replies else None
        reply = await self.handle(message)
        return orjson.dumps(reply) if reply is not None else None

    async def handle(self, message: Any) -> Message | None:
        if not isinstance(message, dict) or message.get("jsonrpc") != "2.0" \
                or not isinstance(message.get("method"), str):
            id_ = message.get("id") if isinstance(message, dict) else None
            return error_response(id_, JsonRpcCode.INVALID_REQUEST, "Invalid Request")
        is_notification = "id" not in message
        id_ = message.get("id")
        params = message.get("params") or {}
        try:
            if not isinstance(params, dict):
                raise JsonRpcError(JsonRpcCode.INVALID_PARAMS, "params must be an object")
            result = await self._route(message["method"], params)
        except JsonRpcError as e:
            reply = error_response(id_, e.code, str(e))
        except ToolNotFoundError as e:
            reply = error_response(id_, JsonRpcCode.METHOD_NOT_FOUND, e.error.message)
        except McpException as e:
            reply = error_response(id_, jsonrpc_code(e.error), e.error.message)
        except Exception as e:
            if self._monitor:
                self._monitor.log_error(e, self.user_id, self.session_id)
            reply = error_response(id_, JsonRpcCode.INTERNAL_ERROR, f"Internal error: {e}")
        else:
            reply = response(id_, result)
        return None if is_notification else reply

    async def _route(self, method: str, params: dict[str, Any]) -> Any:
        match method:
            case "initialize":
                self.client_info = params.get("clientInfo")
                return {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {"tools": {}},
                    "serverInfo": {"name": SERVER_NAME, "version": self.version},
                }
            case "notifications/initialized" | "initialized":
                self.initialized = True
                return None
            case "ping":
                return {}
            case "tools/list":
                return {"tools": self.catalog.list_wire()}
            case "tools/call":
                name = params.get("name")
                if not isinstance(name, str) or not name:
                    raise JsonRpcError(JsonRpcCode.INVALID_PARAMS, "tools/call requires a tool name")
                arguments = params.get("arguments") or {}
                if not isinstance(arguments, dict):
                    raise JsonRpcError(JsonRpcCode.INVALID_PARAMS, "arguments must be an object")
                result = await self.dispatcher.call_tool(
                    name, arguments, user_id=self.user_id, session_id=self.session_id,
                )
                return text_content(result)
            case _:
                raise JsonRpcError(JsonRpcCode.METHOD_NOT_FOUND, f"Method not found: {method}")
