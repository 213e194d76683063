"""Upstream Microsoft Graph client.

Modules depend only on the GraphClient protocol:

    await client.api("/me/messages", user_id, session_id).query({"$top": 10}).get()
    await client.api("/search/query").version("beta").post(body)

HttpxGraphClient is the production implementation: bearer auth from an
injected token provider, JSON bodies via orjson, retries on throttling and
transient gateway errors honoring Retry-After.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, Self, runtime_checkable

import httpx
import orjson

if TYPE_CHECKING:
    from m365mcp.foundation.config import GraphSettings

TokenProvider = Callable[[str | None, str | None], Awaitable[str] | str]

RETRY_STATUSES = frozenset({429, 503, 504})


class UpstreamError(Exception):
    """Non-2xx response from the upstream API."""

    __slots__ = ("status_code", "body", "path")

    def __init__(self, status_code: int, message: str, body: Any = None, path: str | None = None) -> None:
        self.status_code = status_code
        self.body = body
        self.path = path
        super().__init__(message)


# ─────────────────────────────────────────────────────────────────────────────
# Protocols
# ─────────────────────────────────────────────────────────────────────────────


@runtime_checkable
class GraphRequest(Protocol):
    def query(self, params: dict[str, Any]) -> Self: ...
    def version(self, version: str) -> Self: ...
    async def get(self) -> Any: ...
    async def post(self, body: Any = None) -> Any: ...
    async def patch(self, body: Any = None) -> Any: ...
    async def put(self, body: Any = None) -> Any: ...
    async def delete(self) -> Any: ...


@runtime_checkable
class GraphClient(Protocol):
    def api(self, path: str, user_id: str | None = None, session_id: str | None = None) -> GraphRequest: ...


# ─────────────────────────────────────────────────────────────────────────────
# httpx implementation
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class HttpxRequest:
    """Fluent request bound to one path and caller."""

    client: HttpxGraphClient
    path: str
    user_id: str | None = None
    session_id: str | None = None
    params: dict[str, Any] = field(default_factory=dict)
    api_version: str | None = None

    def query(self, params: dict[str, Any]) -> Self:
        self.params.update({k: v for k, v in params.items() if v is not None})
        return self

    def version(self, version: str) -> Self:
        self.api_version = version
        return self

    async def get(self) -> Any:
        return await self.client.send("GET", self)

    async def post(self, body: Any = None) -> Any:
        return await self.client.send("POST", self, body)

    async def patch(self, body: Any = None) -> Any:
        return await self.client.send("PATCH", self, body)

    async def put(self, body: Any = None) -> Any:
        return await self.client.send("PUT", self, body)

    async def delete(self) -> Any:
        return await self.client.send("DELETE", self)


class HttpxGraphClient:
    """GraphClient over httpx.AsyncClient.

    Args:
        settings: Base URL, API version, timeout and retry budget
        token_provider: (user_id, session_id) -> bearer token, sync or async.
            Defaults to the static token in settings.
        transport: Optional httpx transport (tests use httpx.MockTransport)
        sleep: Backoff sleeper, injectable for tests

    Example:
        >>> client = HttpxGraphClient(get_settings().graph, token_provider=tokens.for_user)
        >>> me = await client.api("/me").get()
    """

    def __init__(
        self,
        settings: GraphSettings,
        token_provider: TokenProvider | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self._token_provider = token_provider
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    def api(self, path: str, user_id: str | None = None, session_id: str | None = None) -> HttpxRequest:
        return HttpxRequest(self, path if path.startswith("/") else f"/{path}", user_id, session_id)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url.rstrip("/"),
                timeout=self.settings.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _token(self, user_id: str | None, session_id: str | None) -> str | None:
        if self._token_provider is None:
            secret = self.settings.access_token
            return secret.get_secret_value() if secret else None
        token = self._token_provider(user_id, session_id)
        return await token if inspect.isawaitable(token) else token

    async def send(self, method: str, request: HttpxRequest, body: Any = None) -> Any:
        client = await self._get_client()
        headers = {"Accept": "application/json"}
        if token := await self._token(request.user_id, request.session_id):
            headers["Authorization"] = f"Bearer {token}"
        content: bytes | None = None
        if isinstance(body, (bytes, str)):
            content = body.encode() if isinstance(body, str) else body
            headers["Content-Type"] = "text/plain" if isinstance(body, str) else "application/octet-stream"
        elif body is not None:
            content = orjson.dumps(body)
            headers["Content-Type"] = "application/json"
        url = f"/{request.api_version or self.settings.api_version}{request.path}"

        attempt = 0
        while True:
            response = await client.request(method, url, params=request.params or None, content=content,
                                            headers=headers)
            if response.status_code in RETRY_STATUSES and attempt < self.settings.max_retries:
                attempt += 1
                await self._sleep(_retry_after(response, attempt))
                continue
            return _decode(response, request.path)


def _retry_after(response: httpx.Response, attempt: int) -> float:
    try:
        return max(0.0, float(response.headers.get("Retry-After", "")))
    except ValueError:
        return min(2.0 ** (attempt - 1), 30.0)


def _decode(response: httpx.Response, path: str) -> Any:
    if response.is_success and (response.status_code == 204 or not response.content):
        return None
    content_type = response.headers.get("content-type", "")
    data: Any = response.content
    if "json" in content_type:
        try:
            data = orjson.loads(response.content)
        except orjson.JSONDecodeError:
            data = response.text
    elif content_type.startswith("text/"):
        data = response.text
    if response.is_success:
        return data
    message = response.reason_phrase or "Upstream request failed"
    if isinstance(data, dict) and isinstance(err := data.get("error"), dict):
        message = err.get("message") or message
    raise UpstreamError(response.status_code, f"Graph API request failed ({response.status_code}): {message}",
                        data, path)
