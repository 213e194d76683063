"""OneDrive and SharePoint files."""

from __future__ import annotations

import base64
from typing import Any
from urllib.parse import quote

from .base import Args, GraphModule, Operation, RequestContext, values
from .normalizers import normalize_file, normalize_permission


def _item(args: Args, key: str = "parentId") -> str:
    """Drive item path prefix, the root when no id is given."""
    return f"/me/drive/items/{args[key]}" if args.get(key) else "/me/drive/root"


async def _list_files(module: GraphModule, args: Args, ctx: RequestContext) -> list[dict[str, Any]]:
    raw = await module.graph.api(f"{_item(args)}/children", ctx.user_id, ctx.session_id).get()
    return [normalize_file(f) for f in values(raw)]


async def _search_files(module: GraphModule, args: Args, ctx: RequestContext) -> list[dict[str, Any]]:
    term = str(args["q"]).replace("'", "''")
    raw = await module.graph.api(f"/me/drive/root/search(q='{term}')", ctx.user_id, ctx.session_id).get()
    return [normalize_file(f) for f in values(raw)]


async def _upload(module: GraphModule, args: Args, ctx: RequestContext) -> dict[str, Any]:
    path = f"{_item(args)}:/{quote(str(args['name']))}:/content"
    raw = await module.graph.api(path, ctx.user_id, ctx.session_id).put(args["content"])
    return normalize_file(raw or {})


def _content(args: Args, raw: Any) -> dict[str, Any]:
    """Text bodies pass as-is; binary bodies are base64 encoded."""
    file_id = args.get("id") or args.get("fileId")
    if isinstance(raw, bytes):
        return {"id": file_id, "encoding": "base64", "content": base64.b64encode(raw).decode("ascii")}
    return {"id": file_id, "encoding": "text" if isinstance(raw, str) else "json", "content": raw}


def _write(path: str) -> Operation:
    return Operation("PUT", path, required=("content",), body=lambda a: a["content"], normalize=normalize_file)


class FilesModule(GraphModule):
    id = "files"
    display_name = "OneDrive Files"
    operations = {
        "listFiles": Operation(handler=_list_files),
        "searchFiles": Operation(required=("q",), handler=_search_files),
        "downloadFile": Operation("GET", "/me/drive/items/{id}/content", shape=_content),
        "uploadFile": Operation(required=("name", "content"), handler=_upload),
        "getFileMetadata": Operation("GET", "/me/drive/items/{id}", normalize=normalize_file),
        "getFileContent": Operation("GET", "/me/drive/items/{id}/content", shape=_content),
        "setFileContent": _write("/me/drive/items/{fileId}/content"),
        "updateFileContent": _write("/me/drive/items/{fileId}/content"),
        "deleteFile": Operation("DELETE", "/me/drive/items/{id}", shape=lambda a, _: {"deleted": True, "id": a["id"]}),
        "createSharingLink": Operation(
            "POST", "/me/drive/items/{fileId}/createLink",
            body=lambda a: {"type": a.get("type") or "view", "scope": a.get("scope") or "organization"},
            normalize=normalize_permission,
        ),
        "getSharingLinks": Operation(
            "GET", "/me/drive/items/{fileId}/permissions", normalize=normalize_permission, collection=True,
        ),
        "removeSharingPermission": Operation(
            "DELETE", "/me/drive/items/{fileId}/permissions/{permissionId}",
            shape=lambda a, _: {"removed": True, "fileId": a["fileId"], "permissionId": a["permissionId"]},
        ),
    }
