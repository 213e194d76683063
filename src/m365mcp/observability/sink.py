"""File and console sinks built on stdlib logging.

The file sink is a size-rotated, append-only JSON-lines file (one orjson
object per entry). The console sink writes `[MCP CATEGORY] message` lines to
stderr; stdout belongs to the JSON-RPC stream.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, TextIO

import orjson

from .events import stderr_report

_LEVELS: dict[str, int] = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class JsonLineFormatter(logging.Formatter):
    """Render the entry attached to a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = getattr(record, "entry", None) or {"level": record.levelname.lower(), "message": record.getMessage()}
        return orjson.dumps(entry, default=str).decode()


class ConsoleFormatter(logging.Formatter):
    """`[MCP CATEGORY] message`, with a trailing suffix for metrics."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = getattr(record, "entry", None) or {}
        category = str(entry.get("category") or "system").upper()
        if entry.get("type") == "metric":
            return f"[MCP METRIC] {entry.get('name')}: {entry.get('value')}{entry.get('unit') or ''}"
        return f"[MCP {category}] {entry.get('message', record.getMessage())}"


class LogSink:
    """Dedicated non-propagating logger with file and console handlers.

    Args:
        name: Logger name (kept distinct per instance so tests don't share handlers)
        path: Rotating file path; None disables the file handler
        max_bytes: Rotation size
        backup_count: Rotated files kept
        console: Install the stderr console handler
        stream: Console stream override
    """

    def __init__(
        self,
        name: str = "m365mcp.sink",
        path: Path | str | None = None,
        *,
        max_bytes: int = 2 * 1024 * 1024,
        backup_count: int = 5,
        console: bool = True,
        stream: TextIO | None = None,
    ) -> None:
        self._logger = logging.getLogger(name)
        self._logger.setLevel(logging.DEBUG)
        self._logger.propagate = False
        self.close()
        self.path = Path(path) if path else None
        if self.path is not None:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                handler = RotatingFileHandler(self.path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
                handler.setFormatter(JsonLineFormatter())
                self._logger.addHandler(handler)
            except OSError as e:
                stderr_report("INFRASTRUCTURE ERROR", f"file sink unavailable at {self.path}", e)
                self.path = None
        if console:
            handler = logging.StreamHandler(stream or sys.stderr)
            handler.setFormatter(ConsoleFormatter())
            self._logger.addHandler(handler)

    @property
    def handlers(self) -> list[logging.Handler]:
        return list(self._logger.handlers)

    def write(self, entry: dict[str, Any]) -> None:
        level = logging.DEBUG if entry.get("type") == "metric" else _LEVELS.get(str(entry.get("level")), logging.INFO)
        try:
            self._logger.log(level, entry.get("message", ""), extra={"entry": entry})
        except Exception as e:  # noqa: BLE001
            stderr_report("INFRASTRUCTURE ERROR", "sink write failed", e)

    def close(self) -> None:
        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
            handler.close()
