"""Tests for application assembly and the stdio loop."""

import io

import orjson
import pytest

from m365mcp.__main__ import main
from m365mcp.observability import EventBus, MonitoringService
from m365mcp.server import Application, build_application, serve


def test_assembly_registers_all_modules(app: Application) -> None:
    assert [m.id for m in app.registry] == [
        "people", "mail", "calendar", "files", "todo", "contacts", "teams", "groups", "search", "query",
    ]
    assert app.monitor.bus is app.bus


def test_assembly_logs_each_module_once(app: Application, settings, graph, monitor: MonitoringService) -> None:
    build_application(settings, graph=graph, monitor=monitor, bus=EventBus())
    registered = [e for e in monitor.get_latest_logs() if e["message"].startswith("Module registered")]
    assert len(registered) == len(app.modules)


@pytest.mark.asyncio
async def test_serve_round_trip(app: Application) -> None:
    """One reply per request line; blank lines and notifications produce nothing."""
    stdin = io.BytesIO(b"\n".join([
        orjson.dumps({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}),
        b"",
        orjson.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}),
        orjson.dumps({"jsonrpc": "2.0", "id": 2, "method": "tools/list"}),
    ]) + b"\n")
    stdout = io.BytesIO()
    await serve(app, stdin, stdout)
    replies = [orjson.loads(line) for line in stdout.getvalue().splitlines()]
    assert [r["id"] for r in replies] == [1, 2]
    assert replies[1]["result"]["tools"][0]["name"] == "findPeople"
    assert not app.monitor.governor.running


def test_cli_version(capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["--version"])
    assert exc_info.value.code == 0
    assert "m365-mcp" in capsys.readouterr().out
