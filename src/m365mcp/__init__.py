"""m365mcp - Model Context Protocol tool-dispatch core for Microsoft 365.

Exposes mail, calendar, files, people, tasks, contacts, Teams and unified
search as agent-callable tools. A tool call flows through the router, the
parameter transformer and placement resolution into a Graph-backed module,
with every stage reporting to the monitoring service.

Quick Start:
    >>> from m365mcp.server import build_application
    >>> app = build_application()
    >>> app.catalog.list_tools()[0].name
    'findPeople'
"""

__version__ = "0.4.0"
