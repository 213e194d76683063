"""`python -m m365mcp`: serve MCP tools over stdio."""

from __future__ import annotations

import argparse
import os

from m365mcp import __version__
from m365mcp.server import run


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="m365-mcp", description="Microsoft 365 MCP tool server (stdio)")
    parser.add_argument("--user-id", default=os.environ.get("M365_USER_ID"), help="Caller user id for log tagging")
    parser.add_argument("--session-id", default=os.environ.get("M365_SESSION_ID"), help="Caller session id")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)
    run(user_id=args.user_id, session_id=args.session_id)


if __name__ == "__main__":
    main()
