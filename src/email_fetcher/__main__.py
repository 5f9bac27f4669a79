"""Command-line entry point: HTTP server or MCP stdio server."""

from __future__ import annotations

import argparse
import asyncio
import logging

import uvicorn

from src.email_fetcher.http_app import create_app
from src.email_fetcher.server import get_server
from src.email_fetcher.settings import get_settings


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Fetch one email by subject over IMAP")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP API (default)")
    serve.add_argument("--host", default=settings.host, help="Bind address")
    serve.add_argument("--port", type=int, default=settings.port, help="Listening port (env PORT)")

    sub.add_parser("mcp", help="Run the MCP server over stdio")

    args = parser.parse_args(argv)
    logging.getLogger().setLevel(settings.log_level.upper())

    if args.command == "mcp":
        asyncio.run(get_server().run())
        return 0

    host = getattr(args, "host", settings.host)
    port = getattr(args, "port", settings.port)
    uvicorn.run(create_app(settings=settings), host=host, port=port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
