"""
Email Fetcher Server
====================

Validates fetch requests, resolves the provider, runs one mailbox session
per request and maps the outcome to a caller-facing response. The same core
is exposed as MCP tools over stdio.

INVARIANTS ENFORCED:
- INV-REQUEST-01: Invalid requests fail before any network activity
- INV-REQUEST-02: No logging of passwords or message bodies
- One connection per request, no pooling, no shared session state
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from contracts import (
    FetchResponse,
    InvalidRequestError,
    ProviderName,
    UnknownProviderError,
)
from src.email_fetcher.imap_client import EmailIMAPClient
from src.email_fetcher.providers import PROVIDERS, resolve_provider
from src.email_fetcher.results import invalid_request, map_outcome, unknown_provider
from src.email_fetcher.session import ClientFactory, fetch_message_by_subject
from src.email_fetcher.settings import Settings, get_settings

# Configure logging to NEVER include passwords or message content
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("email-fetcher")

REQUIRED_FIELDS = ("provider", "username", "password", "subject")


@dataclass(frozen=True)
class FetchRequest:
    """Validated inbound request."""

    provider: str
    username: str
    password: str = field(repr=False)
    subject: str = ""


def validate_request(payload: Any) -> FetchRequest:
    """
    PRE-REQUEST-01: All required fields present as non-empty strings.

    ERRORS:
    - InvalidRequestError
    """
    if not isinstance(payload, dict):
        raise InvalidRequestError("Request body must be an object")

    missing = [
        name
        for name in REQUIRED_FIELDS
        if not isinstance(payload.get(name), str) or not payload.get(name)
    ]
    if missing:
        raise InvalidRequestError(f"Missing required fields: {', '.join(missing)}")

    return FetchRequest(
        provider=payload["provider"],
        username=payload["username"],
        password=payload["password"],
        subject=payload["subject"],
    )


class EmailFetcherServer:
    """
    Fetch-by-subject service.

    Implements FetchEmailContract. Holds no per-request state; every call to
    fetch_email owns its own session.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client_factory: ClientFactory = EmailIMAPClient,
    ) -> None:
        self._settings = settings or get_settings()
        self._client_factory = client_factory
        self._server = Server("email-fetcher")
        self._setup_tools()

    @property
    def settings(self) -> Settings:
        return self._settings

    def _setup_tools(self) -> None:
        """Register MCP tools."""

        @self._server.list_tools()
        async def list_tools() -> list[Tool]:
            return [
                Tool(
                    name="email_fetch_by_subject",
                    description=(
                        "Fetch the most recent INBOX message whose subject contains "
                        "the given text. Messages are not marked as read."
                    ),
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "provider": {
                                "type": "string",
                                "enum": [p.value for p in ProviderName],
                                "description": "Mailbox provider",
                            },
                            "username": {
                                "type": "string",
                                "description": "Mailbox login, usually the email address",
                            },
                            "password": {
                                "type": "string",
                                "description": "App password for the provider",
                            },
                            "subject": {
                                "type": "string",
                                "description": "Text the subject must contain",
                            },
                        },
                        "required": list(REQUIRED_FIELDS),
                    },
                ),
                Tool(
                    name="email_providers",
                    description="List supported providers and their IMAP endpoints",
                    inputSchema={
                        "type": "object",
                        "properties": {},
                    },
                ),
            ]

        @self._server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            if name == "email_fetch_by_subject":
                response = await self.fetch_email(arguments)
                result = {"status_code": response.status_code, **response.body}
            elif name == "email_providers":
                result = self.email_providers()
            else:
                return [TextContent(type="text", text=f"Unknown tool: {name}")]

            return [TextContent(type="text", text=self._serialize_result(result))]

    async def fetch_email(self, payload: Any) -> FetchResponse:
        """
        Fetch one message by subject.

        Implements FetchEmailContract.
        """
        start = time.monotonic()
        logger.info("=" * 60)
        logger.info("Request received")

        try:
            request = validate_request(payload)
        except InvalidRequestError as e:
            logger.info("Rejected request: %s", e)
            return invalid_request(time.monotonic() - start)

        # Username and subject only; never the password (INV-REQUEST-02)
        logger.info("Provider: %s", request.provider)
        logger.info("Username: %s", request.username)
        logger.info("Subject search: %s", request.subject)

        try:
            config = resolve_provider(
                request.provider,
                request.username,
                request.password,
                auth_timeout=self._settings.auth_timeout_seconds,
                conn_timeout=self._settings.connection_timeout_seconds,
            )
        except UnknownProviderError as e:
            logger.info("Rejected request: %s", e)
            return unknown_provider(time.monotonic() - start)

        outcome = await fetch_message_by_subject(
            config,
            request.subject,
            request_timeout=self._settings.request_timeout_seconds,
            session_timeout=self._settings.session_timeout_seconds,
            client_factory=self._client_factory,
        )

        elapsed = time.monotonic() - start
        logger.info("Completed in %.2fs (%s)", elapsed, outcome.kind.value)
        return map_outcome(
            outcome,
            provider=request.provider,
            subject=request.subject,
            elapsed=elapsed,
        )

    def email_providers(self) -> dict:
        """Supported providers with endpoint and app-password help."""
        return {
            "providers": [
                {"name": name.value, **asdict(endpoint)}
                for name, endpoint in PROVIDERS.items()
            ]
        }

    def _serialize_result(self, result: Any) -> str:
        """Serialize result to JSON string."""
        return json.dumps(result, indent=2)

    async def run(self) -> None:
        """Run the MCP server."""
        async with stdio_server() as (read_stream, write_stream):
            await self._server.run(
                read_stream, write_stream, self._server.create_initialization_options()
            )


# Singleton for process lifetime
_server_instance: EmailFetcherServer | None = None


def get_server() -> EmailFetcherServer:
    """Get or create the server singleton."""
    global _server_instance
    if _server_instance is None:
        _server_instance = EmailFetcherServer()
    return _server_instance


def create_server(
    settings: Settings | None = None,
    client_factory: ClientFactory = EmailIMAPClient,
) -> EmailFetcherServer:
    """Create a new server instance (for testing)."""
    return EmailFetcherServer(settings=settings, client_factory=client_factory)
