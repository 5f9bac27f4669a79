"""
IMAP Client Wrapper
===================

Read-only IMAP client for a single fetch-by-subject session.

INVARIANTS:
- INV-CLIENT-01: Mailbox is always selected read-only
- INV-CLIENT-02: Fetch uses BODY.PEEK[] and never sets \\Seen
- INV-CLIENT-03: shutdown() may be called from another thread to abort a
  blocked operation
- No logging of passwords or message bodies
"""

from __future__ import annotations

import logging
import ssl
from typing import TYPE_CHECKING, Any

from imapclient import IMAPClient, SocketTimeout
from imapclient.exceptions import LoginError

from contracts import (
    AuthFailedError,
    ConnectionFailedError,
    FetchFailedError,
    MailboxHandle,
    MailboxOpenError,
    MessageIdentifier,
    NotConnectedError,
    SearchFailedError,
)

if TYPE_CHECKING:
    from contracts import ProviderConfig

logger = logging.getLogger("email-fetcher.imap")

# Best-effort: servers word rejections differently, so some auth failures
# will still surface as generic transport errors.
AUTH_FAILURE_PHRASES = (
    "invalid credentials",
    "login failed",
    "authenticationfailed",
    "authentication failed",
    "authenticate failed",
)


def is_auth_failure(error: BaseException) -> bool:
    """Classify a transport error as a credential rejection."""
    if isinstance(error, LoginError):
        return True
    text = str(error).lower()
    return any(phrase in text for phrase in AUTH_FAILURE_PHRASES)


class EmailIMAPClient:
    """
    Read-only IMAP client.

    One instance owns one physical connection and is never reused across
    requests. This class intentionally does NOT implement flag changes,
    delete, move or send.
    """

    def __init__(self) -> None:
        self._client: IMAPClient | None = None
        self._server: str = ""
        self._connected: bool = False

    @property
    def connected(self) -> bool:
        """Check if connected to server."""
        return self._connected and self._client is not None

    @property
    def server(self) -> str:
        return self._server

    def connect(self, config: ProviderConfig) -> None:
        """
        Connect over TLS and authenticate.

        ERRORS:
        - ConnectionFailedError: socket/TLS failure, or non-auth login failure
        - AuthFailedError: server rejected the credentials
        """
        try:
            client = IMAPClient(
                config.host,
                port=config.port,
                ssl=config.secure,
                ssl_context=self._build_ssl_context(config),
                timeout=SocketTimeout(connect=config.conn_timeout, read=config.auth_timeout),
            )
        except Exception as e:
            raise ConnectionFailedError(f"Failed to connect: {e}") from e

        self._client = client
        self._server = config.host

        try:
            client.login(config.username, config.password)
        except Exception as e:
            self._client = None
            self._close_quietly(client)
            if is_auth_failure(e):
                raise AuthFailedError(
                    "LOGIN failed - Invalid credentials or App Password required"
                ) from e
            raise ConnectionFailedError(str(e) or e.__class__.__name__) from e

        self._connected = True
        # Auth timeout only bounds the login; reads after it are bounded by the session.
        client.socket().settimeout(config.read_timeout)

    def _build_ssl_context(self, config: ProviderConfig) -> ssl.SSLContext | None:
        if not config.secure:
            return None
        context = ssl.create_default_context()
        if config.accept_unverified_cert:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _require_connection(self) -> IMAPClient:
        """Ensure connected, raise NotConnectedError if not."""
        if not self._connected or self._client is None:
            raise NotConnectedError("Not connected to mail server")
        return self._client

    def open_mailbox(self, name: str = "INBOX") -> MailboxHandle:
        """
        Select a mailbox read-only.

        POST-CLIENT-01: Returns MailboxHandle with the total message count
        INV-CLIENT-01: readonly=True
        """
        client = self._require_connection()
        try:
            select_info = client.select_folder(name, readonly=True)
        except Exception as e:
            raise MailboxOpenError(f"Failed to open {name}: {e}") from e

        return MailboxHandle(
            name=name,
            total=int(select_info.get(b"EXISTS", 0)),
            uidvalidity=int(select_info.get(b"UIDVALIDITY", 0)),
            readonly=True,
        )

    def search(self, criteria: list[Any], charset: str | None = None) -> list[MessageIdentifier]:
        """
        Run a UID SEARCH.

        POST-CLIENT-02: Identifiers are returned in server order, unsorted.
        """
        client = self._require_connection()
        try:
            return list(client.search(criteria, charset=charset))
        except Exception as e:
            raise SearchFailedError(f"Search failed: {e}") from e

    def fetch_raw(self, identifier: MessageIdentifier) -> bytes | None:
        """
        Fetch the full raw message without marking it read.

        INV-CLIENT-02: BODY.PEEK[] preserves the \\Seen flag.
        """
        client = self._require_connection()
        try:
            response = client.fetch([identifier], ["BODY.PEEK[]"])
        except Exception as e:
            raise FetchFailedError(f"Fetch failed for UID {identifier}: {e}") from e

        data = response.get(identifier)
        if not data:
            return None
        return data.get(b"BODY[]")

    def disconnect(self) -> None:
        """Log out and release the connection."""
        client = self._client
        if client is None:
            return
        try:
            client.logout()
        except Exception as e:
            logger.debug("Logout from %s failed: %s", self._server, e)
        finally:
            self._client = None
            self._connected = False

    def shutdown(self) -> None:
        """
        Close the socket without a LOGOUT round-trip.

        INV-CLIENT-03: Unblocks any operation waiting on the server.
        """
        client = self._client
        self._client = None
        self._connected = False
        if client is not None:
            self._close_quietly(client)

    def _close_quietly(self, client: IMAPClient) -> None:
        try:
            client.shutdown()
        except Exception as e:
            logger.debug("Socket shutdown for %s raised: %s", self._server, e)
