"""
Mailbox Session Controller
==========================

Drives one connection through
IDLE -> CONNECTING -> AUTHENTICATED -> MAILBOX_OPEN -> SEARCHING -> FETCHING -> CLOSED
and resolves to exactly one SessionOutcome.

Blocking IMAP I/O runs in a worker thread. Two deadlines bound a session:

- the session deadline (inner) shuts the socket down and records TimedOut
  if nothing was recorded yet;
- the request deadline (outer) answers the caller with TimedOut without
  waiting for that teardown, which then finishes in the background.

INVARIANTS:
- INV-SESSION-01: The first recorded outcome wins; later ones are discarded
- INV-SESSION-02: Exactly one connection opened and closed per session
- INV-SESSION-05: All state lives on the session object
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import replace
from typing import TYPE_CHECKING, Callable

from contracts import (
    AuthFailed,
    AuthFailedError,
    EmailFetcherError,
    Found,
    NotFound,
    SearchCriteria,
    SessionOutcome,
    SessionState,
    SessionTimeoutError,
    TimedOut,
    TransportError,
)
from src.email_fetcher.imap_client import EmailIMAPClient
from src.email_fetcher.parser import MessageMaterializer
from src.email_fetcher.search import SubjectSearchStrategy

if TYPE_CHECKING:
    from contracts import MailRetrievalClientContract, ProviderConfig

logger = logging.getLogger("email-fetcher.session")

ClientFactory = Callable[[], "MailRetrievalClientContract"]

MAILBOX = "INBOX"

# Strong references so background teardown tasks are not garbage collected.
_background_tasks: set[asyncio.Task] = set()


class OutcomeSlot:
    """Holds the first recorded outcome. Safe across threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._outcome: SessionOutcome | None = None

    def record(self, outcome: SessionOutcome) -> bool:
        """Store outcome if the slot is empty. Returns True if it was stored."""
        with self._lock:
            if self._outcome is not None:
                return False
            self._outcome = outcome
            return True

    @property
    def outcome(self) -> SessionOutcome | None:
        with self._lock:
            return self._outcome

    @property
    def recorded(self) -> bool:
        return self.outcome is not None


class MailboxSession:
    """
    One fetch-by-subject session. Never reused.

    Implements SessionControllerContract.
    """

    def __init__(
        self,
        config: ProviderConfig,
        criteria: SearchCriteria,
        *,
        session_timeout: float = 85.0,
        client_factory: ClientFactory = EmailIMAPClient,
        search_strategy: SubjectSearchStrategy | None = None,
        materializer: MessageMaterializer | None = None,
    ) -> None:
        self.config = replace(config, read_timeout=session_timeout)
        self.criteria = criteria
        self.session_timeout = session_timeout
        self.state = SessionState.IDLE
        self._client_factory = client_factory
        self._search = search_strategy or SubjectSearchStrategy()
        self._materializer = materializer or MessageMaterializer()
        self._slot = OutcomeSlot()
        self._client: MailRetrievalClientContract | None = None
        self._aborted = threading.Event()

    @property
    def outcome(self) -> SessionOutcome | None:
        return self._slot.outcome

    def _transition(self, state: SessionState) -> None:
        logger.debug("Session %s -> %s", self.state.name, state.name)
        self.state = state

    def _check_aborted(self) -> None:
        if self._aborted.is_set():
            raise SessionTimeoutError("Search timeout")

    # -------------------------------------------------------------------------
    # Blocking path (worker thread)
    # -------------------------------------------------------------------------

    def execute(self) -> SessionOutcome:
        """Run the full sequence synchronously and return the recorded outcome."""
        if self.state is not SessionState.IDLE:
            raise RuntimeError("MailboxSession is single-use")

        client = self._client_factory()
        self._client = client
        try:
            self._drive(client)
        except AuthFailedError as e:
            logger.error("IMAP error: %s", e)
            self._slot.record(AuthFailed(str(e)))
        except EmailFetcherError as e:
            logger.error("IMAP error: %s", e)
            self._slot.record(TransportError(str(e)))
        except Exception as e:
            logger.exception("Unexpected session failure")
            self._slot.record(TransportError(str(e) or e.__class__.__name__))
        finally:
            self._end(client)

        return self._slot.outcome or NotFound()

    def _drive(self, client: MailRetrievalClientContract) -> None:
        self._check_aborted()
        logger.info("Connecting to IMAP %s:%d", self.config.host, self.config.port)
        self._transition(SessionState.CONNECTING)
        client.connect(self.config)
        self._check_aborted()
        self._transition(SessionState.AUTHENTICATED)
        logger.info("Connected")

        mailbox = client.open_mailbox(MAILBOX)
        self._check_aborted()
        self._transition(SessionState.MAILBOX_OPEN)
        logger.info("%s opened, total messages: %d", mailbox.name, mailbox.total)

        if mailbox.total == 0:
            self._slot.record(NotFound())
            return

        self._transition(SessionState.SEARCHING)
        logger.info('Searching for subject: "%s"', self.criteria.subject)
        identifiers = self._search.search_identifiers(client, self.criteria)
        self._check_aborted()

        target = self._search.select_most_recent(identifiers)
        if target is None:
            self._slot.record(NotFound())
            return

        self._transition(SessionState.FETCHING)
        logger.info("Fetching email UID %s", target)
        raw = client.fetch_raw(target)
        self._check_aborted()
        if raw is None:
            logger.warning("Server returned no data for UID %s", target)
            return

        message = self._materializer.materialize(raw)
        if self._slot.record(Found(message)):
            logger.info("Email fetched successfully")

    def _end(self, client: MailRetrievalClientContract) -> None:
        """Terminal 'end' signal: release the connection exactly once."""
        if self._aborted.is_set():
            # Connect may have finished after the deadline fired.
            client.shutdown()
        else:
            client.disconnect()
        self._transition(SessionState.CLOSED)
        logger.info("Connection closed")

    def abort(self) -> SessionOutcome:
        """
        Session deadline: record TimedOut unless something was recorded, then
        shut the socket down so the worker thread unblocks.

        The shutdown runs on its own thread, not on the shared executor.
        """
        if self._slot.record(TimedOut()):
            logger.warning("Search timeout")
        self._aborted.set()
        threading.Thread(
            target=self._teardown, name="email-fetcher-teardown", daemon=True
        ).start()
        return self._slot.outcome

    def _teardown(self) -> None:
        client = self._client
        if client is not None:
            client.shutdown()

    def expire(self, detail: str) -> SessionOutcome:
        """Request deadline: record TimedOut without touching the connection."""
        self._slot.record(TimedOut(detail))
        return self._slot.outcome

    # -------------------------------------------------------------------------
    # Async path
    # -------------------------------------------------------------------------

    async def run(self) -> SessionOutcome:
        """Execute in a worker thread, bounded by the session deadline."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(self.execute), self.session_timeout)
        except asyncio.TimeoutError:
            return self.abort()


async def fetch_message_by_subject(
    config: ProviderConfig,
    subject: str,
    *,
    request_timeout: float = 90.0,
    session_timeout: float = 85.0,
    client_factory: ClientFactory = EmailIMAPClient,
) -> SessionOutcome:
    """
    Race a MailboxSession against the request deadline.

    INV-SESSION-04: On the request deadline the caller gets TimedOut at once;
    the session keeps closing in the background.
    """
    session = MailboxSession(
        config,
        SearchCriteria(subject=subject),
        session_timeout=session_timeout,
        client_factory=client_factory,
    )
    task = asyncio.create_task(session.run())
    try:
        return await asyncio.wait_for(asyncio.shield(task), request_timeout)
    except asyncio.TimeoutError:
        outcome = session.expire("Search timeout - taking too long")
        logger.warning("Request deadline reached, closing session in background")
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        return outcome
