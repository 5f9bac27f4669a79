"""
Email Fetch-By-Subject Contract
===============================

Retrieve ONE message from a remote mailbox by subject substring, within a
bounded time budget, without mutating the mailbox.

This contract defines the behavioral specification for all public interfaces.
Implementation SHALL perform ONLY declared behaviors.

AUTHORITY: This file is the SINGLE authoritative source for fetcher behavior.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, ClassVar, Protocol, runtime_checkable


# =============================================================================
# DOMAIN TYPES
# =============================================================================

class ProviderName(Enum):
    """Supported mailbox providers."""
    GMAIL = "gmail"
    OUTLOOK = "outlook"
    YAHOO = "yahoo"


@dataclass(frozen=True)
class ProviderConfig:
    """Connection parameters for one request. Never shared across requests."""
    provider: ProviderName
    username: str
    password: str = field(repr=False)
    host: str = ""
    port: int = 993
    secure: bool = True
    accept_unverified_cert: bool = True
    auth_timeout: float = 15.0  # seconds
    conn_timeout: float = 15.0  # seconds
    read_timeout: float = 85.0  # seconds, after login


@dataclass(frozen=True)
class SearchCriteria:
    """Subject substring to search for. Matching is done by the server."""
    subject: str


@dataclass(frozen=True)
class MailboxHandle:
    """Read-only view of a mailbox for the duration of one session."""
    name: str
    total: int
    uidvalidity: int = 0
    readonly: bool = True


# Server-assigned UID, unique within the open mailbox session.
MessageIdentifier = int


@dataclass(frozen=True)
class NormalizedMessage:
    """Protocol-agnostic representation of the fetched message."""
    subject: str
    from_: str
    to: str
    date: datetime  # timezone-aware, UTC
    html: str
    text: str
    date_is_fallback: bool = False

    def to_dict(self) -> dict[str, str]:
        """Caller-facing shape: subject, from, to, date (ISO-8601), html, text."""
        return {
            "subject": self.subject,
            "from": self.from_,
            "to": self.to,
            "date": format_iso_utc(self.date),
            "html": self.html,
            "text": self.text,
        }


def format_iso_utc(value: datetime) -> str:
    """Render a datetime as UTC ISO-8601 with milliseconds, e.g. 2026-01-13T10:00:00.000Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class SessionState(Enum):
    """Lifecycle of one mailbox session."""
    IDLE = auto()
    CONNECTING = auto()
    AUTHENTICATED = auto()
    MAILBOX_OPEN = auto()
    SEARCHING = auto()
    FETCHING = auto()
    CLOSED = auto()


class OutcomeKind(Enum):
    """Discriminator for SessionOutcome variants."""
    FOUND = "found"
    NOT_FOUND = "not_found"
    TIMED_OUT = "timed_out"
    AUTH_FAILED = "auth_failed"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class SessionOutcome:
    """Terminal result of a session. Exactly one is produced per request."""
    kind: ClassVar[OutcomeKind]


@dataclass(frozen=True)
class Found(SessionOutcome):
    message: NormalizedMessage
    kind: ClassVar[OutcomeKind] = OutcomeKind.FOUND


@dataclass(frozen=True)
class NotFound(SessionOutcome):
    kind: ClassVar[OutcomeKind] = OutcomeKind.NOT_FOUND


@dataclass(frozen=True)
class TimedOut(SessionOutcome):
    detail: str = "Search timeout"
    kind: ClassVar[OutcomeKind] = OutcomeKind.TIMED_OUT


@dataclass(frozen=True)
class AuthFailed(SessionOutcome):
    detail: str = "LOGIN failed - Invalid credentials or App Password required"
    kind: ClassVar[OutcomeKind] = OutcomeKind.AUTH_FAILED


@dataclass(frozen=True)
class TransportError(SessionOutcome):
    detail: str = ""
    kind: ClassVar[OutcomeKind] = OutcomeKind.TRANSPORT_ERROR


@dataclass(frozen=True)
class FetchResponse:
    """Caller-facing response: HTTP-equivalent status code and JSON body."""
    status_code: int
    body: dict[str, Any]


# =============================================================================
# ERROR TYPES
# =============================================================================

class EmailFetcherError(Exception):
    """Base error for all fetcher operations."""
    code: str = "ERROR"


class InvalidRequestError(EmailFetcherError):
    """
    ERRORS-REQUEST-01: A required field is missing or empty.

    RECOVERY: Caller corrects the request. No network activity took place.
    """
    code = "INVALID_REQUEST"


class UnknownProviderError(EmailFetcherError):
    """
    ERRORS-REQUEST-02: Provider is not one of gmail, outlook, yahoo.

    RECOVERY: Caller corrects the request. Not retryable as-is.
    """
    code = "UNKNOWN_PROVIDER"


class AuthFailedError(EmailFetcherError):
    """
    ERRORS-SESSION-01: Server rejected the credentials.

    RECOVERY: Caller supplies an app password for the provider.
    """
    code = "AUTH_FAILED"


class ConnectionFailedError(EmailFetcherError):
    """
    ERRORS-SESSION-02: Network unreachable, host not found, or TLS handshake failed.
    """
    code = "CONNECTION_FAILED"


class NotConnectedError(EmailFetcherError):
    """
    ERRORS-SESSION-03: Operation attempted on a client with no live session.
    """
    code = "NOT_CONNECTED"


class MailboxOpenError(EmailFetcherError):
    """
    ERRORS-SESSION-04: INBOX could not be opened read-only.
    """
    code = "MAILBOX_OPEN_FAILED"


class SearchFailedError(EmailFetcherError):
    """
    ERRORS-SESSION-05: Server-side SEARCH failed. Not retried.
    """
    code = "SEARCH_FAILED"


class FetchFailedError(EmailFetcherError):
    """
    ERRORS-SESSION-06: FETCH of the selected message failed.
    """
    code = "FETCH_FAILED"


class MessageParseError(EmailFetcherError):
    """
    ERRORS-SESSION-07: Raw message could not be parsed.
    """
    code = "PARSE_FAILED"


class SessionTimeoutError(EmailFetcherError):
    """
    ERRORS-SESSION-08: Deadline elapsed before the session reached CLOSED.

    RECOVERY: Caller narrows the subject and retries.
    """
    code = "TIMED_OUT"


# =============================================================================
# COMPONENT CONTRACTS
# =============================================================================

@runtime_checkable
class ProviderResolverContract(Protocol):
    """
    Provider Config Resolver

    PRE-RESOLVE-01: provider is a string (any case)

    POST-RESOLVE-01: Returns ProviderConfig for gmail, outlook, yahoo
    POST-RESOLVE-02: port == 993 and secure is True for every provider
    POST-RESOLVE-03: accept_unverified_cert is True for every provider

    INV-RESOLVE-01 (Pure): No side effects, no network activity
    INV-RESOLVE-02 (Case-Insensitive): "GMAIL" and "gmail" resolve identically

    ERRORS:
    - UNKNOWN_PROVIDER: provider not in the table
    """

    def resolve_provider(self, provider: str, username: str, password: str) -> ProviderConfig:
        ...


@runtime_checkable
class MailRetrievalClientContract(Protocol):
    """
    Mail-retrieval protocol client (one physical connection)

    PRE-CLIENT-01: connect() called exactly once before any other operation

    POST-CLIENT-01: open_mailbox returns MailboxHandle with total message count
    POST-CLIENT-02: search returns identifiers in server order
    POST-CLIENT-03: fetch_raw returns raw RFC 822 bytes, or None if the server
                    returned nothing for the identifier

    INV-CLIENT-01 (Read-Only): Mailbox opened read-only
    INV-CLIENT-02 (No Seen): Fetch uses BODY.PEEK[] so \\Seen is never set
    INV-CLIENT-03 (Teardown): shutdown() is safe to call from another thread
                    while an operation is blocked

    ERRORS:
    - AUTH_FAILED: login rejected
    - CONNECTION_FAILED: connect/handshake failed
    - MAILBOX_OPEN_FAILED / SEARCH_FAILED / FETCH_FAILED
    - NOT_CONNECTED: operation before connect()
    """

    def connect(self, config: ProviderConfig) -> None: ...

    def open_mailbox(self, name: str = "INBOX") -> MailboxHandle: ...

    def search(self, criteria: list[Any], charset: str | None = None) -> list[MessageIdentifier]: ...

    def fetch_raw(self, identifier: MessageIdentifier) -> bytes | None: ...

    def disconnect(self) -> None: ...

    def shutdown(self) -> None: ...


@runtime_checkable
class SearchStrategyContract(Protocol):
    """
    Search & Selection Strategy

    PRE-SEARCH-01: criteria.subject is non-empty

    POST-SEARCH-01: Exactly one server-side search combining ALL and SUBJECT
    POST-SEARCH-02: Selected identifier is the LAST element in server order
    POST-SEARCH-03: Empty result set selects nothing

    ERRORS:
    - SEARCH_FAILED: non-retryable, maps to TransportError
    """

    def search_identifiers(
        self, client: MailRetrievalClientContract, criteria: SearchCriteria
    ) -> list[MessageIdentifier]: ...

    def select_most_recent(self, identifiers: list[MessageIdentifier]) -> MessageIdentifier | None: ...


@runtime_checkable
class MessageMaterializerContract(Protocol):
    """
    Message Materializer

    PRE-PARSE-01: raw is the full RFC 822 message

    POST-PARSE-01: subject/from/to/text reproduced exactly, "" when absent
    POST-PARSE-02: html is the native HTML part when present and non-empty
    POST-PARSE-03: html is a wrapper document around text when only text exists
    POST-PARSE-04: html and text are both "" when neither part exists
    POST-PARSE-05: date is the parsed Date header, else the current time

    INV-PARSE-01 (Immutable): NormalizedMessage is frozen after construction

    ERRORS:
    - PARSE_FAILED: raw content unusable
    """

    def materialize(self, raw: bytes) -> NormalizedMessage: ...


@runtime_checkable
class SessionControllerContract(Protocol):
    """
    Session Controller

    SEQUENCE: IDLE -> CONNECTING -> AUTHENTICATED -> MAILBOX_OPEN -> SEARCHING
              -> FETCHING -> CLOSED(outcome)

    POST-SESSION-01: Zero-message mailbox -> NotFound, no search issued
    POST-SESSION-02: Empty search result -> NotFound
    POST-SESSION-03: Non-empty result -> Found(message at last identifier)
    POST-SESSION-04: Auth phrase in transport error -> AuthFailed
    POST-SESSION-05: Any other failure -> TransportError(detail)
    POST-SESSION-06: Session ends with nothing recorded and no error -> NotFound

    INV-SESSION-01 (Single Resolution): First recorded outcome wins
    INV-SESSION-02 (One Connection): Exactly one connection opened and closed
    INV-SESSION-03 (Deadline): Inner deadline forces teardown and records TimedOut
    INV-SESSION-04 (Non-Blocking Deadline): Outer deadline returns TimedOut
                   without waiting for teardown
    INV-SESSION-05 (Isolation): No state shared between concurrent sessions
    """

    async def run(self) -> SessionOutcome: ...


@runtime_checkable
class ResultMapperContract(Protocol):
    """
    Result/Error Mapper

    POST-MAP-01: TimedOut -> 408
    POST-MAP-02: AuthFailed -> 401 with provider-specific help URL
    POST-MAP-03: NotFound -> 404
    POST-MAP-04: TransportError -> 500 with message text only
    POST-MAP-05: Found -> 200 with data and meta.duration_seconds ("%.2f")

    INV-MAP-01 (No Leaks): Raw library exception objects never reach the body
    INV-MAP-02 (Observability): Every response carries elapsed duration
    """

    def map_outcome(
        self, outcome: SessionOutcome, *, provider: str, subject: str, elapsed: float
    ) -> FetchResponse: ...


@runtime_checkable
class FetchEmailContract(Protocol):
    """
    Inbound request: fetch one email by subject

    PRE-REQUEST-01: provider, username, password, subject all present and non-empty

    POST-REQUEST-01: Returns FetchResponse per ResultMapperContract

    INV-REQUEST-01 (Fail Fast): Invalid requests make no network connection
    INV-REQUEST-02 (No Content Logging): Passwords and message bodies never logged

    ERRORS:
    - INVALID_REQUEST -> 400
    - UNKNOWN_PROVIDER -> 400
    """

    async def fetch_email(self, payload: dict[str, Any]) -> FetchResponse: ...


# =============================================================================
# TEST CASE INDEX (Traceability)
# =============================================================================

TEST_CASES = {
    # Provider resolution
    "test_resolve_known_providers": {
        "contract": "ProviderResolverContract",
        "enforces": ["POST-RESOLVE-01", "POST-RESOLVE-02", "POST-RESOLVE-03"],
    },
    "test_resolve_case_insensitive": {
        "contract": "ProviderResolverContract",
        "enforces": ["INV-RESOLVE-02", "PRE-RESOLVE-01"],
    },
    "test_resolve_unknown_provider": {
        "contract": "ProviderResolverContract",
        "enforces": ["ERRORS: UNKNOWN_PROVIDER", "INV-RESOLVE-01"],
    },

    # Client
    "test_client_opens_mailbox_readonly": {
        "contract": "MailRetrievalClientContract",
        "enforces": ["INV-CLIENT-01", "POST-CLIENT-01"],
        "adversarial": True,
    },
    "test_client_fetch_uses_peek": {
        "contract": "MailRetrievalClientContract",
        "enforces": ["INV-CLIENT-02", "POST-CLIENT-03"],
        "adversarial": True,
    },
    "test_client_login_rejected": {
        "contract": "MailRetrievalClientContract",
        "enforces": ["ERRORS: AUTH_FAILED"],
    },
    "test_client_connect_failed": {
        "contract": "MailRetrievalClientContract",
        "enforces": ["ERRORS: CONNECTION_FAILED"],
    },
    "test_client_requires_connection": {
        "contract": "MailRetrievalClientContract",
        "enforces": ["ERRORS: NOT_CONNECTED", "PRE-CLIENT-01"],
    },
    "test_client_shutdown_without_logout": {
        "contract": "MailRetrievalClientContract",
        "enforces": ["INV-CLIENT-03"],
    },

    # Search & selection
    "test_search_combines_all_and_subject": {
        "contract": "SearchStrategyContract",
        "enforces": ["POST-SEARCH-01", "POST-CLIENT-02"],
    },
    "test_search_rejects_empty_subject": {
        "contract": "SearchStrategyContract",
        "enforces": ["PRE-SEARCH-01"],
    },
    "test_select_last_identifier": {
        "contract": "SearchStrategyContract",
        "enforces": ["POST-SEARCH-02"],
    },
    "test_select_empty": {
        "contract": "SearchStrategyContract",
        "enforces": ["POST-SEARCH-03"],
    },

    # Materializer
    "test_materialize_all_fields": {
        "contract": "MessageMaterializerContract",
        "enforces": ["POST-PARSE-01", "POST-PARSE-02", "POST-PARSE-05", "PRE-PARSE-01"],
    },
    "test_materialize_text_only_wraps_html": {
        "contract": "MessageMaterializerContract",
        "enforces": ["POST-PARSE-03"],
    },
    "test_materialize_no_content": {
        "contract": "MessageMaterializerContract",
        "enforces": ["POST-PARSE-04"],
    },
    "test_materialize_missing_date_falls_back": {
        "contract": "MessageMaterializerContract",
        "enforces": ["POST-PARSE-05"],
    },
    "test_materialize_is_frozen": {
        "contract": "MessageMaterializerContract",
        "enforces": ["INV-PARSE-01"],
    },
    "test_materialize_parse_error": {
        "contract": "MessageMaterializerContract",
        "enforces": ["ERRORS: PARSE_FAILED"],
    },

    # Session
    "test_session_empty_mailbox_skips_search": {
        "contract": "SessionControllerContract",
        "enforces": ["POST-SESSION-01"],
    },
    "test_session_no_matches": {
        "contract": "SessionControllerContract",
        "enforces": ["POST-SESSION-02"],
    },
    "test_session_fetches_last_match": {
        "contract": "SessionControllerContract",
        "enforces": ["POST-SESSION-03", "INV-SESSION-02"],
    },
    "test_session_auth_failed": {
        "contract": "SessionControllerContract",
        "enforces": ["POST-SESSION-04"],
    },
    "test_session_transport_error": {
        "contract": "SessionControllerContract",
        "enforces": ["POST-SESSION-05"],
    },
    "test_session_fetch_returns_nothing": {
        "contract": "SessionControllerContract",
        "enforces": ["POST-SESSION-06"],
    },
    "test_outcome_slot_first_wins": {
        "contract": "SessionControllerContract",
        "enforces": ["INV-SESSION-01"],
    },
    "test_session_inner_deadline": {
        "contract": "SessionControllerContract",
        "enforces": ["INV-SESSION-03", "INV-SESSION-01"],
        "adversarial": True,
    },
    "test_session_outer_deadline_does_not_wait_for_teardown": {
        "contract": "SessionControllerContract",
        "enforces": ["INV-SESSION-04"],
        "adversarial": True,
    },
    "test_session_deadline_frees_saturated_executor": {
        "contract": "SessionControllerContract",
        "enforces": ["INV-SESSION-03"],
        "adversarial": True,
    },
    "test_session_deadline_during_connect_closes_connection": {
        "contract": "SessionControllerContract",
        "enforces": ["INV-SESSION-02", "INV-SESSION-03"],
        "adversarial": True,
    },
    "test_session_bounds_socket_reads": {
        "contract": "SessionControllerContract",
        "enforces": ["INV-SESSION-03"],
    },
    "test_concurrent_sessions_isolated": {
        "contract": "SessionControllerContract",
        "enforces": ["INV-SESSION-05"],
    },

    # Mapper
    "test_map_found": {
        "contract": "ResultMapperContract",
        "enforces": ["POST-MAP-05"],
    },
    "test_map_timeout": {
        "contract": "ResultMapperContract",
        "enforces": ["POST-MAP-01", "INV-MAP-02"],
    },
    "test_map_auth_failed_help": {
        "contract": "ResultMapperContract",
        "enforces": ["POST-MAP-02"],
    },
    "test_map_not_found": {
        "contract": "ResultMapperContract",
        "enforces": ["POST-MAP-03"],
    },
    "test_map_transport_error": {
        "contract": "ResultMapperContract",
        "enforces": ["POST-MAP-04", "INV-MAP-01"],
    },

    # Request
    "test_request_missing_fields": {
        "contract": "FetchEmailContract",
        "enforces": ["ERRORS: INVALID_REQUEST", "INV-REQUEST-01", "PRE-REQUEST-01"],
        "adversarial": True,
    },
    "test_request_unknown_provider": {
        "contract": "FetchEmailContract",
        "enforces": ["ERRORS: UNKNOWN_PROVIDER", "INV-REQUEST-01"],
    },
    "test_request_found": {
        "contract": "FetchEmailContract",
        "enforces": ["POST-REQUEST-01"],
    },
    "test_request_no_secret_logging": {
        "contract": "FetchEmailContract",
        "enforces": ["INV-REQUEST-02"],
        "adversarial": True,
    },
}
