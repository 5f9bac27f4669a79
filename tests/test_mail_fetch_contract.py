"""
Mail Fetch Contract Verification Tests
======================================

TRACEABILITY: Every test cites specific contract clause IDs.
Tests use exact values, not ranges, for deterministic behavior.

CONTRACT AUTHORITY: contracts/mail_fetch_contract.py
"""

import dataclasses
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Contract imports - ALWAYS from index, never direct
from contracts import (
    TEST_CASES,
    AuthFailed,
    AuthFailedError,
    ConnectionFailedError,
    EmailFetcherError,
    FetchEmailContract,
    FetchFailedError,
    FetchResponse,
    Found,
    InvalidRequestError,
    MailboxOpenError,
    MailRetrievalClientContract,
    MessageMaterializerContract,
    MessageParseError,
    NormalizedMessage,
    NotConnectedError,
    NotFound,
    OutcomeKind,
    ProviderConfig,
    ProviderName,
    ProviderResolverContract,
    ResultMapperContract,
    SearchFailedError,
    SearchStrategyContract,
    SessionControllerContract,
    SessionTimeoutError,
    TimedOut,
    TransportError,
    UnknownProviderError,
    audit_contract_coverage,
    format_iso_utc,
)
from contracts import SearchCriteria
from src.email_fetcher import providers, results
from src.email_fetcher.imap_client import EmailIMAPClient
from src.email_fetcher.parser import MessageMaterializer
from src.email_fetcher.search import SubjectSearchStrategy
from src.email_fetcher.server import create_server
from src.email_fetcher.session import MailboxSession
from src.email_fetcher.settings import Settings
from tests.fake_mail_client import FakeMailClient

TESTS_DIR = Path(__file__).parent


@pytest.fixture
def sample_message() -> NormalizedMessage:
    """
    Valid NormalizedMessage for testing.

    Matches: POST-PARSE-01 message schema
    """
    return NormalizedMessage(
        subject="Test Subject",
        from_="Sender <sender@example.com>",
        to="Recipient <recipient@example.com>",
        date=datetime(2026, 1, 13, 10, 0, 0, 123456, tzinfo=timezone.utc),
        html="<p>Hi</p>",
        text="Hi",
    )


# =============================================================================
# DOMAIN TYPE TESTS
# =============================================================================

class TestDomainTypes:
    """Tests for the value types shared across components."""

    def test_provider_config_is_frozen(self):
        config = ProviderConfig(provider=ProviderName.GMAIL, username="u", password="p")

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.host = "evil.example.com"

    def test_provider_config_hides_password(self):
        config = ProviderConfig(provider=ProviderName.YAHOO, username="u", password="hunter2")

        assert "hunter2" not in repr(config)

    def test_message_to_dict_shape(self, sample_message):
        data = sample_message.to_dict()

        assert list(data) == ["subject", "from", "to", "date", "html", "text"]
        assert data["date"] == "2026-01-13T10:00:00.123Z"

    def test_format_iso_utc_converts_offsets(self):
        plus_two = timezone(timedelta(hours=2))

        assert format_iso_utc(datetime(2026, 1, 13, 12, 0, tzinfo=plus_two)) == "2026-01-13T10:00:00.000Z"
        # Naive values are taken as UTC
        assert format_iso_utc(datetime(2026, 1, 13, 10, 0)) == "2026-01-13T10:00:00.000Z"

    def test_outcome_kinds(self, sample_message):
        assert Found(sample_message).kind is OutcomeKind.FOUND
        assert NotFound().kind is OutcomeKind.NOT_FOUND
        assert TimedOut().kind is OutcomeKind.TIMED_OUT
        assert AuthFailed().kind is OutcomeKind.AUTH_FAILED
        assert TransportError("x").kind is OutcomeKind.TRANSPORT_ERROR

    def test_outcome_defaults(self):
        assert TimedOut().detail == "Search timeout"
        assert AuthFailed().detail == "LOGIN failed - Invalid credentials or App Password required"

    def test_fetch_response_is_frozen(self):
        response = FetchResponse(status_code=200, body={})

        with pytest.raises(dataclasses.FrozenInstanceError):
            response.status_code = 500


# =============================================================================
# ERROR TYPE TESTS
# =============================================================================

class TestErrorTypes:
    """Every error carries a stable code and derives from the base error."""

    @pytest.mark.parametrize(
        "error_cls,code",
        [
            (InvalidRequestError, "INVALID_REQUEST"),
            (UnknownProviderError, "UNKNOWN_PROVIDER"),
            (AuthFailedError, "AUTH_FAILED"),
            (ConnectionFailedError, "CONNECTION_FAILED"),
            (NotConnectedError, "NOT_CONNECTED"),
            (MailboxOpenError, "MAILBOX_OPEN_FAILED"),
            (SearchFailedError, "SEARCH_FAILED"),
            (FetchFailedError, "FETCH_FAILED"),
            (MessageParseError, "PARSE_FAILED"),
            (SessionTimeoutError, "TIMED_OUT"),
        ],
    )
    def test_error_codes(self, error_cls, code):
        error = error_cls("boom")

        assert isinstance(error, EmailFetcherError)
        assert error.code == code
        assert str(error) == "boom"


# =============================================================================
# PROTOCOL CONFORMANCE TESTS
# =============================================================================

class TestProtocolConformance:
    """Implementations satisfy the runtime-checkable contracts."""

    def test_resolver_conforms(self):
        assert isinstance(providers, ProviderResolverContract)

    def test_clients_conform(self):
        assert isinstance(EmailIMAPClient(), MailRetrievalClientContract)
        assert isinstance(FakeMailClient(), MailRetrievalClientContract)

    def test_search_strategy_conforms(self):
        assert isinstance(SubjectSearchStrategy(), SearchStrategyContract)

    def test_materializer_conforms(self):
        assert isinstance(MessageMaterializer(), MessageMaterializerContract)

    def test_session_conforms(self):
        config = providers.resolve_provider("gmail", "u", "p")
        session = MailboxSession(config, SearchCriteria("x"), client_factory=FakeMailClient)

        assert isinstance(session, SessionControllerContract)

    def test_mapper_conforms(self):
        assert isinstance(results, ResultMapperContract)

    def test_server_conforms(self):
        server = create_server(settings=Settings())

        assert isinstance(server, FetchEmailContract)


# =============================================================================
# TRACEABILITY TESTS
# =============================================================================

class TestContractCoverage:
    """Meta-tests for the clause index itself."""

    def test_contract_coverage_complete(self):
        """Every declared clause is enforced by at least one indexed test."""
        audit = audit_contract_coverage()

        assert audit["uncovered"] == []
        assert audit["coverage_pct"] == 100.0
        assert audit["test_count"] == len(TEST_CASES)

    def test_indexed_tests_exist(self):
        """Every TEST_CASES entry names a test function defined under tests/."""
        defined = set()
        for path in TESTS_DIR.glob("test_*.py"):
            defined.update(re.findall(r"def (test_\w+)\(", path.read_text(encoding="utf-8")))

        missing = sorted(set(TEST_CASES) - defined)
        assert missing == []

    def test_indexed_contracts_are_known(self):
        known = {
            "ProviderResolverContract",
            "MailRetrievalClientContract",
            "SearchStrategyContract",
            "MessageMaterializerContract",
            "SessionControllerContract",
            "ResultMapperContract",
            "FetchEmailContract",
        }

        for name, info in TEST_CASES.items():
            assert info["contract"] in known, name
            assert info["enforces"], name
