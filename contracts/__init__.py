"""
Email Fetcher Contract Index
============================

AUTHORITY: This file is the SINGLE authoritative entrypoint for all
fetcher contracts. Import from here, not from individual contract files.
"""

from contracts.mail_fetch_contract import (
    # Test Case Index
    TEST_CASES,
    AuthFailed,
    AuthFailedError,
    ConnectionFailedError,
    # Error Types
    EmailFetcherError,
    FetchEmailContract,
    FetchFailedError,
    FetchResponse,
    Found,
    InvalidRequestError,
    MailboxHandle,
    MailboxOpenError,
    MailRetrievalClientContract,
    MessageIdentifier,
    MessageMaterializerContract,
    MessageParseError,
    NormalizedMessage,
    NotConnectedError,
    NotFound,
    OutcomeKind,
    ProviderConfig,
    # Domain Types
    ProviderName,
    # Contracts (Protocols)
    ProviderResolverContract,
    ResultMapperContract,
    SearchCriteria,
    SearchFailedError,
    SearchStrategyContract,
    SessionControllerContract,
    SessionOutcome,
    SessionState,
    SessionTimeoutError,
    TimedOut,
    TransportError,
    UnknownProviderError,
    format_iso_utc,
)

__all__ = [
    # Domain Types
    "ProviderName",
    "ProviderConfig",
    "SearchCriteria",
    "MailboxHandle",
    "MessageIdentifier",
    "NormalizedMessage",
    "SessionState",
    "OutcomeKind",
    "SessionOutcome",
    "Found",
    "NotFound",
    "TimedOut",
    "AuthFailed",
    "TransportError",
    "FetchResponse",
    # Error Types
    "EmailFetcherError",
    "InvalidRequestError",
    "UnknownProviderError",
    "AuthFailedError",
    "ConnectionFailedError",
    "NotConnectedError",
    "MailboxOpenError",
    "SearchFailedError",
    "FetchFailedError",
    "MessageParseError",
    "SessionTimeoutError",
    # Contracts
    "ProviderResolverContract",
    "MailRetrievalClientContract",
    "SearchStrategyContract",
    "MessageMaterializerContract",
    "SessionControllerContract",
    "ResultMapperContract",
    "FetchEmailContract",
    # Test Traceability
    "TEST_CASES",
    # Functions
    "format_iso_utc",
    "audit_contract_coverage",
]


def audit_contract_coverage() -> dict:
    """
    Audit which contract clauses have test coverage.

    Returns dict with:
    - covered: clauses with at least one test
    - uncovered: clauses with no tests
    - test_count: total tests defined
    """
    covered_clauses = set()
    for test_name, test_info in TEST_CASES.items():
        for clause in test_info.get("enforces", []):
            covered_clauses.add(clause)

    all_clauses = set()

    # Resolver clauses
    all_clauses.update(
        [
            "PRE-RESOLVE-01",
            "POST-RESOLVE-01",
            "POST-RESOLVE-02",
            "POST-RESOLVE-03",
            "INV-RESOLVE-01",
            "INV-RESOLVE-02",
            "ERRORS: UNKNOWN_PROVIDER",
        ]
    )

    # Client clauses
    all_clauses.update(
        [
            "PRE-CLIENT-01",
            "POST-CLIENT-01",
            "POST-CLIENT-02",
            "POST-CLIENT-03",
            "INV-CLIENT-01",
            "INV-CLIENT-02",
            "INV-CLIENT-03",
            "ERRORS: AUTH_FAILED",
            "ERRORS: CONNECTION_FAILED",
            "ERRORS: NOT_CONNECTED",
        ]
    )

    # Search clauses
    all_clauses.update(
        [
            "PRE-SEARCH-01",
            "POST-SEARCH-01",
            "POST-SEARCH-02",
            "POST-SEARCH-03",
        ]
    )

    # Materializer clauses
    all_clauses.update(
        [
            "PRE-PARSE-01",
            "POST-PARSE-01",
            "POST-PARSE-02",
            "POST-PARSE-03",
            "POST-PARSE-04",
            "POST-PARSE-05",
            "INV-PARSE-01",
            "ERRORS: PARSE_FAILED",
        ]
    )

    # Session clauses
    all_clauses.update(
        [
            "POST-SESSION-01",
            "POST-SESSION-02",
            "POST-SESSION-03",
            "POST-SESSION-04",
            "POST-SESSION-05",
            "POST-SESSION-06",
            "INV-SESSION-01",
            "INV-SESSION-02",
            "INV-SESSION-03",
            "INV-SESSION-04",
            "INV-SESSION-05",
        ]
    )

    # Mapper clauses
    all_clauses.update(
        [
            "POST-MAP-01",
            "POST-MAP-02",
            "POST-MAP-03",
            "POST-MAP-04",
            "POST-MAP-05",
            "INV-MAP-01",
            "INV-MAP-02",
        ]
    )

    # Request clauses
    all_clauses.update(
        [
            "PRE-REQUEST-01",
            "POST-REQUEST-01",
            "INV-REQUEST-01",
            "INV-REQUEST-02",
            "ERRORS: INVALID_REQUEST",
        ]
    )

    uncovered = all_clauses - covered_clauses

    return {
        "covered": sorted(covered_clauses),
        "uncovered": sorted(uncovered),
        "test_count": len(TEST_CASES),
        "coverage_pct": round(len(covered_clauses) / len(all_clauses) * 100, 1),
    }
