"""
Result/Error Mapping
====================

Translate a SessionOutcome plus elapsed time into the caller-facing
FetchResponse. Only message text is ever copied out of an error.
"""

from __future__ import annotations

from contracts import (
    AuthFailed,
    FetchResponse,
    Found,
    NotFound,
    SessionOutcome,
    TimedOut,
    TransportError,
)
from src.email_fetcher.providers import auth_help

TIMEOUT_MESSAGE = "Email search took too long. Try a more specific subject."


def format_duration(elapsed: float) -> str:
    """Seconds with two decimals, e.g. '1.50'."""
    return f"{elapsed:.2f}"


def invalid_request(elapsed: float = 0.0) -> FetchResponse:
    return FetchResponse(
        status_code=400,
        body={
            "success": False,
            "error": "Missing required fields",
            "duration_seconds": format_duration(elapsed),
        },
    )


def unknown_provider(elapsed: float = 0.0) -> FetchResponse:
    return FetchResponse(
        status_code=400,
        body={
            "success": False,
            "error": "Invalid provider",
            "duration_seconds": format_duration(elapsed),
        },
    )


def _is_timeout(outcome: SessionOutcome) -> bool:
    if isinstance(outcome, TimedOut):
        return True
    if not isinstance(outcome, TransportError):
        return False
    detail = outcome.detail.lower()
    return "timeout" in detail or "timed out" in detail


def _is_auth_failure(outcome: SessionOutcome) -> bool:
    return isinstance(outcome, AuthFailed)


def map_outcome(
    outcome: SessionOutcome, *, provider: str, subject: str, elapsed: float
) -> FetchResponse:
    """
    Classification, in priority order:
    timeout -> 408, auth -> 401, not found -> 404, transport -> 500, found -> 200.
    """
    duration = format_duration(elapsed)

    if _is_timeout(outcome):
        return FetchResponse(
            status_code=408,
            body={
                "success": False,
                "error": "Request timeout",
                "message": TIMEOUT_MESSAGE,
                "duration_seconds": duration,
            },
        )

    if _is_auth_failure(outcome):
        return FetchResponse(
            status_code=401,
            body={
                "success": False,
                "error": "Authentication failed",
                "help": auth_help(provider),
                "duration_seconds": duration,
            },
        )

    if isinstance(outcome, NotFound):
        return FetchResponse(
            status_code=404,
            body={
                "success": False,
                "error": "Email not found",
                "message": f'No email with subject containing: "{subject}"',
                "duration_seconds": duration,
            },
        )

    if isinstance(outcome, Found):
        return FetchResponse(
            status_code=200,
            body={
                "success": True,
                "data": outcome.message.to_dict(),
                "meta": {"duration_seconds": duration},
            },
        )

    detail = outcome.detail if isinstance(outcome, TransportError) else ""
    return FetchResponse(
        status_code=500,
        body={
            "success": False,
            "error": detail or "Internal error",
            "duration_seconds": duration,
        },
    )
