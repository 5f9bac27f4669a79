"""
Subject Search & Selection
==========================

One server-side search combining ALL with a SUBJECT filter, then pick the
last identifier in server order as the most recent match.

The pick is an approximation: UIDs usually grow with arrival time, but the
server's order is not a sort by Date header.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from contracts import InvalidRequestError, MessageIdentifier, SearchCriteria

if TYPE_CHECKING:
    from contracts import MailRetrievalClientContract

logger = logging.getLogger("email-fetcher.search")


def build_criteria(criteria: SearchCriteria) -> tuple[list[Any], str | None]:
    """
    Build the IMAP search key list and charset.

    PRE-SEARCH-01: subject is non-empty
    """
    subject = criteria.subject
    if not subject:
        raise InvalidRequestError("Subject must be a non-empty string")
    charset = None if subject.isascii() else "UTF-8"
    return ["ALL", "SUBJECT", subject], charset


class SubjectSearchStrategy:
    """Server-side subject search with last-identifier selection."""

    def search_identifiers(
        self, client: MailRetrievalClientContract, criteria: SearchCriteria
    ) -> list[MessageIdentifier]:
        """POST-SEARCH-01: exactly one search call."""
        keys, charset = build_criteria(criteria)
        identifiers = client.search(keys, charset=charset)
        logger.info("Found %d matching emails", len(identifiers))
        return identifiers

    def select_most_recent(self, identifiers: list[MessageIdentifier]) -> MessageIdentifier | None:
        """POST-SEARCH-02: last element wins. POST-SEARCH-03: empty selects nothing."""
        if not identifiers:
            return None
        return identifiers[-1]
