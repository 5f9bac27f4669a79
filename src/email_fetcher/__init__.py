"""
Email Fetcher
=============

Fetch one email by subject from Gmail, Outlook or Yahoo over IMAP, read-only,
within a bounded time budget.
"""

__version__ = "3.2.0"

from src.email_fetcher.imap_client import EmailIMAPClient
from src.email_fetcher.parser import MessageMaterializer
from src.email_fetcher.providers import resolve_provider
from src.email_fetcher.server import EmailFetcherServer, create_server, get_server
from src.email_fetcher.session import MailboxSession, fetch_message_by_subject

__all__ = [
    "EmailFetcherServer",
    "get_server",
    "create_server",
    "EmailIMAPClient",
    "MailboxSession",
    "MessageMaterializer",
    "fetch_message_by_subject",
    "resolve_provider",
]
