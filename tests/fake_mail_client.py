# tests/fake_mail_client.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from email.message import EmailMessage as PyEmailMessage
from typing import Any, Dict, List, Optional

from contracts import (
    AuthFailedError,
    ConnectionFailedError,
    MailboxHandle,
    NotConnectedError,
    SearchFailedError,
)


def build_raw_message(
    *,
    subject: Optional[str] = "Test Subject",
    from_: Optional[str] = "Sender <sender@example.com>",
    to: Optional[str] = "Recipient <recipient@example.com>",
    date: Optional[str] = "Mon, 13 Jan 2026 10:00:00 +0000",
    text: Optional[str] = "This is a test email body.",
    html: Optional[str] = None,
) -> bytes:
    """Build RFC 822 bytes with the standard library."""
    msg = PyEmailMessage()
    if subject is not None:
        msg["Subject"] = subject
    if from_ is not None:
        msg["From"] = from_
    if to is not None:
        msg["To"] = to
    if date is not None:
        msg["Date"] = date

    if text is not None and html is not None:
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")
    elif html is not None:
        msg.set_content(html, subtype="html")
    elif text is not None:
        msg.set_content(text)
    return msg.as_bytes()


@dataclass
class FakeMailClient:
    """
    In-memory MailRetrievalClientContract for session tests.

    messages maps UID -> raw bytes. search_result, when set, overrides the
    search answer so tests control server order. block_on_search makes the
    search wait until shutdown() is called (a stalled server).
    """

    messages: Dict[int, bytes] = field(default_factory=dict)
    search_result: Optional[List[int]] = None
    total: Optional[int] = None
    fail_login: Optional[str] = None
    fail_connect: Optional[str] = None
    fail_search: Optional[str] = None
    block_on_search: bool = False
    block_on_shutdown: Optional[threading.Event] = None

    calls: List[str] = field(default_factory=list)
    search_args: List[Any] = field(default_factory=list)
    fetched: List[int] = field(default_factory=list)
    connected: bool = False
    shut_down: bool = False
    _released: threading.Event = field(default_factory=threading.Event)

    def connect(self, config) -> None:
        self.calls.append("connect")
        if self.fail_connect:
            raise ConnectionFailedError(self.fail_connect)
        if self.fail_login:
            raise AuthFailedError(self.fail_login)
        self.connected = True

    def _require(self) -> None:
        if not self.connected:
            raise NotConnectedError("Not connected to mail server")

    def open_mailbox(self, name: str = "INBOX") -> MailboxHandle:
        self.calls.append("open_mailbox")
        self._require()
        total = len(self.messages) if self.total is None else self.total
        return MailboxHandle(name=name, total=total, uidvalidity=1)

    def search(self, criteria, charset=None) -> List[int]:
        self.calls.append("search")
        self.search_args.append((criteria, charset))
        self._require()
        if self.block_on_search:
            self._released.wait(timeout=5)
        if self.fail_search:
            raise SearchFailedError(self.fail_search)
        if self.search_result is not None:
            return list(self.search_result)
        return sorted(self.messages)

    def fetch_raw(self, identifier: int) -> Optional[bytes]:
        self.calls.append("fetch_raw")
        self._require()
        self.fetched.append(identifier)
        return self.messages.get(identifier)

    def disconnect(self) -> None:
        self.calls.append("disconnect")
        self.connected = False

    def shutdown(self) -> None:
        self.calls.append("shutdown")
        if self.block_on_shutdown is not None:
            self.block_on_shutdown.wait(timeout=5)
        self.shut_down = True
        self._released.set()
