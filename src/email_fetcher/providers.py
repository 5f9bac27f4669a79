"""
Provider Configuration
======================

Static lookup from provider name to IMAP-over-TLS connection parameters.

INV-RESOLVE-01: Pure lookup. No side effects, no network activity.
"""

from __future__ import annotations

from dataclasses import dataclass

from contracts import ProviderConfig, ProviderName, UnknownProviderError


@dataclass(frozen=True)
class ProviderEndpoint:
    """Well-known endpoint and app-password help for one provider."""

    host: str
    port: int
    label: str
    app_password_url: str


PROVIDERS: dict[ProviderName, ProviderEndpoint] = {
    ProviderName.GMAIL: ProviderEndpoint(
        host="imap.gmail.com",
        port=993,
        label="Gmail",
        app_password_url="https://myaccount.google.com/apppasswords",
    ),
    ProviderName.OUTLOOK: ProviderEndpoint(
        host="outlook.office365.com",
        port=993,
        label="Outlook",
        app_password_url="https://account.microsoft.com/security",
    ),
    ProviderName.YAHOO: ProviderEndpoint(
        host="imap.mail.yahoo.com",
        port=993,
        label="Yahoo",
        app_password_url="https://login.yahoo.com/account/security",
    ),
}


def parse_provider(provider: str) -> ProviderName:
    """Map a case-insensitive provider string to ProviderName."""
    try:
        return ProviderName(provider.strip().lower())
    except (AttributeError, ValueError) as e:
        raise UnknownProviderError(f"Invalid provider: {provider!r}") from e


def resolve_provider(
    provider: str,
    username: str,
    password: str,
    *,
    auth_timeout: float = 15.0,
    conn_timeout: float = 15.0,
) -> ProviderConfig:
    """
    Resolve connection parameters for a provider.

    POST-RESOLVE-01: Returns ProviderConfig for gmail, outlook, yahoo
    POST-RESOLVE-02: port 993, TLS always on
    POST-RESOLVE-03: Unverified certificates accepted

    ERRORS:
    - UnknownProviderError: provider not in the table
    """
    name = parse_provider(provider)
    endpoint = PROVIDERS[name]
    return ProviderConfig(
        provider=name,
        username=username,
        password=password,
        host=endpoint.host,
        port=endpoint.port,
        secure=True,
        accept_unverified_cert=True,
        auth_timeout=auth_timeout,
        conn_timeout=conn_timeout,
    )


def auth_help(provider: str) -> str:
    """Remediation text for a rejected login."""
    help_text = "Check your credentials. "
    try:
        endpoint = PROVIDERS[parse_provider(provider)]
    except UnknownProviderError:
        return help_text.strip()
    return f"{help_text}{endpoint.label} requires App Password: {endpoint.app_password_url}"
