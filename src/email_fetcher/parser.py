"""
Message Materializer
====================

Turns raw RFC 822 bytes into a NormalizedMessage.

- html falls back to a preformatted wrapper around the text part
- date falls back to the current time when the header is missing or invalid
- No logging of message bodies
"""

from __future__ import annotations

import email
import email.message
import email.utils
import html
import logging
import re
from datetime import datetime, timezone
from email.errors import HeaderParseError
from email.header import decode_header, make_header

from contracts import MessageParseError, NormalizedMessage

logger = logging.getLogger("email-fetcher.parser")

HTML_WRAPPER = """<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"></head>
<body style="font-family: Arial, sans-serif; padding: 20px; line-height: 1.6;">
<pre style="white-space: pre-wrap;">{text}</pre>
</body>
</html>"""

_FOLD = re.compile(r"\r?\n(?=[ \t])")


def wrap_text_as_html(text: str) -> str:
    """Render plain text as a standalone HTML document, whitespace preserved."""
    return HTML_WRAPPER.format(text=html.escape(text, quote=False))


class MessageMaterializer:
    """Parse raw message bytes with the standard library email package."""

    def materialize(self, raw: bytes) -> NormalizedMessage:
        """
        POST-PARSE-01..05, see MessageMaterializerContract.

        ERRORS:
        - MessageParseError: raw is empty or unparseable
        """
        if not raw or not isinstance(raw, (bytes, bytearray)):
            raise MessageParseError("Empty or invalid message content")

        try:
            msg = email.message_from_bytes(bytes(raw))
            body_plain, body_html = self._extract_bodies(msg)
        except MessageParseError:
            raise
        except Exception as e:
            raise MessageParseError(f"Failed to parse message: {e}") from e

        html_content = body_html or ""
        if not html_content and body_plain:
            html_content = wrap_text_as_html(body_plain)

        date, date_is_fallback = self._parse_date(msg.get("Date"))

        return NormalizedMessage(
            subject=self._decode_header(msg.get("Subject", "")),
            from_=self._render_addresses(msg.get("From", "")),
            to=self._render_addresses(msg.get("To", "")),
            date=date,
            html=html_content,
            text=body_plain or "",
            date_is_fallback=date_is_fallback,
        )

    def _extract_bodies(self, msg: email.message.Message) -> tuple[str | None, str | None]:
        """First non-attachment text/plain and text/html parts."""
        body_plain = None
        body_html = None

        if msg.is_multipart():
            for part in msg.walk():
                if part.is_multipart():
                    continue
                content_type = part.get_content_type()
                content_disp = str(part.get("Content-Disposition", ""))

                if "attachment" in content_disp.lower():
                    continue
                if content_type == "text/plain" and body_plain is None:
                    body_plain = self._decode_payload(part)
                elif content_type == "text/html" and body_html is None:
                    body_html = self._decode_payload(part)
        else:
            content_type = msg.get_content_type()
            if content_type == "text/plain":
                body_plain = self._decode_payload(msg)
            elif content_type == "text/html":
                body_html = self._decode_payload(msg)

        return body_plain, body_html

    def _parse_date(self, date_str: str | None) -> tuple[datetime, bool]:
        """Parsed Date header in UTC, or now() with the fallback flag set."""
        if date_str:
            try:
                parsed = email.utils.parsedate_to_datetime(str(date_str))
            except (TypeError, ValueError, IndexError):
                parsed = None
            if parsed is not None:
                if parsed.tzinfo is None:
                    parsed = parsed.replace(tzinfo=timezone.utc)
                return parsed.astimezone(timezone.utc), False

        logger.debug("Message has no usable Date header, using fetch time")
        return datetime.now(timezone.utc), True

    def _render_addresses(self, header: str) -> str:
        """Display form: 'Name <addr>' entries joined with ', '."""
        if not header:
            return ""

        header = _FOLD.sub("", str(header))
        rendered = []
        for name, address in email.utils.getaddresses([header]):
            name = self._decode_header(name) if name else ""
            if name and address:
                rendered.append(f"{name} <{address}>")
            elif address or name:
                rendered.append(address or name)

        if not rendered:
            return self._decode_header(header)
        return ", ".join(rendered)

    def _decode_header(self, header: str) -> str:
        """Decode RFC 2047 encoded header."""
        if not header:
            return ""

        header = _FOLD.sub("", str(header))
        try:
            return str(make_header(decode_header(header)))
        except (HeaderParseError, LookupError, UnicodeDecodeError):
            return header

    def _decode_payload(self, part: email.message.Message) -> str:
        """Decode message payload."""
        payload = part.get_payload(decode=True)
        if payload is None:
            return ""

        charset = part.get_content_charset() or "utf-8"
        try:
            return payload.decode(charset, errors="replace")
        except LookupError:
            return payload.decode("utf-8", errors="replace")
