"""Normalized message model for mail-dispatcher.

This module provides the immutable message envelope that the transport
builds from fetched IMAP data and the routing engine consumes.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email import message_from_bytes, policy
from email.header import decode_header, make_header
from email.message import Message
from email.utils import parseaddr


def decode_mime_header(value: object) -> str:
    """Decode an RFC 2047 header value into a single-line str.

    Handles encoded words (``=?UTF-8?B?...?=``) and folded headers, and
    always returns a plain str, never ``email.header.Header``.
    """
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    text = str(value)
    try:
        text = str(make_header(decode_header(text)))
    except (LookupError, UnicodeError, ValueError):
        # Unknown charset or malformed encoded word, keep the raw text
        pass
    return re.sub(r"\s*[\r\n]+\s*", " ", text).strip()


def header_address(value: object) -> str:
    """Extract the bare address from a From/To style header.

    Handles formats like:
    - "Name <email@domain.com>"
    - "<email@domain.com>"
    - "email@domain.com"
    """
    decoded = decode_mime_header(value)
    _, address = parseaddr(decoded)
    return address if address else decoded


def extract_text_body(msg: Message) -> str:
    """Return the first text/plain part of a message, decoded."""
    if msg.is_multipart():
        for part in msg.walk():
            if part.get_content_type() == "text/plain" and not part.is_multipart():
                return _decode_payload(part)
        return ""
    if msg.get_content_maintype() == "text":
        return _decode_payload(msg)
    return ""


def _decode_payload(part: Message) -> str:
    payload = part.get_payload(decode=True)
    if not isinstance(payload, bytes):
        return ""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class NormalizedMessage:
    """A fetched message reduced to what routing and forwarding need.

    Attributes:
        message_id: ``{account_id}-{uid}``. Not stable if the server
            reassigns UIDs.
        subject: Decoded subject line.
        from_addr: Sender address.
        to_addr: Original recipient address.
        received_at: Server arrival time, or fetch time when unknown.
        body: Decoded text/plain body, empty when there is none.
        raw: The original message bytes, when fetched.
    """

    message_id: str
    subject: str
    from_addr: str
    to_addr: str
    received_at: datetime
    body: str = ""
    raw: bytes | None = field(default=None, repr=False)

    @classmethod
    def build(
        cls,
        message_id: str,
        *,
        subject: str = "",
        from_addr: str = "",
        to_addr: str = "",
        raw: bytes | None = None,
        received_at: datetime | None = None,
    ) -> "NormalizedMessage":
        """Build a message from envelope fields plus the raw bytes.

        Envelope values win. Any field the envelope left empty is read
        from the raw header block instead.
        """
        body = ""
        if raw:
            msg = message_from_bytes(raw, policy=policy.default)
            subject = subject or decode_mime_header(msg.get("Subject"))
            from_addr = from_addr or header_address(msg.get("From"))
            to_addr = to_addr or header_address(msg.get("To"))
            body = extract_text_body(msg)

        return cls(
            message_id=message_id,
            subject=subject,
            from_addr=from_addr,
            to_addr=to_addr,
            received_at=received_at or datetime.now(timezone.utc),
            body=body,
            raw=raw,
        )
