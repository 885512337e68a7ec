"""Outbound message construction for forwarded mail."""

from email.message import EmailMessage
from email.policy import SMTP

from mail_dispatcher.models import NormalizedMessage

EMPTY_BODY_PLACEHOLDER = "(no message content)"


def build_forward_message(
    message: NormalizedMessage,
    sender: str,
    recipient: str,
    forwarded_by: str,
) -> bytes:
    """Synthesize a minimal message carrying the original subject and body.

    The original sender is preserved in an ``Original-From`` header since
    ``From`` must be the forwarding account.
    """
    outbound = EmailMessage()
    outbound["From"] = sender
    outbound["To"] = recipient
    outbound["Subject"] = message.subject
    outbound["Resent-From"] = sender
    outbound["Resent-To"] = recipient
    outbound["X-Forwarded-By"] = forwarded_by
    if message.from_addr:
        outbound["Original-From"] = message.from_addr
    outbound.set_content(message.body or EMPTY_BODY_PLACEHOLDER)
    return outbound.as_bytes(policy=SMTP)


def prepend_resent_headers(raw: bytes, sender: str, recipient: str, forwarded_by: str) -> bytes:
    """Prefix resent headers to an original message, leaving it untouched."""
    headers = (
        f"Resent-From: {sender}\r\n"
        f"Resent-To: {recipient}\r\n"
        f"X-Forwarded-By: {forwarded_by}\r\n"
    )
    return headers.encode("utf-8") + raw
