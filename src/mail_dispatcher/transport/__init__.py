"""Transport layer for mail-dispatcher.

This module provides async clients for mail transport operations:
- IMAPFetcher: Fetch unread mail from an account's IMAP server
- SMTPForwarder: Forward mail through the SMTP fallback chain
- MailTransport: Per-account facade used by the dispatcher
"""

from mail_dispatcher.transport.imap_client import IMAPFetcher
from mail_dispatcher.transport.mail_transport import MailTransport
from mail_dispatcher.transport.smtp_client import DeliveryMethod, SMTPForwarder

__all__ = ["DeliveryMethod", "IMAPFetcher", "MailTransport", "SMTPForwarder"]
