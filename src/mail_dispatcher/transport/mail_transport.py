"""Per-account mail transport combining IMAP retrieval and SMTP forwarding."""

from typing import TYPE_CHECKING

import structlog

from mail_dispatcher.core.retry import SleepFunc
from mail_dispatcher.models import NormalizedMessage
from mail_dispatcher.transport.compose import build_forward_message, prepend_resent_headers
from mail_dispatcher.transport.imap_client import IMAPFetcher
from mail_dispatcher.transport.smtp_client import DeliveryMethod, SMTPForwarder

if TYPE_CHECKING:
    from mail_dispatcher.config import Settings
    from mail_dispatcher.models import Account

logger = structlog.get_logger(__name__)

DEFAULT_FORWARDED_BY = "Mail-Dispatcher-System"


class MailTransport:
    """One account's connection to its mail provider.

    Owns at most one IMAP session. Delivery opens a fresh SMTP connection
    per message and does not touch the IMAP session.
    """

    def __init__(
        self,
        account: "Account",
        settings: "Settings | None" = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        self.account = account
        self.fetcher = IMAPFetcher(account, settings, sleep=sleep)
        self.forwarder = SMTPForwarder(account, settings)
        self.forwarded_by = settings.forwarded_by if settings else DEFAULT_FORWARDED_BY

    async def connect(self) -> None:
        await self.fetcher.connect()

    async def ensure_connection(self) -> None:
        await self.fetcher.ensure_connection()

    async def fetch_new(self) -> list[NormalizedMessage]:
        return await self.fetcher.fetch_new_messages()

    async def deliver(
        self, message: NormalizedMessage | bytes, recipient: str
    ) -> DeliveryMethod:
        """Forward a message, or raw message bytes, to recipient.

        Raises:
            DeliveryError: When no delivery method succeeded.
        """
        sender = self.forwarder.sender
        if isinstance(message, NormalizedMessage):
            payload = build_forward_message(message, sender, recipient, self.forwarded_by)
        else:
            payload = prepend_resent_headers(message, sender, recipient, self.forwarded_by)
        return await self.forwarder.send(payload, recipient)

    async def close(self) -> None:
        await self.fetcher.close()

    async def __aenter__(self) -> "MailTransport":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()
