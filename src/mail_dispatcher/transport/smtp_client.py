"""Async SMTP forwarding with a fixed fallback chain.

Delivery walks the chain STARTTLS (587), implicit TLS (465), plaintext
(25) and stops at the first method that completes. The plaintext method
sends without authenticating.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

import aiosmtplib
import structlog

from mail_dispatcher.exceptions import DeliveryError
from mail_dispatcher.transport.providers import (
    IMPLICIT_TLS_PORT,
    PLAIN_PORT,
    STARTTLS_PORT,
    SubmissionEndpoint,
    resolve_submission_endpoint,
)

if TYPE_CHECKING:
    from mail_dispatcher.config import Settings
    from mail_dispatcher.models import Account

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DeliveryMethod:
    """One step of the fallback chain."""

    name: str
    host: str
    port: int
    use_tls: bool
    start_tls: bool
    authenticate: bool


def build_fallback_chain(endpoint: SubmissionEndpoint) -> list[DeliveryMethod]:
    """Return the ordered delivery methods for a submission endpoint.

    STARTTLS is only attempted when the endpoint's mapped port is 587.
    """
    chain = []
    if endpoint.port == STARTTLS_PORT:
        chain.append(
            DeliveryMethod("starttls", endpoint.host, STARTTLS_PORT, False, True, True)
        )
    chain.append(
        DeliveryMethod("implicit_tls", endpoint.host, IMPLICIT_TLS_PORT, True, False, True)
    )
    chain.append(DeliveryMethod("plain", endpoint.host, PLAIN_PORT, False, False, False))
    return chain


class SMTPForwarder:
    """Send outbound messages for one account through the fallback chain.

    Attributes:
        sender: Envelope sender and login name (the account username).
        endpoint: SMTP endpoint derived from the account's IMAP server.
        timeout: Per-connection timeout in seconds.
    """

    DEFAULT_TIMEOUT = 10

    def __init__(self, account: "Account", settings: "Settings | None" = None) -> None:
        """Initialize the forwarder.

        Args:
            account: Account whose credentials are used for submission.
            settings: Optional application settings for timeouts.
        """
        self.sender = account.username
        self.password = account.password
        self.endpoint = resolve_submission_endpoint(account.server)
        self.timeout = settings.smtp_timeout if settings else self.DEFAULT_TIMEOUT
        self.chain = build_fallback_chain(self.endpoint)

    async def send(self, payload: bytes, recipient: str) -> DeliveryMethod:
        """Deliver payload to recipient, trying each method in order.

        Returns:
            The delivery method that succeeded.

        Raises:
            DeliveryError: When every method in the chain failed.
        """
        for method in self.chain:
            try:
                await self._send_with(method, payload, recipient)
            except (aiosmtplib.SMTPException, OSError, TimeoutError) as e:
                logger.warning(
                    "smtp_method_failed",
                    method=method.name,
                    host=method.host,
                    port=method.port,
                    error=str(e),
                )
                continue
            logger.info(
                "smtp_delivered",
                method=method.name,
                host=method.host,
                port=method.port,
                recipient=recipient,
            )
            return method

        raise DeliveryError("all delivery methods failed")

    async def _send_with(self, method: DeliveryMethod, payload: bytes, recipient: str) -> None:
        client = aiosmtplib.SMTP(
            hostname=method.host,
            port=method.port,
            use_tls=method.use_tls,
            start_tls=method.start_tls,
            timeout=self.timeout,
        )
        await client.connect()
        try:
            if method.authenticate:
                await client.login(self.sender, self.password)
            await client.sendmail(self.sender, [recipient], payload)
        finally:
            try:
                await client.quit()
            except (aiosmtplib.SMTPException, OSError, TimeoutError):
                client.close()
