"""Async IMAP client for fetching unread mail from one account."""

import asyncio
import contextlib
import ssl
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import aioimaplib
import structlog

from mail_dispatcher.core import RetryPolicy
from mail_dispatcher.core.retry import SleepFunc
from mail_dispatcher.exceptions import AuthError, FetchError, MailConnectionError
from mail_dispatcher.models import NormalizedMessage
from mail_dispatcher.transport.imap_parser import FetchRecord, iter_fetch_records
from mail_dispatcher.transport.providers import IMAPS_PORT, split_server

if TYPE_CHECKING:
    from mail_dispatcher.config import Settings
    from mail_dispatcher.models import Account

logger = structlog.get_logger(__name__)

FETCH_ITEMS = "(UID INTERNALDATE ENVELOPE BODY.PEEK[])"

# IMAP dates always use English month names, regardless of locale
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def imap_date(value: datetime) -> str:
    """Format a date for an IMAP SEARCH criterion, e.g. ``7-Oct-2026``."""
    return f"{value.day}-{_MONTHS[value.month - 1]}-{value.year}"


class IMAPFetcher:
    """Async IMAP client using aioimaplib with bounded reconnection."""

    # Used when the fetcher is built without settings
    DEFAULT_MAX_RETRY_COUNT = 3
    DEFAULT_RETRY_INTERVAL = 1
    DEFAULT_TIMEOUT = 30
    DEFAULT_RECENCY_DAYS = 7

    def __init__(
        self,
        account: "Account",
        settings: "Settings | None" = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        self.account_id = account.id
        self.host, self.port = split_server(account.server, IMAPS_PORT)
        self.user = account.username
        self.password = account.password

        if settings is not None:
            self.retry_policy = RetryPolicy(settings.max_retry_count, settings.retry_interval)
            self.timeout = settings.imap_timeout
            self.recency_days = settings.recency_window_days
            verify_tls = settings.imap_verify_tls
        else:
            self.retry_policy = RetryPolicy(
                self.DEFAULT_MAX_RETRY_COUNT, self.DEFAULT_RETRY_INTERVAL
            )
            self.timeout = self.DEFAULT_TIMEOUT
            self.recency_days = self.DEFAULT_RECENCY_DAYS
            verify_tls = True

        self._ssl_context = None if verify_tls else self._insecure_context()
        self._sleep = sleep or asyncio.sleep
        self._client: aioimaplib.IMAP4_SSL | None = None

    @staticmethod
    def _insecure_context() -> ssl.SSLContext:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    @property
    def is_connected(self) -> bool:
        """Check if an IMAP session is open."""
        return self._client is not None

    async def _open(self) -> aioimaplib.IMAP4_SSL:
        """Open a TLS session and wait for the server greeting."""
        try:
            client = aioimaplib.IMAP4_SSL(
                host=self.host,
                port=self.port,
                timeout=self.timeout,
                ssl_context=self._ssl_context,
            )
            await client.wait_hello_from_server()
        except Exception as e:
            logger.error("imap_connection_failed", host=self.host, port=self.port, error=str(e))
            raise MailConnectionError(f"IMAP connection failed: {e}") from e
        return client

    async def _login(self, client: aioimaplib.IMAP4_SSL) -> None:
        try:
            status, data = await client.login(self.user, self.password)
        except Exception as e:
            logger.error("imap_login_failed", user=self.user, error=str(e))
            raise AuthError(f"IMAP login failed: {e}") from e
        if status != "OK":
            detail = data[-1] if data else status
            logger.error("imap_login_rejected", user=self.user, status=status)
            raise AuthError(f"IMAP login rejected: {detail!r}")

    async def connect(self) -> None:
        """Establish an IMAP session with a single attempt.

        Raises:
            MailConnectionError: If the server cannot be reached.
            AuthError: If the credentials are rejected.
        """
        logger.info("imap_connecting", host=self.host, port=self.port)
        client = await self._open()
        try:
            await self._login(client)
        except AuthError:
            await self._logout(client)
            raise
        self._client = client
        logger.info("imap_connected", user=self.user)

    async def reconnect(self) -> None:
        """Discard any session and connect again with bounded retries.

        The connect step and the login step are retried independently.
        """
        await self.disconnect()

        client = await self.retry_policy.run(
            self._open,
            retry_on=MailConnectionError,
            sleep=self._sleep,
            label="imap_connect",
        )
        try:
            await self.retry_policy.run(
                lambda: self._login(client),
                retry_on=AuthError,
                sleep=self._sleep,
                label="imap_login",
            )
        except AuthError:
            await self._logout(client)
            raise
        self._client = client
        logger.info("imap_reconnected", user=self.user)

    async def ensure_connection(self) -> None:
        """Make sure a usable session exists, reconnecting if needed."""
        if self._client is None:
            await self.reconnect()
            return

        try:
            status, _ = await self._client.noop()
        except Exception as e:
            logger.warning("imap_probe_failed", error=str(e))
            await self.reconnect()
            return
        if status != "OK":
            logger.warning("imap_probe_failed", status=status)
            await self.reconnect()

    async def _logout(self, client: aioimaplib.IMAP4_SSL) -> None:
        with contextlib.suppress(Exception):
            await client.logout()

    async def disconnect(self) -> None:
        """Drop the session without reporting logout failures."""
        if self._client:
            client, self._client = self._client, None
            await self._logout(client)
            logger.info("imap_disconnected")

    async def close(self) -> None:
        """Log out of the session if one is open.

        Raises:
            MailConnectionError: If the server logout fails.
        """
        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            await client.logout()
        except Exception as e:
            raise MailConnectionError(f"IMAP logout failed: {e}") from e
        logger.info("imap_disconnected")

    async def fetch_new_messages(self) -> list[NormalizedMessage]:
        """Fetch unread INBOX messages received within the recency window.

        Messages are fetched with BODY.PEEK so their flags are left alone.
        A message that cannot be parsed is logged and skipped.

        Raises:
            FetchError: If select, search or fetch fails.
        """
        await self.ensure_connection()
        if self._client is None:
            raise FetchError("IMAP not connected")

        since = imap_date(datetime.now(timezone.utc) - timedelta(days=self.recency_days))
        try:
            status, _ = await self._client.select("INBOX")
            if status != "OK":
                raise FetchError(f"IMAP select INBOX failed: {status}")

            status, data = await self._client.uid_search(f"UNSEEN SINCE {since}")
            if status != "OK":
                raise FetchError(f"IMAP search failed: {status}")

            uids = [
                token
                for token in (data[0].decode().split() if data and data[0] else [])
                if token.isdigit()
            ]
            logger.info("imap_messages_found", count=len(uids), since=since)
            if not uids:
                return []

            status, lines = await self._client.uid("fetch", ",".join(uids), FETCH_ITEMS)
            if status != "OK":
                raise FetchError(f"IMAP fetch failed: {status}")
        except FetchError:
            raise
        except Exception as e:
            logger.error("imap_fetch_failed", error=str(e))
            raise FetchError(f"IMAP fetch failed: {e}") from e

        messages = []
        for record in iter_fetch_records(lines):
            try:
                messages.append(self._to_message(record))
            except Exception as e:
                logger.warning("message_parse_failed", sequence=record.sequence, error=str(e))
                continue
        return messages

    def _to_message(self, record: FetchRecord) -> NormalizedMessage:
        if record.uid is None:
            raise ValueError("FETCH response carried no UID")

        envelope = record.envelope
        return NormalizedMessage.build(
            f"{self.account_id}-{record.uid}",
            subject=envelope.subject if envelope else "",
            from_addr=envelope.from_addr if envelope else "",
            to_addr=envelope.to_addr if envelope else "",
            raw=record.body,
            received_at=record.internal_date,
        )

    async def __aenter__(self) -> "IMAPFetcher":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.disconnect()
