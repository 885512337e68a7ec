"""Polling scheduler that dispatches every active account concurrently."""

import asyncio
import contextlib
from collections.abc import Callable
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING, Protocol

import structlog

from mail_dispatcher.exceptions import (
    AuthError,
    FetchError,
    MailConnectionError,
    SchedulerStateError,
    StoreError,
)
from mail_dispatcher.models import Account, NormalizedMessage
from mail_dispatcher.transport import MailTransport

if TYPE_CHECKING:
    from mail_dispatcher.config import Settings
    from mail_dispatcher.routing import RoutingEngine
    from mail_dispatcher.storage import Directory

logger = structlog.get_logger(__name__)


class AccountTransport(Protocol):
    async def connect(self) -> None: ...

    async def fetch_new(self) -> list[NormalizedMessage]: ...

    async def deliver(self, message: NormalizedMessage | bytes, recipient: str) -> object: ...

    async def close(self) -> None: ...


TransportFactory = Callable[[Account], AccountTransport]


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class DispatchScheduler:
    """Run a poll pass over all active accounts on a fixed interval.

    The scheduler moves through ``idle -> running -> stopped`` exactly
    once. Each pass launches one task per account; a failing account
    never affects the others. ``stop()`` ends the ticking loop but leaves
    in-flight poll tasks running, so outcomes may still be recorded after
    it returns. Use ``join()`` to wait for them.
    """

    def __init__(
        self,
        settings: "Settings",
        directory: "Directory",
        engine: "RoutingEngine",
        transport_factory: TransportFactory | None = None,
    ):
        self.settings = settings
        self.directory = directory
        self.engine = engine
        self.transport_factory = transport_factory or partial(MailTransport, settings=settings)
        self.state = SchedulerState.IDLE
        self._stop = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._in_flight: set[int] = set()

    @property
    def in_flight(self) -> frozenset[int]:
        """Account ids whose poll task is still running."""
        return frozenset(self._in_flight)

    async def start(self) -> None:
        """Run one poll pass immediately, then start the ticking loop.

        Raises:
            SchedulerStateError: If the scheduler was already started.
        """
        if self.state is not SchedulerState.IDLE:
            raise SchedulerStateError(f"cannot start scheduler in state {self.state.value}")
        self.state = SchedulerState.RUNNING
        logger.info("scheduler_starting", polling_interval=self.settings.polling_interval)

        await self._run_pass()
        self._loop_task = asyncio.create_task(self._polling_loop(), name="dispatch-loop")

    def stop(self) -> None:
        """Stop launching poll passes. Calling it again is a no-op."""
        if self.state is SchedulerState.STOPPED:
            return
        logger.info("scheduler_shutdown_requested", in_flight=len(self._in_flight))
        self.state = SchedulerState.STOPPED
        self._stop.set()

    # Same shutdown hook name as RetentionScheduler
    request_shutdown = stop

    async def run(self) -> None:
        """Start the scheduler and wait until it is stopped."""
        await self.start()
        await self._stop.wait()
        if self._loop_task is not None:
            await self._loop_task
        logger.info("scheduler_stopped")

    async def join(self) -> None:
        """Wait for the ticking loop and every launched poll task."""
        pending = list(self._tasks)
        if self._loop_task is not None and self.state is SchedulerState.STOPPED:
            pending.append(self._loop_task)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _polling_loop(self) -> None:
        while not self._stop.is_set():
            # Wait for next pass or stop
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    self._stop.wait(), timeout=self.settings.polling_interval
                )
            if self._stop.is_set():
                break
            await self._run_pass()

    async def _run_pass(self) -> None:
        try:
            await self.poll_all_accounts()
        except StoreError as e:
            logger.error("poll_pass_failed", error=str(e))
        except Exception as e:
            logger.exception("poll_pass_failed", error=str(e))

    async def poll_all_accounts(self) -> list[asyncio.Task[None]]:
        """Launch a poll task for every active account.

        Accounts are read fresh on every pass. An account whose previous
        task has not finished is skipped for this pass.

        Returns:
            The tasks launched in this pass.

        Raises:
            StoreError: If the account list cannot be read.
        """
        accounts = await self.directory.list_active_accounts()
        logger.info("poll_pass_starting", accounts=len(accounts))

        launched = []
        for account in accounts:
            if account.id in self._in_flight:
                logger.info("poll_skipped_in_flight", account_id=account.id)
                continue
            self._in_flight.add(account.id)
            task = asyncio.create_task(
                self._poll_account(account), name=f"poll-account-{account.id}"
            )
            self._tasks.add(task)
            task.add_done_callback(partial(self._task_done, account.id))
            launched.append(task)
        return launched

    def _task_done(self, account_id: int, task: asyncio.Task[None]) -> None:
        self._in_flight.discard(account_id)
        self._tasks.discard(task)

    async def _poll_account(self, account: Account) -> None:
        with structlog.contextvars.bound_contextvars(account_id=account.id):
            transport: AccountTransport | None = None
            try:
                transport = self.transport_factory(account)
                await transport.connect()
                messages = await transport.fetch_new()
                logger.info("account_messages_fetched", address=account.address, count=len(messages))

                for message in messages:
                    try:
                        await self.engine.process(message, account.id, transport)
                    except StoreError as e:
                        logger.error(
                            "outcome_not_recorded", message_id=message.message_id, error=str(e)
                        )
            except (MailConnectionError, AuthError, FetchError, ValueError) as e:
                # ValueError comes from a malformed account server address
                logger.error("account_poll_failed", error_type=type(e).__name__, error=str(e))
            except Exception as e:
                logger.exception("poll_task_crashed", error=str(e))
            finally:
                if transport is not None:
                    try:
                        await transport.close()
                    except Exception as e:
                        logger.warning("transport_close_failed", error=str(e))
