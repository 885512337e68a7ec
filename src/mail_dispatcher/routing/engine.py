"""Routing engine: decide, forward and record one message at a time."""

from datetime import datetime, timezone
from typing import Protocol

import structlog

from mail_dispatcher.core import sanitize_for_log
from mail_dispatcher.exceptions import (
    DeliveryError,
    SubjectFormatError,
    TargetNotFoundError,
)
from mail_dispatcher.models import DispatchOutcome, NormalizedMessage, OutcomeStatus
from mail_dispatcher.routing.subject import parse_subject
from mail_dispatcher.storage import AuditLog, Directory

logger = structlog.get_logger(__name__)


class Deliverer(Protocol):
    async def deliver(self, message: NormalizedMessage | bytes, recipient: str) -> object: ...


class RoutingEngine:
    """Route fetched messages to forward targets and audit the result.

    Every message that is not already audited produces exactly one
    outcome, forwarded or failed. Routing and delivery failures become
    failed outcomes; only store failures propagate.
    """

    def __init__(
        self,
        directory: Directory,
        audit_log: AuditLog,
        *,
        forward_raw: bool = False,
    ) -> None:
        self.directory = directory
        self.audit_log = audit_log
        self.forward_raw = forward_raw

    async def process(
        self,
        message: NormalizedMessage,
        account_id: int,
        transport: Deliverer,
    ) -> DispatchOutcome | None:
        """Process one message.

        Returns:
            The recorded outcome, or None if the message was already
            audited and has been skipped.

        Raises:
            StoreError: If the audit log or directory cannot be read or
                written.
        """
        if await self.audit_log.find_outcome(account_id, message.message_id) is not None:
            logger.debug("message_already_processed", message_id=message.message_id)
            return None

        outcome = DispatchOutcome(
            account_id=account_id,
            message_id=message.message_id,
            subject=message.subject,
            from_addr=message.from_addr,
            to_addr=message.to_addr,
            received_at=message.received_at,
            status=OutcomeStatus.FAILED,
        )

        try:
            route = parse_subject(message.subject)
        except SubjectFormatError as e:
            outcome.error = f"subject parse failed: {e.message}"
            return await self._record(outcome)

        target = await self.directory.lookup_target(route.target)
        if target is None:
            outcome.error = TargetNotFoundError(route.target).message
            return await self._record(outcome)

        outcome.forward_to = target.email
        payload = message.raw if self.forward_raw and message.raw else message
        try:
            await transport.deliver(payload, target.email)
        except DeliveryError as e:
            outcome.error = f"delivery failed: {e.message}"
            return await self._record(outcome)

        outcome.status = OutcomeStatus.FORWARDED
        outcome.forwarded_at = datetime.now(timezone.utc)
        return await self._record(outcome)

    async def _record(self, outcome: DispatchOutcome) -> DispatchOutcome:
        stored = await self.audit_log.append_outcome(outcome)
        if not stored:
            logger.warning("duplicate_outcome_discarded", message_id=outcome.message_id)
        elif outcome.is_forwarded:
            logger.info(
                "message_forwarded",
                message_id=outcome.message_id,
                subject=sanitize_for_log(outcome.subject),
                forward_to=outcome.forward_to,
            )
        else:
            logger.warning(
                "message_not_forwarded",
                message_id=outcome.message_id,
                subject=sanitize_for_log(outcome.subject),
                error=outcome.error,
            )
        return outcome
