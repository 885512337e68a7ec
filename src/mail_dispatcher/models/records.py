"""Directory and audit log records.

Accounts and forward targets are owned by the directory and are read-only
to the dispatch pipeline. A DispatchOutcome is produced once per fetched
message and written to the audit log.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Account:
    """A configured mailbox that the dispatcher polls.

    Attributes:
        id: Directory identifier.
        address: The mailbox address, used for logging.
        username: Login name for both IMAP and SMTP.
        password: Password or app token.
        server: IMAP endpoint as ``host`` or ``host:port``.
        is_active: Only active accounts are polled.
        settings: Opaque JSON settings blob, not interpreted by the core.
        last_uid: Last processed UID cursor. Read but never advanced.
    """

    id: int
    address: str
    username: str
    password: str = field(repr=False)
    server: str
    is_active: bool = True
    settings: str = ""
    last_uid: int = 0


@dataclass(frozen=True)
class ForwardTarget:
    """A named forwarding destination.

    ``name`` is the routing key matched exactly (case-sensitive) against
    the target half of a message subject.
    """

    id: int
    name: str
    email: str
    description: str = ""


class OutcomeStatus(str, Enum):
    FORWARDED = "forwarded"
    FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DispatchOutcome:
    """What happened to one fetched message.

    Attributes:
        account_id: Account the message was fetched from.
        message_id: Message identifier, ``{account_id}-{uid}``.
        subject: Decoded subject line.
        from_addr: Original sender address.
        to_addr: Original recipient address.
        received_at: When the message arrived.
        status: ``forwarded`` or ``failed``.
        forward_to: Resolved destination, when one was found.
        error: Failure detail for failed outcomes.
        forwarded_at: Delivery time for forwarded outcomes.
        created_at: When the outcome was recorded.
        id: Store identifier, set once persisted.
    """

    account_id: int
    message_id: str
    subject: str
    from_addr: str
    to_addr: str
    received_at: datetime
    status: OutcomeStatus
    forward_to: str | None = None
    error: str | None = None
    forwarded_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    id: int | None = None

    @property
    def is_forwarded(self) -> bool:
        return self.status == OutcomeStatus.FORWARDED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "message_id": self.message_id,
            "subject": self.subject,
            "from_addr": self.from_addr,
            "to_addr": self.to_addr,
            "received_at": self.received_at.isoformat(),
            "forward_to": self.forward_to,
            "status": self.status.value,
            "error": self.error,
            "forwarded_at": self.forwarded_at.isoformat() if self.forwarded_at else None,
            "created_at": self.created_at.isoformat(),
        }
