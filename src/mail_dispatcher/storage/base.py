"""Collaborator ports for account lookup and outcome auditing.

The dispatch core only talks to these interfaces. ``SqliteStore`` is the
bundled implementation of both.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime

from mail_dispatcher.models import Account, DispatchOutcome, ForwardTarget


class Directory(ABC):
    """Read-only view of configured accounts and forward targets."""

    @abstractmethod
    async def list_active_accounts(self) -> Sequence[Account]:
        """Return every account whose ``is_active`` flag is set."""
        ...

    @abstractmethod
    async def lookup_target(self, name: str) -> ForwardTarget | None:
        """Return the target with exactly this name, or None.

        Matching is case-sensitive.
        """
        ...


class AuditLog(ABC):
    """Durable store of dispatch outcomes, one per (account, message)."""

    @abstractmethod
    async def find_outcome(self, account_id: int, message_id: str) -> DispatchOutcome | None:
        """Return the recorded outcome for a message, or None."""
        ...

    @abstractmethod
    async def append_outcome(self, outcome: DispatchOutcome) -> bool:
        """Record an outcome unless one already exists for its key.

        The check and the insert are a single atomic step.

        Returns:
            True if the outcome was stored, False if one already existed.

        Raises:
            StoreError: If the store could not be written.
        """
        ...

    @abstractmethod
    async def purge_outcomes(self, before: datetime) -> int:
        """Delete outcomes created before ``before``, return how many."""
        ...

    @abstractmethod
    async def count_outcomes_by_status(self) -> dict[str, int]:
        """Return the number of outcomes per status value."""
        ...
