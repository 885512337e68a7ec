"""SQLite store using aiosqlite.

Implements both the Directory and the AuditLog ports. A connection is
opened per operation, so one store can be shared between concurrent poll
tasks.
"""

from datetime import datetime
from typing import Any

import aiosqlite
import structlog

from mail_dispatcher.exceptions import StoreError
from mail_dispatcher.models import (
    Account,
    DispatchOutcome,
    ForwardTarget,
    OutcomeStatus,
)
from mail_dispatcher.storage.base import AuditLog, Directory

logger = structlog.get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS mail_accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    address TEXT NOT NULL,
    username TEXT NOT NULL,
    password TEXT NOT NULL,
    server TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    settings TEXT NOT NULL DEFAULT '',
    last_uid INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS forward_targets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS mail_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id INTEGER NOT NULL,
    message_id TEXT NOT NULL,
    subject TEXT NOT NULL DEFAULT '',
    from_addr TEXT NOT NULL DEFAULT '',
    to_addr TEXT NOT NULL DEFAULT '',
    received_at TEXT NOT NULL,
    forward_to TEXT,
    status TEXT NOT NULL,
    error TEXT,
    forwarded_at TEXT,
    created_at TEXT NOT NULL,
    UNIQUE (account_id, message_id)
);

CREATE INDEX IF NOT EXISTS idx_mail_logs_created_at ON mail_logs (created_at);
"""


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_outcome(row: dict[str, Any]) -> DispatchOutcome:
    return DispatchOutcome(
        id=row["id"],
        account_id=row["account_id"],
        message_id=row["message_id"],
        subject=row["subject"],
        from_addr=row["from_addr"],
        to_addr=row["to_addr"],
        received_at=datetime.fromisoformat(row["received_at"]),
        forward_to=row["forward_to"],
        status=OutcomeStatus(row["status"]),
        error=row["error"],
        forwarded_at=_parse_dt(row["forwarded_at"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class SqliteStore(Directory, AuditLog):
    """SQLite-backed directory and audit log."""

    def __init__(self, db_path: str):
        """Initialize the store.

        Args:
            db_path: Path to the SQLite file.
        """
        self.db_path = db_path

    async def _execute(self, query: str, params: dict[str, Any] | None = None) -> aiosqlite.Cursor:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(query, params or {})
                await db.commit()
                return cursor
        except aiosqlite.Error as e:
            logger.error("store_write_failed", error=str(e))
            raise StoreError(f"Store write failed: {e}") from e

    async def _fetch_all(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute(query, params or {}) as cursor:
                    rows = await cursor.fetchall()
                    return [dict(row) for row in rows]
        except aiosqlite.Error as e:
            logger.error("store_read_failed", error=str(e))
            raise StoreError(f"Store read failed: {e}") from e

    async def init_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.executescript(SCHEMA)
                await db.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Schema creation failed: {e}") from e
        logger.info("store_schema_ready", db_path=self.db_path)

    # Directory

    async def list_active_accounts(self) -> list[Account]:
        rows = await self._fetch_all(
            "SELECT * FROM mail_accounts WHERE is_active = 1 ORDER BY id"
        )
        return [
            Account(
                id=row["id"],
                address=row["address"],
                username=row["username"],
                password=row["password"],
                server=row["server"],
                is_active=bool(row["is_active"]),
                settings=row["settings"],
                last_uid=row["last_uid"],
            )
            for row in rows
        ]

    async def lookup_target(self, name: str) -> ForwardTarget | None:
        rows = await self._fetch_all(
            "SELECT * FROM forward_targets WHERE name = :name", {"name": name}
        )
        if not rows:
            return None
        row = rows[0]
        return ForwardTarget(
            id=row["id"], name=row["name"], email=row["email"], description=row["description"]
        )

    async def add_account(
        self,
        address: str,
        username: str,
        password: str,
        server: str,
        *,
        is_active: bool = True,
        settings: str = "",
    ) -> int:
        """Insert an account and return its id."""
        cursor = await self._execute(
            """
            INSERT INTO mail_accounts (address, username, password, server, is_active, settings)
            VALUES (:address, :username, :password, :server, :is_active, :settings)
            """,
            {
                "address": address,
                "username": username,
                "password": password,
                "server": server,
                "is_active": int(is_active),
                "settings": settings,
            },
        )
        return cursor.lastrowid

    async def add_target(self, name: str, email: str, description: str = "") -> int:
        """Insert a forward target and return its id."""
        cursor = await self._execute(
            """
            INSERT INTO forward_targets (name, email, description)
            VALUES (:name, :email, :description)
            """,
            {"name": name, "email": email, "description": description},
        )
        return cursor.lastrowid

    # Audit log

    async def find_outcome(self, account_id: int, message_id: str) -> DispatchOutcome | None:
        rows = await self._fetch_all(
            """
            SELECT * FROM mail_logs
            WHERE account_id = :account_id AND message_id = :message_id
            """,
            {"account_id": account_id, "message_id": message_id},
        )
        return _row_to_outcome(rows[0]) if rows else None

    async def append_outcome(self, outcome: DispatchOutcome) -> bool:
        cursor = await self._execute(
            """
            INSERT OR IGNORE INTO mail_logs (
                account_id, message_id, subject, from_addr, to_addr, received_at,
                forward_to, status, error, forwarded_at, created_at
            ) VALUES (
                :account_id, :message_id, :subject, :from_addr, :to_addr, :received_at,
                :forward_to, :status, :error, :forwarded_at, :created_at
            )
            """,
            {
                "account_id": outcome.account_id,
                "message_id": outcome.message_id,
                "subject": outcome.subject,
                "from_addr": outcome.from_addr,
                "to_addr": outcome.to_addr,
                "received_at": _iso(outcome.received_at),
                "forward_to": outcome.forward_to,
                "status": outcome.status.value,
                "error": outcome.error,
                "forwarded_at": _iso(outcome.forwarded_at),
                "created_at": _iso(outcome.created_at),
            },
        )
        return cursor.rowcount == 1

    async def purge_outcomes(self, before: datetime) -> int:
        cursor = await self._execute(
            "DELETE FROM mail_logs WHERE created_at < :before",
            {"before": before.isoformat()},
        )
        logger.info("outcomes_purged", count=cursor.rowcount, before=before.isoformat())
        return cursor.rowcount

    async def count_outcomes_by_status(self) -> dict[str, int]:
        rows = await self._fetch_all(
            "SELECT status, COUNT(*) AS total FROM mail_logs GROUP BY status"
        )
        counts = {status.value: 0 for status in OutcomeStatus}
        counts.update({row["status"]: row["total"] for row in rows})
        return counts
