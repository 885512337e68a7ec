"""Tests for the SQLite directory and audit log."""

from datetime import datetime, timedelta, timezone

import pytest

from mail_dispatcher.exceptions import StoreError
from mail_dispatcher.models import DispatchOutcome, OutcomeStatus
from mail_dispatcher.storage import SqliteStore


def make_outcome(message_id: str, status=OutcomeStatus.FAILED, **kwargs) -> DispatchOutcome:
    defaults = {
        "account_id": 1,
        "message_id": message_id,
        "subject": "报告 - 财务部",
        "from_addr": "alice@example.org",
        "to_addr": "inbox@example.com",
        "received_at": datetime(2026, 10, 1, 9, 30, tzinfo=timezone.utc),
        "status": status,
    }
    defaults.update(kwargs)
    return DispatchOutcome(**defaults)


class TestDirectory:
    """Test account and target lookups."""

    @pytest.mark.asyncio
    async def test_list_active_accounts_only(self, store: SqliteStore) -> None:
        await store.add_account("a@x.org", "a@x.org", "pw", "imap.x.org")
        await store.add_account("b@x.org", "b@x.org", "pw", "imap.x.org", is_active=False)

        accounts = await store.list_active_accounts()

        assert [a.address for a in accounts] == ["a@x.org"]
        assert accounts[0].is_active is True
        assert accounts[0].password == "pw"

    @pytest.mark.asyncio
    async def test_lookup_target_exact_match(self, store: SqliteStore) -> None:
        await store.add_target("财务部", "finance@example.com", "Finance")

        target = await store.lookup_target("财务部")

        assert target is not None
        assert target.email == "finance@example.com"
        assert target.description == "Finance"

    @pytest.mark.asyncio
    async def test_lookup_target_is_case_sensitive(self, store: SqliteStore) -> None:
        await store.add_target("Sales", "sales@example.com")

        assert await store.lookup_target("sales") is None
        assert await store.lookup_target("Sales") is not None

    @pytest.mark.asyncio
    async def test_target_name_is_unique(self, store: SqliteStore) -> None:
        await store.add_target("Sales", "sales@example.com")

        with pytest.raises(StoreError):
            await store.add_target("Sales", "other@example.com")


class TestAuditLog:
    """Test outcome persistence."""

    @pytest.mark.asyncio
    async def test_append_and_find(self, store: SqliteStore) -> None:
        forwarded_at = datetime(2026, 10, 1, 9, 31, tzinfo=timezone.utc)
        outcome = make_outcome(
            "1-42",
            OutcomeStatus.FORWARDED,
            forward_to="finance@example.com",
            forwarded_at=forwarded_at,
        )

        assert await store.append_outcome(outcome) is True
        found = await store.find_outcome(1, "1-42")

        assert found is not None
        assert found.id is not None
        assert found.status is OutcomeStatus.FORWARDED
        assert found.subject == "报告 - 财务部"
        assert found.forwarded_at == forwarded_at
        assert found.received_at == outcome.received_at

    @pytest.mark.asyncio
    async def test_find_missing(self, store: SqliteStore) -> None:
        assert await store.find_outcome(1, "1-404") is None

    @pytest.mark.asyncio
    async def test_append_is_insert_if_absent(self, store: SqliteStore) -> None:
        assert await store.append_outcome(make_outcome("1-42", error="first")) is True
        assert await store.append_outcome(make_outcome("1-42", error="second")) is False

        found = await store.find_outcome(1, "1-42")
        assert found is not None
        assert found.error == "first"

    @pytest.mark.asyncio
    async def test_same_message_id_other_account(self, store: SqliteStore) -> None:
        assert await store.append_outcome(make_outcome("x-1")) is True
        assert await store.append_outcome(make_outcome("x-1", account_id=2)) is True

    @pytest.mark.asyncio
    async def test_purge_outcomes(self, store: SqliteStore) -> None:
        now = datetime.now(timezone.utc)
        await store.append_outcome(make_outcome("1-1", created_at=now - timedelta(days=40)))
        await store.append_outcome(make_outcome("1-2", created_at=now))

        deleted = await store.purge_outcomes(now - timedelta(days=30))

        assert deleted == 1
        assert await store.find_outcome(1, "1-1") is None
        assert await store.find_outcome(1, "1-2") is not None

    @pytest.mark.asyncio
    async def test_count_outcomes_by_status(self, store: SqliteStore) -> None:
        await store.append_outcome(make_outcome("1-1", OutcomeStatus.FORWARDED))
        await store.append_outcome(make_outcome("1-2", OutcomeStatus.FAILED))
        await store.append_outcome(make_outcome("1-3", OutcomeStatus.FAILED))

        assert await store.count_outcomes_by_status() == {"forwarded": 1, "failed": 2}

    @pytest.mark.asyncio
    async def test_counts_empty(self, store: SqliteStore) -> None:
        assert await store.count_outcomes_by_status() == {"forwarded": 0, "failed": 0}

    @pytest.mark.asyncio
    async def test_missing_schema_raises_store_error(self, tmp_path) -> None:
        bare = SqliteStore(str(tmp_path / "empty.db"))

        with pytest.raises(StoreError):
            await bare.find_outcome(1, "1-1")
