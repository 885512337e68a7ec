"""Pytest configuration and fixtures."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest


@pytest.fixture
def mock_settings():
    """Settings with no env file and instant retries."""
    from mail_dispatcher.config import Settings

    return Settings(_env_file=None, retry_interval=0, polling_interval=60)


@pytest.fixture
def account():
    """A single active account on a generic provider."""
    from mail_dispatcher.models import Account

    return Account(
        id=1,
        address="inbox@example.com",
        username="inbox@example.com",
        password="secret",
        server="imap.example.com",
    )


@pytest.fixture
def store(tmp_path: Path):
    """SQLite store on a temporary file with the schema created."""
    from mail_dispatcher.storage import SqliteStore

    sqlite_store = SqliteStore(str(tmp_path / "dispatch.db"))
    asyncio.run(sqlite_store.init_schema())
    return sqlite_store


@pytest.fixture
def received_at() -> datetime:
    return datetime(2026, 10, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def sample_email_bytes():
    """Sample raw email bytes."""
    return b"""From: Alice Sender <alice@example.org>
To: inbox@example.com
Subject: =?UTF-8?B?5oql5ZGKIC0g6LSi5Yqh6YOo?=
Message-ID: <test-123@example.org>
Content-Type: text/plain; charset=utf-8

Quarterly numbers attached.
"""
