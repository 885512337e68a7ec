"""Tests for the bounded retry helper."""

from unittest.mock import AsyncMock

import pytest

from mail_dispatcher.core import RetryPolicy
from mail_dispatcher.exceptions import AuthError, MailConnectionError


class TestRetryPolicy:
    """Test RetryPolicy.run()."""

    def test_invalid_attempts(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(attempts=0)

    def test_invalid_interval(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(attempts=1, interval=-1)

    @pytest.mark.asyncio
    async def test_first_success_does_not_sleep(self) -> None:
        sleep = AsyncMock()
        operation = AsyncMock(return_value="ok")

        result = await RetryPolicy(3, 5).run(operation, retry_on=MailConnectionError, sleep=sleep)

        assert result == "ok"
        operation.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self) -> None:
        sleep = AsyncMock()
        operation = AsyncMock(
            side_effect=[MailConnectionError("down"), MailConnectionError("down"), "ok"]
        )

        result = await RetryPolicy(3, 5).run(operation, retry_on=MailConnectionError, sleep=sleep)

        assert result == "ok"
        assert operation.await_count == 3
        assert sleep.await_count == 2
        sleep.assert_awaited_with(5)

    @pytest.mark.asyncio
    async def test_exhaustion_reraises_last_error(self) -> None:
        sleep = AsyncMock()
        errors = [MailConnectionError(f"attempt {n}") for n in range(1, 4)]
        operation = AsyncMock(side_effect=errors)

        with pytest.raises(MailConnectionError) as exc_info:
            await RetryPolicy(3, 1).run(operation, retry_on=MailConnectionError, sleep=sleep)

        assert exc_info.value is errors[-1]
        assert operation.await_count == 3
        # No sleep after the final attempt
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self) -> None:
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=AuthError("bad password"))

        with pytest.raises(AuthError):
            await RetryPolicy(3, 1).run(operation, retry_on=MailConnectionError, sleep=sleep)

        operation.assert_awaited_once()
        sleep.assert_not_awaited()
