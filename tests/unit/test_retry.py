"""Tests for retry_call — bounded exponential backoff."""

from __future__ import annotations

import pytest

from sitedeploy.clients.base import PreconditionFailedError, TransferError
from sitedeploy.core.retry import RetriesExhaustedError, RetryPolicy, retry_call


def _flaky(failures: int, exc: type[Exception] = TransferError):
    calls = {"n": 0}

    def fn():
        calls["n"] += 1
        if calls["n"] <= failures:
            raise exc(f"attempt {calls['n']}")
        return "ok"

    return fn, calls


class TestRetryPolicy:
    def test_delays_grow_exponentially(self):
        policy = RetryPolicy(base_delay=0.5, factor=2.0)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]

    def test_delay_capped(self):
        policy = RetryPolicy(base_delay=10, factor=10, max_delay=30)
        assert policy.delay_for(3) == 30


class TestRetryCall:
    def test_success_first_try(self, clock):
        fn, calls = _flaky(0)
        result, attempts = retry_call(
            fn, policy=RetryPolicy(), retry_on=(TransferError,), sleep=clock.sleep
        )
        assert (result, attempts) == ("ok", 1)
        assert clock.sleeps == []

    def test_recovers_after_transient_failures(self, clock):
        fn, calls = _flaky(2)
        result, attempts = retry_call(
            fn, policy=RetryPolicy(max_attempts=3), retry_on=(TransferError,), sleep=clock.sleep
        )
        assert (result, attempts) == ("ok", 3)
        assert clock.sleeps == [0.5, 1.0]

    def test_exhaustion_raises_with_last_error(self, clock):
        fn, calls = _flaky(10)
        with pytest.raises(RetriesExhaustedError) as excinfo:
            retry_call(
                fn, policy=RetryPolicy(max_attempts=3), retry_on=(TransferError,),
                sleep=clock.sleep, label="upload x",
            )
        assert excinfo.value.attempts == 3
        assert calls["n"] == 3
        assert isinstance(excinfo.value.last_error, TransferError)
        assert "upload x" in str(excinfo.value)

    def test_give_up_on_is_not_retried(self, clock):
        fn, calls = _flaky(10, PreconditionFailedError)
        with pytest.raises(RetriesExhaustedError) as excinfo:
            retry_call(
                fn, policy=RetryPolicy(), retry_on=(TransferError,),
                give_up_on=(PreconditionFailedError,), sleep=clock.sleep,
            )
        assert excinfo.value.attempts == 1
        assert calls["n"] == 1

    def test_unlisted_exception_propagates(self, clock):
        fn, calls = _flaky(1, ValueError)
        with pytest.raises(ValueError):
            retry_call(fn, policy=RetryPolicy(), retry_on=(TransferError,), sleep=clock.sleep)
