import asyncio

import pytest

from codechunk.indexer import retry as retry_module
from codechunk.indexer.retry import retry_async, retry_call


def test_retry_call_succeeds_after_failures(monkeypatch):
    delays = []
    monkeypatch.setattr(retry_module.time, "sleep", delays.append)
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("down")
        return "ok"

    assert retry_call(flaky, max_attempts=3, base_delay=0.5) == "ok"
    assert delays == [0.5, 1.0]


def test_retry_call_reraises_last_error(monkeypatch):
    monkeypatch.setattr(retry_module.time, "sleep", lambda _: None)

    def always_fails():
        raise TimeoutError("slow")

    with pytest.raises(TimeoutError):
        retry_call(always_fails, max_attempts=2)


def test_retry_call_does_not_retry_other_exceptions():
    attempts = []

    def fails():
        attempts.append(1)
        raise KeyError("x")

    with pytest.raises(KeyError):
        retry_call(fails, max_attempts=5, base_delay=0, retry_on=(ConnectionError,))
    assert len(attempts) == 1


def test_should_retry_predicate_short_circuits():
    attempts = []

    def fails():
        attempts.append(1)
        raise ValueError("permanent")

    with pytest.raises(ValueError):
        retry_call(fails, max_attempts=5, base_delay=0, should_retry=lambda e: False)
    assert len(attempts) == 1


def test_retry_async_backoff_doubles(monkeypatch):
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr(retry_module.asyncio, "sleep", fake_sleep)
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 4:
            raise ConnectionError("down")
        return 42

    assert asyncio.run(retry_async(flaky, max_attempts=4, base_delay=1.0)) == 42
    assert delays == [1.0, 2.0, 4.0]


def test_invalid_attempts_rejected():
    with pytest.raises(ValueError):
        retry_call(lambda: None, max_attempts=0)
