"""Tests for RetryHandler."""

import pytest

from winhealth.services.retry_handler import RetryHandler


class Flaky(Exception):
    pass


@pytest.mark.asyncio
async def test_succeeds_after_failures():
    calls = []

    async def operation(attempt):
        calls.append(attempt)
        if attempt < 3:
            raise Flaky(f"attempt {attempt}")
        return "ok"

    handler = RetryHandler(max_attempts=3, base_delay=0.001, max_delay=0.01)

    assert await handler.run(operation, exceptions=(Flaky,)) == "ok"
    assert calls == [1, 2, 3]


@pytest.mark.asyncio
async def test_raises_last_exception_when_exhausted():
    async def operation(attempt):
        raise Flaky(f"attempt {attempt}")

    handler = RetryHandler(max_attempts=2, base_delay=0.001)

    with pytest.raises(Flaky, match="attempt 2"):
        await handler.run(operation, exceptions=(Flaky,))


@pytest.mark.asyncio
async def test_unlisted_exception_is_not_retried():
    calls = []

    async def operation(attempt):
        calls.append(attempt)
        raise KeyError("nope")

    with pytest.raises(KeyError):
        await RetryHandler(max_attempts=3, base_delay=0.001).run(operation, exceptions=(Flaky,))
    assert calls == [1]


@pytest.mark.asyncio
async def test_can_retry_veto_stops_early():
    calls = []

    async def operation(attempt):
        calls.append(attempt)
        raise Flaky("down")

    handler = RetryHandler(max_attempts=5, base_delay=0.001)

    with pytest.raises(Flaky):
        await handler.run(operation, exceptions=(Flaky,), can_retry=lambda delay: False)
    assert calls == [1]


def test_delay_is_exponential_and_capped():
    handler = RetryHandler(base_delay=1, max_delay=5, jitter=0)

    assert [handler.delay_for(n) for n in range(1, 5)] == [1, 2, 4, 5]


def test_jitter_bounds():
    handler = RetryHandler(base_delay=2, max_delay=60, jitter=0.1)

    for _ in range(50):
        assert 2 <= handler.delay_for(1) <= 2.2
