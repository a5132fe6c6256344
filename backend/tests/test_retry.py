import asyncio

import pytest

from chainstock.services.exceptions import ProductNotFound, TransientIOError
from chainstock.services.retry import RetryPolicy, retry


class Flaky:
    def __init__(self, failures, result="ok"):
        self.errors = [TransientIOError(f"timeout {i}") for i in range(failures)]
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= len(self.errors):
            raise self.errors[self.calls - 1]
        return self.result


def _recorder():
    slept = []

    async def sleep(seconds):
        slept.append(seconds)

    return slept, sleep


def test_succeeds_on_third_attempt():
    slept, sleep = _recorder()
    op = Flaky(failures=2, result={"id": "P1"})

    result = asyncio.run(retry(op, attempts=3, delay_ms=2000, sleep=sleep))

    assert result == {"id": "P1"}
    assert op.calls == 3
    assert slept == [2.0, 2.0]


def test_exhausted_budget_raises_last_error_unchanged():
    slept, sleep = _recorder()
    op = Flaky(failures=5)

    with pytest.raises(TransientIOError) as exc_info:
        asyncio.run(retry(op, attempts=3, delay_ms=2000, sleep=sleep))

    assert exc_info.value is op.errors[2]
    assert op.calls == 3
    assert slept == [2.0, 2.0]


def test_give_up_on_is_not_retried():
    calls = []

    async def missing():
        calls.append(1)
        raise ProductNotFound("P404")

    with pytest.raises(ProductNotFound):
        asyncio.run(retry(missing, give_up_on=(ProductNotFound,), sleep=_recorder()[1]))
    assert len(calls) == 1


def test_first_success_does_not_sleep():
    slept, sleep = _recorder()
    op = Flaky(failures=0)
    assert asyncio.run(retry(op, sleep=sleep)) == "ok"
    assert op.calls == 1
    assert slept == []


def test_attempts_must_be_positive():
    with pytest.raises(ValueError):
        asyncio.run(retry(Flaky(0), attempts=0))


def test_policy_uses_its_settings():
    slept, sleep = _recorder()
    policy = RetryPolicy(attempts=2, delay_ms=50, sleep=sleep)
    op = Flaky(failures=2)

    with pytest.raises(TransientIOError):
        asyncio.run(policy.run(op))
    assert op.calls == 2
    assert slept == [0.05]
