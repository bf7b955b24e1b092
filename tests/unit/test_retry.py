import httpx
import pytest

from fedsetup.errors import APIError
from fedsetup.utils.retry import compute_backoff, with_retry


async def _no_wait(attempt):
    return None


@pytest.mark.asyncio
async def test_api_errors_are_not_retried():
    calls = 0

    async def operation():
        nonlocal calls
        calls += 1
        raise APIError("Backend Error", 503)

    with pytest.raises(APIError):
        await with_retry(operation, max_attempts=3, backoff=_no_wait)
    assert calls == 1


@pytest.mark.asyncio
async def test_network_errors_retried_up_to_max_attempts():
    calls = 0
    waits = []

    async def operation():
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("connection refused")

    async def record(attempt):
        waits.append(attempt)

    with pytest.raises(httpx.ConnectError):
        await with_retry(operation, max_attempts=3, backoff=record)
    assert calls == 3
    assert waits == [0, 1]


@pytest.mark.asyncio
async def test_success_after_transient_failure():
    attempts = iter([httpx.ReadTimeout("slow"), "ok"])

    async def operation():
        outcome = next(attempts)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert await with_retry(operation, backoff=_no_wait) == "ok"


def test_compute_backoff_grows_with_attempt():
    assert compute_backoff(0, base=1.5, jitter=0.0) == 1.0
    assert compute_backoff(2, base=2.0, jitter=0.0) == 4.0
