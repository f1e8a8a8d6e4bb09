import asyncio
import threading

import pytest

from athenadriver.cancellation import CancellationToken
from athenadriver.errors import CallerCancelledError
from athenadriver.usage import QueryUsage


def test_first_reason_wins():
    token = CancellationToken()
    first = RuntimeError("first")
    token.cancel(first)
    token.cancel(RuntimeError("second"))

    assert token.cancelled
    assert token.reason is first


def test_default_reason():
    token = CancellationToken()
    token.cancel()
    assert isinstance(token.reason, CallerCancelledError)


@pytest.mark.asyncio
async def test_wait_returns_immediately_when_already_cancelled():
    token = CancellationToken()
    token.cancel()
    assert isinstance(await token.wait(), CallerCancelledError)


@pytest.mark.asyncio
async def test_cancel_from_another_thread_wakes_waiter():
    token = CancellationToken()
    waiter = asyncio.create_task(token.wait())
    await asyncio.sleep(0)

    threading.Thread(target=token.cancel).start()

    reason = await asyncio.wait_for(waiter, timeout=5)
    assert isinstance(reason, CallerCancelledError)


@pytest.mark.parametrize(
    "scanned, billed",
    [
        (None, 0),
        (0, 0),
        (1, 10 * 1024 * 1024),
        (50 * 1024 * 1024, 50 * 1024 * 1024),
    ],
)
def test_usage_applies_minimum_charge(scanned, billed):
    usage = QueryUsage.compute("q", scanned, "succeeded")
    assert usage.billed_bytes == billed
    assert usage.cost_usd == pytest.approx(billed / 1024**4 * 5)


def test_cancel_skips_waiter_on_closed_loop():
    token = CancellationToken()
    loop = asyncio.new_event_loop()
    token._waiters.append((loop, asyncio.Event()))
    loop.close()

    token.cancel()

    assert token.cancelled
