import asyncio

import pytest

from modindex.main.exceptions import ShutdownRequestedError
from modindex.worker.shutdown import ShutdownSignal


@pytest.mark.asyncio
async def test_sleep_runs_full_duration_without_shutdown():
    shutdown = ShutdownSignal()

    assert await shutdown.sleep(0.01) is False
    assert not shutdown.is_set()


@pytest.mark.asyncio
async def test_sleep_returns_early_when_shutdown_is_raised():
    shutdown = ShutdownSignal()

    async def raise_soon():
        await asyncio.sleep(0.01)
        shutdown.set(reason="test")

    asyncio.create_task(raise_soon())
    async with asyncio.timeout(5):
        interrupted = await shutdown.sleep(60)

    assert interrupted is True
    assert shutdown.reason == "test"


@pytest.mark.asyncio
async def test_sleep_after_shutdown_returns_immediately():
    shutdown = ShutdownSignal()
    shutdown.set()

    assert await shutdown.sleep(60) is True


def test_first_reason_wins():
    shutdown = ShutdownSignal()
    shutdown.set(reason="first")
    shutdown.set(reason="second")

    assert shutdown.reason == "first"


@pytest.mark.asyncio
async def test_interruptible_returns_the_result():
    shutdown = ShutdownSignal()

    async def work():
        await asyncio.sleep(0)
        return 42

    assert await shutdown.interruptible(work()) == 42


@pytest.mark.asyncio
async def test_interruptible_propagates_errors():
    shutdown = ShutdownSignal()

    async def work():
        raise ValueError("boom")

    with pytest.raises(ValueError):
        await shutdown.interruptible(work())


@pytest.mark.asyncio
async def test_interruptible_cancels_work_on_shutdown():
    shutdown = ShutdownSignal()
    cancelled = asyncio.Event()

    async def work():
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    asyncio.get_running_loop().call_later(0.01, shutdown.set, "test")
    with pytest.raises(ShutdownRequestedError):
        async with asyncio.timeout(5):
            await shutdown.interruptible(work())

    assert cancelled.is_set()


def test_raise_if_set():
    shutdown = ShutdownSignal()
    shutdown.raise_if_set()

    shutdown.set(reason="test")
    with pytest.raises(ShutdownRequestedError, match="test"):
        shutdown.raise_if_set()
