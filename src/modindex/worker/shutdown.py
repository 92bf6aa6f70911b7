import asyncio
import contextlib
from typing import Awaitable, Optional, TypeVar

from modindex.main.exceptions import ShutdownRequestedError
from modindex.main.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ShutdownSignal:
    """Cooperative stop flag shared by all indexing tasks.

    Every idle and backoff wait goes through `sleep`, so raising the signal
    wakes all tasks at once. Forge calls go through `interruptible`, which
    cancels them when the signal is raised.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def set(self, reason: Optional[str] = None) -> None:
        if self._event.is_set():
            return
        self.reason = reason
        logger.info(f"Shutdown requested: {reason or 'no reason given'}")
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def raise_if_set(self) -> None:
        if self._event.is_set():
            raise ShutdownRequestedError(self.reason or "shutdown requested")

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for `seconds` or until shutdown, whichever comes first.

        Returns:
            True if shutdown was requested.
        """
        if self._event.is_set():
            return True
        if seconds <= 0:
            return False

        try:
            async with asyncio.timeout(seconds):
                await self._event.wait()
        except TimeoutError:
            return False
        return True

    async def interruptible(self, work: Awaitable[T]) -> T:
        """Await `work`, cancelling it if shutdown is raised first.

        Raises:
            ShutdownRequestedError: shutdown was raised before `work` finished.
        """
        task = asyncio.ensure_future(work)
        stopped = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopped.cancel()
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        if task.cancelled():
            raise ShutdownRequestedError(self.reason or "shutdown requested")
        return task.result()
