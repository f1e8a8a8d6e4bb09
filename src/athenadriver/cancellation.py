import asyncio
import threading
from typing import List, Optional, Tuple

from athenadriver.errors import CallerCancelledError


class CancellationToken:
    """Caller-owned signal that asks a running statement to stop.

    ``cancel`` may be called from any thread. Coroutines blocked in ``wait``
    are woken on their own event loop.
    """

    def __init__(self) -> None:
        """Initialize an unfired token."""
        self._lock = threading.Lock()
        self._reason: Optional[BaseException] = None
        self._waiters: List[Tuple[asyncio.AbstractEventLoop, asyncio.Event]] = []

    @property
    def cancelled(self) -> bool:
        """Return True once cancel() has been called."""
        with self._lock:
            return self._reason is not None

    @property
    def reason(self) -> Optional[BaseException]:
        """Return the exception the cancelled statement should raise."""
        with self._lock:
            return self._reason

    def cancel(self, reason: Optional[BaseException] = None) -> None:
        """Fire the token; only the first reason is kept."""
        with self._lock:
            if self._reason is not None:
                return
            self._reason = reason or CallerCancelledError("query cancelled by caller")
            waiters = list(self._waiters)
        for loop, event in waiters:
            try:
                loop.call_soon_threadsafe(event.set)
            except RuntimeError:
                # The waiter's loop already closed; nothing is left to wake.
                continue

    async def wait(self) -> BaseException:
        """Block until the token fires and return its reason."""
        loop = asyncio.get_running_loop()
        event = asyncio.Event()
        waiter = (loop, event)
        with self._lock:
            if self._reason is not None:
                return self._reason
            self._waiters.append(waiter)
        try:
            await event.wait()
        finally:
            with self._lock:
                self._waiters.remove(waiter)
        return self.reason
