import asyncio
import inspect
import logging
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[Callable[[], Any]], Cancellable]


class Ticker:
    """Calls ``callback`` every ``interval`` seconds until cancelled.

    The callback may return an awaitable, which is awaited before the next
    tick. Cancelling from inside the callback stops the loop without
    interrupting that awaitable.
    """

    def __init__(self, callback: Callable[[], Any], interval: float = 1.0):
        self._callback = callback
        self.interval = interval
        self._cancelled = False
        self._task = asyncio.create_task(self._run())

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not asyncio.current_task():
            self._task.cancel()

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while not self._cancelled:
            next_at += self.interval
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            if self._cancelled:
                break
            try:
                result = self._callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Tick callback failed")


def every_second(callback: Callable[[], Any]) -> Ticker:
    return Ticker(callback, interval=1.0)
