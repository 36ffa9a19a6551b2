"""Group of fire-and-forget coroutines sharing one cancellation signal.

Each operation is an async callable that receives the supervisor's current
cancellation signal (an ``asyncio.Event``) and should check it at the top of
its loops. ``cancel_all()`` sets the signal and cancels every tracked task as
one unit. The supervisor stays usable afterwards: the next ``start()`` swaps
the spent signal for a fresh one.
"""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Operation = Callable[[asyncio.Event], Awaitable[None]]


class TaskSupervisor:
    def __init__(self, name: str = "tasks"):
        self.name = name
        self._tasks: set[asyncio.Task] = set()
        self._cancel_signal: asyncio.Event | None = asyncio.Event()
        self._disposed = False

    @property
    def cancel_signal(self) -> asyncio.Event | None:
        return self._cancel_signal

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def start(self, operation: Operation) -> asyncio.Task:
        """Launch *operation* under the current signal without waiting for it."""
        if self._disposed:
            raise RuntimeError(f"Task supervisor '{self.name}' is disposed")

        # Reuse after cancel_all(): the old signal stays set, so replace it
        if self._cancel_signal.is_set():
            self._cancel_signal = asyncio.Event()

        task = asyncio.ensure_future(self._supervise(operation, self._cancel_signal))
        self._tasks.add(task)
        # Runs on every completion, including a cancel before the first step
        task.add_done_callback(self._tasks.discard)
        return task

    async def _supervise(self, operation: Operation, cancel_signal: asyncio.Event):
        try:
            await operation(cancel_signal)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Operation failed in task supervisor '%s'", self.name)

    def cancel_all(self):
        """Signal cancellation to every tracked task and forget them.

        Does not wait for the tasks to observe the cancellation.
        """
        if self._cancel_signal is None or self._cancel_signal.is_set():
            return

        self._cancel_signal.set()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    async def wait_idle(self):
        """Wait until every currently tracked task has finished."""
        pending = list(self._tasks)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def dispose(self):
        if self._disposed:
            return
        self.cancel_all()
        self._cancel_signal = None
        self._disposed = True
