"""
Fetch Coordination

Single-flight coordination for schedule refreshes: at most one fetch task runs
per coordinator, and callers asking for the same key share its outcome.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Hashable


logger = logging.getLogger(__name__)


class FetchCoordinator:
    """
    Coalesces concurrent fetch requests into one underlying task.

    A caller whose key matches the in-flight task awaits that task. A caller with
    a different key waits for the in-flight task to settle and then starts its own,
    so there is never more than one fetch running at a time.

    Joined tasks are awaited through asyncio.shield: cancelling one caller does not
    cancel the fetch the others are waiting on.
    """

    def __init__(self):
        self._pending: asyncio.Task | None = None
        self._pending_key: Hashable | None = None

    async def execute(self, key: Hashable, fetch_func: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run fetch_func, or join the in-flight fetch for the same key.

        Args:
            key: Identity of the resource being fetched (e.g. source URL)
            fetch_func: Zero-argument coroutine function performing the fetch

        Returns:
            Result of the (possibly shared) fetch

        Raises:
            Any exception raised by fetch_func, delivered to every joined caller
        """
        while self._pending is not None:
            task = self._pending
            if self._pending_key == key:
                logger.debug("Joining in-flight fetch for %s", key)
                return await asyncio.shield(task)

            logger.debug("Waiting for in-flight fetch of %s before fetching %s", self._pending_key, key)
            await asyncio.wait([task])

        task = asyncio.create_task(fetch_func())
        self._pending = task
        self._pending_key = key
        task.add_done_callback(self._clear)

        return await asyncio.shield(task)

    def _clear(self, task: asyncio.Task) -> None:
        if self._pending is task:
            self._pending = None
            self._pending_key = None

    def is_fetching(self) -> bool:
        """
        Check if a fetch operation is currently in progress.

        Returns:
            True if fetch is running, False otherwise
        """
        return self._pending is not None and not self._pending.done()
