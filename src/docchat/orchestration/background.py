"""
Detached units of work that must not block a conversation turn.

Each task is filed under a key (the session it belongs to) so the owner can
wait for that session's outstanding work before tearing it down. Completion
and failure are logged from a done callback; nothing is re-raised.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Coroutine, Dict, Set

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Registry of fire-and-forget tasks grouped by key."""

    def __init__(self):
        self._tasks: Dict[str, Set[asyncio.Task]] = defaultdict(set)

    def spawn(self, key: str, coro: Coroutine, description: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=f"{description} [{key}]")
        self._tasks[key].add(task)

        def _done(t: asyncio.Task) -> None:
            bucket = self._tasks.get(key)
            if bucket is not None:
                bucket.discard(t)
                if not bucket:
                    self._tasks.pop(key, None)

            if t.cancelled():
                logger.warning(f"Background task cancelled: {description}")
                return
            error = t.exception()
            if error is not None:
                logger.error(f"Background task failed: {description}: {error}", exc_info=error)
            else:
                logger.info(f"Background task finished: {description}")

        task.add_done_callback(_done)
        return task

    def pending(self, key: str) -> int:
        return len(self._tasks.get(key, ()))

    async def drain(self, key: str, timeout: float) -> bool:
        """
        Wait for every task filed under ``key``.

        Returns:
            True if all of them finished within ``timeout`` seconds
        """
        tasks = list(self._tasks.get(key, ()))
        if not tasks:
            return True
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        if still_running:
            logger.warning(f"{len(still_running)} background task(s) for {key} still running after {timeout:g}s")
            return False
        return True

    async def shutdown(self) -> None:
        """Cancel everything still outstanding."""
        tasks = [t for bucket in self._tasks.values() for t in bucket]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
