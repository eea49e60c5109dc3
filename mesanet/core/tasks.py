"""
Detached background tasks for best-effort side effects.

Notification emails and similar work must not delay or fail the response
that triggered them. ``TaskQueue`` runs them as detached asyncio tasks with
a bounded retry policy, logs every failure and never propagates one.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from mesanet.core.config import settings

logger = logging.getLogger(__name__)


class TaskQueue:
    """
    Runs coroutine functions outside the request/response path.

    Attributes:
        max_retries: Extra attempts after the first failure
        retry_delay: Seconds to wait between attempts (doubles each retry)

    Example:
        task_queue.submit("send_role_changed_email", sender.send, message)
    """

    def __init__(self, max_retries: int = 2, retry_delay: float = 0.5) -> None:
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        """Number of tasks not yet finished."""
        return len(self._tasks)

    def submit(
        self,
        name: str,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        **kwargs: Any,
    ) -> asyncio.Task[None]:
        """
        Schedule ``func(*args, **kwargs)`` without awaiting it.

        Must be called from a running event loop.

        Returns:
            The created task (already tracked by the queue)
        """
        task = asyncio.create_task(self._run(name, func, args, kwargs), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        name: str,
        func: Callable[..., Awaitable[Any]],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> None:
        delay = self.retry_delay
        for attempt in range(1, self.max_retries + 2):
            try:
                await func(*args, **kwargs)
                return
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if attempt > self.max_retries:
                    logger.error(
                        f"Background task '{name}' failed after {attempt} attempt(s): {e}",
                        exc_info=True,
                    )
                    return
                logger.warning(f"Background task '{name}' attempt {attempt} failed: {e}")
                await asyncio.sleep(delay)
                delay *= 2

    async def drain(self, timeout: float = 10.0) -> None:
        """
        Wait for outstanding tasks, cancelling whatever exceeds the timeout.

        Called on application shutdown.
        """
        if not self._tasks:
            return

        tasks = list(self._tasks)
        logger.info(f"Waiting for {len(tasks)} background task(s)")
        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(f"Cancelled {len(still_running)} background task(s) at shutdown")


# Process-wide queue; drained by the application lifespan
task_queue = TaskQueue(
    max_retries=settings.task_max_retries,
    retry_delay=settings.task_retry_delay_seconds,
)
