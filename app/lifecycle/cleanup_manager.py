"""Cleanup manager for graceful shutdown of the running services."""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Union

from log_config.logger import get_logger

logger = get_logger(__name__)

CleanupCallback = Callable[[], Union[None, Awaitable[None]]]


@dataclass
class CleanupTask:
    """Task to execute during cleanup."""

    name: str
    callback: CleanupCallback
    timeout: float = 5.0
    critical: bool = False  # If True, failure is reported by cleanup()


class CleanupManager:
    """Runs registered shutdown steps in order, each bounded by a timeout.

    Callbacks may be plain functions or coroutine functions.
    """

    def __init__(self, default_timeout: float = 10.0):
        """Initialize cleanup manager.

        Args:
            default_timeout: Default timeout for cleanup operations
        """
        self._tasks: List[CleanupTask] = []
        self._default_timeout = default_timeout
        self._cleanup_in_progress = False

    @property
    def task_names(self) -> List[str]:
        return [task.name for task in self._tasks]

    def register_cleanup(
        self,
        name: str,
        callback: CleanupCallback,
        timeout: Optional[float] = None,
        critical: bool = False,
    ) -> None:
        """Register cleanup task.

        Args:
            name: Task name
            callback: Cleanup callback (sync or async)
            timeout: Timeout for this task (uses default if None)
            critical: Whether a failure of this task makes cleanup() return False
        """
        self._tasks.append(CleanupTask(
            name=name,
            callback=callback,
            timeout=timeout or self._default_timeout,
            critical=critical,
        ))
        logger.debug(f"Registered cleanup task: {name}")

    def unregister_cleanup(self, name: str) -> bool:
        """Unregister cleanup task.

        Returns:
            True if task was found and removed
        """
        for i, task in enumerate(self._tasks):
            if task.name == name:
                self._tasks.pop(i)
                logger.debug(f"Unregistered cleanup task: {name}")
                return True
        return False

    async def cleanup(self) -> bool:
        """Execute all cleanup tasks.

        Returns:
            True if all critical tasks succeeded
        """
        if self._cleanup_in_progress:
            logger.warning("Cleanup already in progress")
            return False

        self._cleanup_in_progress = True
        logger.info("Starting cleanup...")
        all_critical_succeeded = True
        start_time = time.time()

        try:
            for task in list(self._tasks):
                task_start = time.time()
                logger.debug(f"Executing cleanup task: {task.name}")
                try:
                    await asyncio.wait_for(self._run(task.callback), timeout=task.timeout)
                    logger.debug(f"Cleanup task '{task.name}' completed in {time.time() - task_start:.2f}s")
                except asyncio.TimeoutError:
                    logger.error(f"Cleanup task '{task.name}' timed out after {task.timeout}s")
                    if task.critical:
                        all_critical_succeeded = False
                except Exception as e:
                    logger.opt(exception=e).error(f"Cleanup task '{task.name}' failed: {e}")
                    if task.critical:
                        all_critical_succeeded = False
        finally:
            self._cleanup_in_progress = False

        logger.info(f"Cleanup completed in {time.time() - start_time:.2f}s")
        return all_critical_succeeded

    @staticmethod
    async def _run(callback: CleanupCallback) -> None:
        result = callback()
        if inspect.isawaitable(result):
            await result


__all__ = [
    "CleanupCallback",
    "CleanupTask",
    "CleanupManager",
]
