"""Free-space monitoring of the recordings volume while capturing."""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

import psutil

from app.events.error_bus import ErrorCategory, ErrorEventBus, ErrorSeverity
from configs.settings import DiskConfig
from log_config.logger import get_logger

logger = get_logger(__name__)

_GB = 1024 ** 3

CriticalCallback = Callable[[float, str], Union[None, Awaitable[None]]]
"""Invoked once when free space drops below the critical threshold.

Args:
    free_gb: Remaining free space in GB
    message: Human-readable description
"""


@dataclass
class DiskStatus:
    """Result of a single free-space check."""

    free_gb: float
    level: str  # "ok", "warning" or "critical"
    timestamp: float = field(default_factory=time.time)


def _existing_parent(path: Path) -> Path:
    for candidate in (path, *path.parents):
        if candidate.exists():
            return candidate
    return Path.cwd()


class DiskSpaceMonitor:
    """Polls free space on the recordings volume.

    Started by the capture manager when a recording begins and stopped when
    it ends. Below ``warning_gb`` a (throttled) warning is published on the
    error bus; below ``critical_gb`` a critical DISK_SPACE error is published,
    the critical callback runs once and monitoring ends.
    """

    def __init__(
        self,
        path: Path,
        config: DiskConfig,
        error_bus: Optional[ErrorEventBus] = None,
        warning_interval_s: float = 60.0,
    ):
        self._path = Path(path)
        self._config = config
        self._error_bus = error_bus
        self._warning_interval_s = warning_interval_s
        self._task: Optional[asyncio.Task] = None
        self._on_critical: Optional[CriticalCallback] = None
        self._last_warning_time = 0.0
        self._last_status: Optional[DiskStatus] = None

    @property
    def last_status(self) -> Optional[DiskStatus]:
        return self._last_status

    def set_critical_callback(self, callback: CriticalCallback) -> None:
        self._on_critical = callback

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start polling on the running event loop."""
        if self.is_running():
            logger.debug("Disk monitor already running")
            return
        self._task = asyncio.ensure_future(self._monitor_loop())
        logger.info(f"Disk monitor started for {self._path}")

    def stop(self) -> None:
        """Stop polling. Safe to call from inside the critical callback."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task is not asyncio.current_task():
            task.cancel()
        logger.info("Disk monitor stopped")

    def check_once(self) -> Optional[DiskStatus]:
        """Measure free space and publish warnings; does not run the critical callback."""
        try:
            usage = psutil.disk_usage(str(_existing_parent(self._path)))
        except OSError as e:
            logger.error(f"Disk space check failed for {self._path}: {e}")
            return None

        free_gb = usage.free / _GB
        if free_gb < self._config.critical_gb:
            status = DiskStatus(free_gb=free_gb, level="critical")
            logger.critical(f"CRITICAL DISK SPACE: {free_gb:.1f}GB remaining, stopping capture")
            self._publish(
                ErrorSeverity.CRITICAL,
                f"Critical disk space: {free_gb:.1f}GB remaining",
                free_gb=free_gb,
                threshold_gb=self._config.critical_gb,
            )
        elif free_gb < self._config.warning_gb:
            status = DiskStatus(free_gb=free_gb, level="warning")
            if status.timestamp - self._last_warning_time > self._warning_interval_s:
                self._last_warning_time = status.timestamp
                logger.warning(f"Low disk space: {free_gb:.1f}GB remaining")
                self._publish(
                    ErrorSeverity.WARNING,
                    f"Low disk space: {free_gb:.1f}GB remaining",
                    free_gb=free_gb,
                    threshold_gb=self._config.warning_gb,
                )
        else:
            status = DiskStatus(free_gb=free_gb, level="ok")

        self._last_status = status
        return status

    async def _monitor_loop(self) -> None:
        while True:
            status = self.check_once()
            if status is not None and status.level == "critical":
                await self._fire_critical(status.free_gb)
                break
            await asyncio.sleep(self._config.check_interval_s)
        if self._task is asyncio.current_task():
            self._task = None

    async def _fire_critical(self, free_gb: float) -> None:
        if self._on_critical is None:
            return
        try:
            result = self._on_critical(free_gb, f"Critical: Only {free_gb:.1f}GB disk space remaining!")
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Disk critical callback failed: {e}")

    def _publish(self, severity: ErrorSeverity, message: str, **metadata: Any) -> None:
        if self._error_bus is not None:
            self._error_bus.report(
                category=ErrorCategory.DISK_SPACE,
                severity=severity,
                message=message,
                source="DiskSpaceMonitor",
                **metadata,
            )
