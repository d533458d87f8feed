"""Game liveness polling: attach telemetry while a supported game runs."""

from __future__ import annotations

import asyncio
from typing import Optional

from app.services.orchestrator.telemetry_orchestrator import TelemetryOrchestrator
from app.services.platform.interface import GameStatusProvider, RunningGameInfo
from configs.settings import TelemetryConfig
from log_config.logger import get_logger

logger = get_logger(__name__)


class GameWatcher:
    """Polls the game-status provider and toggles the orchestrator.

    When a supported game starts the orchestrator is attached to telemetry;
    when it stops the orchestrator is detached. A failed attach is retried
    on the next poll.
    """

    def __init__(
        self,
        game_status: GameStatusProvider,
        orchestrator: TelemetryOrchestrator,
        config: Optional[TelemetryConfig] = None,
    ):
        self._game_status = game_status
        self._orchestrator = orchestrator
        self._config = config or TelemetryConfig()
        self._game_running = False
        self._current_game: Optional[RunningGameInfo] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def game_running(self) -> bool:
        return self._game_running

    @property
    def current_game(self) -> Optional[RunningGameInfo]:
        return self._current_game

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check_once(self) -> bool:
        """Poll once and attach/detach as needed.

        Returns:
            True if a supported game is running
        """
        try:
            info = await self._game_status.get_running_game_info()
        except Exception as e:
            logger.error(f"Failed to query running game: {e}")
            return self._game_running

        supported = info.is_running and self._config.is_supported(info.class_id)

        if supported and not self._game_running:
            logger.info(f"Supported game started: {info.title or info.class_id}")
            if await self._orchestrator.attach(info):
                self._game_running = True
                self._current_game = info
            else:
                logger.warning("Telemetry attach failed, will retry")
        elif not supported and self._game_running:
            logger.info("Game ended, detaching telemetry")
            self._orchestrator.detach()
            self._game_running = False
            self._current_game = None

        return self._game_running

    def start(self) -> None:
        """Start polling on the running event loop."""
        if self.is_running():
            logger.warning("Game watcher already running")
            return
        self._task = asyncio.ensure_future(self._poll_loop())
        logger.info(f"Game watcher started (every {self._config.game_poll_interval_s}s)")

    async def stop(self) -> None:
        """Stop polling and detach telemetry."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._game_running:
            self._orchestrator.detach()
            self._game_running = False
            self._current_game = None
        logger.info("Game watcher stopped")

    async def _poll_loop(self) -> None:
        while True:
            await self.check_once()
            await asyncio.sleep(self._config.game_poll_interval_s)
