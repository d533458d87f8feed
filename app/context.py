"""Application context: one explicitly wired instance of every service."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from app.events.error_bus import ErrorEventBus
from app.events.event_bus import EventBus
from app.events.event_types import SettingsChangedEvent
from app.lifecycle.cleanup_manager import CleanupManager
from app.lifecycle.game_watcher import GameWatcher
from app.monitoring.disk_monitor import DiskSpaceMonitor
from app.rpc.api import CoachAPI
from app.services.capture.implementation import CaptureSessionManager
from app.services.orchestrator.telemetry_orchestrator import TelemetryOrchestrator
from app.services.platform.interface import CaptureProvider, GameStatusProvider, TelemetryProvider
from app.services.platform.simulated import SimulatedPlatform
from app.services.records.implementation import MatchRecordStoreImpl
from app.services.session.implementation import MatchSessionTrackerImpl
from configs.app_state import AppStateStore
from configs.settings import AppConfig
from configs.user_settings import AppSettings, SettingsManager
from log_config.logger import get_logger

logger = get_logger(__name__)


class AppContext:
    """Builds and owns the services.

    Construction order follows the dependency graph: buses, storage and
    settings, capture, records, tracker, orchestrator, watcher, RPC.
    """

    def __init__(
        self,
        config: AppConfig,
        game_status: GameStatusProvider,
        telemetry: TelemetryProvider,
        capture_provider: CaptureProvider,
        state_store: Optional[AppStateStore] = None,
    ):
        self.config = config
        self.platform: Optional[SimulatedPlatform] = None
        self.error_bus = ErrorEventBus()
        self.event_bus = EventBus(error_bus=self.error_bus)

        data_dir = Path(config.app.data_dir)
        self.state_store = state_store or AppStateStore(data_dir)
        self.settings = SettingsManager(self.state_store)
        self.settings.load()

        self.capture = CaptureSessionManager(
            provider=capture_provider,
            game_status=game_status,
            event_bus=self.event_bus,
            config=config.capture,
            telemetry_config=config.telemetry,
            recordings_folder=config.app.recordings_folder,
            error_bus=self.error_bus,
            quality=self.settings.settings.recording_quality,
        )
        self.disk_monitor = DiskSpaceMonitor(data_dir, config.disk, error_bus=self.error_bus)
        self.capture.attach_disk_monitor(self.disk_monitor)

        self.records = MatchRecordStoreImpl(self.state_store, capacity=config.app.record_capacity)
        self.tracker = MatchSessionTrackerImpl(
            capture=self.capture,
            store=self.records,
            event_bus=self.event_bus,
            media_url_prefix=config.app.media_url_prefix,
            highlight_duration_ms=config.capture.highlight_duration_ms,
            error_bus=self.error_bus,
        )
        self.orchestrator = TelemetryOrchestrator(
            tracker=self.tracker,
            telemetry=telemetry,
            settings=self.settings,
            event_bus=self.event_bus,
            config=config.telemetry,
            error_bus=self.error_bus,
        )
        self.game_watcher = GameWatcher(game_status, self.orchestrator, config.telemetry)
        self.api = CoachAPI(
            tracker=self.tracker,
            orchestrator=self.orchestrator,
            settings=self.settings,
            capture=self.capture,
            config=config.rpc,
        )

        self.settings.on_change(self._on_settings_changed)

        self.cleanup = CleanupManager()
        self.cleanup.register_cleanup("rpc", self.api.stop)
        self.cleanup.register_cleanup("game_watcher", self.game_watcher.stop)
        self.cleanup.register_cleanup("capture", self._stop_capture, critical=True)
        self.cleanup.register_cleanup("disk_monitor", self.disk_monitor.stop)
        self.cleanup.register_cleanup("tracker", self.tracker.wait_for_background)
        self.cleanup.register_cleanup("orchestrator", self.orchestrator.drain)
        self.cleanup.register_cleanup("event_bus", self.event_bus.drain)

        logger.info("Application context ready")

    @classmethod
    def simulated(
        cls,
        config: Optional[AppConfig] = None,
        platform: Optional[SimulatedPlatform] = None,
        persist: bool = False,
    ) -> "AppContext":
        """Context over the in-process simulated platform (demo and tests)."""
        config = config or AppConfig()
        platform = platform or SimulatedPlatform()
        store = AppStateStore(Path(config.app.data_dir), persist=persist)
        context = cls(
            config=config,
            game_status=platform.game_status,
            telemetry=platform.telemetry,
            capture_provider=platform.capture,
            state_store=store,
        )
        context.platform = platform
        return context

    async def start(self, serve_rpc: Optional[bool] = None) -> None:
        """Start game polling and (if enabled) the RPC server."""
        serve_rpc = self.config.rpc.enabled if serve_rpc is None else serve_rpc
        self.game_watcher.start()
        if serve_rpc:
            await self.api.start()

    async def stop(self) -> bool:
        """Shut everything down in order.

        Returns:
            True if all critical shutdown steps succeeded
        """
        return await self.cleanup.cleanup()

    async def _stop_capture(self) -> None:
        if self.capture.is_capturing():
            await self.capture.stop_capture()

    def _on_settings_changed(self, settings: AppSettings) -> None:
        width, height = settings.resolution
        self.capture.apply_quality(width, height)
        self.event_bus.publish(SettingsChangedEvent(settings=settings))
