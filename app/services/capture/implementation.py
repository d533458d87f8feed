"""CaptureService implementation with EventBus integration.

Manages one recording session against the platform capture provider:
- Game check and encoder selection before each start
- Single-flight start/stop
- Correlating provider stream ids with match ids
- Mapping provider error strings onto the CaptureError taxonomy
- Disk monitoring while a recording is live
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional, Set, Type

from app.events.error_bus import ErrorCategory, ErrorEventBus, ErrorSeverity
from app.events.event_bus import EventBus
from app.events.event_types import (
    CaptureStartedEvent,
    CaptureStoppedEvent,
    HighlightMarkedEvent,
)
from app.monitoring.disk_monitor import DiskSpaceMonitor
from app.services.capture.encoders import apply_encoder, rank_encoders
from app.services.capture.interface import CaptureService
from app.services.capture.stream_settings import StreamSettings
from app.services.platform.interface import (
    AudioDevice,
    CaptureProvider,
    EncoderInfo,
    GameStatusProvider,
    ProviderErrorEvent,
    ProviderStoppedEvent,
    StopResult,
)
from configs.settings import CaptureConfig, TelemetryConfig
from contracts import CaptureSession
from exceptions import (
    CaptureError,
    CaptureInProgressError,
    CapturePermissionError,
    NotInGameError,
    OutOfDiskSpaceError,
)
from log_config.logger import get_logger

logger = get_logger(__name__)

# Provider error string -> (exception type, error bus category)
PROVIDER_ERRORS: Dict[str, tuple] = {
    "NotInGame": (NotInGameError, ErrorCategory.CAPTURE),
    "Out_Of_Disk_Space": (OutOfDiskSpaceError, ErrorCategory.DISK_SPACE),
    "NoPermission": (CapturePermissionError, ErrorCategory.PERMISSION),
    "StreamingInProgress": (CaptureInProgressError, ErrorCategory.CAPTURE),
}


def map_provider_error(code: Optional[str], action: str = "capture") -> CaptureError:
    """Translate a provider error string into the matching CaptureError."""
    error_type: Type[CaptureError]
    error_type, _ = PROVIDER_ERRORS.get(code or "", (CaptureError, ErrorCategory.CAPTURE))
    if error_type is CaptureError:
        return CaptureError(f"Unknown {action} error: {code}", provider_error=code)
    return error_type(f"{action} failed: {code}", provider_error=code)


def _category_for(error: CaptureError) -> ErrorCategory:
    for error_type, category in PROVIDER_ERRORS.values():
        if type(error) is error_type:
            return category
    return ErrorCategory.CAPTURE


class CaptureSessionManager(CaptureService):
    """Event-driven capture session manager.

    Features:
    - Single recording at a time; concurrent starts collapse onto the first
    - Hardware encoder preferred (NVENC, then AMF, then Intel, then x264)
    - CaptureStartedEvent/CaptureStoppedEvent/HighlightMarkedEvent published to the EventBus
    - Automatic stop when the disk runs out of space

    Concurrency:
        ``_starting`` and ``_stopping`` are set before the first await, so a
        second call issued while the first is suspended observes them.
    """

    def __init__(
        self,
        provider: CaptureProvider,
        game_status: GameStatusProvider,
        event_bus: EventBus,
        config: Optional[CaptureConfig] = None,
        telemetry_config: Optional[TelemetryConfig] = None,
        recordings_folder: str = "RematchCoach",
        error_bus: Optional[ErrorEventBus] = None,
        quality: Optional[str] = None,
    ):
        """Initialize capture manager.

        Args:
            provider: Platform recorder
            game_status: Used to verify a supported game is running before start
            event_bus: EventBus instance for publishing events
            config: Capture defaults (stream settings)
            telemetry_config: Supported games
            recordings_folder: Output folder; each match records into ``<folder>/<match_id>``
            error_bus: Where provider failures are reported (optional)
            quality: Initial recording quality ("1080p", "720p", "480p")
        """
        self._provider = provider
        self._game_status = game_status
        self._event_bus = event_bus
        self._telemetry_config = telemetry_config or TelemetryConfig()
        self._recordings_folder = recordings_folder
        self._error_bus = error_bus
        self._settings = StreamSettings.from_config(config or CaptureConfig(), quality)
        self._default_encoder = replace(self._settings.encoder)

        self._session: Optional[CaptureSession] = None
        self._starting = False
        self._stopping = False
        self._encoder_pinned = False
        self._last_recording_path: Optional[str] = None

        # stream_id -> match_id, kept until the provider reports the final file
        self._correlations: Dict[int, Optional[str]] = {}
        self._last_correlated_match: Optional[str] = None

        self._disk_monitor: Optional[DiskSpaceMonitor] = None
        self._background: Set[asyncio.Task] = set()

        provider.add_stopped_listener(self._on_provider_stopped)
        provider.add_error_listener(self._on_provider_error)

        logger.info("CaptureSessionManager initialized")

    # ------------------------------------------------------------------ state

    @property
    def last_recording_path(self) -> Optional[str]:
        return self._last_recording_path

    @property
    def settings(self) -> StreamSettings:
        """Copy of the current stream settings."""
        return self._settings.copy()

    @property
    def session(self) -> Optional[CaptureSession]:
        return self._session

    def is_capturing(self) -> bool:
        return self._session is not None and self._session.stream_id is not None

    def current_stream_id(self) -> Optional[int]:
        return self._session.stream_id if self._session is not None else None

    def recording_match_id(self) -> Optional[str]:
        if not self.is_capturing():
            return None
        return self._session.correlated_match_id

    def attach_disk_monitor(self, monitor: DiskSpaceMonitor) -> None:
        """Run ``monitor`` while recording; a critical reading stops capture."""
        self._disk_monitor = monitor
        monitor.set_critical_callback(self.handle_out_of_disk)

    # ---------------------------------------------------------- start / stop

    async def start_capture(self, match_id: Optional[str] = None) -> str:
        if self.is_capturing() or self._starting or self._stopping:
            logger.warning("Capture already active or in transition, ignoring start request")
            return self._in_progress_result()

        self._starting = True
        try:
            game = await self._game_status.get_running_game_info()
            if not game.is_running or not self._telemetry_config.is_supported(game.class_id):
                error = NotInGameError("No supported game is running", provider_error="NotInGame")
                self._report(error)
                raise error

            if not self._encoder_pinned:
                await self._select_encoder()

            settings = self._settings.copy()
            if match_id:
                settings.video.sub_folder_name = f"{self._recordings_folder}/{match_id}"

            logger.info(
                f"Starting capture: match={match_id}, encoder={settings.encoder.name}, "
                f"{settings.video.width}x{settings.video.height}@{settings.video.fps}"
            )
            try:
                result = await self._provider.start(settings)
            except CaptureError:
                raise
            except Exception as e:
                error = CaptureError(f"Capture provider failed to start: {e}")
                self._report(error)
                raise error from e

            if not result.success or result.stream_id is None:
                error = map_provider_error(result.error, "Start capture")
                if isinstance(error, CaptureInProgressError):
                    logger.warning("Provider reports a capture already in progress")
                    return self._in_progress_result()
                self._report(error)
                if isinstance(error, OutOfDiskSpaceError):
                    self._spawn(self._stop_quietly("out of disk space"))
                raise error

            self._session = CaptureSession(
                encoder=settings.encoder.name,
                correlated_match_id=match_id,
                stream_id=result.stream_id,
            )
            self._correlations[result.stream_id] = match_id
            self._last_correlated_match = match_id
        finally:
            self._starting = False

        logger.info(f"Capture started: stream_id={result.stream_id}, match={match_id}")
        self._event_bus.publish(CaptureStartedEvent(
            stream_id=result.stream_id,
            match_id=match_id,
            encoder=settings.encoder.name,
        ))
        if self._disk_monitor is not None:
            self._disk_monitor.start()
        return self._session.handle

    async def stop_capture(self) -> Optional[StopResult]:
        if not self.is_capturing():
            logger.debug("stop_capture called with no active recording")
            return None
        if self._stopping:
            logger.debug("Stop already in progress")
            return None

        stream_id = self._session.stream_id
        self._stopping = True
        try:
            try:
                result = await self._provider.stop(stream_id)
            except CaptureError:
                raise
            except Exception as e:
                error = CaptureError(f"Capture provider failed to stop: {e}")
                self._report(error)
                raise error from e

            if not result.success:
                error = CaptureError(f"Stop capture failed: {result.error}", provider_error=result.error)
                self._report(error)
                raise error

            self._clear_session(stream_id)
            logger.info(f"Capture stopped: stream_id={stream_id}")
            return result
        finally:
            self._stopping = False

    async def handle_out_of_disk(self, free_gb: float, message: str) -> None:
        """Disk monitor critical callback: stop the live recording."""
        logger.error(f"{message} Stopping capture ({free_gb:.1f}GB free)")
        await self._stop_quietly("disk space critical")

    # ---------------------------------------------------- highlights / audio

    async def capture_highlight(
        self, highlight_id: str, offset_ms: int, duration_ms: int = 15000
    ) -> Optional[str]:
        if not self.is_capturing():
            logger.debug(f"Highlight {highlight_id} ignored, not capturing")
            return None

        if not await self.split_video():
            logger.warning(f"Split for highlight {highlight_id} was not confirmed by the provider")

        file_name = f"highlight_{highlight_id}_{int(time.time() * 1000)}.mp4"
        self._event_bus.publish(HighlightMarkedEvent(
            highlight_id=highlight_id,
            offset_ms=offset_ms,
            duration_ms=duration_ms,
        ))
        logger.info(f"Highlight marked: {file_name} (offset={offset_ms}ms, duration={duration_ms}ms)")
        return file_name

    async def split_video(self) -> bool:
        if not self.is_capturing():
            logger.warning("Cannot split video, not capturing")
            return False
        return await self._provider.split(self._session.stream_id)

    async def change_volume(self, audio_options: Dict[str, Any]) -> bool:
        """Change volumes; ``audio_options`` like ``{"mic": {"volume": 80}, "game": {"volume": 60}}``."""
        self.update_audio_settings(**{
            source: values for source, values in audio_options.items() if source in ("mic", "game")
        })
        if not self.is_capturing():
            logger.warning("Cannot change volume, not capturing")
            return False
        return await self._provider.change_volume(self._session.stream_id, audio_options)

    async def get_audio_devices(self) -> List[AudioDevice]:
        try:
            return await self._provider.list_audio_devices()
        except Exception as e:
            logger.error(f"Failed to enumerate audio devices: {e}")
            return []

    def set_audio_device(self, device_id: str, device_type: str = "mic") -> None:
        """Select the device for the next recording.

        Raises:
            ValueError: If ``device_type`` is not "mic" or "game"
        """
        if device_type == "mic":
            self._settings.mic.device_id = device_id
        elif device_type == "game":
            self._settings.game.device_id = device_id
        else:
            raise ValueError(f"Unknown audio device type: {device_type}")
        logger.info(f"{device_type} audio device set to {device_id}")

    def update_audio_settings(
        self, mic: Optional[Dict[str, Any]] = None, game: Optional[Dict[str, Any]] = None
    ) -> None:
        if mic:
            self._settings.mic = replace(self._settings.mic, **mic)
        if game:
            self._settings.game = replace(self._settings.game, **game)

    # ------------------------------------------------------- video / encoder

    def update_video_settings(self, **changes: Any) -> None:
        """Override video fields for the next recording (e.g. ``fps=60``).

        Raises:
            TypeError: If a field name is unknown
        """
        self._settings.video = replace(self._settings.video, **changes)
        logger.info(f"Video settings updated: {changes}")

    def apply_quality(self, width: int, height: int) -> None:
        self.update_video_settings(width=width, height=height)

    async def get_available_encoders(self) -> List[EncoderInfo]:
        """Usable encoders, best first. Empty if enumeration fails."""
        try:
            return rank_encoders(await self._provider.list_encoders())
        except Exception as e:
            logger.error(f"Failed to enumerate encoders: {e}")
            return []

    def set_encoder(self, name: str) -> None:
        """Pin an encoder; automatic selection is skipped from now on."""
        self._settings.encoder = apply_encoder(self._settings.encoder, name)
        self._encoder_pinned = True
        logger.info(f"Encoder set to {name} ({self._settings.encoder.preset})")

    async def _select_encoder(self) -> None:
        encoders = await self.get_available_encoders()
        if not encoders:
            self._settings.encoder = replace(self._default_encoder)
            logger.warning(f"No encoders reported, falling back to {self._settings.encoder.name}")
            return
        best = encoders[0]
        self._settings.encoder = apply_encoder(self._settings.encoder, best.name)
        logger.debug(f"Selected encoder {best.name} from {[e.name for e in encoders]}")

    # ------------------------------------------------------ provider pushes

    def _on_provider_stopped(self, event: ProviderStoppedEvent) -> None:
        if event.stream_id is not None and event.stream_id in self._correlations:
            match_id = self._correlations.pop(event.stream_id)
        else:
            match_id = self._last_correlated_match

        # Provider ended the recording on its own (max size, quota, crash)
        if (
            self._session is not None
            and not self._stopping
            and (event.stream_id is None or event.stream_id == self._session.stream_id)
        ):
            self._clear_session(self._session.stream_id)

        if event.error:
            logger.warning(f"Recording stopped with error: {event.error}")
        if not event.file_path:
            logger.warning(f"Capture stopped without a file path (stream_id={event.stream_id})")
            return

        self._last_recording_path = event.file_path
        logger.info(f"Recording finished: {event.file_path} (match={match_id})")
        self._event_bus.publish(CaptureStoppedEvent(
            match_id=match_id,
            file_path=event.file_path,
            duration_ms=event.duration_ms,
            stream_id=event.stream_id,
        ))

    def _on_provider_error(self, event: ProviderErrorEvent) -> None:
        error = map_provider_error(event.error, "Capture")
        self._report(error)
        if isinstance(error, OutOfDiskSpaceError):
            self._spawn(self._stop_quietly("provider out of disk space"))

    # --------------------------------------------------------------- helpers

    def _in_progress_result(self) -> str:
        if self._last_recording_path:
            return self._last_recording_path
        if self._session is not None:
            return self._session.handle
        return ""

    def _clear_session(self, stream_id: Optional[int]) -> None:
        if self._session is not None and self._session.stream_id == stream_id:
            self._session = None
        if self._disk_monitor is not None:
            self._disk_monitor.stop()

    async def _stop_quietly(self, reason: str) -> None:
        logger.warning(f"Stopping capture automatically: {reason}")
        try:
            await self.stop_capture()
        except CaptureError as e:
            logger.error(f"Automatic capture stop failed: {e}")

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _report(self, error: CaptureError) -> None:
        if self._error_bus is None:
            logger.error(f"{error.__class__.__name__}: {error}")
            return
        self._error_bus.report(
            category=_category_for(error),
            severity=ErrorSeverity.ERROR,
            message=str(error),
            source="CaptureSessionManager",
            exception=error,
            provider_error=error.provider_error,
        )
