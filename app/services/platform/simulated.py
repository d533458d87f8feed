"""In-process platform used by the demo entry point and by tests.

Implements the game-status, telemetry and capture provider interfaces
without any real overlay runtime. Tests drive it directly (push telemetry,
fail starts, emit late stop notifications).
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from app.services.capture.stream_settings import StreamSettings
from app.services.platform.interface import (
    AudioDevice,
    CaptureProvider,
    EncoderInfo,
    ErrorCallback,
    GameStatusProvider,
    InfoUpdateCallback,
    NewEventsCallback,
    ProviderErrorEvent,
    ProviderStoppedEvent,
    RunningGameInfo,
    StartResult,
    StopResult,
    StoppedCallback,
    TelemetryProvider,
)
from log_config.logger import get_logger

logger = get_logger(__name__)

DEFAULT_ENCODERS = (
    EncoderInfo(name="X264", display_name="x264 (software)", enabled=True),
)

DEFAULT_AUDIO_DEVICES = (
    AudioDevice(id="default", name="Default microphone", type="mic"),
    AudioDevice(id="default", name="Default output", type="game"),
)


class SimulatedGameStatus(GameStatusProvider):
    def __init__(self, running: bool = True, class_id: Optional[int] = None, title: str = "Rematch"):
        self.info = RunningGameInfo(is_running=running, class_id=class_id, title=title)

    def set_running(self, running: bool, class_id: Optional[int] = None) -> None:
        self.info = RunningGameInfo(
            is_running=running,
            class_id=class_id if class_id is not None else self.info.class_id,
            title=self.info.title,
        )

    async def get_running_game_info(self) -> RunningGameInfo:
        return self.info


class SimulatedTelemetry(TelemetryProvider):
    """Telemetry source driven by ``push_info``/``push_events``."""

    def __init__(self):
        self.accept_features = True
        self.required_features: List[str] = []
        self._on_info_update: Optional[InfoUpdateCallback] = None
        self._on_new_events: Optional[NewEventsCallback] = None

    @property
    def active(self) -> bool:
        return self._on_info_update is not None

    async def set_required_features(self, features: Sequence[str]) -> bool:
        if self.accept_features:
            self.required_features = list(features)
        return self.accept_features

    def start(self, on_info_update: InfoUpdateCallback, on_new_events: NewEventsCallback) -> None:
        self._on_info_update = on_info_update
        self._on_new_events = on_new_events

    def stop(self) -> None:
        self._on_info_update = None
        self._on_new_events = None

    def push_info(self, info: Dict[str, Any]) -> None:
        """Deliver an info update, e.g. ``{"game_info": {"scene": "ingame"}}``."""
        if self._on_info_update is not None:
            self._on_info_update(info)

    def push_events(self, *events: Any) -> None:
        """Deliver events given as names or ``(name, data)`` pairs."""
        if self._on_new_events is None:
            return
        payload = []
        for event in events:
            name, data = (event, "") if isinstance(event, str) else event
            payload.append({"name": name, "data": data})
        self._on_new_events({"events": payload})


class SimulatedCapture(CaptureProvider):
    """Recorder that hands out stream ids and synthesizes output paths.

    Attributes:
        fail_start_with: Provider error string returned by starts (None = succeed)
        fail_stop_with: Provider error string returned by stops (None = succeed)
        start_delay_s: Simulated latency of start()
        auto_emit_stopped: Push the final file after a successful stop
        stop_delay_s: Delay before that push
        calls: Log of (method, args) for assertions
    """

    def __init__(
        self,
        encoders: Optional[Sequence[EncoderInfo]] = None,
        audio_devices: Optional[Sequence[AudioDevice]] = None,
        output_dir: Path = Path("recordings"),
    ):
        self.encoders: List[EncoderInfo] = list(encoders if encoders is not None else DEFAULT_ENCODERS)
        self.audio_devices: List[AudioDevice] = list(
            audio_devices if audio_devices is not None else DEFAULT_AUDIO_DEVICES
        )
        self.output_dir = Path(output_dir)

        self.fail_start_with: Optional[str] = None
        self.fail_stop_with: Optional[str] = None
        self.start_delay_s = 0.0
        self.auto_emit_stopped = True
        self.stop_delay_s = 0.0

        self.calls: List[tuple] = []
        self.started_settings: List[StreamSettings] = []

        self._next_stream_id = 1
        self._active: Dict[int, float] = {}
        self._files: Dict[int, str] = {}
        self._stopped_listeners: List[StoppedCallback] = []
        self._error_listeners: List[ErrorCallback] = []

    def calls_to(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    def is_streaming(self, stream_id: Optional[int] = None) -> bool:
        if stream_id is None:
            return bool(self._active)
        return stream_id in self._active

    def file_for(self, stream_id: int) -> Optional[str]:
        return self._files.get(stream_id)

    async def list_encoders(self) -> List[EncoderInfo]:
        return list(self.encoders)

    async def start(self, settings: StreamSettings) -> StartResult:
        self.calls.append(("start", settings.video.sub_folder_name))
        self.started_settings.append(settings)
        if self.start_delay_s:
            await asyncio.sleep(self.start_delay_s)
        if self.fail_start_with:
            return StartResult(success=False, error=self.fail_start_with)
        if self._active:
            return StartResult(success=False, error="StreamingInProgress")

        stream_id = self._next_stream_id
        self._next_stream_id += 1
        self._active[stream_id] = time.time()
        self._files[stream_id] = str(
            self.output_dir / settings.video.sub_folder_name / f"Rematch_{stream_id}.mp4"
        )
        logger.debug(f"Simulated capture started: stream_id={stream_id}")
        return StartResult(success=True, stream_id=stream_id)

    async def stop(self, stream_id: int) -> StopResult:
        self.calls.append(("stop", stream_id))
        await asyncio.sleep(0)
        if self.fail_stop_with:
            return StopResult(success=False, stream_id=stream_id, error=self.fail_stop_with)
        if stream_id not in self._active:
            return StopResult(success=False, stream_id=stream_id, error="NotStreaming")

        started = self._active.pop(stream_id)
        if self.auto_emit_stopped:
            duration_ms = int((time.time() - started) * 1000)
            asyncio.get_running_loop().call_later(
                self.stop_delay_s, self.emit_stopped, stream_id, None, duration_ms
            )
        return StopResult(success=True, stream_id=stream_id)

    async def split(self, stream_id: int) -> bool:
        self.calls.append(("split", stream_id))
        return stream_id in self._active

    async def change_volume(self, stream_id: int, audio: Dict[str, Any]) -> bool:
        self.calls.append(("change_volume", stream_id, audio))
        return stream_id in self._active

    async def list_audio_devices(self) -> List[AudioDevice]:
        return list(self.audio_devices)

    def add_stopped_listener(self, callback: StoppedCallback) -> None:
        self._stopped_listeners.append(callback)

    def add_error_listener(self, callback: ErrorCallback) -> None:
        self._error_listeners.append(callback)

    def emit_stopped(
        self,
        stream_id: Optional[int],
        file_path: Optional[str] = None,
        duration_ms: int = 0,
    ) -> None:
        """Push a final-file notification (defaults to the file recorded for ``stream_id``)."""
        if file_path is None and stream_id is not None:
            file_path = self._files.get(stream_id)
        event = ProviderStoppedEvent(stream_id=stream_id, file_path=file_path, duration_ms=duration_ms)
        for listener in list(self._stopped_listeners):
            listener(event)

    def emit_error(self, error: str, stream_id: Optional[int] = None) -> None:
        event = ProviderErrorEvent(error=error, stream_id=stream_id)
        for listener in list(self._error_listeners):
            listener(event)


class SimulatedPlatform:
    """The three simulated providers, sharing one notion of "the game"."""

    def __init__(
        self,
        game_running: bool = True,
        class_id: Optional[int] = None,
        encoders: Optional[Sequence[EncoderInfo]] = None,
        output_dir: Path = Path("recordings"),
    ):
        self.game_status = SimulatedGameStatus(running=game_running, class_id=class_id)
        self.telemetry = SimulatedTelemetry()
        self.capture = SimulatedCapture(encoders=encoders, output_dir=output_dir)
