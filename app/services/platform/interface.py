"""Boundary interfaces to the host platform (game status, telemetry, capture).

Responsibility: Describe exactly what the engine needs from the overlay
platform so that the real bindings and the simulated platform are
interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

if TYPE_CHECKING:
    from app.services.capture.stream_settings import StreamSettings


@dataclass(frozen=True)
class RunningGameInfo:
    """Liveness of the foreground game."""

    is_running: bool
    class_id: Optional[int] = None
    title: str = ""


@dataclass(frozen=True)
class EncoderInfo:
    name: str
    display_name: str = ""
    enabled: Optional[bool] = None


@dataclass(frozen=True)
class AudioDevice:
    id: str
    name: str
    type: str = "mic"


@dataclass(frozen=True)
class StartResult:
    """Result of CaptureProvider.start().

    ``error`` carries the provider's error string on failure
    (e.g. ``"NotInGame"``, ``"Out_Of_Disk_Space"``).
    """

    success: bool
    stream_id: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class StopResult:
    success: bool
    stream_id: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ProviderStoppedEvent:
    """Final-file notification pushed by the provider after a recording stops."""

    stream_id: Optional[int]
    file_path: Optional[str]
    duration_ms: int = 0
    error: Optional[str] = None


@dataclass(frozen=True)
class ProviderErrorEvent:
    """Out-of-band provider failure (e.g. disk filled up mid-recording)."""

    error: str
    stream_id: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)


InfoUpdateCallback = Callable[[Dict[str, Any]], None]
"""Callback invoked with a telemetry info payload.

Shape: ``{"game_info": {...}, "match_info": {...}}`` (either key optional).
"""

NewEventsCallback = Callable[[Dict[str, Any]], None]
"""Callback invoked with a telemetry events payload: ``{"events": [{"name", "data"}]}``."""

StoppedCallback = Callable[[ProviderStoppedEvent], None]
ErrorCallback = Callable[[ProviderErrorEvent], None]


class GameStatusProvider(ABC):
    """Reports which game (if any) is running."""

    @abstractmethod
    async def get_running_game_info(self) -> RunningGameInfo:
        """Return liveness information for the current game."""


class TelemetryProvider(ABC):
    """Pushes in-game info updates and discrete events.

    Callbacks are invoked on the event loop thread.
    """

    @abstractmethod
    async def set_required_features(self, features: Sequence[str]) -> bool:
        """Request the telemetry features to receive.

        Returns:
            True if the provider accepted the feature set
        """

    @abstractmethod
    def start(self, on_info_update: InfoUpdateCallback, on_new_events: NewEventsCallback) -> None:
        """Begin delivering telemetry to the given callbacks."""

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering telemetry. Idempotent."""


class CaptureProvider(ABC):
    """Opaque platform recorder. Performs the actual encode/stream work."""

    @abstractmethod
    async def list_encoders(self) -> List[EncoderInfo]:
        """Enumerate hardware/software encoders available on this machine."""

    @abstractmethod
    async def start(self, settings: StreamSettings) -> StartResult:
        """Start a recording with the given settings."""

    @abstractmethod
    async def stop(self, stream_id: int) -> StopResult:
        """Request the recording to stop; the final file arrives via on_stopped."""

    @abstractmethod
    async def split(self, stream_id: int) -> bool:
        """Split the running recording into a new file."""

    @abstractmethod
    async def change_volume(self, stream_id: int, audio: Dict[str, Any]) -> bool:
        """Apply new audio volumes to the running recording."""

    @abstractmethod
    async def list_audio_devices(self) -> List[AudioDevice]:
        """Enumerate audio capture devices."""

    @abstractmethod
    def add_stopped_listener(self, callback: StoppedCallback) -> None:
        """Register for final-file notifications."""

    @abstractmethod
    def add_error_listener(self, callback: ErrorCallback) -> None:
        """Register for out-of-band provider errors."""
