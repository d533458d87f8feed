"""Platform boundary: interfaces to the overlay runtime and an in-process simulation."""

from .interface import (
    AudioDevice,
    CaptureProvider,
    EncoderInfo,
    GameStatusProvider,
    ProviderErrorEvent,
    ProviderStoppedEvent,
    RunningGameInfo,
    StartResult,
    StopResult,
    TelemetryProvider,
)
from .simulated import (
    SimulatedCapture,
    SimulatedGameStatus,
    SimulatedPlatform,
    SimulatedTelemetry,
)

__all__ = [
    "AudioDevice",
    "CaptureProvider",
    "EncoderInfo",
    "GameStatusProvider",
    "ProviderErrorEvent",
    "ProviderStoppedEvent",
    "RunningGameInfo",
    "SimulatedCapture",
    "SimulatedGameStatus",
    "SimulatedPlatform",
    "SimulatedTelemetry",
    "StartResult",
    "StopResult",
    "TelemetryProvider",
]
