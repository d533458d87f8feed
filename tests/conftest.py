"""Shared fixtures: a fully wired service stack over the simulated platform."""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

import pytest

from app.events.error_bus import ErrorEventBus
from app.events.event_bus import EventBus
from app.events.event_types import (
    CaptureStoppedEvent,
    MatchChangedEvent,
    MatchPersistedEvent,
    RecordingPromptEvent,
)
from app.services.capture.implementation import CaptureSessionManager
from app.services.orchestrator.telemetry_orchestrator import TelemetryOrchestrator
from app.services.platform.simulated import SimulatedPlatform
from app.services.records.implementation import MatchRecordStoreImpl
from app.services.session.implementation import MatchSessionTrackerImpl
from configs.app_state import AppStateStore
from configs.settings import TelemetryConfig
from configs.user_settings import RecordingMode, SettingsManager


@dataclass
class Stack:
    platform: SimulatedPlatform
    error_bus: ErrorEventBus
    event_bus: EventBus
    state: AppStateStore
    settings: SettingsManager
    capture: CaptureSessionManager
    store: MatchRecordStoreImpl
    tracker: MatchSessionTrackerImpl
    orchestrator: TelemetryOrchestrator
    prompts: List[RecordingPromptEvent]
    persisted: List[MatchPersistedEvent]
    changes: List[MatchChangedEvent]
    stopped: List[CaptureStoppedEvent]

    async def settle(self) -> None:
        """Run every scheduled handler and tracker call to completion."""
        for _ in range(3):
            await asyncio.sleep(0.001)
            await self.orchestrator.drain()
            await self.tracker.wait_for_background()
            await self.event_bus.drain()


def build_stack(
    mode: RecordingMode = RecordingMode.AUTO_RECORD,
    platform: Optional[SimulatedPlatform] = None,
    capacity: int = 100,
    scene_delay_s: float = 0.01,
) -> Stack:
    platform = platform or SimulatedPlatform()
    error_bus = ErrorEventBus()
    event_bus = EventBus(error_bus=error_bus)
    state = AppStateStore(persist=False)
    settings = SettingsManager(state)
    settings.load()
    if settings.recording_mode != mode:
        settings.update(recording_mode=mode)

    capture = CaptureSessionManager(
        provider=platform.capture,
        game_status=platform.game_status,
        event_bus=event_bus,
        error_bus=error_bus,
    )
    store = MatchRecordStoreImpl(state, capacity=capacity)
    tracker = MatchSessionTrackerImpl(capture, store, event_bus, error_bus=error_bus)
    orchestrator = TelemetryOrchestrator(
        tracker,
        platform.telemetry,
        settings,
        event_bus,
        config=TelemetryConfig(scene_start_delay_s=scene_delay_s),
        error_bus=error_bus,
    )

    stack = Stack(
        platform=platform,
        error_bus=error_bus,
        event_bus=event_bus,
        state=state,
        settings=settings,
        capture=capture,
        store=store,
        tracker=tracker,
        orchestrator=orchestrator,
        prompts=[],
        persisted=[],
        changes=[],
        stopped=[],
    )
    event_bus.subscribe(RecordingPromptEvent, stack.prompts.append)
    event_bus.subscribe(MatchPersistedEvent, stack.persisted.append)
    event_bus.subscribe(MatchChangedEvent, stack.changes.append)
    event_bus.subscribe(CaptureStoppedEvent, stack.stopped.append)
    return stack


@pytest.fixture
def make_stack():
    """Factory for a wired stack; call it inside the test's event loop."""
    return build_stack
