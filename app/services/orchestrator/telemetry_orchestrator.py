"""TelemetryOrchestrator - Turns game telemetry into match lifecycle calls.

This module applies the user's recording policy to the telemetry stream,
drives the MatchSessionTracker and routes late recording completions back
onto persisted match records.
"""

from __future__ import annotations

import asyncio
import json
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Set

from app.events.error_bus import ErrorCategory, ErrorEventBus, ErrorSeverity
from app.events.event_bus import EventBus
from app.events.event_types import CaptureStoppedEvent, RecordingPromptEvent
from app.services.platform.interface import RunningGameInfo, TelemetryProvider
from app.services.session.interface import MatchSessionTracker
from configs.settings import TelemetryConfig
from configs.user_settings import RecordingMode, SettingsManager
from contracts import GoalType, Outcome, Score
from log_config.logger import get_logger

logger = get_logger(__name__)

SCENE_LOBBY = "lobby"
SCENE_INGAME = "ingame"
CUSTOM_GAME_MODE = "Custom"

_IGNORED_EVENTS = {"kill", "death", "assist", "level"}


class CycleState(Enum):
    WAITING_FOR_MATCH = "waiting_for_match"
    RESOLVED = "resolved"


class PromptChoice(str, Enum):
    START_NOW = "start_now"
    SKIP = "skip"
    ALWAYS = "always"


class TelemetryOrchestrator:
    """Event-driven telemetry orchestrator.

    Coordinates:
    - TelemetryProvider: info updates and discrete events (while attached)
    - MatchSessionTracker: start/goal/end and video path backfill
    - SettingsManager: the recording policy, read at decision time

    Architecture:
        TelemetryProvider
        ├─ info update
        │   ├─ scene "lobby"          -> reset cycle
        │   ├─ game mode change       -> early prompt (ask policy)
        │   ├─ scene "ingame"         -> deferred start check
        │   ├─ match_info.score       -> last good score
        │   └─ match_info.outcome     -> tracker.end_match
        └─ events
            ├─ match_start            -> policy evaluation
            ├─ match_end              -> reset cycle
            └─ team_goal/opponent_goal -> tracker.add_goal_event
        EventBus
        └─ CaptureStoppedEvent        -> tracker.update_match_video_path

    Concurrency:
        Telemetry callbacks run on the event loop and never await. Every
        decision (including the prompt-shown flag) is taken synchronously;
        the resulting tracker calls are scheduled as tasks in arrival order.
    """

    def __init__(
        self,
        tracker: MatchSessionTracker,
        telemetry: TelemetryProvider,
        settings: SettingsManager,
        event_bus: EventBus,
        config: Optional[TelemetryConfig] = None,
        error_bus: Optional[ErrorEventBus] = None,
    ):
        """Initialize orchestrator.

        Args:
            tracker: Match session tracker to drive
            telemetry: Telemetry source (subscribed on attach)
            settings: User settings (recording policy)
            event_bus: EventBus for prompts and capture completions
            config: Telemetry configuration (scene delay, features)
            error_bus: Where telemetry failures are reported (optional)
        """
        self._tracker = tracker
        self._telemetry = telemetry
        self._settings = settings
        self._event_bus = event_bus
        self._config = config or TelemetryConfig()
        self._error_bus = error_bus

        self._attached = False
        self._game: Optional[RunningGameInfo] = None

        # Per-cycle state
        self._state = CycleState.WAITING_FOR_MATCH
        self._prompt_shown = False
        self._last_game_mode: Optional[str] = None
        self._pending_opt_in = False

        self._player_info: Dict[str, Any] = {}
        self._last_score = Score()

        self._scene_check: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

        event_bus.subscribe(CaptureStoppedEvent, self._on_capture_stopped)
        logger.info("TelemetryOrchestrator initialized")

    # ------------------------------------------------------------ properties

    @property
    def attached(self) -> bool:
        return self._attached

    @property
    def state(self) -> CycleState:
        return self._state

    @property
    def prompt_shown(self) -> bool:
        return self._prompt_shown

    @property
    def pending_opt_in(self) -> bool:
        return self._pending_opt_in

    @property
    def last_score(self) -> Score:
        return self._last_score

    @property
    def player_info(self) -> Dict[str, Any]:
        return dict(self._player_info)

    # ------------------------------------------------------- attach / detach

    async def attach(self, game: RunningGameInfo) -> bool:
        """Subscribe to telemetry for ``game``.

        Returns:
            True if attached (or already attached)
        """
        if self._attached:
            return True

        features = list(self._config.features_for(game.class_id))
        try:
            accepted = await self._telemetry.set_required_features(features)
        except Exception as e:
            self._report(f"Failed to set required features {features}: {e}", e)
            return False
        if not accepted:
            self._report(f"Telemetry provider rejected features {features}")
            return False

        self._telemetry.start(self.on_info_update, self.on_new_events)
        self._attached = True
        self._game = game
        logger.info(f"Attached to telemetry for {game.title or game.class_id} ({features})")
        return True

    def detach(self) -> None:
        """Unsubscribe from telemetry and drop pending deferred checks. Idempotent."""
        if not self._attached:
            return
        self._telemetry.stop()
        self._cancel_scene_check()
        self._reset_cycle()
        self._attached = False
        self._game = None
        logger.info("Detached from telemetry")

    # ------------------------------------------------------------ info updates

    def on_info_update(self, info: Mapping[str, Any]) -> None:
        game_info = info.get("game_info")
        if isinstance(game_info, Mapping):
            self._handle_game_info(game_info)

        match_info = info.get("match_info")
        if isinstance(match_info, Mapping):
            self._handle_match_info(match_info)

    def _handle_game_info(self, game_info: Mapping[str, Any]) -> None:
        for key in ("player_name", "player_id"):
            if game_info.get(key):
                self._player_info[key] = game_info[key]

        scene = game_info.get("scene")
        if scene:
            logger.debug(f"Scene changed to: {scene}")
            if scene == SCENE_LOBBY:
                self._reset_cycle()
                logger.info("Returned to lobby, recording prompt reset")

        game_mode = game_info.get("game_mode")
        if game_mode:
            self._player_info["game_mode"] = game_mode
            if (
                game_mode != self._last_game_mode
                and game_mode != CUSTOM_GAME_MODE
                and self._settings.recording_mode == RecordingMode.ASK_BEFORE_RECORDING
                and not self._prompt_shown
            ):
                logger.info(f"Game mode changed from {self._last_game_mode} to {game_mode}, prompting")
                self._show_prompt(trigger="game_mode")
            self._last_game_mode = game_mode

        if scene == SCENE_INGAME and self._tracker.get_current_match() is None:
            self._schedule_scene_check()

    def _handle_match_info(self, match_info: Mapping[str, Any]) -> None:
        raw_score = match_info.get("score")
        if raw_score:
            self._update_score(raw_score)

        raw_outcome = match_info.get("match_outcome")
        if raw_outcome and self._tracker.get_current_match() is not None:
            outcome = Outcome.parse(raw_outcome)
            if outcome is None:
                logger.warning(f"Unrecognised match outcome {raw_outcome!r}, ending match without outcome")
            self._spawn(self._tracker.end_match(outcome, self._last_score))

    def _update_score(self, raw_score: Any) -> None:
        try:
            data = json.loads(raw_score) if isinstance(raw_score, str) else raw_score
        except ValueError as e:
            logger.error(f"Failed to parse score {raw_score!r}: {e}")
            return
        if not isinstance(data, Mapping):
            logger.error(f"Score is not an object: {raw_score!r}")
            return
        self._last_score = Score.from_payload(data)
        logger.debug(f"Score updated: {self._last_score.left}-{self._last_score.right}")

    # ---------------------------------------------------------------- events

    def on_new_events(self, payload: Mapping[str, Any]) -> None:
        events = payload.get("events") or []
        if not isinstance(events, list):
            logger.warning(f"Malformed events payload: {payload!r}")
            return

        for event in events:
            if not isinstance(event, Mapping):
                continue
            name = event.get("name")
            if name == "match_start":
                logger.info("Match start event detected")
                self._evaluate_policy(trigger="match_start")
            elif name == "match_end":
                logger.info("Match end event detected")
                self._reset_cycle()
            elif name in (GoalType.TEAM_GOAL.value, GoalType.OPPONENT_GOAL.value):
                self._spawn(self._tracker.add_goal_event(GoalType(name), self._last_score))
            elif name in _IGNORED_EVENTS:
                logger.debug(f"Ignoring {name} event")
            else:
                logger.debug(f"Unhandled event {name!r}")

    # ---------------------------------------------------------------- policy

    def _evaluate_policy(self, trigger: str) -> None:
        mode = self._settings.recording_mode
        player_info = dict(self._player_info)

        if mode == RecordingMode.NEVER_RECORD:
            logger.info("Recording disabled, match not tracked")
        elif mode == RecordingMode.AUTO_RECORD:
            self._pending_opt_in = False
            self._spawn(self._tracker.start_match(player_info, True))
        else:
            with_recording = self._pending_opt_in
            self._pending_opt_in = False
            if self._prompt_shown:
                self._spawn(self._tracker.start_match(player_info, with_recording))
            else:
                # Claimed now so a second trigger in this cycle cannot prompt again
                self._prompt_shown = True
                self._spawn(self._start_then_prompt(player_info, with_recording, trigger))
        self._state = CycleState.RESOLVED

    async def _start_then_prompt(
        self, player_info: Dict[str, Any], with_recording: bool, trigger: str
    ) -> None:
        match = await self._tracker.start_match(player_info, with_recording)
        self._show_prompt(trigger, match.id if match is not None else None)

    def _show_prompt(self, trigger: str, match_id: Optional[str] = None) -> None:
        self._prompt_shown = True
        self._event_bus.publish(RecordingPromptEvent(
            match_id=match_id,
            game_mode=str(self._player_info.get("game_mode", "Unknown")),
            trigger=trigger,
        ))

    async def resolve_prompt(self, choice: PromptChoice) -> None:
        """Apply the user's answer to a RecordingPromptEvent."""
        choice = PromptChoice(choice)
        logger.info(f"Recording prompt answered: {choice.value}")
        if choice == PromptChoice.START_NOW:
            if self._tracker.get_current_match() is not None:
                await self._tracker.start_recording_for_current_match()
            else:
                self._pending_opt_in = True
        elif choice == PromptChoice.ALWAYS:
            self._settings.update(recording_mode=RecordingMode.AUTO_RECORD)

    # ---------------------------------------------------------- scene fallback

    def _schedule_scene_check(self) -> None:
        if self._scene_check is not None:
            return
        loop = asyncio.get_running_loop()
        self._scene_check = loop.call_later(self._config.scene_start_delay_s, self._fire_scene_check)
        logger.debug(f"In-game scene, start check in {self._config.scene_start_delay_s}s")

    def _fire_scene_check(self) -> None:
        self._scene_check = None
        if not self._attached:
            return
        if self._tracker.get_current_match() is not None:
            logger.debug("Match already started, scene fallback not needed")
            return
        logger.info("Starting match based on scene change")
        self._evaluate_policy(trigger="match_start")

    def _cancel_scene_check(self) -> None:
        if self._scene_check is not None:
            self._scene_check.cancel()
            self._scene_check = None

    # ------------------------------------------------------------- backfill

    async def _on_capture_stopped(self, event: CaptureStoppedEvent) -> None:
        if not event.match_id:
            logger.info(f"Recording {event.file_path} is not tied to a match")
            return
        await self._tracker.update_match_video_path(event.match_id, event.file_path)

    # -------------------------------------------------------------- helpers

    def _reset_cycle(self) -> None:
        self._state = CycleState.WAITING_FOR_MATCH
        self._prompt_shown = False
        self._last_game_mode = None

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            error = task.exception()
            logger.opt(exception=error).error(f"Telemetry handler failed: {error}")

    async def drain(self) -> None:
        """Wait for scheduled tracker calls."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _report(self, message: str, error: Optional[Exception] = None) -> None:
        if self._error_bus is None:
            logger.error(message)
            return
        self._error_bus.report(
            category=ErrorCategory.TELEMETRY,
            severity=ErrorSeverity.ERROR,
            message=message,
            source="TelemetryOrchestrator",
            exception=error,
        )
