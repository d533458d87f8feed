"""MatchSessionTracker implementation with EventBus integration.

Owns the current match:
- Creating it (and optionally starting a recording keyed to its id)
- Aggregating goal events and requesting highlight markers
- Ending it, stopping the recording and persisting a snapshot
- Backfilling the video path once the recording's final file is known
"""

from __future__ import annotations

import asyncio
import re
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from app.events.error_bus import ErrorCategory, ErrorEventBus, ErrorSeverity
from app.events.event_bus import EventBus
from app.events.event_types import (
    GoalRecordedEvent,
    MatchChangedEvent,
    MatchPersistedEvent,
    MatchRecordUpdatedEvent,
)
from app.services.capture.interface import CaptureService
from app.services.records.interface import MatchRecordStore
from app.services.session.interface import MatchSessionTracker
from contracts import UNKNOWN, GoalEvent, GoalType, MatchSession, Outcome, Score
from exceptions import CaptureError, StorageError
from log_config.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MEDIA_URL_PREFIX = "overwolf://media/videos/"

_URL_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")
_WINDOWS_DRIVE_RE = re.compile(r"^[A-Za-z]:[\\/]")


class MatchIdFactory:
    """Generates ``match_<epoch-ms>`` ids that never repeat within the process."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last_ms = 0

    def __call__(self) -> str:
        now_ms = int(self._clock() * 1000)
        if now_ms <= self._last_ms:
            now_ms = self._last_ms + 1
        self._last_ms = now_ms
        return f"match_{now_ms}"


new_match_id = MatchIdFactory()


def normalize_video_path(path: str, media_url_prefix: str = DEFAULT_MEDIA_URL_PREFIX) -> str:
    """Turn a provider-reported path into something the player can open.

    URLs and absolute filesystem paths (POSIX, Windows drive or UNC) are
    kept as-is; bare relative names are prefixed with the media URL.
    """
    if not path:
        return path
    if _URL_RE.match(path) or _WINDOWS_DRIVE_RE.match(path) or path.startswith(("/", "\\")):
        return path
    if "\\" in path:
        return path
    return f"{media_url_prefix}{path}"


def _info_value(player_info: Optional[Mapping[str, Any]], key: str) -> str:
    if not player_info:
        return UNKNOWN
    value = player_info.get(key)
    if value is None or value == "":
        return UNKNOWN
    return str(value)


class MatchSessionTrackerImpl(MatchSessionTracker):
    """Event-driven match session tracker.

    Features:
    - At most one current match; the slot is claimed before any await
    - Recording failures never affect match tracking
    - Idempotent end_match (the end time is stamped before any await)
    - Video path backfill that works whether the recording finishes before
      or after the match has been persisted

    Events published:
        MatchChangedEvent, GoalRecordedEvent, MatchPersistedEvent, MatchRecordUpdatedEvent
    """

    def __init__(
        self,
        capture: CaptureService,
        store: MatchRecordStore,
        event_bus: EventBus,
        media_url_prefix: str = DEFAULT_MEDIA_URL_PREFIX,
        highlight_duration_ms: int = 10000,
        error_bus: Optional[ErrorEventBus] = None,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = new_match_id,
    ):
        """Initialize tracker.

        Args:
            capture: Capture service used for recording and highlights
            store: Persisted match history
            event_bus: EventBus instance for publishing events
            media_url_prefix: Prefix applied to bare relative video names
            highlight_duration_ms: Length of the highlight requested per goal
            error_bus: Where storage failures are reported (optional)
            clock: Returns epoch seconds (injectable for tests)
            id_factory: Produces new match ids
        """
        self._capture = capture
        self._store = store
        self._event_bus = event_bus
        self._media_url_prefix = media_url_prefix
        self._highlight_duration_ms = highlight_duration_ms
        self._error_bus = error_bus
        self._clock = clock
        self._id_factory = id_factory

        self._current: Optional[MatchSession] = None
        # Match id the live (or starting) recording belongs to
        self._recording_match_id: Optional[str] = None

        self._persisting: Set[str] = set()
        self._pending_video_paths: Dict[str, str] = {}
        self._background: Set[asyncio.Task] = set()

        logger.info("MatchSessionTracker initialized")

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # ---------------------------------------------------------------- start

    async def start_match(
        self, player_info: Optional[Mapping[str, Any]] = None, with_recording: bool = True
    ) -> Optional[MatchSession]:
        if self._current is not None:
            logger.warning(f"Match {self._current.id} already in progress, ignoring start")
            return None

        match = MatchSession(
            id=self._id_factory(),
            start_time=self._now_ms(),
            player_name=_info_value(player_info, "player_name"),
            player_id=_info_value(player_info, "player_id"),
            game_mode=_info_value(player_info, "game_mode"),
        )
        self._current = match
        logger.info(
            f"Match started: {match.id} (player={match.player_name}, mode={match.game_mode}, "
            f"recording={with_recording})"
        )
        self._event_bus.publish(MatchChangedEvent(match=match.snapshot(), reason="started"))

        if with_recording:
            await self._start_recording(match.id)
        return match.snapshot()

    async def start_recording_for_current_match(self) -> bool:
        match = self._current
        if match is None or match.is_ended:
            logger.warning("No match in progress, cannot start recording")
            return False
        if self._recording_match_id == match.id:
            logger.info(f"Recording already attached to match {match.id}")
            return False
        return await self._start_recording(match.id)

    async def _start_recording(self, match_id: str) -> bool:
        self._recording_match_id = match_id
        try:
            handle = await self._capture.start_capture(match_id)
        except CaptureError as e:
            logger.warning(f"Recording could not start for match {match_id}: {e}")
            self._release_recording(match_id)
            return False
        except Exception as e:
            logger.opt(exception=e).error(f"Unexpected error starting recording for match {match_id}")
            self._release_recording(match_id)
            return False

        if self._capture.recording_match_id() != match_id:
            # Provider kept a recording that is not ours, or none at all
            logger.warning(f"No live recording for match {match_id} (handle={handle!r}), not attaching")
            self._release_recording(match_id)
            return False

        logger.info(f"Recording started for match {match_id} (handle={handle})")
        if self._current is None or self._current.id != match_id or self._current.is_ended:
            # The match ended while the provider was starting
            logger.warning(f"Match {match_id} ended during recording start, stopping orphaned recording")
            await self._stop_recording()
        return True

    def _release_recording(self, match_id: str) -> None:
        if self._recording_match_id == match_id:
            self._recording_match_id = None

    # ---------------------------------------------------------------- goals

    async def add_goal_event(self, goal_type: GoalType, score: Score) -> Optional[GoalEvent]:
        match = self._current
        if match is None or match.is_ended:
            logger.warning(f"Goal event {GoalType(goal_type).value} received with no match in progress")
            return None

        timestamp = self._now_ms()
        goal = GoalEvent(
            timestamp=timestamp,
            type=GoalType(goal_type),
            game_time=max(0, timestamp - match.start_time),
            score=score,
        )
        match.goals.append(goal)
        logger.info(
            f"Goal recorded: {goal.type.value} at {goal.game_time}ms "
            f"({score.left}-{score.right}), match {match.id}"
        )
        self._event_bus.publish(GoalRecordedEvent(match_id=match.id, goal=goal))
        self._event_bus.publish(MatchChangedEvent(match=match.snapshot(), reason="goal"))

        self._spawn(self._request_highlight(f"goal_{timestamp}", goal.game_time))
        return goal

    async def _request_highlight(self, highlight_id: str, offset_ms: int) -> None:
        try:
            name = await self._capture.capture_highlight(
                highlight_id, offset_ms, self._highlight_duration_ms
            )
            if name:
                logger.debug(f"Highlight captured: {name}")
        except Exception as e:
            logger.warning(f"Highlight {highlight_id} failed: {e}")

    # ------------------------------------------------------------------ end

    async def end_match(
        self, outcome: Optional[Outcome], final_score: Optional[Score]
    ) -> Optional[MatchSession]:
        match = self._current
        if match is None:
            logger.warning("end_match called with no match in progress")
            return None
        if match.is_ended:
            logger.info(f"Match {match.id} already ending, ignoring duplicate end")
            return None

        match.end_time = self._now_ms()

        if self._recording_match_id == match.id:
            await self._stop_recording()

        match.outcome = outcome
        match.final_score = final_score
        snapshot = match.snapshot()
        self._current = None
        self._release_recording(match.id)
        logger.info(
            f"Match ended: {match.id} outcome={outcome.value if outcome else None} "
            f"goals={len(match.goals)} duration={snapshot.duration_ms}ms"
        )
        self._event_bus.publish(MatchChangedEvent(match=None, reason="ended"))

        self._persisting.add(snapshot.id)
        try:
            early_path = self._pending_video_paths.pop(snapshot.id, None)
            if early_path is not None:
                snapshot.video_path = early_path
            await self._store.append(snapshot)

            late_path = self._pending_video_paths.pop(snapshot.id, None)
            if late_path is not None:
                snapshot.video_path = late_path
                await self._store.patch(snapshot.id, video_path=late_path)
        except StorageError as e:
            self._report_storage_error(f"Failed to persist match {snapshot.id}: {e}", e)
            return snapshot
        finally:
            self._persisting.discard(snapshot.id)

        self._event_bus.publish(MatchPersistedEvent(record=snapshot.snapshot()))
        return snapshot

    async def _stop_recording(self) -> None:
        try:
            await self._capture.stop_capture()
        except CaptureError as e:
            logger.warning(f"Failed to stop recording: {e}")
        except Exception as e:
            logger.opt(exception=e).error("Unexpected error stopping recording")

    # ------------------------------------------------------------- backfill

    async def update_match_video_path(self, match_id: str, path: str) -> None:
        video_url = normalize_video_path(path, self._media_url_prefix)
        logger.info(f"Updating match {match_id} with video path: {video_url}")

        if self._current is not None and self._current.id == match_id:
            self._current.video_path = video_url
            self._event_bus.publish(MatchChangedEvent(match=self._current.snapshot(), reason="video"))

        try:
            patched = await self._store.patch(match_id, video_path=video_url)
        except StorageError as e:
            self._report_storage_error(f"Failed to store video path for match {match_id}: {e}", e)
            return
        except Exception as e:
            logger.opt(exception=e).error(f"Unexpected error patching match {match_id}")
            return

        if patched:
            self._pending_video_paths.pop(match_id, None)
            self._event_bus.publish(MatchRecordUpdatedEvent(match_id=match_id, video_path=video_url))
        elif match_id in self._persisting or (
            self._current is not None and self._current.id == match_id
        ):
            self._pending_video_paths[match_id] = video_url
            logger.info(f"Match {match_id} not stored yet, video path will be applied on save")
        else:
            logger.warning(f"Match not found in storage: {match_id}")

    # -------------------------------------------------------------- queries

    def get_current_match(self) -> Optional[MatchSession]:
        return self._current.snapshot() if self._current is not None else None

    def get_matches(self) -> List[MatchSession]:
        return self._store.list_all()

    def has_recording(self) -> bool:
        """True if a recording is attached to the current match."""
        return self._current is not None and self._recording_match_id == self._current.id

    async def wait_for_background(self) -> None:
        """Wait for outstanding highlight requests."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # -------------------------------------------------------------- helpers

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _report_storage_error(self, message: str, error: Exception) -> None:
        if self._error_bus is None:
            logger.error(message)
            return
        self._error_bus.report(
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.ERROR,
            message=message,
            source="MatchSessionTracker",
            exception=error,
        )
