"""Event types for service communication.

All events are immutable dataclasses that flow through the EventBus.
Services publish events when significant actions occur, and other services
(or presentation layers outside this package) subscribe to react to them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from configs.user_settings import AppSettings
from contracts import GoalEvent, MatchSession


@dataclass(frozen=True)
class MatchChangedEvent:
    """Published whenever the current match changes.

    Published By: MatchSessionTracker (start, goal, video path, end)
    Subscribed By: presentation layers

    Attributes:
        match: Snapshot of the current match, or None when no match is current
        reason: "started", "goal", "video", or "ended"
    """
    match: Optional[MatchSession]
    reason: str


@dataclass(frozen=True)
class GoalRecordedEvent:
    """Published after a goal was appended to the current match.

    Attributes:
        match_id: Match the goal belongs to
        goal: The recorded goal event
    """
    match_id: str
    goal: GoalEvent


@dataclass(frozen=True)
class MatchPersistedEvent:
    """Published when a finished match has been appended to the record store.

    Published By: MatchSessionTracker.end_match
    Subscribed By: match history views

    Attributes:
        record: Snapshot that was persisted
    """
    record: MatchSession


@dataclass(frozen=True)
class MatchRecordUpdatedEvent:
    """Published when a persisted record was patched (video path backfill).

    Attributes:
        match_id: Patched record id
        video_path: New video path
    """
    match_id: str
    video_path: str


@dataclass(frozen=True)
class RecordingPromptEvent:
    """Published when the user must be asked whether to record this match.

    Published By: TelemetryOrchestrator (ask-before-recording policy)
    Subscribed By: UI, which answers through TelemetryOrchestrator.resolve_prompt()

    Attributes:
        match_id: Current match id, or None when prompted while queueing
        game_mode: Game mode known at prompt time
        trigger: "match_start" or "game_mode"
    """
    match_id: Optional[str]
    game_mode: str
    trigger: str


@dataclass(frozen=True)
class SettingsChangedEvent:
    """Published when user settings change.

    Attributes:
        settings: The new settings
    """
    settings: AppSettings


@dataclass(frozen=True)
class CaptureStartedEvent:
    """Published when the capture provider confirmed a new recording.

    Attributes:
        stream_id: Provider-issued stream handle
        match_id: Match this recording is correlated with (if any)
        encoder: Encoder name applied for this session
    """
    stream_id: int
    match_id: Optional[str]
    encoder: str


@dataclass(frozen=True)
class CaptureStoppedEvent:
    """Published when the provider reports the final file of a recording.

    Arrives independently of (and possibly after) the stop request and the
    end of the match it belongs to.

    Published By: CaptureSessionManager (provider on_stopped push)
    Subscribed By: TelemetryOrchestrator (video path backfill)

    Attributes:
        match_id: Correlated match id, or None if the recording was not tied to a match
        file_path: Final output path reported by the provider
        duration_ms: Recording duration in milliseconds
        stream_id: Provider stream handle, if reported
    """
    match_id: Optional[str]
    file_path: str
    duration_ms: int = 0
    stream_id: Optional[int] = None


@dataclass(frozen=True)
class HighlightMarkedEvent:
    """Published when a highlight marker (stream split) was requested.

    Attributes:
        highlight_id: Synthesized highlight identifier
        offset_ms: Offset from match start
        duration_ms: Requested highlight duration
    """
    highlight_id: str
    offset_ms: int
    duration_ms: int
