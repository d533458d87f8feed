"""MatchSessionTracker interface for the current-match lifecycle.

Responsibility: Own "the current match", aggregate goal events into it,
drive recording through the capture service and persist finished matches
through the record store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional

from contracts import GoalEvent, GoalType, MatchSession, Outcome, Score


class MatchSessionTracker(ABC):
    """Abstract interface for the match session tracker.

    Lifecycle operations never raise; policy violations (second start, goal
    without a match, duplicate end) are logged warnings.

    Invariant:
        At most one current match exists at any time. The slot is claimed
        synchronously, so a second start_match issued before the first one's
        awaits complete observes it and does nothing.
    """

    @abstractmethod
    async def start_match(
        self, player_info: Optional[Mapping[str, Any]] = None, with_recording: bool = True
    ) -> Optional[MatchSession]:
        """Begin a new current match.

        Args:
            player_info: Buffered ``player_name``/``player_id``/``game_mode`` values
            with_recording: Also start capture keyed to the new match

        Returns:
            Snapshot of the new match, or None if a match was already current
        """

    @abstractmethod
    async def add_goal_event(self, goal_type: GoalType, score: Score) -> Optional[GoalEvent]:
        """Append a goal to the current match and request a highlight.

        Returns:
            The recorded goal, or None if no match is in progress
        """

    @abstractmethod
    async def end_match(
        self, outcome: Optional[Outcome], final_score: Optional[Score]
    ) -> Optional[MatchSession]:
        """Finish and persist the current match.

        Returns:
            The persisted snapshot, or None if no match is current or it already ended
        """

    @abstractmethod
    async def start_recording_for_current_match(self) -> bool:
        """Start capture for a match that began without recording.

        Returns:
            True if a recording was started
        """

    @abstractmethod
    async def update_match_video_path(self, match_id: str, path: str) -> None:
        """Attach a finished recording to its match, in memory and in the store."""

    @abstractmethod
    def get_current_match(self) -> Optional[MatchSession]:
        """Snapshot of the current match, or None."""

    @abstractmethod
    def get_matches(self) -> List[MatchSession]:
        """Persisted history, most recent first."""
