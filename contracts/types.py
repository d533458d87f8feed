"""Core data contracts for match sessions, goal events, and capture sessions."""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

UNKNOWN = "Unknown"


class GoalType(str, Enum):
    TEAM_GOAL = "team_goal"
    OPPONENT_GOAL = "opponent_goal"


class Outcome(str, Enum):
    VICTORY = "victory"
    DEFEAT = "defeat"
    DRAW = "draw"

    @classmethod
    def parse(cls, value: Any) -> Optional["Outcome"]:
        """Map a telemetry outcome string onto an Outcome, or None if unrecognised."""
        if isinstance(value, Outcome):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


def _to_int(value: Any) -> int:
    """Lenient integer coercion; anything non-numeric becomes 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        # Accept leading digits the way telemetry counters are usually sent ("3", "3 ")
        digits = ""
        for index, char in enumerate(text):
            if char.isdigit() or (index == 0 and char in "+-"):
                digits += char
            else:
                break
        try:
            return int(digits)
        except ValueError:
            return 0
    return 0


@dataclass(frozen=True)
class Score:
    left: int = 0
    right: int = 0

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "Score":
        """Build a Score from either telemetry (left_score/right_score) or stored (left/right) keys."""
        if not payload:
            return cls()
        if "left_score" in payload or "right_score" in payload:
            return cls(
                left=_to_int(payload.get("left_score")),
                right=_to_int(payload.get("right_score")),
            )
        return cls(left=_to_int(payload.get("left")), right=_to_int(payload.get("right")))

    def to_dict(self) -> Dict[str, int]:
        return {"left": self.left, "right": self.right}


@dataclass(frozen=True)
class GoalEvent:
    timestamp: int
    type: GoalType
    game_time: int
    score: Score

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "type": self.type.value,
            "gameTime": self.game_time,
            "score": self.score.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GoalEvent":
        return cls(
            timestamp=int(data["timestamp"]),
            type=GoalType(data["type"]),
            game_time=max(0, int(data.get("gameTime", 0))),
            score=Score.from_payload(data.get("score")),
        )


@dataclass
class MatchSession:
    """One played match.

    ``end_time`` is None while the match is in progress. ``video_path`` may
    be filled in after the record has been persisted (backfill).
    """

    id: str
    start_time: int
    player_name: str = UNKNOWN
    player_id: str = UNKNOWN
    game_mode: str = UNKNOWN
    end_time: Optional[int] = None
    outcome: Optional[Outcome] = None
    final_score: Optional[Score] = None
    goals: List[GoalEvent] = field(default_factory=list)
    video_path: Optional[str] = None
    thumbnail_path: Optional[str] = None

    @property
    def is_ended(self) -> bool:
        return self.end_time is not None

    @property
    def duration_ms(self) -> Optional[int]:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    def snapshot(self) -> "MatchSession":
        """Return an independent copy (goals list included)."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted record layout. Absent optionals are omitted."""
        data: Dict[str, Any] = {
            "id": self.id,
            "startTime": self.start_time,
            "playerName": self.player_name,
            "playerId": self.player_id,
            "gameMode": self.game_mode,
            "goals": [goal.to_dict() for goal in self.goals],
        }
        if self.end_time is not None:
            data["endTime"] = self.end_time
        if self.outcome is not None:
            data["outcome"] = self.outcome.value
        if self.final_score is not None:
            data["finalScore"] = self.final_score.to_dict()
        if self.video_path is not None:
            data["videoPath"] = self.video_path
        if self.thumbnail_path is not None:
            data["thumbnailPath"] = self.thumbnail_path
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MatchSession":
        """Parse a persisted record.

        Raises:
            KeyError: If ``id`` or ``startTime`` is missing
            ValueError: If a field has an unusable value
        """
        final_score = data.get("finalScore")
        end_time = data.get("endTime")
        return cls(
            id=str(data["id"]),
            start_time=int(data["startTime"]),
            end_time=int(end_time) if end_time is not None else None,
            player_name=data.get("playerName") or UNKNOWN,
            player_id=data.get("playerId") or UNKNOWN,
            game_mode=data.get("gameMode") or UNKNOWN,
            outcome=Outcome.parse(data.get("outcome")),
            final_score=Score.from_payload(final_score) if final_score is not None else None,
            goals=[GoalEvent.from_dict(goal) for goal in data.get("goals", [])],
            video_path=data.get("videoPath"),
            thumbnail_path=data.get("thumbnailPath"),
        )


@dataclass
class CaptureSession:
    """A live recording against the capture provider. Never persisted."""

    encoder: str
    correlated_match_id: Optional[str] = None
    stream_id: Optional[int] = None
    started_at: float = field(default_factory=time.time)

    @property
    def handle(self) -> str:
        return "" if self.stream_id is None else str(self.stream_id)
